"""
Google Sheets backend

The family ledger is a plain spreadsheet: one `Transactions` worksheet
the family can open, filter and chart themselves, plus an `AuditLog`
worksheet for the operator. Both are created on first use with a frozen
header row. A `Summary` worksheet of formulas over the transactions can
be rebuilt on request.

DESIGN DECISION: Sheets has no server-side query, so the ledger exposes
only append and a full read. Filtering and aggregation happen in
`dompet.ledger`. A household ledger stays small enough for that.

gspread is synchronous. Every sheet call runs in a worker thread so a
slow Sheets API never stalls the bot's event loop.
"""

import asyncio
from datetime import tzinfo
from decimal import Decimal
from typing import Optional

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from dompet.config import get_settings
from dompet.config.settings import GoogleSheetsSettings
from dompet.models.audit import AUDIT_SHEET_COLUMNS, AuditEvent
from dompet.models.ledger import LedgerEntry
from dompet.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
    StorageError,
    StoreUnavailable,
)
from dompet.services.storage.rows import LEDGER_COLUMNS, entry_to_row, summary_sheet_rows


logger = structlog.get_logger(__name__)


SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

SUMMARY_SHEET_NAME = "Summary"

AMOUNT_COLUMN = LEDGER_COLUMNS.index("Amount")


class GoogleSheetsClient:
    """
    Owns the authorized gspread handle and the two worksheets.

    Only authorization is retried here. Ledger calls surface failures as
    StoreUnavailable and the caller decides what to do.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._settings = settings or get_settings().google_sheets
        self._gc: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authorize with the service account, once."""
        if self._gc is not None:
            return self._gc
        path = self._settings.credentials_path
        try:
            credentials = Credentials.from_service_account_file(path, scopes=SCOPES)
        except FileNotFoundError:
            raise StoreUnavailable(f"Service account file missing: {path}")
        except ValueError as e:
            raise StoreUnavailable(f"Service account file unreadable: {e}")
        self._gc = gspread.authorize(credentials)
        return self._gc

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            try:
                self._spreadsheet = self.connect().open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise StoreUnavailable(f"No spreadsheet with id {self._settings.spreadsheet_id}")
        return self._spreadsheet

    @property
    def spreadsheet_url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self._settings.spreadsheet_id}"

    def _worksheet(self, title: str, header: list[str], rows: int) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            return spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            pass
        sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(header))
        sheet.append_row(header)
        sheet.freeze(rows=1)
        logger.info("worksheet_created", title=title)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.transactions_sheet_name, LEDGER_COLUMNS, rows=1000)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._worksheet(self._settings.audit_sheet_name, AUDIT_SHEET_COLUMNS, rows=5000)

    def _recreate_summary_sync(self) -> None:
        spreadsheet = self.get_spreadsheet()
        try:
            spreadsheet.del_worksheet(spreadsheet.worksheet(SUMMARY_SHEET_NAME))
            logger.info("worksheet_deleted", title=SUMMARY_SHEET_NAME)
        except gspread.WorksheetNotFound:
            pass

        rows = summary_sheet_rows(self._settings.transactions_sheet_name)
        sheet = spreadsheet.add_worksheet(title=SUMMARY_SHEET_NAME, rows=30, cols=10)
        sheet.update(values=rows, range_name="A1", value_input_option="USER_ENTERED")
        sheet.format("A1:B1", {
            "backgroundColor": {"red": 0.2, "green": 0.4, "blue": 0.8},
            "textFormat": {"foregroundColor": {"red": 1, "green": 1, "blue": 1}, "bold": True, "fontSize": 14},
        })
        for header in ("A3:B3", "A9:B9"):
            sheet.format(header, {
                "backgroundColor": {"red": 0.9, "green": 0.9, "blue": 0.9},
                "textFormat": {"bold": True},
            })
        sheet.format(f"B4:B{len(rows)}", {
            "numberFormat": {"type": "NUMBER", "pattern": "#,##0"},
        })
        sheet.freeze(rows=1)
        logger.info("worksheet_created", title=SUMMARY_SHEET_NAME, rows=len(rows))

    async def recreate_summary_sheet(self) -> str:
        """
        Drop and rebuild the Summary worksheet.

        The sheet only holds formulas over the Transactions sheet, so
        rebuilding it loses nothing. Returns the spreadsheet URL.

        Raises:
            StoreUnavailable: If Sheets could not be reached or refused the change
        """
        try:
            await asyncio.to_thread(self._recreate_summary_sync)
        except StoreUnavailable:
            raise
        except Exception as e:
            raise StoreUnavailable(f"Failed to rebuild the Summary sheet: {e}")
        return self.spreadsheet_url


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of the ledger.

    One transaction per row, appended at the bottom of the Transactions
    sheet. Rows are never updated or deleted by the bot.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None, timezone: Optional[tzinfo] = None):
        self._client = client or GoogleSheetsClient()
        self._timezone = timezone

    @staticmethod
    def sheet_cells(row: list[str]) -> list:
        """Row cells as sent to Sheets, with Amount as a number the Summary formulas can add up."""
        cells = list(row)
        amount = Decimal(cells[AMOUNT_COLUMN])
        cells[AMOUNT_COLUMN] = int(amount) if amount == amount.to_integral_value() else float(amount)
        return cells

    def _append_sync(self, row: list[str]) -> None:
        sheet = self._client.get_transactions_sheet()
        sheet.append_row(self.sheet_cells(row), value_input_option="RAW")

    def _read_sync(self) -> list[list[str]]:
        sheet = self._client.get_transactions_sheet()
        return sheet.get_all_values()[1:]  # Skip header

    async def append(self, entry: LedgerEntry) -> bool:
        """
        Append an entry to the Transactions sheet.

        Not retried: a timed-out append may still have landed, and a
        retry would duplicate the transaction.
        """
        try:
            await asyncio.to_thread(self._append_sync, entry_to_row(entry, self._timezone))
            return True
        except StoreUnavailable:
            raise
        except Exception as e:
            raise StoreUnavailable(f"Failed to append transaction: {e}")

    async def query_all(self) -> list[list[str]]:
        """Read every data row from the Transactions sheet."""
        try:
            return await asyncio.to_thread(self._read_sync)
        except StoreUnavailable:
            raise
        except Exception as e:
            raise StoreUnavailable(f"Failed to read transactions: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """Operator audit trail on the `AuditLog` worksheet."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _write_row(self, row: list) -> None:
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    def _read_rows(self) -> list[list[str]]:
        return self._client.get_audit_sheet().get_all_values()[1:]

    async def append_event(self, event: AuditEvent) -> bool:
        try:
            await asyncio.to_thread(self._write_row, event.to_sheets_row())
        except Exception as e:
            logger.warning("audit_sheet_write_failed", event_type=event.event_type.value, error=str(e))
            return False
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        try:
            rows = await asyncio.to_thread(self._read_rows)
        except Exception as e:
            raise StorageError(f"Cannot read the audit sheet: {e}")

        events = []
        skipped = 0
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except (ValueError, IndexError):
                skipped += 1
        if skipped:
            logger.warning("audit_rows_skipped", count=skipped)

        return sorted(events, key=lambda e: e.timestamp, reverse=True)[:limit]
