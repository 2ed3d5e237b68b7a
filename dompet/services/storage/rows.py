"""
Ledger row codec.

The Transactions sheet is also read by people, so the layout is plain
text columns rather than JSON:

    Timestamp | Date | Time | Type | Category | Amount | Description | User ID | User Name

`Date` is the occurred date (window membership). `Timestamp` is the
recording instant, stored in UTC. `Time` is the wall-clock time of that
instant in the family's timezone, for people reading the sheet; it is
never read back.
"""

from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Optional
from zoneinfo import ZoneInfo

from dompet.models.categories import EXPENSE_CATEGORIES
from dompet.models.ledger import LedgerEntry, TransactionKind


LEDGER_COLUMNS = [
    "Timestamp",
    "Date",
    "Time",
    "Type",
    "Category",
    "Amount",
    "Description",
    "User ID",
    "User Name",
]

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")

SHEET_TIMEZONE = ZoneInfo("Asia/Jakarta")


class MalformedRowError(ValueError):
    """A ledger row could not be turned into a LedgerEntry."""
    pass


def entry_to_row(entry: LedgerEntry, tz: Optional[tzinfo] = None) -> list[str]:
    """Convert a LedgerEntry to a spreadsheet row."""
    local_time = entry.timestamp.astimezone(tz or SHEET_TIMEZONE)
    return [
        entry.timestamp.isoformat(),
        entry.occurred_date.isoformat(),
        local_time.strftime("%H:%M:%S"),
        entry.kind.value,
        entry.category,
        str(entry.amount),
        entry.description or "",
        entry.owner_id,
        entry.owner_name,
    ]


def parse_sheet_date(value: str) -> date:
    value = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise MalformedRowError(f"Unrecognised date: {value!r}")


def parse_sheet_amount(value: str) -> Decimal:
    """
    Parse an amount cell.

    Accepts "50000", "50000.5" and sheet-formatted "Rp 50.000" / "50,000".
    """
    rupiah_formatted = "Rp" in value
    cleaned = value.replace("Rp", "").replace(" ", "").strip()
    if rupiah_formatted or cleaned.count(".") > 1 or ("," in cleaned and "." in cleaned):
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", "")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise MalformedRowError(f"Unrecognised amount: {value!r}")
    if amount <= 0:
        raise MalformedRowError(f"Amount must be positive: {value!r}")
    return amount


def row_to_entry(row: list[str]) -> LedgerEntry:
    """Convert a spreadsheet row to a LedgerEntry."""
    # Handle missing columns gracefully
    def safe_get(index: int, default: str = "") -> str:
        try:
            return str(row[index]).strip() if row[index] not in (None, "") else default
        except IndexError:
            return default

    try:
        kind = TransactionKind(safe_get(3).lower())
    except ValueError:
        raise MalformedRowError(f"Unknown transaction type: {safe_get(3)!r}")

    occurred = parse_sheet_date(safe_get(1))

    raw_ts = safe_get(0)
    try:
        timestamp = datetime.fromisoformat(raw_ts.replace("Z", "+00:00"))
    except ValueError:
        timestamp = datetime.combine(occurred, datetime.min.time())
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)

    owner_id = safe_get(7)
    if not owner_id:
        raise MalformedRowError("Row has no owner")

    return LedgerEntry(
        timestamp=timestamp,
        occurred_date=occurred,
        kind=kind,
        category=safe_get(4) or "LAINNYA",
        amount=parse_sheet_amount(safe_get(5)),
        description=safe_get(6) or None,
        owner_id=owner_id,
        owner_name=safe_get(8, "Unknown"),
    )


def _column(name: str) -> str:
    return chr(ord("A") + LEDGER_COLUMNS.index(name))


def summary_sheet_rows(transactions_sheet: str) -> list[list[str]]:
    """
    Cells of the Summary sheet, as formulas over the Transactions sheet.

    Row 4 holds total expense and row 5 total income; the balance cell
    refers to both.
    """
    source = f"'{transactions_sheet}'!"
    kind_col = f"{source}{_column('Type')}:{_column('Type')}"
    category_col = f"{source}{_column('Category')}:{_column('Category')}"
    amount_col = f"{source}{_column('Amount')}:{_column('Amount')}"

    rows = [
        ["📊 RINGKASAN KEUANGAN", ""],
        ["", ""],
        ["💰 Metric", "Value"],
        ["Total Pengeluaran", f'=SUMIF({kind_col},"expense",{amount_col})'],
        ["Total Pemasukan", f'=SUMIF({kind_col},"income",{amount_col})'],
        ["💵 Saldo", "=B5-B4"],
        ["", ""],
        ["📊 PENGELUARAN PER KATEGORI", ""],
        ["Kategori", "Total"],
    ]
    for key, info in EXPENSE_CATEGORIES.items():
        rows.append([
            f"{info.icon} {key}",
            f'=SUMIFS({amount_col},{kind_col},"expense",{category_col},"{key}")',
        ])
    return rows
