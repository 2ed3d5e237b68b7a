"""
Ledger Query Interface

DESIGN DECISION: The ledger collaborator is a flat, unindexed log.
Every query pulls the full feed and filters client-side. This keeps the
storage contract trivially small (append + read-all) and puts all
selection logic where it can be tested without a spreadsheet.

Window membership is decided by `occurred_date`, never by `timestamp`:
an entry recorded on the 2nd for something bought on the 1st belongs
to the 1st.
"""

import structlog

from dompet.models.ledger import EntryFilter, LedgerEntry
from dompet.services.storage import LedgerStorageInterface, StorageError, StoreUnavailable
from dompet.services.storage.rows import MalformedRowError, row_to_entry


logger = structlog.get_logger(__name__)


class LedgerQuery:
    """
    Read and append access to the ledger.

    Never retries. A backend that cannot be reached surfaces as
    StoreUnavailable and the caller decides what that means.
    """

    def __init__(self, storage: LedgerStorageInterface):
        self._storage = storage

    async def fetch_entries(self, entry_filter: EntryFilter) -> list[LedgerEntry]:
        """
        Return all entries matching the filter.

        No ordering is guaranteed. Rows that cannot be parsed are logged
        and skipped rather than failing the whole query.

        Raises:
            StoreUnavailable: If the ledger cannot be read
        """
        rows = await self._read_rows()

        entries = []
        skipped = 0
        for index, row in enumerate(rows):
            if not any(str(cell).strip() for cell in row):
                continue
            try:
                entry = row_to_entry(row)
            except (MalformedRowError, ValueError) as e:
                skipped += 1
                logger.warning("ledger_row_skipped", row_index=index, error=str(e))
                continue
            if entry_filter.matches(entry):
                entries.append(entry)

        logger.debug(
            "ledger_query",
            owner_id=entry_filter.owner_id,
            date_from=entry_filter.date_from.isoformat(),
            date_to=entry_filter.date_to.isoformat(),
            matched=len(entries),
            skipped=skipped,
        )
        return entries

    async def record(self, entry: LedgerEntry) -> LedgerEntry:
        """
        Append an entry to the ledger.

        Raises:
            StoreUnavailable: If the append did not go through
        """
        try:
            await self._storage.append(entry)
        except StoreUnavailable:
            raise
        except StorageError as e:
            raise StoreUnavailable(f"Failed to append ledger entry: {e}") from e
        return entry

    async def _read_rows(self) -> list[list[str]]:
        try:
            return await self._storage.query_all()
        except StoreUnavailable:
            raise
        except StorageError as e:
            raise StoreUnavailable(f"Failed to read ledger: {e}") from e
