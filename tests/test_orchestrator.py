"""
Flow tests for the orchestrator.

These run the same calls the chat handlers make, against in-memory
storage and a fake transport.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from dompet.config.settings import SchedulerSettings
from dompet.conversation.parsing import TransactionParseError
from dompet.conversation.pending import PendingActionExpired, PendingActionStore
from dompet.ledger.members import PermissionDenied
from dompet.models.audit import AuditEventType
from dompet.models.ledger import EntryFilter, TransactionKind
from dompet.models.notification import NotificationKind
from dompet.orchestrator import (
    ReportFlow,
    SettingsFlow,
    TransactionFlow,
    create_app_components,
)
from dompet.services.storage import StoreUnavailable

from conftest import FakeInsightAgent, FakeTransport, january_2025_entries, make_entry, seed_ledger


TODAY = date(2025, 1, 15)
JANUARY = EntryFilter(date_from=date(2025, 1, 1), date_to=date(2025, 1, 31))


@pytest.fixture
def pending():
    return PendingActionStore(ttl=timedelta(minutes=10))


@pytest.fixture
def flow(query, members, pending, audit_logger):
    return TransactionFlow(
        query,
        members,
        pending,
        audit_logger=audit_logger,
        max_amount=Decimal("1000000000"),
        today=lambda: TODAY,
    )


@pytest.fixture
def reports(engine, members):
    return ReportFlow(engine, members, today=lambda: TODAY)


def event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


class TestTransactionFlow:
    """Tests for propose / confirm / cancel."""

    @pytest.mark.asyncio
    async def test_unregistered_sender_is_rejected(self, flow, pending):
        """Test nothing is proposed for a stranger."""
        with pytest.raises(PermissionDenied):
            await flow.propose("999", "999", "makan 50000")
        assert len(pending) == 0

    @pytest.mark.asyncio
    async def test_propose_then_confirm(self, flow, members, query, audit_storage):
        """Test the full happy path."""
        await members.register("100", "Papa")

        proposed = await flow.propose("100", "100", "makan siang 50000")
        assert proposed.draft.amount == Decimal("50000")
        assert proposed.draft.category == "MAKANAN"
        assert proposed.draft.owner_name == "Papa"
        assert await query.fetch_entries(JANUARY) == []

        entry = await flow.confirm(proposed.token)

        assert entry.occurred_date == TODAY
        assert await query.fetch_entries(JANUARY) == [entry]
        assert AuditEventType.TRANSACTION_PROPOSED in event_types(audit_storage)
        assert event_types(audit_storage)[-1] == AuditEventType.TRANSACTION_RECORDED
        with pytest.raises(PendingActionExpired):
            await flow.confirm(proposed.token)

    @pytest.mark.asyncio
    async def test_yesterday_entry_is_dated_yesterday(self, flow, members):
        """Test occurred date comes from the text."""
        await members.register("100", "Papa")
        proposed = await flow.propose("100", "100", "bensin 30rb kemarin")
        entry = await flow.confirm(proposed.token)
        assert entry.occurred_date == date(2025, 1, 14)
        assert entry.category == "TRANSPORT"

    @pytest.mark.asyncio
    async def test_cancel_writes_nothing(self, flow, members, query, audit_storage):
        """Test a cancelled draft never reaches the ledger."""
        await members.register("100", "Papa")
        proposed = await flow.propose("100", "100", "makan 50000")

        await flow.cancel(proposed.token)

        assert await query.fetch_entries(JANUARY) == []
        assert event_types(audit_storage)[-1] == AuditEventType.TRANSACTION_CANCELLED
        with pytest.raises(PendingActionExpired):
            await flow.confirm(proposed.token)

    @pytest.mark.asyncio
    async def test_failed_write_can_be_retried(self, flow, members, ledger_storage, query, audit_storage):
        """Test the draft survives an unavailable ledger."""
        await members.register("100", "Papa")
        proposed = await flow.propose("100", "100", "makan 50000")

        ledger_storage.available = False
        with pytest.raises(StoreUnavailable):
            await flow.confirm(proposed.token)
        assert event_types(audit_storage)[-1] == AuditEventType.EXTERNAL_SERVICE_ERROR

        ledger_storage.available = True
        await flow.confirm(proposed.token)
        assert len(await query.fetch_entries(JANUARY)) == 1

    @pytest.mark.asyncio
    async def test_change_category(self, flow, members):
        """Test category changes are limited to the draft's kind."""
        await members.register("100", "Papa")
        proposed = await flow.propose("100", "100", "makan 50000")

        with pytest.raises(ValueError):
            await flow.change_category(proposed.token, "GAJI")

        updated = await flow.change_category(proposed.token, "BELANJA")
        entry = await flow.confirm(updated.token)
        assert entry.category == "BELANJA"

    @pytest.mark.asyncio
    async def test_unparseable_text(self, flow, members, pending):
        """Test no draft is stored for text without an amount."""
        await members.register("100", "Papa")
        with pytest.raises(TransactionParseError):
            await flow.propose("100", "100", "halo")
        assert len(pending) == 0

    @pytest.mark.asyncio
    async def test_forced_kind(self, flow, members):
        """Test /income and /expense override what the wording suggests."""
        await members.register("100", "Papa")

        income = await flow.propose("100", "100", "transfer dari adik 200rb", kind=TransactionKind.INCOME)
        expense = await flow.propose("100", "100", "terima paket ongkir 15000", kind=TransactionKind.EXPENSE)

        assert income.draft.kind == TransactionKind.INCOME
        assert income.draft.amount == Decimal("200000")
        assert expense.draft.kind == TransactionKind.EXPENSE
        with pytest.raises(ValueError):
            await flow.change_category(expense.token, "GAJI")

    @pytest.mark.asyncio
    async def test_entries_keep_name_after_rename(self, flow, members, query):
        """Test old entries keep the name they were recorded with."""
        await members.register("100", "Papa")
        first = await flow.propose("100", "100", "makan 50000")
        await flow.confirm(first.token)

        await members.rename("100", "Ayah")
        second = await flow.propose("100", "100", "parkir 5000")
        await flow.confirm(second.token)

        names = sorted(e.owner_name for e in await query.fetch_entries(JANUARY))
        assert names == ["Ayah", "Papa"]


class TestReportFlow:
    """Tests for on-demand reports."""

    @pytest.mark.asyncio
    async def test_personal_and_family_daily(self, reports, members, ledger_storage):
        """Test personal reports only show the member's own entries."""
        await members.register("100", "Papa")
        await members.register("200", "Mama")
        seed_ledger(ledger_storage, [
            make_entry(TODAY, 50000, owner_id="100"),
            make_entry(TODAY, 30000, owner_id="200", owner_name="Mama"),
        ])

        personal = await reports.daily_report("200")
        family = await reports.daily_report("200", family=True)

        assert "Rp 30.000" in personal.text
        assert "Rp 50.000" not in personal.text
        assert "Ringkasan Harian Keluarga" in family.text
        assert "Total Pengeluaran: Rp 80.000" in family.text
        assert "Per Anggota" in family.text
        assert personal.chart.caption == "📊 Visualisasi Harian - Mama"
        assert family.chart.caption == "📊 Visualisasi Harian Keluarga"
        assert personal.chart.url.startswith("https://quickchart.io/chart?c=")

    @pytest.mark.asyncio
    async def test_monthly_defaults_to_current_month(self, reports, members, ledger_storage):
        """Test the January example as a monthly report."""
        await members.register("100", "Papa")
        seed_ledger(ledger_storage, january_2025_entries("100"))

        report = await reports.monthly_report("100")

        assert "Januari 2025" in report.text
        assert "Saldo: Rp 4.930.000" in report.text
        assert report.chart.caption == "📊 Pengeluaran per Kategori - Papa"

    @pytest.mark.asyncio
    async def test_empty_day_has_no_chart(self, reports, members):
        """Test a chart is only attached when money moved."""
        await members.register("100", "Papa")
        report = await reports.daily_report("100")
        assert "Belum ada transaksi" in report.text
        assert report.chart is None

    @pytest.mark.asyncio
    async def test_income_only_month_has_no_category_chart(self, reports, members, ledger_storage):
        """Test the bar chart needs at least one expense."""
        await members.register("100", "Papa")
        seed_ledger(ledger_storage, [make_entry(TODAY, 5000000, "GAJI", TransactionKind.INCOME)])
        report = await reports.monthly_report("100", family=True)
        assert report.chart is None

    @pytest.mark.asyncio
    async def test_unregistered_member_cannot_read(self, reports):
        """Test reports are for members only."""
        with pytest.raises(PermissionDenied):
            await reports.monthly_report("999", family=True)


class TestSettingsFlow:
    """Tests for /settings."""

    @pytest.mark.asyncio
    async def test_toggle(self, preferences):
        """Test the rendered text follows the toggle."""
        settings = SettingsFlow(preferences)
        text, prefs = await settings.show("100")
        assert prefs.daily is True
        assert "✅ Rekap harian" in text

        text, prefs = await settings.toggle("100", NotificationKind.DAILY)
        assert prefs.daily is False
        assert "☑️ Rekap harian" in text


class TestAppComponents:
    """Tests for the component factory."""

    @pytest.mark.asyncio
    async def test_components_without_sheets(self, monkeypatch, tmp_path):
        """Test the in-memory wiring end to end."""
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        transport = FakeTransport()

        components = create_app_components(
            transport,
            use_storage=False,
            insight_agent=FakeInsightAgent(),
            scheduler_settings=SchedulerSettings(),
        )

        assert components.sheets_client is None
        assert not components.scheduler.running

        await components.members.register("100", "Papa")
        proposed = await components.transactions.propose("100", "100", "gaji 5 juta")
        entry = await components.transactions.confirm(proposed.token)
        assert entry.kind == TransactionKind.INCOME
        assert (tmp_path / "users.json").exists()

        report = await components.scheduler.trigger_now(NotificationKind.DAILY)
        assert report.members_total == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
