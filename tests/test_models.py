"""
Tests for Dompet models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Flow tests against in-memory storage and fake transports
3. No real API calls in tests (Telegram, Sheets and Gemini are faked)
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from dompet.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from dompet.models.categories import (
    EXPENSE_CATEGORIES,
    INCOME_CATEGORIES,
    OTHER_CATEGORY,
    category_display,
    classify,
    is_known_category,
)
from dompet.models.ledger import (
    EntryDraft,
    EntryFilter,
    LedgerEntry,
    Member,
    MemberRole,
    PendingTransaction,
    TransactionKind,
    WindowComparison,
    WindowSummary,
)
from dompet.models.notification import (
    BatchResult,
    DispatchOutcome,
    JobRunReport,
    JobStatus,
    NotificationKind,
    NotificationPreferences,
)

from conftest import make_entry


class TestLedgerModels:
    """Tests for ledger entry models."""

    def test_ledger_entry_creation(self):
        """Test LedgerEntry model creation."""
        entry = make_entry(date(2025, 1, 5), 50000, "MAKANAN", description="makan siang")
        assert entry.amount == Decimal("50000")
        assert entry.kind == TransactionKind.EXPENSE
        assert entry.owner_name == "Papa"

    def test_ledger_entry_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            make_entry(date(2025, 1, 5), 0)
        with pytest.raises(ValueError):
            make_entry(date(2025, 1, 5), -100)

    def test_ledger_entry_is_immutable(self):
        """Test that a recorded entry cannot be edited."""
        entry = make_entry(date(2025, 1, 5), 50000)
        with pytest.raises(ValueError):
            entry.amount = Decimal("1")

    def test_blank_owner_name_defaults_to_unknown(self):
        """Test that a blank owner name becomes 'Unknown'."""
        entry = make_entry(date(2025, 1, 5), 50000, owner_name="")
        assert entry.owner_name == "Unknown"

    def test_signed_amount(self):
        """Test signed amount follows the transaction kind."""
        expense = make_entry(date(2025, 1, 5), 50000)
        income = make_entry(date(2025, 1, 5), 70000, "GAJI", TransactionKind.INCOME)
        assert expense.signed_amount == Decimal("-50000")
        assert income.signed_amount == Decimal("70000")

    def test_draft_to_entry_keeps_owner_name(self):
        """Test that a confirmed draft carries the owner's current name."""
        draft = EntryDraft(
            kind=TransactionKind.EXPENSE,
            category="TRANSPORT",
            amount=Decimal("5000"),
            description="parkir",
            occurred_date=date(2025, 1, 14),
            owner_id="100",
            owner_name="Papa",
        )
        recorded_at = datetime(2025, 1, 15, 8, tzinfo=timezone.utc)
        entry = draft.to_entry(recorded_at)
        assert entry.timestamp == recorded_at
        assert entry.occurred_date == date(2025, 1, 14)
        assert entry.owner_name == "Papa"


class TestEntryFilter:
    """Tests for EntryFilter."""

    def test_filter_bounds_are_inclusive(self):
        """Test both ends of the window match."""
        f = EntryFilter(date_from=date(2025, 1, 1), date_to=date(2025, 1, 31))
        assert f.matches(make_entry(date(2025, 1, 1), 1000))
        assert f.matches(make_entry(date(2025, 1, 31), 1000))
        assert not f.matches(make_entry(date(2025, 2, 1), 1000))

    def test_filter_matches_occurred_date_not_timestamp(self):
        """Test an entry recorded the next day still belongs to its date."""
        entry = make_entry(
            date(2025, 1, 31),
            1000,
            recorded_at=datetime(2025, 2, 1, 9, tzinfo=timezone.utc),
        )
        january = EntryFilter(date_from=date(2025, 1, 1), date_to=date(2025, 1, 31))
        february = EntryFilter(date_from=date(2025, 2, 1), date_to=date(2025, 2, 28))
        assert january.matches(entry)
        assert not february.matches(entry)

    def test_filter_by_owner_and_kind(self):
        """Test owner and kind narrowing."""
        f = EntryFilter(
            owner_id="200",
            kind=TransactionKind.INCOME,
            date_from=date(2025, 1, 1),
            date_to=date(2025, 1, 31),
        )
        assert not f.matches(make_entry(date(2025, 1, 5), 1000, owner_id="100"))
        assert not f.matches(make_entry(date(2025, 1, 5), 1000, owner_id="200"))
        assert f.matches(make_entry(date(2025, 1, 5), 1000, "GAJI", TransactionKind.INCOME, owner_id="200"))

    def test_filter_rejects_reversed_range(self):
        """Test that date_to cannot be before date_from."""
        with pytest.raises(ValueError, match="date_to cannot be before date_from"):
            EntryFilter(date_from=date(2025, 2, 1), date_to=date(2025, 1, 1))


class TestSummaryModels:
    """Tests for aggregate models."""

    def test_window_summary_requires_consistent_balance(self):
        """Test that balance must equal income minus expense."""
        with pytest.raises(ValueError, match="balance must equal"):
            WindowSummary(
                start=date(2025, 1, 1),
                end=date(2025, 1, 31),
                total_expense=Decimal("100"),
                total_income=Decimal("50"),
                balance=Decimal("0"),
            )

    def test_empty_window_summary(self):
        """Test a default summary is empty."""
        summary = WindowSummary(start=date(2025, 1, 1), end=date(2025, 1, 1))
        assert summary.is_empty
        assert summary.balance == Decimal("0")

    def test_comparison_direction(self):
        """Test direction labels."""
        def comparison(change):
            return WindowComparison(
                current_total=Decimal("0"),
                previous_total=Decimal("0"),
                percent_change=Decimal(change),
            )

        assert comparison("12.5").direction == "up"
        assert comparison("-3").direction == "down"
        assert comparison("0").direction == "flat"


class TestMemberModels:
    """Tests for Member."""

    def test_member_defaults(self):
        """Test a new member is a plain member."""
        member = Member(member_id="100", display_name="  Papa  ")
        assert member.display_name == "Papa"
        assert member.role == MemberRole.MEMBER
        assert member.is_admin is False

    def test_member_round_trips_through_json(self):
        """Test the stored record validates back into the same member."""
        member = Member(member_id="100", display_name="Papa", role=MemberRole.ADMIN)
        restored = Member.model_validate(member.model_dump(mode="json"))
        assert restored == member


class TestPendingTransaction:
    """Tests for PendingTransaction expiry."""

    def test_expiry(self):
        """Test is_expired at and after expires_at."""
        created = datetime(2025, 1, 15, 8, tzinfo=timezone.utc)
        pending = PendingTransaction(
            chat_id="100",
            draft=EntryDraft(
                kind=TransactionKind.EXPENSE,
                category="MAKANAN",
                amount=Decimal("50000"),
                occurred_date=date(2025, 1, 15),
                owner_id="100",
                owner_name="Papa",
            ),
            created_at=created,
            expires_at=created + timedelta(minutes=10),
        )
        assert not pending.is_expired(created + timedelta(minutes=9))
        assert pending.is_expired(created + timedelta(minutes=10))
        assert len(pending.token) == 32


class TestNotificationModels:
    """Tests for notification preferences and run reports."""

    def test_preferences_default_to_enabled(self):
        """Test every kind is enabled by default."""
        prefs = NotificationPreferences()
        for kind in NotificationKind:
            assert prefs.is_enabled(kind)

    def test_preferences_merge_only_touches_patched_keys(self):
        """Test merged() changes exactly the given keys."""
        prefs = NotificationPreferences(weekly=False).merged({"daily": False})
        assert prefs.daily is False
        assert prefs.weekly is False
        assert prefs.monthly is True

    def test_preferences_merge_rejects_unknown_kind(self):
        """Test that an unknown key is rejected."""
        with pytest.raises(ValueError, match="Unknown notification kinds"):
            NotificationPreferences().merged({"hourly": True})

    def test_batch_result_counters(self):
        """Test BatchResult counts every outcome once."""
        result = BatchResult()
        result.record("1", DispatchOutcome.SENT)
        result.record("2", DispatchOutcome.SKIPPED)
        result.record("3", DispatchOutcome.FAILED)
        result.record("4", DispatchOutcome.SENT)
        assert (result.sent, result.skipped, result.failed) == (2, 1, 1)
        assert result.total == 4
        assert result.outcomes["3"] == DispatchOutcome.FAILED

    def test_job_report_log_dict(self):
        """Test the report's log dictionary."""
        report = JobRunReport(kind=NotificationKind.DAILY, status=JobStatus.COMPLETED, members_total=3)
        report.batch.record("1", DispatchOutcome.SENT)
        log_dict = report.to_log_dict()
        assert log_dict["kind"] == "daily"
        assert log_dict["status"] == "completed"
        assert log_dict["sent"] == 1
        assert report.members_notified == 1


class TestCategories:
    """Tests for the category table and keyword classifier."""

    def test_tables_share_only_the_fallback(self):
        """Test expense and income keys are disjoint apart from LAINNYA."""
        assert set(EXPENSE_CATEGORIES) & set(INCOME_CATEGORIES) == {OTHER_CATEGORY}

    @pytest.mark.parametrize("text,kind,expected", [
        ("makan siang", TransactionKind.EXPENSE, "MAKANAN"),
        ("bayar parkir", TransactionKind.EXPENSE, "TRANSPORT"),
        ("bayar listrik", TransactionKind.EXPENSE, "TAGIHAN"),
        ("gaji januari", TransactionKind.INCOME, "GAJI"),
        ("bonus akhir tahun", TransactionKind.INCOME, "HADIAH"),
        ("sesuatu", TransactionKind.EXPENSE, OTHER_CATEGORY),
    ])
    def test_classify(self, text, kind, expected):
        """Test keyword classification."""
        assert classify(text, kind) == expected

    def test_is_known_category_respects_kind(self):
        """Test an income key is not an expense category."""
        assert is_known_category("GAJI", TransactionKind.INCOME)
        assert not is_known_category("GAJI", TransactionKind.EXPENSE)

    def test_unknown_category_is_displayed_literally(self):
        """Test that unknown keys are shown as-is."""
        assert category_display("ARISAN") == "📦 ARISAN"
        assert category_display("MAKANAN") == "🍔 Makanan & Minuman"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            description="Recorded expense",
        )
        assert event.event_type == AuditEventType.TRANSACTION_RECORDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEventBuilder.member_registered("100", "Papa", "admin")
        row = event.to_sheets_row()
        assert len(row) == 11  # Expected number of columns
        assert row[2] == "member_registered"
        assert row[10] == "True"

    def test_audit_event_from_sheets_row(self):
        """Test an AuditLog row decodes back to the same event."""
        event = AuditEventBuilder.job_completed("daily", {"sent": 1, "failed": 1}, uuid4())
        assert AuditEvent.from_sheets_row(event.to_sheets_row()) == event

    def test_audit_event_from_bad_row(self):
        """Test rows that do not decode raise ValueError."""
        with pytest.raises(ValueError):
            AuditEvent.from_sheets_row(["not-a-uuid", "2025-01-15T00:00:00"])

    def test_notification_outcome_event_types(self):
        """Test outcome strings map to event types and severities."""
        sent = AuditEventBuilder.notification_outcome("100", "daily", "sent", 1)
        failed = AuditEventBuilder.notification_outcome("100", "daily", "failed", 3, error_message="timeout")
        assert sent.event_type == AuditEventType.NOTIFICATION_SENT
        assert sent.severity == AuditSeverity.INFO
        assert failed.event_type == AuditEventType.NOTIFICATION_FAILED
        assert failed.severity == AuditSeverity.ERROR
        assert failed.details["attempts"] == 3

    def test_job_completed_with_failures_is_a_warning(self):
        """Test job completion severity reflects failures."""
        correlation_id = uuid4()
        ok = AuditEventBuilder.job_completed("daily", {"sent": 2, "failed": 0}, correlation_id)
        bad = AuditEventBuilder.job_completed("daily", {"sent": 1, "failed": 1}, correlation_id)
        assert ok.severity == AuditSeverity.INFO
        assert bad.severity == AuditSeverity.WARNING
        assert bad.correlation_id == correlation_id


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
