import pytest

from backend.app.models.moderation import (
    IncomingMessage,
    OperationalFailure,
    SenderType,
    Verdict,
    ViolationCategory,
)
from backend.app.policies.escalation import warning_count_or_zero
from backend.app.services.audit import ModerationAuditLog
from backend.app.services.creator_settings import CreatorSettingsStore, threshold_or_disabled
from backend.app.services.ledger import WarningLedger


def test_counts_span_conversations_and_categories(db):
    ledger = WarningLedger(db)
    ledger.add_warning("bob", "conv-1", ViolationCategory.SPAM, "junk")
    ledger.add_warning("bob", "conv-2", ViolationCategory.OFF_PLATFORM, "phone")
    ledger.add_warning("alice", "conv-1", ViolationCategory.SPAM, "junk")

    assert ledger.count_warnings("bob") == 2
    assert ledger.count_warnings("alice") == 1
    assert ledger.count_warnings("nobody") == 0


def test_every_add_is_a_new_record(db):
    ledger = WarningLedger(db)
    for _ in range(3):
        ledger.add_warning("bob", "conv-1", ViolationCategory.SPAM, "same thing")
    assert ledger.count_warnings("bob") == 3


def test_history_is_newest_first(db):
    ledger = WarningLedger(db)
    ledger.add_warning("bob", "conv-1", ViolationCategory.SPAM, "first")
    ledger.add_warning("bob", "conv-1", ViolationCategory.OFF_PLATFORM, "second")
    rows = ledger.history("bob")
    assert [r.reason for r in rows] == ["second", "first"]
    assert rows[0].category == "off_platform"


def test_unreadable_ledger_reports_failure_and_counts_as_zero(broken_session):
    ledger = WarningLedger(broken_session)
    result = ledger.count_warnings("bob")
    assert isinstance(result, OperationalFailure)
    assert warning_count_or_zero(result) == 0


def test_failed_write_does_not_raise(broken_session):
    ledger = WarningLedger(broken_session)
    ledger.add_warning("bob", "conv-1", ViolationCategory.SPAM, "junk")


def _unreachable_store():
    raise OSError("connection refused")


class DriverFailureSession:
    """Session whose driver raises something outside SQLAlchemy's hierarchy."""

    def query(self, *args, **kwargs):
        raise RuntimeError("driver crashed")

    add = query

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


@pytest.mark.parametrize("session_factory", [_unreachable_store, DriverFailureSession])
def test_any_storage_error_fails_open(session_factory):
    ledger = WarningLedger(session_factory)
    result = ledger.count_warnings("bob")
    assert isinstance(result, OperationalFailure)
    assert warning_count_or_zero(result) == 0
    ledger.add_warning("bob", "conv-1", ViolationCategory.SPAM, "junk")


def test_unreachable_store_disables_threshold_and_skips_audit():
    settings = CreatorSettingsStore(_unreachable_store)
    assert threshold_or_disabled(settings.get_auto_block_threshold("carol")) == 0

    audit = ModerationAuditLog(_unreachable_store)
    message = IncomingMessage("call me", "bob", SenderType.BUYER, "conv-1")
    audit.record(message, Verdict.violation("Off-platform contact attempt", ViolationCategory.OFF_PLATFORM))
