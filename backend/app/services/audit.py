import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import DuplicateReportError, MessageNotFoundError, NotAParticipantError
from ..models.moderation import (
    ConversationContext,
    IncomingMessage,
    SenderType,
    Severity,
    Verdict,
    ViolationCategory,
)
from ..models.sql_models import Conversation, Message, MessageReport, ModerationLog
from ..policies.severity import resolve_severity

logger = logging.getLogger(__name__)

REPORTED_ACTION = "reported"


class ModerationAuditLog:
    """Append-only record of moderation outcomes and user reports."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from ..db.base import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def record(self, message: IncomingMessage, verdict: Verdict) -> None:
        """Write one audit row for a warned or blocked message.

        Storage errors are logged and swallowed; the verdict stands either way.
        """
        db = None
        try:
            db = self._session_factory()
            db.add(
                ModerationLog(
                    conversation_id=message.conversation_id,
                    message_content=message.content,
                    sender_type=message.sender_type.value,
                    sender_name=message.sender_name,
                    violation_type=verdict.reason,
                    action_taken=verdict.action.value,
                    category=verdict.category.value if verdict.category else None,
                    severity=verdict.severity.value if verdict.severity else None,
                    created_at=datetime.now(timezone.utc),
                )
            )
            db.commit()
        except Exception as e:
            if db is not None:
                db.rollback()
            logger.error(
                "Audit write failed for conversation=%s sender=%s action=%s: %s",
                message.conversation_id, message.sender_name, verdict.action.value, e,
            )
        finally:
            if db is not None:
                db.close()

    def recent(self, limit: int = 50) -> List[ModerationLog]:
        db = self._session_factory()
        try:
            return (
                db.query(ModerationLog)
                .order_by(ModerationLog.created_at.desc(), ModerationLog.id.desc())
                .limit(limit)
                .all()
            )
        finally:
            db.close()

    def report_message(
        self,
        message_id: str,
        reporter_name: str,
        reporter_role: str,
        reason: str,
        details: Optional[str] = None,
    ) -> ModerationLog:
        """Record a participant's report of a past message.

        Raises:
            MessageNotFoundError: no such message
            NotAParticipantError: the reporter is not this conversation's participant in the given role
            DuplicateReportError: the reporter already reported this message
        """
        db = self._session_factory()
        try:
            msg = db.query(Message).filter(Message.id == message_id).first()
            if msg is None:
                raise MessageNotFoundError(message_id)
            conv = db.query(Conversation).filter(Conversation.id == msg.conversation_id).first()
            context = ConversationContext(conv.id, conv.creator_name, conv.buyer_name)
            # The reporter must hold the role they claim in this conversation
            expected = context.creator_name if reporter_role == SenderType.CREATOR.value else context.buyer_name
            if reporter_name != expected:
                raise NotAParticipantError(reporter_name)

            existing = (
                db.query(MessageReport.id)
                .filter(MessageReport.message_id == message_id, MessageReport.reporter_name == reporter_name)
                .first()
            )
            if existing is not None:
                raise DuplicateReportError(f"{reporter_name} already reported message {message_id}")

            now = datetime.now(timezone.utc)
            db.add(
                MessageReport(
                    message_id=message_id,
                    reporter_name=reporter_name,
                    reporter_role=reporter_role,
                    reason=reason,
                    details=details,
                    created_at=now,
                )
            )
            severity: Severity = resolve_severity(ViolationCategory.USER_REPORT)
            violation = f"User report: {reason}"
            if details:
                violation = f"{violation} - {details}"
            row = ModerationLog(
                conversation_id=msg.conversation_id,
                message_id=message_id,
                message_content=msg.content,
                sender_type=msg.sender_type,
                sender_name=msg.sender_name,
                violation_type=violation,
                action_taken=REPORTED_ACTION,
                category=ViolationCategory.USER_REPORT.value,
                severity=severity.value,
                created_at=now,
            )
            db.add(row)
            try:
                db.commit()
            except IntegrityError:
                # Lost a race with a concurrent report from the same reporter
                db.rollback()
                raise DuplicateReportError(f"{reporter_name} already reported message {message_id}")
            db.refresh(row)
            logger.info("Message %s reported by %s (%s)", message_id, reporter_name, reason)
            return row
        finally:
            db.close()


def get_audit_log() -> ModerationAuditLog:
    """Dependency for getting the moderation audit log."""
    return ModerationAuditLog()
