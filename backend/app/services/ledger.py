import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.moderation import OperationalFailure, ViolationCategory
from ..models.sql_models import UserWarning

logger = logging.getLogger(__name__)


class WarningLedger:
    """Per-user violation history.

    Counts are cumulative across every conversation and category and are never
    decayed. Reads and writes are independent statements with no locking, so
    two concurrent violations from one user can both observe the same count.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from ..db.base import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def count_warnings(self, user_name: str) -> Union[int, OperationalFailure]:
        """Total warnings for the user, or an OperationalFailure when the store cannot answer."""
        db = None
        try:
            db = self._session_factory()
            total = (
                db.query(func.count(UserWarning.id))
                .filter(UserWarning.user_name == user_name)
                .scalar()
            )
            return int(total or 0)
        except Exception as e:
            logger.error("Warning ledger read failed for user=%s: %s", user_name, e)
            return OperationalFailure("warning_ledger", f"{type(e).__name__}: {e}")
        finally:
            if db is not None:
                db.close()

    def add_warning(
        self,
        user_name: str,
        conversation_id: Optional[str],
        category: ViolationCategory,
        reason: Optional[str],
    ) -> None:
        db = None
        try:
            db = self._session_factory()
            db.add(
                UserWarning(
                    user_name=user_name,
                    conversation_id=conversation_id,
                    category=ViolationCategory(category).value,
                    reason=reason,
                    created_at=datetime.now(timezone.utc),
                )
            )
            db.commit()
        except Exception as e:
            if db is not None:
                db.rollback()
            # A lost warning weakens escalation but must not fail the send
            logger.error(
                "Warning ledger write failed for user=%s conversation=%s category=%s: %s",
                user_name, conversation_id, category, e,
            )
        finally:
            if db is not None:
                db.close()

    def history(self, user_name: str, limit: int = 50) -> List[UserWarning]:
        """Most recent warnings for a user, newest first."""
        db = self._session_factory()
        try:
            rows = (
                db.query(UserWarning)
                .filter(UserWarning.user_name == user_name)
                .order_by(UserWarning.created_at.desc(), UserWarning.id.desc())
                .limit(limit)
                .all()
            )
            return rows
        finally:
            db.close()


def get_warning_ledger() -> WarningLedger:
    """Dependency for getting the warning ledger."""
    return WarningLedger()
