import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.moderation import OperationalFailure
from ..models.sql_models import CreatorSetting

logger = logging.getLogger(__name__)


class CreatorSettingsStore:
    """Creator-scoped moderation settings (auto-block threshold)."""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        if session_factory is None:
            from ..db.base import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def get_auto_block_threshold(self, creator_name: str) -> Union[int, OperationalFailure]:
        """0 means auto-block is disabled for this creator."""
        db = None
        try:
            db = self._session_factory()
            row = db.query(CreatorSetting).filter(CreatorSetting.creator_name == creator_name).first()
            if row is None:
                return 0
            return max(0, int(row.auto_block_after_violations or 0))
        except Exception as e:
            logger.error("Creator settings read failed for creator=%s: %s", creator_name, e)
            return OperationalFailure("creator_settings", f"{type(e).__name__}: {e}")
        finally:
            if db is not None:
                db.close()

    def set_auto_block_threshold(self, creator_name: str, threshold: int) -> int:
        if threshold < 0:
            raise ValueError("auto-block threshold must be >= 0")
        db = self._session_factory()
        try:
            row = db.query(CreatorSetting).filter(CreatorSetting.creator_name == creator_name).first()
            if row is None:
                row = CreatorSetting(creator_name=creator_name)
                db.add(row)
            row.auto_block_after_violations = threshold
            row.updated_at = datetime.now(timezone.utc)
            db.commit()
            logger.info("Creator %s auto-block threshold set to %d", creator_name, threshold)
            return threshold
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()


def threshold_or_disabled(result: Union[int, OperationalFailure]) -> int:
    """An unreadable setting disables auto-block rather than blocking buyers."""
    if isinstance(result, OperationalFailure):
        logger.warning("Auto-block threshold unavailable, treating as disabled: %s", result.error)
        return 0
    return result


def get_creator_settings() -> CreatorSettingsStore:
    """Dependency for getting the creator settings store."""
    return CreatorSettingsStore()
