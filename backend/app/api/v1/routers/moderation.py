import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ....config import get_settings
from ....core.errors import DuplicateReportError, MessageNotFoundError, NotAParticipantError
from ....models.conversation import (
    CreatorSettingsIn,
    CreatorSettingsOut,
    ModerationLogOut,
    ReportCreate,
    UserWarningsOut,
    WarningOut,
)
from ....policies.escalation import warning_count_or_zero
from ....services.audit import ModerationAuditLog, get_audit_log
from ....services.creator_settings import (
    CreatorSettingsStore,
    get_creator_settings,
    threshold_or_disabled,
)
from ....services.ledger import WarningLedger, get_warning_ledger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["moderation"])


@router.get("/moderation-logs", response_model=List[ModerationLogOut])
async def list_moderation_logs(
    limit: int = Query(50, ge=1),
    audit_log: ModerationAuditLog = Depends(get_audit_log),
):
    """Most recent audit records, newest first. ``limit`` is capped at 50."""
    limit = min(limit, get_settings().AUDIT_LOG_MAX_LIMIT)
    return audit_log.recent(limit)


@router.post(
    "/messages/{message_id}/report",
    response_model=ModerationLogOut,
    status_code=status.HTTP_201_CREATED,
)
async def report_message(
    message_id: str,
    payload: ReportCreate,
    audit_log: ModerationAuditLog = Depends(get_audit_log),
):
    """Let a conversation participant flag a past message. One report per reporter per message."""
    try:
        return audit_log.report_message(
            message_id=message_id,
            reporter_name=payload.reporter_name,
            reporter_role=payload.reporter_role.value,
            reason=payload.reason.value,
            details=(payload.details or "").strip() or None,
        )
    except MessageNotFoundError:
        raise HTTPException(status_code=404, detail="Message not found")
    except NotAParticipantError:
        raise HTTPException(status_code=403, detail="Only conversation participants can report messages")
    except DuplicateReportError:
        raise HTTPException(status_code=409, detail="You have already reported this message")


@router.get("/moderation/users/{user_name}/warnings", response_model=UserWarningsOut)
async def get_user_warnings(
    user_name: str,
    ledger: WarningLedger = Depends(get_warning_ledger),
):
    count = warning_count_or_zero(ledger.count_warnings(user_name))
    history = ledger.history(user_name)
    return UserWarningsOut(
        user_name=user_name,
        warning_count=count,
        warnings=[WarningOut.model_validate(w) for w in history],
    )


@router.get("/creators/{creator_name}/settings", response_model=CreatorSettingsOut)
async def get_creator_moderation_settings(
    creator_name: str,
    store: CreatorSettingsStore = Depends(get_creator_settings),
):
    threshold = threshold_or_disabled(store.get_auto_block_threshold(creator_name))
    return CreatorSettingsOut(creator_name=creator_name, auto_block_after_violations=threshold)


@router.put("/creators/{creator_name}/settings", response_model=CreatorSettingsOut)
async def update_creator_moderation_settings(
    creator_name: str,
    payload: CreatorSettingsIn,
    store: CreatorSettingsStore = Depends(get_creator_settings),
):
    threshold = store.set_auto_block_threshold(creator_name, payload.auto_block_after_violations)
    return CreatorSettingsOut(creator_name=creator_name, auto_block_after_violations=threshold)
