import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from ....config import get_settings
from ....core.errors import ConversationNotFoundError, NotAParticipantError
from ....models.conversation import (
    BlockedMessageOut,
    ConversationCreate,
    ConversationOut,
    MessageCreate,
    MessageOut,
    SentMessageOut,
)
from ....models.moderation import ModerationAction, SenderType, Verdict
from ....services.chat import ChatService, get_chat_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["chat"])

BLOCK_WARNING = (
    "Sharing contact information, taking business off-platform, or abusive behaviour is not allowed. "
    "Repeated violations may result in account restrictions."
)
AUTO_BLOCK_WARNING = (
    "You can no longer message this creator because of repeated policy violations."
)


def _soft_warning_message(verdict: Verdict) -> str:
    remaining = verdict.warnings_remaining or 0
    if remaining > 0:
        tail = f"{remaining} more warning{'s' if remaining != 1 else ''} before messages are blocked."
    else:
        tail = "Your next violation will be blocked."
    return f"Your message was delivered but flagged: {verdict.reason}. {tail}"


def _blocked_response(verdict: Verdict) -> JSONResponse:
    body = BlockedMessageOut(
        error="Message blocked by moderation",
        reason=verdict.reason,
        category=verdict.category.value if verdict.category else None,
        action=verdict.action.value,
        warning=AUTO_BLOCK_WARNING if verdict.action == ModerationAction.AUTO_BLOCKED else BLOCK_WARNING,
    )
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=body.model_dump(exclude_none=True, mode="json"),
    )


@router.post("", response_model=ConversationOut)
async def create_conversation(
    payload: ConversationCreate,
    chat_service: ChatService = Depends(get_chat_service),
):
    """Open (or return the existing) conversation between a creator and a buyer."""
    creator = (payload.creator_name or "").strip()
    buyer = (payload.buyer_name or "").strip()
    if not creator or not buyer:
        raise HTTPException(status_code=400, detail="Creator name and buyer name are required")

    conv, created = await chat_service.get_or_create_conversation(creator, buyer, payload.buyer_email)
    body = ConversationOut.model_validate(conv).model_dump(mode="json")
    return JSONResponse(status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK, content=body)


@router.get("", response_model=List[ConversationOut])
async def list_conversations(
    user: Optional[str] = None,
    role: Optional[SenderType] = None,
    chat_service: ChatService = Depends(get_chat_service),
):
    if not user or role is None:
        raise HTTPException(status_code=400, detail="User and role are required")
    return await chat_service.list_conversations(user, role)


@router.get("/{conversation_id}/messages", response_model=List[MessageOut])
async def list_messages(
    conversation_id: str,
    chat_service: ChatService = Depends(get_chat_service),
):
    try:
        return await chat_service.get_messages(conversation_id)
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.post(
    "/{conversation_id}/messages",
    response_model=SentMessageOut,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": BlockedMessageOut}},
)
async def send_message(
    conversation_id: str,
    payload: MessageCreate,
    chat_service: ChatService = Depends(get_chat_service),
):
    """
    Moderate and deliver a chat message.

    Allowed and soft-warned messages are stored and returned with 201.
    Blocked messages are not stored and come back as 403 with the reason.
    """
    settings = get_settings()
    content = payload.content or ""
    if not content.strip() or payload.sender_type is None or not payload.sender_name:
        raise HTTPException(status_code=400, detail="Content, senderType, and senderName are required")
    if len(content) > settings.MAX_MESSAGE_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Message is too long. Maximum {settings.MAX_MESSAGE_LENGTH} characters.",
        )

    try:
        result = await chat_service.send_message(
            conversation_id=conversation_id,
            content=content,
            sender_type=payload.sender_type,
            sender_name=payload.sender_name,
        )
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except NotAParticipantError:
        raise HTTPException(status_code=403, detail="Sender is not a participant in this conversation")

    verdict = result.verdict
    if not result.delivered:
        return _blocked_response(verdict)

    out = SentMessageOut.model_validate(result.message)
    if verdict.action == ModerationAction.WARN:
        out.soft_warning = True
        out.warning_message = _soft_warning_message(verdict)
        out.warning_category = verdict.category.value if verdict.category else None
        out.warnings_remaining = verdict.warnings_remaining
    return out
