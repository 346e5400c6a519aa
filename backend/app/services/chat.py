import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ConversationNotFoundError, NotAParticipantError
from ..models.moderation import (
    ConversationContext,
    IncomingMessage,
    ModerationAction,
    SenderType,
    Verdict,
)
from ..models.sql_models import Conversation, Message
from .moderation import ModerationService, get_moderation_service

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    """Outcome of a send: the verdict, plus the stored row for allow/warn."""

    verdict: Verdict
    message: Optional[Message] = None

    @property
    def delivered(self) -> bool:
        return self.message is not None


class ChatService:
    """Conversations and messages between buyers and creators.

    Every outgoing message passes through moderation; only allowed and
    soft-warned messages are stored.
    """

    def __init__(
        self,
        moderation: Optional[ModerationService] = None,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        if session_factory is None:
            from ..db.base import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self.moderation = moderation or ModerationService()

    async def get_or_create_conversation(
        self, creator_name: str, buyer_name: str, buyer_email: Optional[str] = None
    ) -> Tuple[Conversation, bool]:
        """Return (conversation, created)."""
        db = self._session_factory()
        try:
            existing = (
                db.query(Conversation)
                .filter(Conversation.creator_name == creator_name, Conversation.buyer_name == buyer_name)
                .first()
            )
            if existing is not None:
                return existing, False
            conv = Conversation(creator_name=creator_name, buyer_name=buyer_name, buyer_email=buyer_email)
            db.add(conv)
            try:
                db.commit()
            except IntegrityError:
                # Another request created the pair first
                db.rollback()
                existing = (
                    db.query(Conversation)
                    .filter(Conversation.creator_name == creator_name, Conversation.buyer_name == buyer_name)
                    .one()
                )
                return existing, False
            db.refresh(conv)
            logger.info("Created conversation %s (%s <-> %s)", conv.id, creator_name, buyer_name)
            return conv, True
        finally:
            db.close()

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        db = self._session_factory()
        try:
            return db.query(Conversation).filter(Conversation.id == conversation_id).first()
        finally:
            db.close()

    async def list_conversations(self, user_name: str, role: SenderType) -> List[dict]:
        """Conversations for a user in the given role, most recently active first."""
        db = self._session_factory()
        try:
            column = Conversation.creator_name if role == SenderType.CREATOR else Conversation.buyer_name
            rows = db.query(Conversation).filter(column == user_name).order_by(Conversation.updated_at.desc()).all()
            items: List[dict] = []
            for conv in rows:
                last = (
                    db.query(Message)
                    .filter(Message.conversation_id == conv.id)
                    .order_by(Message.created_at.desc())
                    .first()
                )
                count = db.query(func.count(Message.id)).filter(Message.conversation_id == conv.id).scalar()
                items.append(
                    {
                        "id": conv.id,
                        "creator_name": conv.creator_name,
                        "buyer_name": conv.buyer_name,
                        "buyer_email": conv.buyer_email,
                        "created_at": conv.created_at,
                        "updated_at": conv.updated_at,
                        "last_message": last.content if last else None,
                        "last_message_at": last.created_at if last else None,
                        "message_count": int(count or 0),
                    }
                )
            return items
        finally:
            db.close()

    async def get_messages(self, conversation_id: str) -> List[Message]:
        db = self._session_factory()
        try:
            if db.query(Conversation.id).filter(Conversation.id == conversation_id).first() is None:
                raise ConversationNotFoundError(conversation_id)
            return (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc())
                .all()
            )
        finally:
            db.close()

    async def send_message(
        self,
        conversation_id: str,
        content: str,
        sender_type: SenderType,
        sender_name: str,
    ) -> SendResult:
        """Moderate and, when allowed or warned, store a message.

        Raises:
            ConversationNotFoundError: unknown conversation
            NotAParticipantError: sender is not this conversation's creator/buyer
        """
        conv = await self.get_conversation(conversation_id)
        if conv is None:
            raise ConversationNotFoundError(conversation_id)

        expected = conv.creator_name if sender_type == SenderType.CREATOR else conv.buyer_name
        if sender_name != expected:
            raise NotAParticipantError(sender_name)

        context = ConversationContext(conv.id, conv.creator_name, conv.buyer_name)
        incoming = IncomingMessage(
            content=content,
            sender_name=sender_name,
            sender_type=sender_type,
            conversation_id=conv.id,
        )
        verdict = await self.moderation.moderate(incoming, context)

        if verdict.action.is_blocking:
            return SendResult(verdict=verdict)

        stored = await self._store_message(incoming, flagged=verdict.action == ModerationAction.WARN)
        return SendResult(verdict=verdict, message=stored)

    async def _store_message(self, incoming: IncomingMessage, flagged: bool) -> Message:
        db = self._session_factory()
        try:
            now = datetime.now(timezone.utc)
            row = Message(
                conversation_id=incoming.conversation_id,
                sender_type=incoming.sender_type.value,
                sender_name=incoming.sender_name,
                content=incoming.content,
                is_flagged=flagged,
                created_at=now,
            )
            db.add(row)
            conv = db.query(Conversation).filter(Conversation.id == incoming.conversation_id).first()
            if conv is not None:
                conv.updated_at = now
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()


def get_chat_service(moderation: ModerationService = Depends(get_moderation_service)) -> ChatService:
    """Dependency for getting the chat service."""
    return ChatService(moderation=moderation)
