from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for SQLAlchemy models
Base = declarative_base()


def generate_uuid():
    return str(uuid4())


def utcnow():
    return datetime.now(timezone.utc)


class Conversation(Base):
    """A buyer <-> creator thread. One row per (creator, buyer) pair."""

    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("creator_name", "buyer_name", name="uq_conversation_pair"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    creator_name = Column(String(255), nullable=False, index=True)
    buyer_name = Column(String(255), nullable=False, index=True)
    buyer_email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Conversation(id='{self.id}', creator='{self.creator_name}', buyer='{self.buyer_name}')>"


class Message(Base):
    """A persisted chat message. Only allowed and soft-warned messages land here."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey("conversations.id"), nullable=False, index=True)
    sender_type = Column(String(20), nullable=False)  # 'creator' or 'buyer'
    sender_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    # Set when the message went through with a soft warning
    is_flagged = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
    reports = relationship("MessageReport", back_populates="message", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Message(id='{self.id}', sender='{self.sender_name}')>"


class ModerationLog(Base):
    """Audit trail of warned, blocked and reported messages."""

    __tablename__ = "moderation_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(String(36), nullable=True, index=True)
    message_id = Column(String(36), nullable=True)
    message_content = Column(Text, nullable=False)
    sender_type = Column(String(20), nullable=True)
    sender_name = Column(String(255), nullable=True)
    violation_type = Column(Text, nullable=True)
    action_taken = Column(String(20), nullable=False)
    category = Column(String(32), nullable=True)
    severity = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    def __repr__(self):
        return f"<ModerationLog(id={self.id}, action='{self.action_taken}', category='{self.category}')>"


class UserWarning(Base):
    """One row per recorded violation. Never pruned."""

    __tablename__ = "user_warnings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_name = Column(String(255), nullable=False, index=True)
    conversation_id = Column(String(36), nullable=True)
    category = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    def __repr__(self):
        return f"<UserWarning(user='{self.user_name}', category='{self.category}')>"


class MessageReport(Base):
    """A participant flagging a past message. At most one per (message, reporter)."""

    __tablename__ = "message_reports"
    __table_args__ = (UniqueConstraint("message_id", "reporter_name", name="uq_report_per_reporter"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    message_id = Column(String(36), ForeignKey("messages.id"), nullable=False, index=True)
    reporter_name = Column(String(255), nullable=False)
    reporter_role = Column(String(20), nullable=False)
    reason = Column(String(32), nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    message = relationship("Message", back_populates="reports")

    def __repr__(self):
        return f"<MessageReport(message_id='{self.message_id}', reporter='{self.reporter_name}')>"


class CreatorSetting(Base):
    """Creator-configurable moderation knobs."""

    __tablename__ = "creator_settings"

    creator_name = Column(String(255), primary_key=True)
    # 0 disables auto-block
    auto_block_after_violations = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<CreatorSetting(creator='{self.creator_name}', auto_block={self.auto_block_after_violations})>"
