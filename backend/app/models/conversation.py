from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .moderation import SenderType


class ReportReason(str, Enum):
    """Reasons offered to a participant reporting a message."""

    HARASSMENT = "harassment"
    COERCION = "coercion"
    THREATS = "threats"
    ILLEGAL_REQUEST = "illegal_request"
    OFF_PLATFORM = "off_platform"
    SPAM = "spam"
    OTHER = "other"


class CamelModel(BaseModel):
    """Accepts the camelCase keys sent by the web client as well as field names."""

    model_config = ConfigDict(populate_by_name=True)


class ConversationCreate(CamelModel):
    creator_name: Optional[str] = Field(None, alias="creatorName")
    buyer_name: Optional[str] = Field(None, alias="buyerName")
    buyer_email: Optional[str] = Field(None, alias="buyerEmail")


class ConversationOut(BaseModel):
    id: str
    creator_name: str
    buyer_name: str
    buyer_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    message_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(CamelModel):
    # Optional so missing fields get the same 400 as other validation errors
    content: Optional[str] = None
    sender_type: Optional[SenderType] = Field(None, alias="senderType")
    sender_name: Optional[str] = Field(None, alias="senderName")


class MessageOut(BaseModel):
    id: str
    conversation_id: str
    sender_type: str
    sender_name: str
    content: str
    is_flagged: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SentMessageOut(MessageOut):
    """A persisted message plus the soft-warning block when it was warned."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    soft_warning: Optional[bool] = Field(None, alias="softWarning")
    warning_message: Optional[str] = Field(None, alias="warningMessage")
    warning_category: Optional[str] = Field(None, alias="warningCategory")
    warnings_remaining: Optional[int] = Field(None, alias="warningsRemaining")


class BlockedMessageOut(BaseModel):
    error: str
    reason: Optional[str] = None
    category: Optional[str] = None
    action: str
    warning: str


class ReportCreate(CamelModel):
    reason: ReportReason
    details: Optional[str] = Field(None, max_length=1000)
    reporter_name: str = Field(..., min_length=1, alias="reporterName")
    reporter_role: SenderType = Field(..., alias="reporterRole")


class ModerationLogOut(BaseModel):
    id: int
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    message_content: str
    sender_type: Optional[str] = None
    sender_name: Optional[str] = None
    violation_type: Optional[str] = None
    action_taken: str
    category: Optional[str] = None
    severity: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WarningOut(BaseModel):
    conversation_id: Optional[str] = None
    category: str
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserWarningsOut(CamelModel):
    user_name: str = Field(..., alias="userName")
    warning_count: int = Field(..., alias="warningCount")
    warnings: List[WarningOut] = []


class CreatorSettingsIn(CamelModel):
    auto_block_after_violations: int = Field(..., ge=0, alias="autoBlockAfterViolations")


class CreatorSettingsOut(CamelModel):
    creator_name: str = Field(..., alias="creatorName")
    auto_block_after_violations: int = Field(..., alias="autoBlockAfterViolations")
