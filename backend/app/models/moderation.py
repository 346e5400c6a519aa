"""Moderation domain types.

Categories, severities and actions are closed enums. ``Verdict`` is the
result of evaluating one message; ``OperationalFailure`` is what a dependency
(classifier, ledger, settings) hands back instead of raising. ``fail_open`` is
the one place where an operational failure becomes an allowed verdict.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

logger = logging.getLogger(__name__)


class SenderType(str, Enum):
    CREATOR = "creator"
    BUYER = "buyer"


class ViolationCategory(str, Enum):
    OFF_PLATFORM = "off_platform"
    HARASSMENT = "harassment"
    COERCION = "coercion"
    ILLEGAL_REQUEST = "illegal_request"
    THREATS = "threats"
    SPAM = "spam"
    USER_REPORT = "user_report"

    @classmethod
    def parse(cls, value: object) -> Optional["ViolationCategory"]:
        """Return the member named by ``value`` or None when it is not one."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    # str ordering would put "high" < "low"; compare by tier instead
    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.SEVERE: 3,
}


class ModerationAction(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"
    AUTO_BLOCKED = "auto_blocked"

    @property
    def is_blocking(self) -> bool:
        return self in (ModerationAction.BLOCK, ModerationAction.AUTO_BLOCKED)


HARD_BLOCK_CATEGORIES = frozenset(
    {
        ViolationCategory.COERCION,
        ViolationCategory.ILLEGAL_REQUEST,
        ViolationCategory.THREATS,
        ViolationCategory.HARASSMENT,
    }
)

# Soft warnings a user may collect before the next non-severe violation is blocked
WARNINGS_BEFORE_BLOCK = 2


@dataclass(frozen=True)
class Verdict:
    allowed: bool
    action: ModerationAction = ModerationAction.ALLOW
    reason: Optional[str] = None
    category: Optional[ViolationCategory] = None
    severity: Optional[Severity] = None
    warnings_remaining: Optional[int] = None

    @classmethod
    def allow(cls) -> "Verdict":
        return cls(allowed=True, action=ModerationAction.ALLOW)

    @classmethod
    def violation(cls, reason: str, category: ViolationCategory) -> "Verdict":
        """An unescalated violation, before the policy picks warn or block."""
        return cls(allowed=False, action=ModerationAction.BLOCK, reason=reason, category=category)


@dataclass(frozen=True)
class PatternMatch:
    family: str
    reason: str
    category: ViolationCategory = ViolationCategory.OFF_PLATFORM

    def to_verdict(self) -> Verdict:
        return Verdict.violation(self.reason, self.category)


@dataclass(frozen=True)
class OperationalFailure:
    """A dependency could not answer. Never shown to the end user."""

    source: str
    error: str


@dataclass(frozen=True)
class IncomingMessage:
    content: str
    sender_name: str
    sender_type: SenderType
    conversation_id: str


@dataclass(frozen=True)
class ConversationContext:
    conversation_id: str
    creator_name: str
    buyer_name: str

    def is_buyer(self, message: IncomingMessage) -> bool:
        return message.sender_type == SenderType.BUYER and message.sender_name == self.buyer_name


ClassifierResult = Union[Verdict, OperationalFailure]


def fail_open(result: ClassifierResult) -> Verdict:
    """Map an operational failure to an allowed verdict.

    Classifier unavailability must not stop platform messaging, so anything
    that is not a real verdict lets the message through.
    """
    if isinstance(result, OperationalFailure):
        logger.warning("Moderation dependency %s failed open: %s", result.source, result.error)
        return Verdict.allow()
    return result
