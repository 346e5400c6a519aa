import logging
from typing import Union

from ..models.moderation import (
    HARD_BLOCK_CATEGORIES,
    WARNINGS_BEFORE_BLOCK,
    ModerationAction,
    OperationalFailure,
    Severity,
    Verdict,
    ViolationCategory,
)
from ..services.ledger import WarningLedger
from .severity import resolve_severity

logger = logging.getLogger(__name__)

AUTO_BLOCK_REASON = "Messaging restricted after repeated policy violations in conversations with this creator"
REPEAT_BLOCK_REASON = "Repeated policy violations"


def warning_count_or_zero(result: Union[int, OperationalFailure]) -> int:
    """Ledger reads fail open: an unreadable history counts as no history."""
    if isinstance(result, OperationalFailure):
        logger.warning("Warning count unavailable, treating as zero: %s", result.error)
        return 0
    return result


def auto_block_applies(is_buyer_in_conversation: bool, threshold: int, warning_count: int) -> bool:
    """Creator thresholds only gate the buyer's messages to that creator."""
    return bool(is_buyer_in_conversation) and threshold > 0 and warning_count >= threshold


def auto_block_verdict() -> Verdict:
    return Verdict(
        allowed=False,
        action=ModerationAction.AUTO_BLOCKED,
        reason=AUTO_BLOCK_REASON,
    )


class EscalationPolicy:
    """Pick the final action for a classified message.

    Severe and hard-block categories are blocked outright. Everything else
    is warned until the sender's cumulative warning count reaches the budget,
    after which it is blocked.
    """

    def __init__(self, ledger: WarningLedger, warnings_before_block: int = WARNINGS_BEFORE_BLOCK):
        self.ledger = ledger
        self.warnings_before_block = warnings_before_block

    async def decide(
        self,
        verdict: Verdict,
        sender_name: str,
        conversation_id: str,
        is_buyer_in_conversation: bool,
        creator_auto_block_threshold: int,
    ) -> Verdict:
        if verdict.allowed:
            return Verdict.allow()

        category = verdict.category or ViolationCategory.OFF_PLATFORM
        severity = resolve_severity(category)

        if category in HARD_BLOCK_CATEGORIES or severity == Severity.SEVERE:
            self.ledger.add_warning(sender_name, conversation_id, category, verdict.reason)
            return Verdict(
                allowed=False,
                action=ModerationAction.BLOCK,
                reason=verdict.reason,
                category=category,
                severity=severity,
            )

        # Pre-existing count, read before this violation is recorded
        warning_count = warning_count_or_zero(self.ledger.count_warnings(sender_name))

        # The violation that brings the count up to the threshold is the one auto-blocked
        if auto_block_applies(is_buyer_in_conversation, creator_auto_block_threshold, warning_count + 1):
            self.ledger.add_warning(sender_name, conversation_id, category, verdict.reason)
            return Verdict(
                allowed=False,
                action=ModerationAction.AUTO_BLOCKED,
                reason=AUTO_BLOCK_REASON,
                category=category,
                severity=severity,
            )

        if warning_count >= self.warnings_before_block:
            self.ledger.add_warning(sender_name, conversation_id, category, verdict.reason)
            return Verdict(
                allowed=False,
                action=ModerationAction.BLOCK,
                reason=f"{REPEAT_BLOCK_REASON}: {verdict.reason}" if verdict.reason else REPEAT_BLOCK_REASON,
                category=category,
                severity=severity,
            )

        self.ledger.add_warning(sender_name, conversation_id, category, verdict.reason)
        return Verdict(
            allowed=False,
            action=ModerationAction.WARN,
            reason=verdict.reason,
            category=category,
            severity=severity,
            warnings_remaining=max(0, self.warnings_before_block - (warning_count + 1)),
        )
