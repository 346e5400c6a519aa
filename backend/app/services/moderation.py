"""Moderation entry point for outgoing chat messages.

``ModerationService.moderate`` runs, in order: the buyer auto-block
short-circuit, the pattern filter, the semantic classifier (only when the
pattern filter is inconclusive), the escalation policy, and the audit write.
"""

import logging
from typing import Callable, Optional

from ..models.moderation import (
    ConversationContext,
    IncomingMessage,
    PatternMatch,
    Verdict,
)
from ..orchestration.classify import SemanticClassifier, get_classifier
from ..policies.escalation import (
    EscalationPolicy,
    auto_block_applies,
    auto_block_verdict,
    warning_count_or_zero,
)
from ..safety.guard import scan
from .audit import ModerationAuditLog
from .creator_settings import CreatorSettingsStore, threshold_or_disabled
from .ledger import WarningLedger

logger = logging.getLogger(__name__)


class ModerationService:
    def __init__(
        self,
        classifier: Optional[SemanticClassifier] = None,
        ledger: Optional[WarningLedger] = None,
        audit_log: Optional[ModerationAuditLog] = None,
        creator_settings: Optional[CreatorSettingsStore] = None,
        pattern_filter: Callable[[str], Optional[PatternMatch]] = scan,
        policy: Optional[EscalationPolicy] = None,
    ):
        self.classifier = classifier or get_classifier()
        self.ledger = ledger or WarningLedger()
        self.audit_log = audit_log or ModerationAuditLog()
        self.creator_settings = creator_settings or CreatorSettingsStore()
        self.pattern_filter = pattern_filter
        self.policy = policy or EscalationPolicy(self.ledger)

    async def moderate(self, message: IncomingMessage, context: ConversationContext) -> Verdict:
        is_buyer = context.is_buyer(message)
        threshold = 0

        if is_buyer:
            threshold = threshold_or_disabled(
                self.creator_settings.get_auto_block_threshold(context.creator_name)
            )
            if threshold > 0:
                count = warning_count_or_zero(self.ledger.count_warnings(message.sender_name))
                if auto_block_applies(is_buyer, threshold, count):
                    verdict = auto_block_verdict()
                    logger.info(
                        "Auto-blocked %s in conversation=%s (warnings=%d threshold=%d)",
                        message.sender_name, message.conversation_id, count, threshold,
                    )
                    self.audit_log.record(message, verdict)
                    return verdict

        match = self.pattern_filter(message.content)
        if match is not None:
            logger.info(
                "Pattern filter hit (%s) for %s in conversation=%s",
                match.family, message.sender_name, message.conversation_id,
            )
            classified = match.to_verdict()
        else:
            classified = await self.classifier.classify(message.content, message.sender_type)

        verdict = await self.policy.decide(
            classified,
            sender_name=message.sender_name,
            conversation_id=message.conversation_id,
            is_buyer_in_conversation=is_buyer,
            creator_auto_block_threshold=threshold,
        )

        if not verdict.allowed:
            logger.info(
                "Moderation verdict for %s in conversation=%s: action=%s category=%s severity=%s",
                message.sender_name,
                message.conversation_id,
                verdict.action.value,
                verdict.category.value if verdict.category else None,
                verdict.severity.value if verdict.severity else None,
            )
            self.audit_log.record(message, verdict)
        return verdict


def get_moderation_service() -> ModerationService:
    """Dependency for getting the moderation service."""
    return ModerationService()
