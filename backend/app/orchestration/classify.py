import asyncio
import json
import logging
import re
from functools import lru_cache
from typing import Any, Optional

from openai import AsyncOpenAI

from ..config import get_settings
from ..models.moderation import (
    ClassifierResult,
    OperationalFailure,
    SenderType,
    Verdict,
    ViolationCategory,
    fail_open,
)

logger = logging.getLogger(__name__)

CLASSIFIER_SYSTEM = """
You are a strict content moderation system for a creator marketplace where buyers and creators chat.
Decide whether one chat message may be delivered.

Block the message when it falls into one of these categories:
- off_platform: phone numbers, emails, handles or links in any disguise, references to outside
  messaging apps, outside payment apps, or any invitation to talk or pay outside this platform
- harassment: insults, degrading or abusive language aimed at the other person
- coercion: pressure, blackmail or manipulation to get content, meetings or money
- illegal_request: requests for illegal services, content or transactions
- threats: threats of violence, doxxing or other harm
- spam: repeated, unsolicited promotional or junk content

Allow service inquiries, pricing, scheduling and content requests handled on this platform,
and ordinary friendly conversation.

Return ONLY one JSON object, no markdown:
{"allowed": true}
or
{"allowed": false, "reason": "<brief reason>", "category": "<one of the categories above>"}
"""

DEFAULT_VIOLATION_REASON = "Potential policy violation detected"

# user_report is assigned by people, never by the classifier
_CLASSIFIABLE = frozenset(c for c in ViolationCategory if c is not ViolationCategory.USER_REPORT)

_FENCE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


def _extract_json(text: str) -> str:
    m = re.search(r"\{[\s\S]*\}$", text.strip())
    if m:
        return m.group(0)
    m2 = re.search(r"\{[\s\S]*\}", text)
    if m2:
        return m2.group(0)
    return text


def parse_classifier_output(raw: str) -> ClassifierResult:
    """Turn the model's raw reply into a verdict.

    Code fences are stripped before decoding. If the reply is not valid JSON
    but still reads as a refusal, it is treated as a violation; anything else
    unreadable is an operational failure.
    """
    cleaned = _FENCE.sub("", raw or "").strip()
    if not cleaned:
        return OperationalFailure("classifier", "empty classifier response")

    try:
        data = json.loads(_extract_json(cleaned))
    except (json.JSONDecodeError, ValueError):
        lowered = cleaned.lower()
        if '"allowed":false' in lowered or '"allowed": false' in lowered:
            return Verdict.violation(DEFAULT_VIOLATION_REASON, ViolationCategory.OFF_PLATFORM)
        return OperationalFailure("classifier", f"unparseable classifier response: {raw[:200]!r}")

    if not isinstance(data, dict) or "allowed" not in data:
        return OperationalFailure("classifier", f"unexpected classifier payload: {raw[:200]!r}")

    if data.get("allowed") is not False:
        return Verdict.allow()

    category = ViolationCategory.parse(data.get("category"))
    if category not in _CLASSIFIABLE:
        category = ViolationCategory.OFF_PLATFORM
    reason = str(data.get("reason") or "").strip() or DEFAULT_VIOLATION_REASON
    return Verdict.violation(reason, category)


class SemanticClassifier:
    """Adapter over the external text-classification model.

    One call per message, bounded by a timeout, never retried. Every
    failure path ends in an allowed verdict.
    """

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None, timeout_s: Optional[float] = None):
        settings = get_settings()
        self.model = model or settings.MODERATION_MODEL
        self.max_tokens = int(settings.MODERATION_MAX_TOKENS)
        self.timeout_s = float(timeout_s if timeout_s is not None else settings.CLASSIFIER_TIMEOUT_S)
        # Injected clients belong to the caller; only a client built here is closed here
        self._owns_client = client is None
        self._client = client if client is not None else self._build_client(settings)

    def _build_client(self, settings) -> Optional[AsyncOpenAI]:
        api_key = (settings.OPENAI_API_KEY or "").strip()
        if not api_key:
            logger.warning("OPENAI_API_KEY is not set; semantic moderation will fail open")
            return None
        return AsyncOpenAI(
            api_key=api_key,
            base_url=settings.OPENAI_BASE_URL or None,
            timeout=self.timeout_s,
            max_retries=0,
        )

    async def _request(self, content: str, sender_type: SenderType) -> ClassifierResult:
        if self._client is None:
            return OperationalFailure("classifier", "OPENAI_API_KEY missing for classifier")

        messages = [
            {"role": "system", "content": CLASSIFIER_SYSTEM},
            {"role": "user", "content": f'Moderate this {sender_type.value} message: "{content}"'},
        ]
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_s,
            )
        except asyncio.TimeoutError:
            return OperationalFailure("classifier", f"timed out after {self.timeout_s}s")
        except Exception as e:
            return OperationalFailure("classifier", f"{type(e).__name__}: {e}")

        raw = ""
        try:
            raw = response.choices[0].message.content or ""
        except (AttributeError, IndexError, TypeError):
            pass
        return parse_classifier_output(raw)

    async def classify(self, content: str, sender_type: SenderType) -> Verdict:
        result = await self._request(content, sender_type)
        verdict = fail_open(result)
        if not verdict.allowed:
            logger.info("Classifier flagged %s message: category=%s", sender_type.value, verdict.category.value)
        return verdict

    async def aclose(self) -> None:
        """Release the SDK client's connection pool."""
        if self._owns_client and self._client is not None:
            await self._client.close()


@lru_cache()
def get_classifier() -> SemanticClassifier:
    """Process-wide classifier, so every request shares one SDK connection pool."""
    return SemanticClassifier()


async def close_classifier() -> None:
    if get_classifier.cache_info().currsize == 0:
        return
    await get_classifier().aclose()
    get_classifier.cache_clear()
