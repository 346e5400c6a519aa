import re
from typing import Optional, Pattern, Sequence, Tuple

from ..models.moderation import PatternMatch

# Evaluated top to bottom, first hit wins. Order only changes which reason
# is reported; any hit means the message is not allowed.
STRUCTURAL_PATTERNS: Sequence[Tuple[str, Pattern[str], str]] = (
    ("phone", re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"), "Phone number detected"),
    ("phone", re.compile(r"\(\d{3}\)\s*\d{3}[-.\s]?\d{4}"), "Phone number detected"),
    ("phone", re.compile(r"\+\d{1,3}\s?\d{6,}"), "Phone number detected"),
    ("email", re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "Email address detected"),
    ("url", re.compile(r"(?:https?://|www\.)[^\s]+", re.IGNORECASE), "URL/link detected"),
    ("social_handle", re.compile(r"@[a-zA-Z0-9_]{2,}"), "Social media handle detected"),
)

# Matched as substrings of the lowercased content
KEYWORD_FAMILIES: Sequence[Tuple[str, Tuple[str, ...], str]] = (
    (
        "messaging_app",
        (
            "whatsapp",
            "telegram",
            "signal app",
            "kik me",
            "snapchat",
            "my snap",
            "add me on snap",
            "ig is",
            "my insta",
            "find me on",
        ),
        "Messaging/social media app reference",
    ),
    (
        "contact_phrase",
        (
            "text me",
            "call me",
            "dm me",
            "message me on",
            "hit me up on",
            "reach me at",
            "contact me at",
            "hmu on",
        ),
        "Off-platform contact attempt",
    ),
    (
        "payment_phrase",
        (
            "venmo me",
            "cashapp me",
            "paypal me",
            "zelle me",
            "send to my venmo",
            "send to my cashapp",
            "pay me directly",
            "pay outside",
        ),
        "Off-platform payment attempt",
    ),
)


def scan(content: str) -> Optional[PatternMatch]:
    """Look for contact details or off-platform phrasing.

    Returns None when nothing is found. None is inconclusive, not a pass:
    the caller still has to run the semantic classifier.
    """
    text = content or ""
    for family, pattern, reason in STRUCTURAL_PATTERNS:
        if pattern.search(text):
            return PatternMatch(family=family, reason=reason)

    lowered = text.lower()
    for family, terms, reason in KEYWORD_FAMILIES:
        if any(term in lowered for term in terms):
            return PatternMatch(family=family, reason=reason)
    return None
