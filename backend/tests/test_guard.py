import pytest

from backend.app.models.moderation import ViolationCategory
from backend.app.safety.guard import scan


@pytest.mark.parametrize(
    "text",
    [
        "call me at 555-123-4567",
        "my number is 555.123.4567 ok",
        "5551234567",
        "reach out (555) 123-4567 anytime",
        "international +44 7911123456",
    ],
)
def test_phone_numbers_are_caught(text):
    match = scan(text)
    assert match is not None
    assert match.family == "phone"
    assert match.category == ViolationCategory.OFF_PLATFORM


def test_email_is_caught_before_handle():
    # The address also contains an @handle; order decides the reason, not the outcome
    match = scan("write to jane.doe@example.com")
    assert match is not None
    assert match.family == "email"
    assert match.reason == "Email address detected"


@pytest.mark.parametrize("text", ["see https://my-site.example/profile", "go to WWW.example.com"])
def test_urls_are_caught(text):
    match = scan(text)
    assert match is not None and match.family == "url"


def test_social_handle():
    match = scan("follow @jane_doe for more")
    assert match is not None
    assert match.family == "social_handle"


def test_single_char_handle_is_not_a_handle():
    assert scan("meet @ 5") is None


@pytest.mark.parametrize(
    "text,family",
    [
        ("Just TEXT ME later", "contact_phrase"),
        ("dm me when you can", "contact_phrase"),
        ("Venmo me the rest", "payment_phrase"),
        ("you can zelle me instead", "payment_phrase"),
        ("add me on WhatsApp", "messaging_app"),
    ],
)
def test_keyword_phrases_are_case_insensitive(text, family):
    match = scan(text)
    assert match is not None
    assert match.family == family
    assert match.category == ViolationCategory.OFF_PLATFORM


def test_clean_message_is_inconclusive():
    assert scan("Hi! What are your rates for a custom video next week?") is None
    assert scan("") is None


def test_match_converts_to_unescalated_violation():
    verdict = scan("call me").to_verdict()
    assert verdict.allowed is False
    assert verdict.category == ViolationCategory.OFF_PLATFORM
    assert verdict.reason == "Off-platform contact attempt"
