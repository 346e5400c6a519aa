import pytest

from backend.app.models.moderation import Severity, ViolationCategory
from backend.app.policies.severity import SEVERITY_BY_CATEGORY, resolve_severity


@pytest.mark.parametrize(
    "category,expected",
    [
        (ViolationCategory.OFF_PLATFORM, Severity.MEDIUM),
        (ViolationCategory.HARASSMENT, Severity.HIGH),
        (ViolationCategory.COERCION, Severity.SEVERE),
        (ViolationCategory.ILLEGAL_REQUEST, Severity.SEVERE),
        (ViolationCategory.THREATS, Severity.SEVERE),
        (ViolationCategory.SPAM, Severity.LOW),
        (ViolationCategory.USER_REPORT, Severity.MEDIUM),
    ],
)
def test_static_table(category, expected):
    assert resolve_severity(category) == expected


def test_table_covers_every_category():
    assert set(SEVERITY_BY_CATEGORY) == set(ViolationCategory)


def test_unknown_category_is_medium():
    assert resolve_severity(None) == Severity.MEDIUM
    assert resolve_severity("not-a-category") == Severity.MEDIUM
    assert resolve_severity("spam") == Severity.LOW


def test_severity_orders_by_tier_not_by_name():
    assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.SEVERE
    assert Severity.HIGH < Severity.SEVERE
    assert max([Severity.HIGH, Severity.LOW, Severity.SEVERE]) == Severity.SEVERE
