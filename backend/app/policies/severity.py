from typing import Dict, Optional

from ..models.moderation import Severity, ViolationCategory

SEVERITY_BY_CATEGORY: Dict[ViolationCategory, Severity] = {
    ViolationCategory.OFF_PLATFORM: Severity.MEDIUM,
    ViolationCategory.HARASSMENT: Severity.HIGH,
    ViolationCategory.COERCION: Severity.SEVERE,
    ViolationCategory.ILLEGAL_REQUEST: Severity.SEVERE,
    ViolationCategory.THREATS: Severity.SEVERE,
    ViolationCategory.SPAM: Severity.LOW,
    # No intrinsic severity; logged as medium
    ViolationCategory.USER_REPORT: Severity.MEDIUM,
}


def resolve_severity(category: Optional[ViolationCategory]) -> Severity:
    """Severity tier for a category. Unknown or missing categories are medium."""
    parsed = ViolationCategory.parse(category) if category is not None else None
    if parsed is None:
        return Severity.MEDIUM
    return SEVERITY_BY_CATEGORY.get(parsed, Severity.MEDIUM)
