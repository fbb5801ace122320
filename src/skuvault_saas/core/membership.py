from __future__ import annotations

from enum import IntEnum
from typing import Dict, List


class MembershipLevel(IntEnum):
    """Customer membership tiers; higher tiers include everything below them."""

    BASIC = 1
    STANDARD = 2
    PREMIUM = 3
    ENTERPRISE = 4


# Report name -> minimum tier
REPORT_REQUIREMENTS: Dict[str, MembershipLevel] = {
    "inventory": MembershipLevel.BASIC,
    "low-stock": MembershipLevel.STANDARD,
    "aging-inventory": MembershipLevel.PREMIUM,
    "financial-warehouse": MembershipLevel.PREMIUM,
    "locations": MembershipLevel.PREMIUM,
    "performance": MembershipLevel.ENTERPRISE,
}


# PUBLIC_INTERFACE
def can_access_report(level: int, report_name: str) -> bool:
    """Return True if a customer at `level` may open `report_name`. Unknown reports are denied."""
    required = REPORT_REQUIREMENTS.get(report_name)
    if required is None:
        return False
    return int(level) >= required


# PUBLIC_INTERFACE
def available_reports(level: int) -> List[str]:
    """List report names unlocked at `level`, in table order."""
    return [name for name, required in REPORT_REQUIREMENTS.items() if int(level) >= required]


# PUBLIC_INTERFACE
def required_level(report_name: str) -> MembershipLevel:
    """Return the tier needed for a report; unknown reports require Enterprise."""
    return REPORT_REQUIREMENTS.get(report_name, MembershipLevel.ENTERPRISE)
