"""Badge presentation for the remaining-access count."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class BadgeTier(Enum):
    """Presentation band for a remaining count."""

    NONE = "none"  # No rule applies; badge is cleared
    ZERO = "zero"
    LOW = "low"
    PLENTIFUL = "plentiful"


TIER_COLORS = {
    BadgeTier.NONE: "",
    BadgeTier.ZERO: "#dc3545",  # red
    BadgeTier.LOW: "#ffc107",  # yellow
    BadgeTier.PLENTIFUL: "#28a745",  # green
}


@dataclass(frozen=True)
class Badge:
    text: str
    tier: BadgeTier

    @property
    def color(self) -> str:
        return TIER_COLORS[self.tier]


EMPTY_BADGE = Badge(text="", tier=BadgeTier.NONE)


def badge_for_remaining(remaining: Optional[int], low_threshold: int = 1) -> Badge:
    """Map a most-restrictive remaining count to a badge.

    Args:
        remaining: Remaining accesses, or None when no rule applies
        low_threshold: Counts at or below this (but above zero) are "low"

    Returns:
        Badge with text and tier
    """
    if remaining is None:
        return EMPTY_BADGE
    if remaining <= 0:
        return Badge(text="0", tier=BadgeTier.ZERO)
    if remaining <= low_threshold:
        return Badge(text=str(remaining), tier=BadgeTier.LOW)
    return Badge(text=str(remaining), tier=BadgeTier.PLENTIFUL)
