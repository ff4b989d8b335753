"""Tests for badge tiers."""

from sitequota.badge import EMPTY_BADGE, Badge, BadgeTier, badge_for_remaining


class TestBadgeForRemaining:
    def test_no_rule(self) -> None:
        badge = badge_for_remaining(None)
        assert badge == EMPTY_BADGE
        assert badge.color == ""

    def test_zero(self) -> None:
        assert badge_for_remaining(0) == Badge(text="0", tier=BadgeTier.ZERO)
        assert badge_for_remaining(0).color == "#dc3545"

    def test_low(self) -> None:
        assert badge_for_remaining(1) == Badge(text="1", tier=BadgeTier.LOW)
        assert badge_for_remaining(1).color == "#ffc107"

    def test_plentiful(self) -> None:
        assert badge_for_remaining(2) == Badge(text="2", tier=BadgeTier.PLENTIFUL)
        assert badge_for_remaining(42).color == "#28a745"

    def test_custom_threshold(self) -> None:
        assert badge_for_remaining(3, low_threshold=3).tier is BadgeTier.LOW
        assert badge_for_remaining(4, low_threshold=3).tier is BadgeTier.PLENTIFUL
