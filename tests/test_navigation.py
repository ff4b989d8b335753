"""Tests for the navigation listener and tab tracker."""

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from sitequota.badge import EMPTY_BADGE, BadgeTier
from sitequota.models import AccessRecord, Allowed, Blocked, Configuration, RuleGroup
from sitequota.navigation import NavigationAction, NavigationListener, TabTracker
from sitequota.rules.access_window import MS_PER_MINUTE, to_epoch_ms
from sitequota.storage import AccessStore

START = datetime(2024, 1, 8, 10, 0)

SOCIAL = Configuration(
    groups=(
        RuleGroup(
            name="Social",
            duration_minutes=60,
            max_accesses=2,
            sites=("twitter.com",),
        ),
    )
)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


@pytest.fixture()
def store() -> AccessStore:
    store = AccessStore(Path(":memory:"))
    store.connect()
    store.save_configuration(SOCIAL)
    yield store  # type: ignore[misc]
    store.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture()
def listener(store: AccessStore, clock: FakeClock) -> NavigationListener:
    return NavigationListener(store, clock=clock)


class TestIgnored:
    def test_sub_frame(self, listener: NavigationListener, store: AccessStore) -> None:
        outcome = listener.on_navigation(1, "https://twitter.com/", frame_id=3)
        assert outcome.action is NavigationAction.IGNORED
        assert store.get_access_records() == []

    @pytest.mark.parametrize(
        "url",
        ["chrome://settings", "chrome-extension://abc/blocked.html", "about:blank", "edge://newtab", ""],
    )
    def test_internal_pages(self, listener: NavigationListener, url: str) -> None:
        assert listener.on_navigation(1, url).action is NavigationAction.IGNORED

    def test_unparseable_url(self, listener: NavigationListener, store: AccessStore) -> None:
        assert listener.on_navigation(1, "not a url").action is NavigationAction.IGNORED
        assert store.get_access_records() == []

    def test_custom_prefixes(self, store: AccessStore, clock: FakeClock) -> None:
        listener = NavigationListener(store, clock=clock, ignored_prefixes=["https://intranet."])
        assert listener.on_navigation(1, "https://intranet.corp/").action is NavigationAction.IGNORED
        assert listener.on_navigation(2, "chrome://settings").action is NavigationAction.ALLOWED


class TestAllowed:
    def test_records_access(self, listener: NavigationListener, store: AccessStore) -> None:
        outcome = listener.on_navigation(7, "https://twitter.com/home")

        assert outcome.action is NavigationAction.ALLOWED
        assert outcome.site == "twitter.com"
        assert isinstance(outcome.result, Allowed)
        assert store.get_access_records() == [AccessRecord("twitter.com", to_epoch_ms(START), "7")]

    def test_badge_counts_new_record(self, listener: NavigationListener) -> None:
        first = listener.on_navigation(1, "https://twitter.com/")
        assert first.badge.text == "1"
        assert first.badge.tier is BadgeTier.LOW

        second = listener.on_navigation(2, "https://twitter.com/")
        assert second.badge.text == "0"
        assert second.badge.tier is BadgeTier.ZERO

    def test_unlimited_site_recorded_without_badge(
        self, listener: NavigationListener, store: AccessStore
    ) -> None:
        outcome = listener.on_navigation(1, "https://news.com/")
        assert outcome.action is NavigationAction.ALLOWED
        assert outcome.badge == EMPTY_BADGE
        assert [r.site for r in store.get_access_records()] == ["news.com"]

    def test_no_configuration_allows(self, clock: FakeClock) -> None:
        with AccessStore(Path(":memory:")) as empty:
            listener = NavigationListener(empty, clock=clock)
            outcome = listener.on_navigation(1, "https://twitter.com/")
            assert outcome.action is NavigationAction.ALLOWED
            assert len(empty.get_access_records()) == 1

    def test_plentiful_badge(self, store: AccessStore, clock: FakeClock) -> None:
        store.save_configuration(
            Configuration(groups=(RuleGroup(name="Loose", duration_minutes=60, max_accesses=10, sites=("twitter.com",)),))
        )
        listener = NavigationListener(store, clock=clock)
        outcome = listener.on_navigation(1, "https://twitter.com/")
        assert outcome.badge.text == "9"
        assert outcome.badge.tier is BadgeTier.PLENTIFUL


class TestRefresh:
    def test_same_site_in_tab(self, listener: NavigationListener, store: AccessStore) -> None:
        listener.on_navigation(1, "https://twitter.com/home")
        outcome = listener.on_navigation(1, "https://twitter.com/notifications")

        assert outcome.action is NavigationAction.REFRESH
        assert outcome.badge.text == "1"
        assert len(store.get_access_records()) == 1

    def test_reload_transition(self, listener: NavigationListener, store: AccessStore) -> None:
        outcome = listener.on_navigation(4, "https://twitter.com/", transition_type="reload")
        assert outcome.action is NavigationAction.REFRESH
        assert store.get_access_records() == []

    def test_other_tab_counts(self, listener: NavigationListener, store: AccessStore) -> None:
        listener.on_navigation(1, "https://twitter.com/")
        assert listener.on_navigation(2, "https://twitter.com/").action is NavigationAction.ALLOWED
        assert len(store.get_access_records()) == 2

    def test_leaving_and_returning_counts(self, listener: NavigationListener, store: AccessStore) -> None:
        listener.on_navigation(1, "https://twitter.com/")
        listener.on_navigation(1, "https://news.com/")
        assert listener.on_navigation(1, "https://twitter.com/").action is NavigationAction.ALLOWED
        assert [r.site for r in store.get_access_records()] == ["twitter.com", "news.com", "twitter.com"]

    def test_tab_removed_forgets(self, listener: NavigationListener) -> None:
        listener.on_navigation(1, "https://twitter.com/")
        listener.on_tab_removed(1)
        assert listener.on_navigation(1, "https://twitter.com/").action is NavigationAction.ALLOWED


class TestBlocked:
    def test_blocks_when_exhausted(
        self, listener: NavigationListener, store: AccessStore, clock: FakeClock
    ) -> None:
        listener.on_navigation(1, "https://twitter.com/")
        clock.advance(1)
        listener.on_navigation(2, "https://twitter.com/")
        clock.advance(1)

        outcome = listener.on_navigation(3, "https://twitter.com/explore")

        assert outcome.action is NavigationAction.BLOCKED
        assert isinstance(outcome.result, Blocked)
        assert outcome.result.rule_name == "Social"
        assert outcome.unblock_time == START + timedelta(minutes=60)
        assert outcome.badge.tier is BadgeTier.ZERO
        assert len(store.get_access_records()) == 2

    def test_blocked_page_params(self, listener: NavigationListener) -> None:
        listener.on_navigation(1, "https://twitter.com/")
        listener.on_navigation(2, "https://twitter.com/")

        params = listener.on_navigation(3, "https://twitter.com/").blocked_page_params()

        assert params == {
            "site": "twitter.com",
            "rule": "Social",
            "duration": "60",
            "maxAccesses": "2",
            "unblockTime": (START + timedelta(minutes=60)).isoformat(),
        }

    def test_allowed_has_no_params(self, listener: NavigationListener) -> None:
        assert listener.on_navigation(1, "https://twitter.com/").blocked_page_params() == {}

    def test_blocked_tab_not_remembered(self, listener: NavigationListener, store: AccessStore) -> None:
        """A blocked attempt is re-evaluated on the next navigation in that tab."""
        listener.on_navigation(1, "https://twitter.com/")
        listener.on_navigation(2, "https://twitter.com/")
        listener.on_navigation(3, "https://twitter.com/")
        assert listener.on_navigation(3, "https://twitter.com/").action is NavigationAction.BLOCKED

    def test_window_expiry_unblocks(
        self, listener: NavigationListener, store: AccessStore, clock: FakeClock
    ) -> None:
        listener.on_navigation(1, "https://twitter.com/")
        listener.on_navigation(2, "https://twitter.com/")
        assert listener.on_navigation(3, "https://twitter.com/").action is NavigationAction.BLOCKED

        clock.advance(61)
        assert listener.on_navigation(3, "https://twitter.com/").action is NavigationAction.ALLOWED

    def test_zero_allowance_always_blocks(self, store: AccessStore, clock: FakeClock) -> None:
        store.save_configuration(
            Configuration(groups=(RuleGroup(name="Never", duration_minutes=30, max_accesses=0, sites=("twitter.com",)),))
        )
        listener = NavigationListener(store, clock=clock)
        outcome = listener.on_navigation(1, "https://twitter.com/")
        assert outcome.action is NavigationAction.BLOCKED
        assert outcome.unblock_time is None
        assert outcome.blocked_page_params()["unblockTime"] == ""


class TestPruning:
    def test_prunes_beyond_retention(
        self, listener: NavigationListener, store: AccessStore
    ) -> None:
        start_ms = to_epoch_ms(START)
        store.add_access_record(AccessRecord("old.com", start_ms - 200 * MS_PER_MINUTE, "9"))
        store.add_access_record(AccessRecord("recent.com", start_ms - 100 * MS_PER_MINUTE, "9"))

        listener.on_navigation(1, "https://news.com/")

        assert [r.site for r in store.get_access_records()] == ["recent.com", "news.com"]

    def test_prune_multiplier(self, store: AccessStore, clock: FakeClock) -> None:
        start_ms = to_epoch_ms(START)
        store.add_access_record(AccessRecord("old.com", start_ms - 200 * MS_PER_MINUTE, "9"))

        listener = NavigationListener(store, clock=clock, prune_multiplier=4)
        listener.on_navigation(1, "https://news.com/")

        assert [r.site for r in store.get_access_records()] == ["old.com", "news.com"]

    def test_no_pruning_without_rules(self, clock: FakeClock) -> None:
        with AccessStore(Path(":memory:")) as empty:
            empty.add_access_record(AccessRecord("old.com", 1_000, "9"))
            NavigationListener(empty, clock=clock).on_navigation(1, "https://news.com/")
            assert len(empty.get_access_records()) == 2


class TestBadgeForUrl:
    def test_ignored_url(self, listener: NavigationListener) -> None:
        assert listener.badge_for_url("chrome://extensions") == EMPTY_BADGE

    def test_reflects_history(self, listener: NavigationListener) -> None:
        assert listener.badge_for_url("https://twitter.com/").text == "2"
        listener.on_navigation(1, "https://twitter.com/")
        assert listener.badge_for_url("https://twitter.com/").text == "1"

    def test_low_threshold(self, store: AccessStore, clock: FakeClock) -> None:
        listener = NavigationListener(store, clock=clock, badge_low_threshold=2)
        assert listener.badge_for_url("https://twitter.com/").tier is BadgeTier.LOW


class TestTabTracker:
    def test_last_site(self) -> None:
        tracker = TabTracker()
        assert tracker.last_site(1) is None
        tracker.remember(1, "https://www.twitter.com/home")
        assert tracker.last_site(1) == "www.twitter.com"

    def test_forget_unknown_tab(self) -> None:
        tracker = TabTracker()
        tracker.forget(99)
        assert len(tracker) == 0

    def test_bounded(self) -> None:
        tracker = TabTracker(maxsize=2)
        for tab_id in range(5):
            tracker.remember(tab_id, "https://twitter.com/")
        assert len(tracker) == 2
