"""Navigation listener.

Turns navigation events into evaluate-then-record cycles:

1. Ignore sub-frames, browser-internal pages and URLs without a domain
2. Suppress refreshes (same domain as the tab's last URL, or a reload)
3. Evaluate the site against the stored configuration and history
4. Blocked: report the blocking rule and projected unblock time
5. Allowed: append an access record, update the badge, prune old records

Refresh suppression is owned here, by a TabTracker the caller can share or
replace; the rule engine itself never knows about tabs.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from cachetools import TTLCache

from sitequota.badge import EMPTY_BADGE, Badge, badge_for_remaining
from sitequota.config import DEFAULT_IGNORED_PREFIXES
from sitequota.models import AccessRecord, Blocked, Configuration, EvaluationResult
from sitequota.rules.access_window import to_epoch_ms
from sitequota.rules.engine import evaluate, most_restrictive_remaining
from sitequota.rules.site_matcher import extract_domain
from sitequota.storage import AccessStore

logger = logging.getLogger(__name__)

DEFAULT_TAB_CACHE_SIZE = 1024
DEFAULT_TAB_CACHE_TTL = 86400  # 1 day

RELOAD_TRANSITION = "reload"


class NavigationAction(Enum):
    IGNORED = "ignored"
    REFRESH = "refresh"
    BLOCKED = "blocked"
    ALLOWED = "allowed"


@dataclass(frozen=True)
class NavigationOutcome:
    """What the listener did with one navigation event."""

    action: NavigationAction
    site: str = ""
    result: Optional[EvaluationResult] = None
    unblock_time: Optional[datetime] = None
    badge: Badge = EMPTY_BADGE

    def blocked_page_params(self) -> dict[str, str]:
        """Query parameters for the blocked page.

        Returns an empty dict unless the navigation was blocked.
        """
        if not isinstance(self.result, Blocked):
            return {}
        return {
            "site": self.site,
            "rule": self.result.rule_name,
            "duration": str(self.result.duration_minutes),
            "maxAccesses": str(self.result.max_accesses),
            "unblockTime": self.unblock_time.isoformat() if self.unblock_time else "",
        }


class TabTracker:
    """Remembers the last URL committed in each tab.

    Entries expire after `ttl` seconds so tabs that close without a removal
    event do not accumulate.
    """

    def __init__(self, maxsize: int = DEFAULT_TAB_CACHE_SIZE, ttl: int = DEFAULT_TAB_CACHE_TTL) -> None:
        self._last_urls: TTLCache[int, str] = TTLCache(maxsize=maxsize, ttl=ttl)

    def last_site(self, tab_id: int) -> Optional[str]:
        """Domain of the tab's last URL, or None if unknown."""
        last_url = self._last_urls.get(tab_id)
        return extract_domain(last_url) if last_url else None

    def remember(self, tab_id: int, url: str) -> None:
        self._last_urls[tab_id] = url

    def forget(self, tab_id: int) -> None:
        self._last_urls.pop(tab_id, None)

    def __len__(self) -> int:
        return len(self._last_urls)


class NavigationListener:
    """Applies rule decisions to navigation events and records accesses."""

    def __init__(
        self,
        store: AccessStore,
        tracker: Optional[TabTracker] = None,
        clock: Callable[[], datetime] = datetime.now,
        ignored_prefixes: Sequence[str] = tuple(DEFAULT_IGNORED_PREFIXES),
        prune_multiplier: int = 2,
        badge_low_threshold: int = 1,
    ) -> None:
        """Initialize listener.

        Args:
            store: Configuration and access history provider
            tracker: Per-tab last-URL cache for refresh suppression
            clock: Returns the current local time; sampled once per event
            ignored_prefixes: URL prefixes that are never evaluated
            prune_multiplier: Prune records older than this many times the
                longest configured window
            badge_low_threshold: Upper bound of the "low" badge tier
        """
        self.store = store
        self.tracker = tracker or TabTracker()
        self.clock = clock
        self.ignored_prefixes = tuple(ignored_prefixes)
        self.prune_multiplier = prune_multiplier
        self.badge_low_threshold = badge_low_threshold

    def should_ignore(self, url: str) -> bool:
        return not url or url.startswith(self.ignored_prefixes)

    def _configuration(self) -> Configuration:
        return self.store.get_configuration() or Configuration()

    def on_navigation(
        self,
        tab_id: int,
        url: str,
        transition_type: str = "link",
        frame_id: int = 0,
    ) -> NavigationOutcome:
        """Handle a committed navigation.

        Args:
            tab_id: Browsing context that navigated
            url: Destination URL
            transition_type: How the navigation started ("reload" counts as
                a refresh)
            frame_id: 0 for the main frame; sub-frames are ignored

        Returns:
            NavigationOutcome describing the action taken
        """
        if frame_id != 0 or self.should_ignore(url):
            return NavigationOutcome(action=NavigationAction.IGNORED)

        site = extract_domain(url)
        if not site:
            return NavigationOutcome(action=NavigationAction.IGNORED)

        logger.debug(f"Navigation detected: {site} (tab {tab_id}, type: {transition_type})")

        if self.tracker.last_site(tab_id) == site or transition_type == RELOAD_TRANSITION:
            logger.debug(f"Refresh detected for {site}, not counting as new access")
            self.tracker.remember(tab_id, url)
            return NavigationOutcome(
                action=NavigationAction.REFRESH,
                site=site,
                badge=self.badge_for_url(url),
            )

        now = self.clock()
        with self.store.transaction():
            configuration = self._configuration()
            records = self.store.get_access_records()
            evaluation = evaluate(site, configuration, records, now)

            if evaluation.blocked:
                logger.info(f"Blocking access to {site}: {evaluation.result.reason}")
                return NavigationOutcome(
                    action=NavigationAction.BLOCKED,
                    site=site,
                    result=evaluation.result,
                    unblock_time=evaluation.unblock_time,
                    badge=badge_for_remaining(evaluation.remaining, self.badge_low_threshold),
                )

            record = AccessRecord(site=site, timestamp=to_epoch_ms(now), source_id=str(tab_id))
            self.store.add_access_record(record)

            max_duration = configuration.longest_duration_minutes()
            if max_duration > 0:
                self.store.prune_access_records(max_duration * self.prune_multiplier, now)

        self.tracker.remember(tab_id, url)
        remaining = most_restrictive_remaining(site, configuration, [*records, record], now)
        logger.info(f"Access allowed to {site}")
        return NavigationOutcome(
            action=NavigationAction.ALLOWED,
            site=site,
            result=evaluation.result,
            badge=badge_for_remaining(remaining, self.badge_low_threshold),
        )

    def badge_for_url(self, url: str) -> Badge:
        """Compute the badge for a tab currently showing `url`."""
        if self.should_ignore(url):
            return EMPTY_BADGE

        site = extract_domain(url)
        if not site:
            return EMPTY_BADGE

        remaining = most_restrictive_remaining(
            site,
            self._configuration(),
            self.store.get_access_records(),
            self.clock(),
        )
        return badge_for_remaining(remaining, self.badge_low_threshold)

    def on_tab_removed(self, tab_id: int) -> None:
        self.tracker.forget(tab_id)
