"""Rolling-window access accounting.

Counts past accesses inside a sliding window that ends at "now" and derives
the remaining allowance for a rule group, either per site (isolated pools)
or across every site in the group (strict mode, one shared pool).
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from sitequota.models import AccessRecord, RuleGroup
from sitequota.rules.site_matcher import domain_matches

logger = logging.getLogger(__name__)

MS_PER_MINUTE = 60 * 1000


def to_epoch_ms(moment: datetime) -> int:
    """Convert a local datetime to epoch milliseconds."""
    whole_seconds = int(moment.replace(microsecond=0).timestamp())
    return whole_seconds * 1000 + moment.microsecond // 1000


def from_epoch_ms(timestamp: int) -> datetime:
    """Convert epoch milliseconds to a local datetime."""
    return datetime.fromtimestamp(timestamp / 1000)


def filter_within_window(
    records: Iterable[AccessRecord],
    duration_minutes: int,
    now: datetime,
) -> list[AccessRecord]:
    """Keep only records inside the rolling window ending at `now`.

    The window start is inclusive: a record exactly `duration_minutes` old
    still counts.
    """
    window_start = to_epoch_ms(now) - duration_minutes * MS_PER_MINUTE
    return [record for record in records if record.timestamp >= window_start]


def filter_for_site(
    records: Iterable[AccessRecord],
    strict_mode: bool,
    sites: Sequence[str],
    target_site: str,
) -> list[AccessRecord]:
    """Select the records that draw from the same pool as `target_site`.

    Strict mode pools every record whose domain matches any pattern in the
    group. Records store only a domain, so path portions of the patterns
    cannot be applied here.
    """
    if strict_mode:
        return [
            record for record in records
            if any(domain_matches(record.site, pattern) for pattern in sites)
        ]
    return [record for record in records if record.site == target_site]


def relevant_records(
    records: Iterable[AccessRecord],
    rule: RuleGroup,
    site: str,
) -> list[AccessRecord]:
    """Records counted against `site` under `rule`, regardless of age."""
    return filter_for_site(records, rule.strict_mode, rule.sites, site)


def remaining_accesses(
    records: Iterable[AccessRecord],
    max_accesses: int,
    duration_minutes: int,
    strict_mode: bool,
    sites: Sequence[str],
    target_site: str,
    now: datetime,
) -> int:
    """Calculate the remaining allowance for a site under one rule group.

    Args:
        records: Full access history (any age, any order)
        max_accesses: Allowance within the window
        duration_minutes: Width of the rolling window
        strict_mode: Share one pool across all `sites`
        sites: Site patterns of the rule group
        target_site: Domain being evaluated
        now: Evaluation instant

    Returns:
        Remaining accesses, never below 0 (0 means blocked)
    """
    recent = filter_within_window(records, duration_minutes, now)
    counted = filter_for_site(recent, strict_mode, sites, target_site)
    remaining = max(0, max_accesses - len(counted))
    logger.debug(
        f"{target_site}: {len(counted)} accesses in last {duration_minutes}m "
        f"(strict={strict_mode}), {remaining}/{max_accesses} remaining"
    )
    return remaining


def remaining_for_rule(
    records: Iterable[AccessRecord],
    rule: RuleGroup,
    site: str,
    now: datetime,
) -> int:
    """Shorthand for remaining_accesses() driven by a RuleGroup."""
    return remaining_accesses(
        records,
        rule.max_accesses,
        rule.duration_minutes,
        rule.strict_mode,
        rule.sites,
        site,
        now,
    )
