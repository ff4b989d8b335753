"""Rule evaluation engine.

Decides whether a navigation to a site is allowed, how many accesses remain
for badge display, and when a blocked site becomes available again.

Every function here is a pure function of its arguments. Callers sample
`now` once per evaluation and pass it to each call so that the decision and
the record appended afterwards agree on the time.

Two resolution strategies coexist on purpose:

- decide() blocks on the FIRST exhausted rule in configuration order, so
  the blocked page names the rule the user listed first.
- most_restrictive_remaining() reports the numeric MINIMUM across all
  active rules, so the badge shows the tightest allowance.

They can name different rules for the same site and must stay separate.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sitequota.models import (
    AccessRecord,
    Allowed,
    Blocked,
    Configuration,
    EvaluationResult,
    RuleGroup,
)
from sitequota.rules.access_window import (
    MS_PER_MINUTE,
    from_epoch_ms,
    relevant_records,
    remaining_for_rule,
)
from sitequota.rules.schedule import is_schedule_active
from sitequota.rules.site_matcher import matches_site_pattern

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Evaluation:
    """Decision, badge count and unblock time computed against one `now`."""

    result: EvaluationResult
    remaining: Optional[int]
    unblock_time: Optional[datetime] = None

    @property
    def blocked(self) -> bool:
        return self.result.blocked


def active_rules_for(
    site: str,
    configuration: Optional[Configuration],
    now: datetime,
) -> list[RuleGroup]:
    """Get the rule groups that currently apply to a site.

    Args:
        site: Bare domain being evaluated
        configuration: Current configuration (None is treated as empty)
        now: Evaluation instant

    Returns:
        Groups whose schedule is active and which list a pattern matching
        the site, in configuration order
    """
    if not configuration or not configuration.groups:
        return []

    # Only the domain is known here; match against a synthetic root URL
    site_url = f"https://{site}"
    return [
        group for group in configuration.groups
        if is_schedule_active(group.schedule, now)
        and any(matches_site_pattern(site_url, pattern) for pattern in group.sites)
    ]


def blocking_rule(
    site: str,
    configuration: Optional[Configuration],
    records: Sequence[AccessRecord],
    now: datetime,
) -> Optional[RuleGroup]:
    """Get the first active rule (in configuration order) with no allowance left.

    Returns:
        The exhausted rule group, or None when the site is allowed
    """
    for rule in active_rules_for(site, configuration, now):
        if remaining_for_rule(records, rule, site, now) <= 0:
            logger.debug(f"{site}: blocked by rule '{rule.name}'")
            return rule
    return None


def _blocked_by(rule: RuleGroup) -> Blocked:
    return Blocked(
        rule_name=rule.name,
        duration_minutes=rule.duration_minutes,
        max_accesses=rule.max_accesses,
    )


def decide(
    site: str,
    configuration: Optional[Configuration],
    records: Sequence[AccessRecord],
    now: datetime,
) -> EvaluationResult:
    """Decide whether access to a site should be blocked.

    The first active rule (in configuration order) whose allowance is
    exhausted blocks the navigation; later rules are not consulted.
    """
    rule = blocking_rule(site, configuration, records, now)
    return _blocked_by(rule) if rule is not None else Allowed()


def most_restrictive_remaining(
    site: str,
    configuration: Optional[Configuration],
    records: Sequence[AccessRecord],
    now: datetime,
) -> Optional[int]:
    """Get the lowest remaining allowance across all active rules for a site.

    Returns:
        The minimum remaining count, or None when no rule applies
    """
    active_rules = active_rules_for(site, configuration, now)
    if not active_rules:
        return None

    return min(remaining_for_rule(records, rule, site, now) for rule in active_rules)


def projected_unblock_time(
    site: str,
    rule: RuleGroup,
    records: Sequence[AccessRecord],
) -> Optional[datetime]:
    """Estimate when a site becomes accessible again under a rule.

    The oldest relevant record, regardless of age, determines the result:
    its timestamp plus the rule's window. The value is informational and
    may already lie in the past.

    Returns:
        Local datetime, or None when no relevant records exist
    """
    relevant = relevant_records(records, rule, site)
    if not relevant:
        return None

    oldest = min(record.timestamp for record in relevant)
    return from_epoch_ms(oldest + rule.duration_minutes * MS_PER_MINUTE)


def evaluate(
    site: str,
    configuration: Optional[Configuration],
    records: Sequence[AccessRecord],
    now: datetime,
) -> Evaluation:
    """Run decide(), most_restrictive_remaining() and, when blocked,
    projected_unblock_time() for the blocking rule against the same `now`.
    """
    remaining = most_restrictive_remaining(site, configuration, records, now)

    # Project from the rule object itself; group names need not be unique
    rule = blocking_rule(site, configuration, records, now)
    if rule is None:
        return Evaluation(result=Allowed(), remaining=remaining)

    return Evaluation(
        result=_blocked_by(rule),
        remaining=remaining,
        unblock_time=projected_unblock_time(site, rule, records),
    )
