"""Rule evaluation and access accounting for sitequota."""

from sitequota.rules.access_window import (
    filter_within_window,
    remaining_accesses,
    to_epoch_ms,
)
from sitequota.rules.engine import (
    Evaluation,
    active_rules_for,
    blocking_rule,
    decide,
    evaluate,
    most_restrictive_remaining,
    projected_unblock_time,
)
from sitequota.rules.schedule import is_schedule_active, parse_time_range
from sitequota.rules.site_matcher import extract_domain, extract_path, matches_site_pattern

__all__ = [
    "Evaluation",
    "active_rules_for",
    "blocking_rule",
    "decide",
    "evaluate",
    "extract_domain",
    "extract_path",
    "filter_within_window",
    "is_schedule_active",
    "matches_site_pattern",
    "most_restrictive_remaining",
    "parse_time_range",
    "projected_unblock_time",
    "remaining_accesses",
    "to_epoch_ms",
]
