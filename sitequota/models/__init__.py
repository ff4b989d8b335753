"""Data models for sitequota rules and access history."""

from sitequota.models.rules import (
    END_OF_DAY,
    AccessRecord,
    Allowed,
    Blocked,
    Configuration,
    EvaluationResult,
    RuleGroup,
    Schedule,
    TimeRange,
)

__all__ = [
    "END_OF_DAY",
    "AccessRecord",
    "Allowed",
    "Blocked",
    "Configuration",
    "EvaluationResult",
    "RuleGroup",
    "Schedule",
    "TimeRange",
]
