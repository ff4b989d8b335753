"""Data models for rule groups, schedules and access records."""

from dataclasses import dataclass, field
from typing import Optional, Union

# Sentinel end-of-day minute used when a literal ends at "2400"
END_OF_DAY = 1440


@dataclass(frozen=True)
class TimeRange:
    """A span of minutes within one day, inclusive on both ends.

    Attributes:
        start: Start minute of day (0-1439)
        end: End minute of day (0-1439, or 1440 for a "2400" literal)
    """

    start: int
    end: int

    def contains(self, minute: int) -> bool:
        """Check whether a minute of day falls within this range."""
        return self.start <= minute <= self.end

    def to_literal(self) -> str:
        """Render back to the HHMM-HHMM form it was parsed from."""
        return f"{self.start // 60:02d}{self.start % 60:02d}-{self.end // 60:02d}{self.end % 60:02d}"


@dataclass(frozen=True)
class Schedule:
    """Weekly schedule controlling when a rule group is enforced.

    Attributes:
        active_days: Weekday indices (0=Sunday .. 6=Saturday)
        active_time_ranges: Time ranges within an active day
    """

    active_days: frozenset[int] = frozenset()
    active_time_ranges: tuple[TimeRange, ...] = ()

    def is_empty(self) -> bool:
        """True when the schedule carries neither days nor time ranges."""
        return not self.active_days and not self.active_time_ranges


@dataclass(frozen=True)
class RuleGroup:
    """A named access-limiting policy covering one or more sites.

    Attributes:
        name: Rule group identifier shown on the blocked page
        duration_minutes: Width of the rolling window
        max_accesses: Allowance within the window (0 = always blocked while active)
        strict_mode: If True, all sites share one allowance pool
        sites: Site patterns ("domain" or "domain/path-prefix")
        schedule: When the group is enforced; None means always
    """

    name: str
    duration_minutes: int
    max_accesses: int
    strict_mode: bool = False
    sites: tuple[str, ...] = ()
    schedule: Optional[Schedule] = None


@dataclass(frozen=True)
class Configuration:
    """Ordered collection of rule groups."""

    groups: tuple[RuleGroup, ...] = field(default_factory=tuple)

    def longest_duration_minutes(self) -> int:
        """Return the widest rolling window across all groups (0 if none)."""
        return max((group.duration_minutes for group in self.groups), default=0)


@dataclass(frozen=True)
class AccessRecord:
    """One logged visit.

    Attributes:
        site: Domain that was accessed (no path)
        timestamp: Epoch milliseconds
        source_id: Browsing context that made the access (tab id)
    """

    site: str
    timestamp: int
    source_id: str = ""


@dataclass(frozen=True)
class Allowed:
    """Navigation may proceed."""

    blocked: bool = field(default=False, init=False)


@dataclass(frozen=True)
class Blocked:
    """Navigation is blocked by a rule group whose allowance is exhausted."""

    rule_name: str
    duration_minutes: int
    max_accesses: int
    blocked: bool = field(default=True, init=False)

    @property
    def reason(self) -> str:
        return f'Access limit reached for rule "{self.rule_name}"'


EvaluationResult = Union[Allowed, Blocked]
