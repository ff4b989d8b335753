"""Rule group management on top of the store.

Provides the editing operations behind the settings surface: add, update
and delete rule groups by index, JSON import/export, and detection of sites
that appear in several groups with overlapping schedules.
"""

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from itertools import combinations
from typing import Optional

from sitequota.models import Configuration, RuleGroup, Schedule, TimeRange
from sitequota.rules.schedule import is_schedule_active
from sitequota.storage import AccessStore
from sitequota.validation import ValidationError, configuration_to_dict, parse_configuration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupRef:
    """A rule group that lists a shared site."""

    index: int
    name: str


@dataclass(frozen=True)
class SiteOverlap:
    """A site pattern listed in more than one rule group.

    Attributes:
        site: The shared site pattern
        groups: Groups listing it, in configuration order
        overlapping: True if any two of their schedules can be active together
    """

    site: str
    groups: tuple[GroupRef, ...]
    overlapping: bool


def time_ranges_overlap(first: TimeRange, second: TimeRange) -> bool:
    # Bounds are inclusive, so ranges sharing an end minute overlap
    return first.start <= second.end and second.start <= first.end


def schedules_overlap(first: Optional[Schedule], second: Optional[Schedule]) -> bool:
    """Check if two schedules share any active minute.

    A missing (or empty) schedule is always active and overlaps everything.
    """
    if first is None or second is None or first.is_empty() or second.is_empty():
        return True

    if not first.active_days & second.active_days:
        return False

    return any(
        time_ranges_overlap(a, b)
        for a in first.active_time_ranges
        for b in second.active_time_ranges
    )


def detect_overlapping_sites(configuration: Configuration) -> list[SiteOverlap]:
    """Find site patterns listed in several rule groups.

    Returns:
        One SiteOverlap per shared site, in order of first appearance
    """
    site_map: dict[str, list[tuple[int, RuleGroup]]] = {}
    for index, group in enumerate(configuration.groups):
        for site in group.sites:
            site_map.setdefault(site, []).append((index, group))

    overlaps = []
    for site, entries in site_map.items():
        if len(entries) < 2:
            continue
        overlapping = any(
            schedules_overlap(a.schedule, b.schedule)
            for (_, a), (_, b) in combinations(entries, 2)
        )
        overlaps.append(
            SiteOverlap(
                site=site,
                groups=tuple(GroupRef(index=index, name=group.name) for index, group in entries),
                overlapping=overlapping,
            )
        )
    return overlaps


class ConfigurationManager:
    """Edits the stored configuration one rule group at a time."""

    def __init__(self, store: AccessStore) -> None:
        self.store = store

    def load_configuration(self) -> Configuration:
        """Return the stored configuration (empty if none is stored)."""
        return self.store.get_configuration() or Configuration()

    def _check_index(self, configuration: Configuration, index: int) -> None:
        if index < 0 or index >= len(configuration.groups):
            raise IndexError(
                f"Invalid index: {index}. Must be between 0 and {len(configuration.groups) - 1}"
            )

    def add_rule_group(self, group: RuleGroup) -> int:
        """Append a rule group and return its index."""
        configuration = self.load_configuration()
        updated = replace(configuration, groups=configuration.groups + (group,))
        self.store.save_configuration(updated)
        logger.info(f"Added rule group '{group.name}'")
        return len(updated.groups) - 1

    def update_rule_group(self, index: int, group: RuleGroup) -> None:
        """Replace the rule group at `index`.

        Raises:
            IndexError: If no group exists at `index`
        """
        configuration = self.load_configuration()
        self._check_index(configuration, index)

        groups = list(configuration.groups)
        groups[index] = group
        self.store.save_configuration(replace(configuration, groups=tuple(groups)))
        logger.info(f"Updated rule group {index} ('{group.name}')")

    def delete_rule_group(self, index: int) -> RuleGroup:
        """Remove and return the rule group at `index`.

        Raises:
            IndexError: If no group exists at `index`
        """
        configuration = self.load_configuration()
        self._check_index(configuration, index)

        groups = list(configuration.groups)
        deleted = groups.pop(index)
        self.store.save_configuration(replace(configuration, groups=tuple(groups)))
        logger.info(f"Deleted rule group '{deleted.name}'")
        return deleted

    def export_configuration(self) -> str:
        """Serialize the stored configuration as indented JSON."""
        return json.dumps(configuration_to_dict(self.load_configuration()), indent=2)

    def import_configuration(self, text: str) -> Configuration:
        """Replace the stored configuration with one parsed from JSON.

        Raises:
            ValidationError: If the text is not JSON or not a valid configuration
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValidationError([f"Invalid JSON: {e}"]) from e

        configuration = parse_configuration(data)
        self.store.save_configuration(configuration)
        logger.info(f"Imported configuration with {len(configuration.groups)} rule groups")
        return configuration

    def configuration_stats(self, now: datetime) -> dict:
        """Summarize the stored configuration.

        Returns:
            Dict with total_groups, total_sites (unique patterns),
            active_groups (schedule active at `now`) and has_overlaps
        """
        configuration = self.load_configuration()
        unique_sites = {site for group in configuration.groups for site in group.sites}
        active = sum(1 for group in configuration.groups if is_schedule_active(group.schedule, now))
        return {
            "total_groups": len(configuration.groups),
            "total_sites": len(unique_sites),
            "active_groups": active,
            "has_overlaps": bool(detect_overlapping_sites(configuration)),
        }
