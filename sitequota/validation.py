"""Shape validation and (de)serialization for stored data.

This is the single boundary where untyped data (JSON from the store, TOML
tables, imported files) becomes typed models. Nothing past this point
re-validates shapes.

Serialized rule group shape:

    {
        "name": "Social",
        "duration_minutes": 60,
        "max_accesses": 3,
        "strict_mode": false,
        "sites": ["twitter.com"],
        "schedule": {"days": [1, 2, 3, 4, 5], "times": ["0900-1700"]}
    }
"""

import logging
from typing import Any, Optional

from sitequota.models import AccessRecord, Configuration, RuleGroup, Schedule
from sitequota.rules.schedule import parse_time_range

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when data does not have the expected shape.

    Attributes:
        errors: Human-readable messages, one per problem found
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


def _is_int(value: Any) -> bool:
    # bool is a subclass of int but never a valid count
    return isinstance(value, int) and not isinstance(value, bool)


def validate_schedule(schedule: Any) -> list[str]:
    """Validate a serialized schedule. Returns a list of errors."""
    if not isinstance(schedule, dict):
        return ["Schedule must be an object"]

    errors = []
    days = schedule.get("days")
    if not isinstance(days, list):
        errors.append("Schedule days must be an array")
    elif any(not _is_int(d) or d < 0 or d > 6 for d in days):
        errors.append("Schedule days must be between 0 (Sunday) and 6 (Saturday)")

    times = schedule.get("times")
    if not isinstance(times, list):
        errors.append("Schedule times must be an array")
    else:
        for index, literal in enumerate(times):
            if not isinstance(literal, str):
                errors.append(f"Time range at index {index} must be in format HHMM-HHMM")
                continue
            try:
                parse_time_range(literal)
            except ValueError as e:
                errors.append(f"Time range at index {index}: {e}")

    return errors


def validate_rule_group(group: Any) -> list[str]:
    """Validate a serialized rule group. Returns a list of errors."""
    if not isinstance(group, dict):
        return ["Rule group must be an object"]

    errors = []

    name = group.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append("Rule group must have a non-empty name")

    duration = group.get("duration_minutes")
    if not _is_int(duration) or duration <= 0:
        errors.append("Duration must be a positive integer")

    max_accesses = group.get("max_accesses")
    if not _is_int(max_accesses) or max_accesses < 0:
        errors.append("Max accesses must be a non-negative integer")

    if not isinstance(group.get("strict_mode"), bool):
        errors.append("Strict mode must be a boolean")

    sites = group.get("sites")
    if not isinstance(sites, list) or not sites:
        errors.append("Sites must be a non-empty array")
    else:
        for index, site in enumerate(sites):
            if not isinstance(site, str) or not site.strip():
                errors.append(f"Site at index {index} must be a non-empty string")

    schedule = group.get("schedule")
    if schedule is not None:
        errors.extend(validate_schedule(schedule))

    return errors


def validate_configuration(config: Any) -> list[str]:
    """Validate a serialized configuration. Returns a list of errors."""
    if not isinstance(config, dict):
        return ["Configuration must be an object"]

    groups = config.get("groups")
    if not isinstance(groups, list):
        return ["Configuration must have a groups array"]

    errors = []
    for index, group in enumerate(groups):
        group_errors = validate_rule_group(group)
        if group_errors:
            name = group.get("name") if isinstance(group, dict) else None
            errors.append(f"Group {index + 1} \"{name or 'unnamed'}\": {', '.join(group_errors)}")
    return errors


def validate_access_record(record: Any) -> list[str]:
    """Validate a serialized access record. Returns a list of errors."""
    if not isinstance(record, dict):
        return ["Access record must be an object"]

    errors = []
    site = record.get("site")
    if not isinstance(site, str) or not site.strip():
        errors.append("Access record must have a site (domain) string")

    timestamp = record.get("timestamp")
    if not _is_int(timestamp) or timestamp <= 0:
        errors.append("Access record must have a valid timestamp")

    if not isinstance(record.get("source_id", ""), str):
        errors.append("Access record source_id must be a string")

    return errors


def _parse_schedule(data: Optional[dict]) -> Optional[Schedule]:
    if data is None:
        return None
    return Schedule(
        active_days=frozenset(data["days"]),
        active_time_ranges=tuple(parse_time_range(literal) for literal in data["times"]),
    )


def _build_rule_group(data: dict) -> RuleGroup:
    return RuleGroup(
        name=data["name"].strip(),
        duration_minutes=data["duration_minutes"],
        max_accesses=data["max_accesses"],
        strict_mode=data["strict_mode"],
        sites=tuple(site.strip() for site in data["sites"]),
        schedule=_parse_schedule(data.get("schedule")),
    )


def parse_rule_group(data: Any) -> RuleGroup:
    """Validate and convert a serialized rule group.

    Raises:
        ValidationError: If the data is not a valid rule group
    """
    errors = validate_rule_group(data)
    if errors:
        raise ValidationError(errors)
    return _build_rule_group(data)


def parse_configuration(data: Any) -> Configuration:
    """Validate and convert a serialized configuration.

    Raises:
        ValidationError: If any group is invalid
    """
    errors = validate_configuration(data)
    if errors:
        raise ValidationError(errors)
    return Configuration(groups=tuple(_build_rule_group(group) for group in data["groups"]))


def parse_access_record(data: Any) -> AccessRecord:
    """Validate and convert a serialized access record.

    Raises:
        ValidationError: If the record is invalid
    """
    errors = validate_access_record(data)
    if errors:
        raise ValidationError(errors)
    return AccessRecord(
        site=data["site"],
        timestamp=data["timestamp"],
        source_id=data.get("source_id", ""),
    )


def schedule_to_dict(schedule: Schedule) -> dict:
    return {
        "days": sorted(schedule.active_days),
        "times": [time_range.to_literal() for time_range in schedule.active_time_ranges],
    }


def rule_group_to_dict(group: RuleGroup) -> dict:
    """Serialize a rule group; parse_rule_group() reverses this."""
    return {
        "name": group.name,
        "duration_minutes": group.duration_minutes,
        "max_accesses": group.max_accesses,
        "strict_mode": group.strict_mode,
        "sites": list(group.sites),
        "schedule": schedule_to_dict(group.schedule) if group.schedule is not None else None,
    }


def configuration_to_dict(configuration: Configuration) -> dict:
    return {"groups": [rule_group_to_dict(group) for group in configuration.groups]}
