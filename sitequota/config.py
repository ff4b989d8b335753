"""Configuration loading for sitequota.

Loads application settings from a TOML config file with CLI override
support. Rule groups may also be declared here as `[[groups]]` tables; they
seed the store on first run in place of the built-in default configuration.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomli

from sitequota.models import Configuration, RuleGroup, Schedule
from sitequota.rules.schedule import parse_time_range
from sitequota.validation import ValidationError, parse_configuration

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_PREFIXES = ["chrome://", "chrome-extension://", "about:", "edge://"]


def get_config_search_paths() -> list[Path]:
    """Get list of paths to search for config file."""
    return [
        Path("sitequota.toml"),  # Current directory
        Path.home() / ".config" / "sitequota" / "sitequota.toml",
        Path("/etc/sitequota/sitequota.toml"),
    ]


def find_config_file() -> Optional[Path]:
    """Find the first existing config file."""
    for path in get_config_search_paths():
        if path.exists():
            return path
    return None


def default_configuration() -> Configuration:
    """Build the configuration written to the store on first run."""
    return Configuration(
        groups=(
            RuleGroup(
                name="Example Rule - Delete Me",
                duration_minutes=60,
                max_accesses=3,
                strict_mode=False,
                sites=("example.com",),
                schedule=Schedule(
                    active_days=frozenset(range(7)),
                    active_time_ranges=(parse_time_range("0000-2400"),),
                ),
            ),
        )
    )


@dataclass
class Config:
    """Loaded configuration with all sections."""

    # Database
    db_path: Path = field(default_factory=lambda: Path.home() / ".local" / "share" / "sitequota" / "sitequota.db")

    # Tracking
    prune_multiplier: int = 2  # Keep records for N x the longest window
    tab_cache_size: int = 1024
    tab_cache_ttl: int = 86400  # 1 day
    ignored_prefixes: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORED_PREFIXES))

    # Badge
    badge_low_threshold: int = 1

    # Seed rule groups (None = use the built-in default)
    groups: Optional[Configuration] = None

    def seed_configuration(self) -> Configuration:
        """Configuration to write to an empty store."""
        return self.groups if self.groups is not None else default_configuration()


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from TOML file.

    Args:
        config_path: Explicit path to config file, or None to search

    Returns:
        Config object with loaded values
    """
    config = Config()

    # Find config file
    if config_path is None:
        config_path = find_config_file()

    if config_path is None or not config_path.exists():
        logger.debug("No config file found, using defaults")
        return config

    logger.info(f"Loading config from {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        logger.warning(f"Failed to load config file: {e}")
        return config

    # Database section
    if "database" in data:
        db = data["database"]
        if "path" in db:
            config.db_path = Path(db["path"]).expanduser()

    # Tracking section
    if "tracking" in data:
        tracking = data["tracking"]
        if "prune_multiplier" in tracking:
            config.prune_multiplier = tracking["prune_multiplier"]
        if "tab_cache_size" in tracking:
            config.tab_cache_size = tracking["tab_cache_size"]
        if "tab_cache_ttl" in tracking:
            config.tab_cache_ttl = tracking["tab_cache_ttl"]
        if "ignored_prefixes" in tracking:
            config.ignored_prefixes = tracking["ignored_prefixes"]

    # Badge section
    if "badge" in data:
        badge = data["badge"]
        if "low_threshold" in badge:
            config.badge_low_threshold = badge["low_threshold"]

    # Rule groups
    if "groups" in data:
        try:
            config.groups = parse_configuration({"groups": data["groups"]})
        except ValidationError as e:
            for error in e.errors:
                logger.warning(f"Ignoring [[groups]] in {config_path}: {error}")

    return config


def merge_cli_options(config: Config, **cli_options: Any) -> Config:
    """Merge CLI options into config (CLI takes precedence).

    Args:
        config: Base config from file
        **cli_options: CLI option overrides (None values are ignored)

    Returns:
        Config with CLI overrides applied
    """
    # Map CLI option names to config attributes
    mappings = {
        "db": "db_path",
        "prune_multiplier": "prune_multiplier",
        "low_threshold": "badge_low_threshold",
    }

    for cli_name, config_name in mappings.items():
        if cli_name in cli_options:
            value = cli_options[cli_name]
            if value is None or value == "":
                continue
            if cli_name == "db":
                value = Path(value)
            setattr(config, config_name, value)

    return config
