"""Configuration loader and validator."""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from padelbracket.errors import InvalidInput
from padelbracket.models import KnockoutPointsConfig, MatchFormat, StandingsConfig

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_DATABASE_PATH = ".padelbracket/brackets.sqlite"


class ConfigError(Exception):
    """Configuration validation error."""

    pass


def load_config(path: str) -> dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        path: Path to YAML config file

    Returns:
        Dictionary with configuration values

    Raises:
        ConfigError: If file not found or invalid YAML
    """
    config_file = Path(path)

    if not config_file.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")

    if config is None:
        raise ConfigError("Config file is empty")

    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping")

    return config


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a dictionary")
    return value


def _int_fields(section: dict[str, Any], name: str, fields: tuple[str, ...]) -> dict[str, int]:
    values = {}
    for field_name in fields:
        if field_name in section:
            value = section[field_name]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"{name}.{field_name} must be a non-negative integer")
            values[field_name] = value
    return values


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Validate configuration values.

    Args:
        config: Configuration dictionary

    Returns:
        Validated and normalized configuration. Sections are turned into
        their typed objects: match_format (MatchFormat), standings
        (StandingsConfig), knockout_points (KnockoutPointsConfig).

    Raises:
        ConfigError: If validation fails
    """
    validated = {}

    # Database path (optional)
    database_path = config.get("database_path", DEFAULT_DATABASE_PATH)
    if not isinstance(database_path, str) or not database_path:
        raise ConfigError("database_path must be a non-empty string")
    validated["database_path"] = database_path

    # Log level (optional, default INFO)
    log_level = str(config.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{log_level}'")
    validated["log_level"] = log_level

    # Random seed (optional, None = non-reproducible draws)
    random_seed = config.get("random_seed")
    if random_seed is not None and (not isinstance(random_seed, int) or isinstance(random_seed, bool)):
        raise ConfigError("random_seed must be an integer")
    validated["random_seed"] = random_seed

    try:
        validated["match_format"] = MatchFormat.from_dict(_section(config, "match_format"))

        standings = _section(config, "standings")
        standings_values = _int_fields(standings, "standings", ("win_points", "loss_points", "forfeit_loss_points"))
        if "tie_breakers" in standings:
            tie_breakers = standings["tie_breakers"]
            if not isinstance(tie_breakers, list) or not tie_breakers:
                raise ConfigError("standings.tie_breakers must be a non-empty list")
            standings_values["tie_breakers"] = tuple(tie_breakers)
        validated["standings"] = StandingsConfig(**standings_values)
    except InvalidInput as e:
        raise ConfigError(str(e))

    knockout_points = _section(config, "knockout_points")
    validated["knockout_points"] = KnockoutPointsConfig(
        **_int_fields(
            knockout_points,
            "knockout_points",
            ("champion", "finalist", "semifinalist", "quarterfinalist", "base_points", "per_round_bonus"),
        )
    )

    return validated


def default_config() -> dict[str, Any]:
    """Validated configuration with every default."""
    return validate_config({})


def load_and_validate_config(path: Optional[str]) -> dict[str, Any]:
    """Load and validate configuration in one step.

    Args:
        path: Path to YAML config file (None = defaults only)

    Returns:
        Validated configuration dictionary

    Raises:
        ConfigError: If loading or validation fails
    """
    if path is None:
        return default_config()
    config = load_config(path)
    return validate_config(config)


def configure_logging(log_level: str) -> None:
    """Configure root logging for the command line and the web app."""
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
