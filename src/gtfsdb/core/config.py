# src/gtfsdb/core/config.py
"""
Configuration schema and loading for gtfsdb.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from gtfsdb.contracts.enums import ValidationMode
from gtfsdb.core.integrity.validator import DEFAULT_MAX_REPAIR_PASSES


class ValidationSettings(BaseModel):
    """Integrity validation behaviour.

    Example YAML:
        validation:
          mode: repair
          max_repair_passes: 50
    """

    model_config = {"frozen": True}

    mode: ValidationMode = Field(
        default=ValidationMode.STRICT,
        description="strict fails on violations, repair deletes violating rows, permissive only reports",
    )
    max_repair_passes: int = Field(
        default=DEFAULT_MAX_REPAIR_PASSES,
        gt=0,
        description="Deletion rounds allowed before repair is declared non-convergent",
    )


class ClipSettings(BaseModel):
    """Geographic clip configuration.

    The anchor entity is filtered by a bounding box on the two coordinate
    columns; everything else follows from the schema.
    """

    model_config = {"frozen": True}

    anchor_entity: str = Field(default="stops", description="Entity filtered by the bounding box")
    id_column: str = Field(default="stop_id", description="Column identifying anchor rows in log messages")
    latitude_column: str = Field(default="stop_lat", description="Anchor column holding WGS84 latitude")
    longitude_column: str = Field(default="stop_lon", description="Anchor column holding WGS84 longitude")

    @field_validator("anchor_entity", "id_column", "latitude_column", "longitude_column")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class StoreSettings(BaseModel):
    """SQLite connection tuning."""

    model_config = {"frozen": True}

    synchronous: Literal["OFF", "NORMAL", "FULL", "EXTRA"] | None = Field(
        default="OFF",
        description="PRAGMA synchronous for write connections; null keeps the SQLite default",
    )


class GtfsdbSettings(BaseModel):
    """Top-level gtfsdb settings."""

    model_config = {"frozen": True}

    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    clip: ClipSettings = Field(default_factory=ClipSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """
    import os

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)  # None if no default specified
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # Unset with no default: left as-is so validation reports it
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Dynaconf upper-cases keys; Pydantic fields are lower case."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_lower_keys(item) for item in value]
    return value


def load_settings(config_path: Path) -> GtfsdbSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (GTFSDB_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: GTFSDB_VALIDATION__MODE for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated GtfsdbSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="GTFSDB",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return GtfsdbSettings(**raw_config)


def render_settings(settings: GtfsdbSettings) -> str:
    """Render effective settings as YAML, in the same layout load_settings reads."""
    return yaml.safe_dump(settings.model_dump(mode="json"), sort_keys=False)
