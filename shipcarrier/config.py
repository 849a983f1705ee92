"""YAML configuration loader with env var resolution and Pydantic validation.

Loads config from (priority order):
1. --config <path> CLI flag
2. ./shipcarrier.yaml (working directory)
3. ~/.shipcarrier/config.yaml (user home)

Environment variables override YAML: SHIPCARRIER_<SECTION>_<KEY>.
${VAR} references in YAML values resolve from environment at load time.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ValidationInfo, field_validator

from shipcarrier.services.carrier_constants import (
    DEFAULT_BASE_URL,
    DEFAULT_PICKUP_LOCATION,
    DEFAULT_REFRESH_HORIZON_HOURS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_LIFETIME_HOURS,
)

logger = logging.getLogger(__name__)

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
_ENV_PREFIX = "SHIPCARRIER_"


def resolve_env_vars(value: str) -> str:
    """Resolve ${VAR} references in a string from environment variables.

    Args:
        value: String potentially containing ${VAR} references.

    Returns:
        String with all ${VAR} references replaced by their env values.
        Missing env vars resolve to empty string.
    """
    def _replace(match: re.Match) -> str:
        return os.environ.get(match.group(1), "")

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _resolve_env_vars_recursive(data: Any) -> Any:
    if isinstance(data, str):
        return resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    return data


class CarrierSettings(BaseModel):
    """Carrier account credentials and client tuning."""

    email: str
    password: str
    pickup_location: str = DEFAULT_PICKUP_LOCATION
    cod: bool = False
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    token_lifetime_hours: float = DEFAULT_TOKEN_LIFETIME_HOURS
    refresh_horizon_hours: float = DEFAULT_REFRESH_HORIZON_HOURS

    @field_validator("email", "password")
    @classmethod
    def not_blank(cls, value: str, info: ValidationInfo) -> str:
        """Credentials must be present; their validity is the carrier's call."""
        if not value or not value.strip():
            raise ValueError(f"carrier {info.field_name} is required")
        return value

    @field_validator("cod", mode="before")
    @classmethod
    def parse_cod(cls, value: Any) -> bool:
        """Accept 0/1 and 'true'/'false' spellings."""
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("1", "true"):
                return True
            if normalized in ("0", "false", ""):
                return False
            raise ValueError(f"cod must be 0, 1, true or false, got {value!r}")
        if isinstance(value, (bool, int)):
            if value not in (0, 1):
                raise ValueError(f"cod must be 0, 1, true or false, got {value!r}")
            return bool(value)
        raise ValueError(f"cod must be 0, 1, true or false, got {value!r}")


class ReturnAddressConfig(BaseModel):
    """Warehouse address that return shipments are delivered to."""

    first_name: str = ""
    last_name: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    province: str = ""
    postal_code: str = ""
    country_code: str = "IN"
    email: str = ""
    phone: str = ""


class LoggingConfig(BaseModel):
    """Log output settings for the CLI."""

    level: str = "INFO"
    format: Literal["text", "json"] = "text"


class ShipCarrierConfig(BaseModel):
    """Top-level configuration for the carrier client."""

    carrier: CarrierSettings
    return_address: ReturnAddressConfig | None = None
    logging: LoggingConfig = LoggingConfig()


def _find_config_file() -> Path | None:
    candidates = [
        Path.cwd() / "shipcarrier.yaml",
        Path.cwd() / "shipcarrier.yml",
        Path.home() / ".shipcarrier" / "config.yaml",
        Path.home() / ".shipcarrier" / "config.yml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply SHIPCARRIER_<SECTION>_<KEY> env var overrides to config data.

    Matches section names by longest prefix so ``return_address`` wins over
    any shorter section sharing its first word. For example,
    ``SHIPCARRIER_RETURN_ADDRESS_CITY`` maps to section ``return_address``,
    field ``city``.

    Values are kept as strings; Pydantic coerces them to the field types.

    Args:
        data: Parsed YAML config dict.

    Returns:
        Config dict with env var overrides applied.
    """
    known_sections = sorted(
        ShipCarrierConfig.model_fields.keys(), key=len, reverse=True
    )
    for key, value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        suffix = key[len(_ENV_PREFIX):].lower()  # e.g. "carrier_email"
        matched_section = None
        matched_field = None
        for section in known_sections:
            section_prefix = section + "_"
            if suffix.startswith(section_prefix):
                matched_section = section
                matched_field = suffix[len(section_prefix):]
                break
        if matched_section is None or not matched_field:
            continue
        if not isinstance(data.get(matched_section), dict):
            data[matched_section] = {}
        data[matched_section][matched_field] = value
    return data


def load_config(config_path: str | None = None) -> ShipCarrierConfig | None:
    """Load carrier configuration from YAML with env var resolution.

    Environment overrides alone are enough when no file exists, so a
    container can be configured purely through SHIPCARRIER_* variables.

    Args:
        config_path: Explicit path to config file. If None, searches
            standard locations (cwd, then ~/.shipcarrier/).

    Returns:
        Parsed and validated ShipCarrierConfig, or None if neither a config
        file nor any SHIPCARRIER_ variable is found.

    Raises:
        FileNotFoundError: Explicit config_path does not exist.
        pydantic.ValidationError: Config fails validation.
    """
    if config_path:
        path: Path | None = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        path = _find_config_file()

    raw_data: dict[str, Any] = {}
    if path is not None:
        logger.info("Loading config from %s", path)
        with open(path) as f:
            raw_data = yaml.safe_load(f) or {}
    elif not any(k.startswith(_ENV_PREFIX) for k in os.environ):
        return None

    data = _resolve_env_vars_recursive(raw_data)
    data = _apply_env_overrides(data)
    return ShipCarrierConfig(**data)
