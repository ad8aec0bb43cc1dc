"""
Module for loading and validating the curriculum engine configuration from TOML.
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

# TOML support for different Python versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        raise ImportError(
            "tomli library is required for Python < 3.11. "
            "Install it with: pip install tomli>=2.0.0"
        )

_TERM_RE = re.compile(r"^(FA|WI|SP|S1|S2|S3)\d{2}$")


class ConfigValidationError(Exception):
    """Exception for configuration validation errors."""

    pass


def _inject_env_overrides(config: Dict[str, Any]) -> None:
    """
    Applies environment overrides.

    CURRICULUM_DATA_URL replaces data_source.base_url when set.
    """
    env_url = os.getenv("CURRICULUM_DATA_URL")
    if env_url:
        config.setdefault("data_source", {})["base_url"] = env_url


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Loads and validates configuration from TOML file.

    Args:
        config_path: Path to configuration file.
                    If None, uses curriculum/config.toml

    Returns:
        Dictionary with validated configuration

    Raises:
        ConfigValidationError: On validation errors
        FileNotFoundError: If configuration file not found
    """
    if config_path is None:
        config_path = Path(__file__).parent.parent / "config.toml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            config = tomllib.load(f)
    except Exception as e:
        raise ConfigValidationError(f"Failed to parse TOML file: {e}")

    _inject_env_overrides(config)

    try:
        _validate_config(config)
    except ConfigValidationError:
        raise
    except Exception as e:
        raise ConfigValidationError(f"Configuration validation failed: {e}")

    return config


def _validate_config(config: Dict[str, Any]) -> None:
    """Validates the full configuration structure."""
    required_sections = ["data_source", "terms", "metrics"]

    for section in required_sections:
        if section not in config:
            raise ConfigValidationError(f"Missing required section: [{section}]")

    _validate_data_source_section(config["data_source"])
    _validate_terms_section(config["terms"])
    _validate_metrics_section(config["metrics"])

    if "stats" in config:
        _validate_stats_section(config["stats"])
    if "logging" in config:
        _validate_logging_section(config["logging"])


def _validate_data_source_section(section: Dict[str, Any]) -> None:
    """Validates the [data_source] section."""
    required_fields = {
        "base_url": str,
        "timeout": (int, float),
        "max_retries": int,
    }

    _validate_required_fields(section, required_fields, "data_source")

    base_url = section["base_url"]
    if not base_url.startswith(("https://", "http://")):
        raise ConfigValidationError("data_source.base_url must be an HTTP(S) URL")

    if section["timeout"] <= 0:
        raise ConfigValidationError("data_source.timeout must be positive")

    if section["max_retries"] < 0:
        raise ConfigValidationError("data_source.max_retries must be non-negative")

    if "backoff" in section and section["backoff"] < 0:
        raise ConfigValidationError("data_source.backoff must be non-negative")


def _validate_terms_section(section: Dict[str, Any]) -> None:
    """Validates the [terms] section."""
    required_fields = {
        "default_min_term": str,
        "default_max_term": str,
    }

    _validate_required_fields(section, required_fields, "terms")

    for name in required_fields:
        if not _TERM_RE.match(section[name]):
            raise ConfigValidationError(f"terms.{name} must be a term key like 'FA24'")

    # Imported here: curriculum.terms imports this package through the model
    from ..terms import term_sort_key

    if term_sort_key(section["default_min_term"]) > term_sort_key(section["default_max_term"]):
        raise ConfigValidationError(
            "terms.default_min_term must not be after terms.default_max_term"
        )

    if "reference_year" in section:
        year = section["reference_year"]
        if not isinstance(year, int) or not (1900 <= year <= 2999):
            raise ConfigValidationError("terms.reference_year must be a four-digit year")


def _validate_metrics_section(section: Dict[str, Any]) -> None:
    """Validates the [metrics] section."""
    required_fields = {
        "system": str,
        "complexity_mode": str,
    }

    _validate_required_fields(section, required_fields, "metrics")

    if section["system"] not in ["semester", "quarter"]:
        raise ConfigValidationError("metrics.system must be 'semester' or 'quarter'")

    if section["complexity_mode"] not in ["default", "dfq", "dfqPlus1", "dfqPlus1Bf"]:
        raise ConfigValidationError(
            "metrics.complexity_mode must be one of: default, dfq, dfqPlus1, dfqPlus1Bf"
        )


def _validate_stats_section(section: Dict[str, Any]) -> None:
    """Validates the optional [stats] section; missing tables only warn."""
    for name in ["dfq_file", "equity_file", "frequency_file", "waitlist_file"]:
        path = section.get(name)
        if path is None:
            continue
        if not isinstance(path, str):
            raise ConfigValidationError(f"stats.{name} must be a string path")
        if path and not Path(path).exists():
            logging.warning(f"[stats] {name} not found: {path}, statistics will be unknown")

    if "major" in section and not isinstance(section["major"], str):
        raise ConfigValidationError("stats.major must be a string")


def _validate_logging_section(section: Dict[str, Any]) -> None:
    level = section.get("level", "info")
    if level not in ["debug", "info", "warning", "error"]:
        raise ConfigValidationError("logging.level must be one of: debug, info, warning, error")


def _validate_required_fields(
    section: Dict[str, Any], required_fields: Dict[str, Any], section_name: str
) -> None:
    """Checks presence and types of required fields in a section."""
    for field_name, expected_type in required_fields.items():
        if field_name not in section:
            raise ConfigValidationError(f"Missing required field: {section_name}.{field_name}")

        actual_value = section[field_name]
        # bool is an int subclass but never a valid number here
        if isinstance(actual_value, bool) or not isinstance(actual_value, expected_type):
            type_name = (
                "/".join(t.__name__ for t in expected_type)
                if isinstance(expected_type, tuple)
                else expected_type.__name__
            )
            raise ConfigValidationError(
                f"Field {section_name}.{field_name} must be {type_name}, "
                f"got {type(actual_value).__name__}"
            )
