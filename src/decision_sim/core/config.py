"""Load declarative description files and validate their mappings.

Description files may be JSON or YAML. Every validation failure is raised as
:class:`~decision_sim.core.errors.ConfigurationError` so callers can stop
before any trial runs.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml

from decision_sim.core.errors import ConfigurationError

SUPPORTED_CONFIG_SUFFIXES: tuple[str, ...] = (".json", ".yaml", ".yml")


def load_config_mapping(path: str | Path) -> dict[str, Any]:
    """Load one JSON/YAML file whose root is an object mapping.

    Parameters
    ----------
    path : str | pathlib.Path
        File path with suffix ``.json``, ``.yaml`` or ``.yml``.

    Returns
    -------
    dict[str, Any]
        Parsed mapping.

    Raises
    ------
    ConfigurationError
        If the file is missing, the suffix is unsupported, the content does
        not parse, or the root is not a mapping.
    """

    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_SUFFIXES:
        supported = ", ".join(SUPPORTED_CONFIG_SUFFIXES)
        raise ConfigurationError(
            f"unsupported description file extension {suffix!r}; expected one of {supported}"
        )
    if not config_path.is_file():
        raise ConfigurationError(f"description file {str(config_path)!r} does not exist")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            if suffix == ".json":
                raw = json.load(handle)
            else:
                raw = yaml.safe_load(handle)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"could not parse {str(config_path)!r}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError("description root must be a JSON/YAML object")
    return raw


def require_mapping(value: Any, *, field_name: str) -> Mapping[str, Any]:
    """Return ``value`` if it is a mapping, else raise."""

    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{field_name} must be an object, got {type(value).__name__}")
    return value


def validate_allowed_keys(
    mapping: Mapping[str, Any],
    *,
    field_name: str,
    allowed_keys: Iterable[str],
) -> None:
    """Reject keys outside ``allowed_keys``.

    Raises
    ------
    ConfigurationError
        If unknown keys are present.
    """

    allowed = {str(key) for key in allowed_keys}
    unknown = sorted(str(key) for key in mapping if str(key) not in allowed)
    if unknown:
        raise ConfigurationError(
            f"{field_name} has unknown keys: {unknown}; allowed keys are {sorted(allowed)}"
        )


def validate_required_keys(
    mapping: Mapping[str, Any],
    *,
    field_name: str,
    required_keys: Iterable[str],
) -> None:
    """Reject mappings missing any of ``required_keys``.

    Raises
    ------
    ConfigurationError
        If required keys are missing.
    """

    missing = sorted(str(key) for key in required_keys if key not in mapping)
    if missing:
        raise ConfigurationError(f"{field_name} is missing required keys: {missing}")


__all__ = [
    "SUPPORTED_CONFIG_SUFFIXES",
    "load_config_mapping",
    "require_mapping",
    "validate_allowed_keys",
    "validate_required_keys",
]
