"""
Configuration Loader (``revsplit_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``revsplit_config.schema.EngineSettings`` dataclass.  Runtime callers use
``revsplit_config.get_settings()``; the functions here are the building
blocks it is made of and are exercised directly by tests.

Invariants enforced
-------------------
* Every parsed object is a frozen ``EngineSettings``.
* Unknown keys and invalid values raise ``ConfigurationError``; nothing is
  silently defaulted except keys that are absent.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid settings  -> ``ConfigurationError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from revsplit_config.schema import (
    DISPLAY_ROUNDING_MODES,
    EngineSettings,
    MissingSplitPolicy,
    PercentScale,
)
from revsplit_kernel.domain.currency import CurrencyRegistry
from revsplit_kernel.exceptions import ConfigurationError

_KNOWN_KEYS = frozenset(f.name for f in fields(EngineSettings))

# Settings files may nest everything under this key.
_ROOT_KEY = "revsplit"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), type(data).__name__, "document must be a mapping")
    return data


def _parse_enum(enum_type: type, key: str, value: Any) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().lower())
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_type)
        raise ConfigurationError(key, value, f"expected one of: {allowed}") from e


def _parse_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(key, value, "expected an integer")
    if value < 1:
        raise ConfigurationError(key, value, "must be >= 1")
    return value


def parse_settings(data: Mapping[str, Any]) -> EngineSettings:
    """
    Parse ``EngineSettings`` from a mapping.

    Accepts either the settings keys at top level or nested under a
    ``revsplit`` key.  Absent keys keep their defaults.

    Raises:
        ConfigurationError: on unknown keys or invalid values.
    """
    if _ROOT_KEY in data and isinstance(data[_ROOT_KEY], Mapping):
        data = data[_ROOT_KEY]

    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigurationError(unknown[0], data[unknown[0]], "unknown setting")

    values: dict[str, Any] = {}

    if "currency" in data:
        code = str(data["currency"]).strip().upper()
        if not CurrencyRegistry.is_valid(code):
            raise ConfigurationError("currency", data["currency"], "not an ISO 4217 code")
        values["currency"] = code

    if "display_rounding" in data:
        mode = str(data["display_rounding"]).strip().upper()
        if mode not in DISPLAY_ROUNDING_MODES:
            raise ConfigurationError(
                "display_rounding", data["display_rounding"],
                f"expected one of: {', '.join(DISPLAY_ROUNDING_MODES)}",
            )
        values["display_rounding"] = mode

    if "percent_scale" in data:
        values["percent_scale"] = _parse_enum(
            PercentScale, "percent_scale", data["percent_scale"]
        )

    if "missing_split_policy" in data:
        values["missing_split_policy"] = _parse_enum(
            MissingSplitPolicy, "missing_split_policy", data["missing_split_policy"]
        )

    for key in ("max_workers", "reconcile_partitions"):
        if key in data:
            values[key] = _parse_positive_int(key, data[key])

    return EngineSettings(**values)


def load_settings(path: Path | str) -> EngineSettings:
    """Load and parse a YAML settings file."""
    return parse_settings(load_yaml_file(Path(path)))


def compute_checksum(settings: EngineSettings) -> str:
    """
    Compute SHA-256 checksum of the canonical JSON serialization.

    Identical settings always produce identical checksums.
    """
    canonical = json.dumps(settings.to_dict(), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
