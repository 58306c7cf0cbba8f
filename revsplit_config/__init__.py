"""
revsplit_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the way to obtain ``EngineSettings`` at runtime through
    ``get_settings()``.  Engines never read files or environment variables
    themselves; they receive a settings object (or explicit arguments).

Architecture position:
    Configuration -- sits above ``revsplit_kernel``.  The kernel and the
    pure engines never import from ``revsplit_config``; only the
    ``ReconciliationRun`` wiring layer consumes its schema.

Invariants enforced:
    - Every returned settings object is frozen and validated.
    - Same YAML always produces the same ``compute_checksum``.

Failure modes:
    - ``FileNotFoundError`` -- the configured settings file does not exist.
    - ``ConfigurationError`` -- invalid or unknown settings.

Audit relevance:
    Every successful ``get_settings()`` call emits a
    ``REVSPLIT_CONFIG_TRACE`` log entry with the source and checksum of the
    settings in force.
"""

from __future__ import annotations

import os
from pathlib import Path

from revsplit_config.loader import compute_checksum, load_settings, parse_settings
from revsplit_config.schema import EngineSettings, MissingSplitPolicy, PercentScale
from revsplit_kernel.logging_config import get_logger

__all__ = [
    "EngineSettings",
    "MissingSplitPolicy",
    "PercentScale",
    "compute_checksum",
    "get_settings",
    "load_settings",
    "parse_settings",
]

CONFIG_ENV_VAR = "REVSPLIT_CONFIG"

_logger = get_logger("config")


def get_settings(path: Path | str | None = None) -> EngineSettings:
    """Return the settings in force.

    Resolution order: explicit ``path``, then the file named by the
    ``REVSPLIT_CONFIG`` environment variable, then built-in defaults.

    Raises:
        FileNotFoundError: If the chosen file does not exist.
        ConfigurationError: If the file holds invalid settings.
    """
    source = path if path is not None else os.environ.get(CONFIG_ENV_VAR)
    if source:
        settings = load_settings(source)
        source_label = str(source)
    else:
        settings = EngineSettings()
        source_label = "defaults"

    _logger.info(
        "REVSPLIT_CONFIG_TRACE",
        extra={
            "trace_type": "REVSPLIT_CONFIG_TRACE",
            "source": source_label,
            "checksum": compute_checksum(settings),
            "currency": settings.currency,
            "percent_scale": settings.percent_scale,
            "missing_split_policy": settings.missing_split_policy,
        },
    )
    return settings
