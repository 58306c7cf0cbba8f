"""
revsplit_engines.tracer -- ``@traced_engine`` and REVSPLIT_ENGINE_TRACE records.

Responsibility:
    Wrap public engine entry points so each call leaves one DEBUG record
    naming the engine, its version, a fingerprint of the inputs that
    determine the result, the outcome and the elapsed time.  Two calls with
    equal fingerprints on the same engine version must produce equal
    results.

Architecture position:
    Engines -- support code for the pure calculation layer.  Emits a log
    record and nothing else.

Invariants enforced:
    - The fingerprint depends only on argument values, never on whether
      they were passed positionally or by keyword, nor on dict ordering.
    - Arguments are read, never mutated.
    - With DEBUG disabled for the tracer logger the wrapped call runs
      untouched; no fingerprint is computed.
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import json
import logging
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from revsplit_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")

TRACE_MESSAGE = "REVSPLIT_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce a value to JSON-compatible data with a stable rendering."""
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, Enum):
        return _plain(value.value)
    if isinstance(value, (int, Decimal, date)):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    # Frozen records and value objects have deterministic reprs.
    return repr(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """16-hex-char SHA-256 over the named arguments; absent ones count as null."""
    selected = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Decorate an engine function or method with trace logging.

    Args:
        engine_name: Stable engine identifier, e.g. ``"split_history"``.
        engine_version: Bumped whenever the engine's results change.
        fingerprint_fields: Parameter names hashed into ``input_fingerprint``.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not _logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)

            fingerprint = ""
            if fingerprint_fields:
                arguments = signature.bind_partial(*args, **kwargs).arguments
                fingerprint = compute_input_fingerprint(fingerprint_fields, arguments)

            outcome = "error"
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                outcome = "ok"
                return result
            finally:
                _logger.debug(TRACE_MESSAGE, extra={
                    "trace_type": TRACE_MESSAGE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "input_fingerprint": fingerprint,
                    "outcome": outcome,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 3),
                })

        return wrapper

    return decorator
