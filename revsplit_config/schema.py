"""
EngineSettings schema.

The typed, frozen form of the engine configuration.  YAML documents and
plain mappings are parsed into it by ``revsplit_config.loader``; the
engines and ``ReconciliationRun`` only ever see this dataclass.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP
from enum import Enum
from typing import Any


class PercentScale(str, Enum):
    """How raw split percentages are written in source data."""

    FRACTION = "fraction"  # 0.30
    POINTS = "points"      # 30
    AUTO = "auto"          # > 1 means points, otherwise fraction


class MissingSplitPolicy(str, Enum):
    """What a run does with an invoice that has no applicable split."""

    FLAG = "flag"
    ALL_EVERGREEN = "all_evergreen"


DISPLAY_ROUNDING_MODES = (ROUND_HALF_UP, ROUND_HALF_EVEN)


@dataclass(frozen=True)
class EngineSettings:
    """Validated engine configuration."""

    currency: str = "USD"
    display_rounding: str = ROUND_HALF_UP
    percent_scale: PercentScale = PercentScale.AUTO
    missing_split_policy: MissingSplitPolicy = MissingSplitPolicy.FLAG
    max_workers: int = 1
    reconcile_partitions: int = 1

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["percent_scale"] = self.percent_scale.value
        data["missing_split_policy"] = self.missing_split_policy.value
        return data
