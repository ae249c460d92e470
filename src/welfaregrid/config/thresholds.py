"""Fraud-detection threshold keys, defaults and admissible ranges."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Final

from .env import env_float

DEFAULT_SETTINGS_TTL_SECONDS: Final[float] = 3600.0


class ThresholdKey(StrEnum):
    RISK_THRESHOLD_DAYS = "RISK_THRESHOLD_DAYS"
    SAME_TYPE_THRESHOLD_DAYS = "SAME_TYPE_THRESHOLD_DAYS"
    HIGH_FREQUENCY_THRESHOLD = "HIGH_FREQUENCY_THRESHOLD"
    LEVENSHTEIN_DISTANCE_THRESHOLD = "LEVENSHTEIN_DISTANCE_THRESHOLD"


@dataclass(frozen=True, slots=True)
class ThresholdSpec:
    default: int
    minimum: int
    maximum: int
    description: str

    def accepts(self, value: int) -> bool:
        return self.minimum <= value <= self.maximum


THRESHOLDS: Final[dict[ThresholdKey, ThresholdSpec]] = {
    ThresholdKey.RISK_THRESHOLD_DAYS: ThresholdSpec(
        default=90,
        minimum=1,
        maximum=365,
        description="Lookback window in days for claim-history risk rules.",
    ),
    ThresholdKey.SAME_TYPE_THRESHOLD_DAYS: ThresholdSpec(
        default=30,
        minimum=1,
        maximum=180,
        description="Window in days in which a repeat claim of the same type is double-dipping.",
    ),
    ThresholdKey.HIGH_FREQUENCY_THRESHOLD: ThresholdSpec(
        default=3,
        minimum=1,
        maximum=10,
        description="Claims allowed inside the lookback window before flagging.",
    ),
    ThresholdKey.LEVENSHTEIN_DISTANCE_THRESHOLD: ThresholdSpec(
        default=3,
        minimum=0,
        maximum=10,
        description="Maximum edit distance for a name to count as a duplicate candidate.",
    ),
}


def default_for(key: ThresholdKey) -> int:
    return THRESHOLDS[key].default


@dataclass(frozen=True, slots=True)
class SettingsCacheConfig:
    ttl_seconds: float = DEFAULT_SETTINGS_TTL_SECONDS


def get_settings_cache_config() -> SettingsCacheConfig:
    return SettingsCacheConfig(
        ttl_seconds=env_float(
            "WELFAREGRID_SETTINGS_TTL_SECONDS", DEFAULT_SETTINGS_TTL_SECONDS, minimum=0.0
        )
    )
