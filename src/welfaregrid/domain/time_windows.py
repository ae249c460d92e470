"""Trailing day windows used by the claim-history risk rules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError("Time window values must include timezone information")
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Closed interval ``[start, end]`` in UTC."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("Time window start must be before end")

    @classmethod
    def trailing(cls, days: int, *, end: datetime) -> TimeWindow:
        if days < 0:
            raise ValueError("Lookback duration must be non-negative")
        anchor = ensure_aware(end)
        return cls(start=anchor - timedelta(days=days), end=anchor)

    def contains(self, moment: datetime) -> bool:
        return self.start <= ensure_aware(moment) <= self.end


__all__ = ["Clock", "TimeWindow", "ensure_aware"]
