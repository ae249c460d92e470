"""Threshold lookups with a bounded-staleness cache and documented fallbacks."""

from __future__ import annotations

import threading
import time
from logging import getLogger
from typing import TYPE_CHECKING

from welfaregrid.config import THRESHOLDS, ThresholdKey, default_for
from welfaregrid.config.thresholds import DEFAULT_SETTINGS_TTL_SECONDS
from welfaregrid.domain.errors import ConfigurationUnavailable, ValidationFailure

if TYPE_CHECKING:
    from collections.abc import Callable

    from welfaregrid.domain.ports import SettingsStore

log = getLogger(__name__)


class CachedThresholdProvider:
    """Typed ``get_int`` over a settings store.

    Values are cached for ``ttl_seconds``. A missing or unreadable setting falls
    back to the documented default with a degraded-mode warning; fallbacks are not
    cached so the store is retried on the next lookup.
    """

    def __init__(
        self,
        store: SettingsStore,
        *,
        ttl_seconds: float = DEFAULT_SETTINGS_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: dict[ThresholdKey, tuple[int, float]] = {}
        self._lock = threading.Lock()

    def get_int(self, key: ThresholdKey) -> int:
        key = ThresholdKey(key)
        now = self._clock()
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None and cached[1] > now:
            return cached[0]

        value = self._load(key)
        if value is None:
            return default_for(key)
        with self._lock:
            self._cache[key] = (value, now + self._ttl_seconds)
        return value

    def set_int(self, key: ThresholdKey, value: int, *, actor: str) -> None:
        key = ThresholdKey(key)
        spec = THRESHOLDS[key]
        if not spec.accepts(value):
            raise ValidationFailure(
                f"{key.value} must be between {spec.minimum} and {spec.maximum}, got {value}"
            )
        self._store.write(key.value, str(value), actor=actor)
        with self._lock:
            self._cache.pop(key, None)
        log.info("Setting %s updated to %s by %s", key.value, value, actor)

    def flush(self) -> None:
        with self._lock:
            self._cache.clear()

    def _load(self, key: ThresholdKey) -> int | None:
        try:
            raw = self._store.read(key.value)
        except ConfigurationUnavailable as exc:
            log.warning(
                "Settings store unavailable for %s, using default %s: %s",
                key.value,
                default_for(key),
                exc,
            )
            return None
        if raw is None:
            log.warning("Setting %s not found, using default %s", key.value, default_for(key))
            return None
        try:
            value = int(raw.strip())
        except ValueError:
            log.warning(
                "Setting %s holds non-integer %r, using default %s",
                key.value,
                raw,
                default_for(key),
            )
            return None
        if not THRESHOLDS[key].accepts(value):
            log.warning(
                "Setting %s value %s is out of range, using default %s",
                key.value,
                value,
                default_for(key),
            )
            return None
        return value


__all__ = ["CachedThresholdProvider"]
