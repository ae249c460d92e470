"""Locking and retry defaults for the identity resolver."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int

DEFAULT_LOCK_TIMEOUT_MS = 5000
DEFAULT_RESOLVE_ATTEMPTS = 3
DEFAULT_RESOLVE_BACKOFF_SECONDS = 0.2


@dataclass(frozen=True, slots=True)
class ResolverConfig:
    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    max_attempts: int = DEFAULT_RESOLVE_ATTEMPTS
    backoff_seconds: float = DEFAULT_RESOLVE_BACKOFF_SECONDS

    def backoff_for(self, attempt: int) -> float:
        """Exponential backoff before retry number ``attempt`` (1-based)."""
        return self.backoff_seconds * (2 ** (attempt - 1))


def get_resolver_config() -> ResolverConfig:
    return ResolverConfig(
        lock_timeout_ms=env_int("WELFAREGRID_LOCK_TIMEOUT_MS", DEFAULT_LOCK_TIMEOUT_MS, minimum=1),
        max_attempts=env_int("WELFAREGRID_RESOLVE_ATTEMPTS", DEFAULT_RESOLVE_ATTEMPTS, minimum=1),
        backoff_seconds=env_float(
            "WELFAREGRID_RESOLVE_BACKOFF_SECONDS", DEFAULT_RESOLVE_BACKOFF_SECONDS, minimum=0.0
        ),
    )
