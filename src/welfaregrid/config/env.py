"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Final

from .errors import InvalidConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

ACTOR_ENV: Final[str] = "WELFAREGRID_ACTOR"


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the named variables, stripped; every blank or unset one is reported."""

    values = {name: (os.getenv(name) or "").strip() for name in names}
    missing = sorted(name for name, value in values.items() if not value)
    if missing:
        raise MissingConfigurationError(f"Missing configuration for: {', '.join(missing)}")
    return values


def default_actor() -> str:
    """Officer recorded on audited writes when a command names none."""

    return require_env_vars([ACTOR_ENV])[ACTOR_ENV]


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    """Return an optional integer variable, falling back to ``default`` when unset."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise InvalidConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise InvalidConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if minimum is not None and value < minimum:
        raise InvalidConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value
