"""Root logger setup for the CLI."""

from __future__ import annotations

import logging
import os

from .errors import InvalidConfigurationError

LOG_LEVEL_ENV = "WELFAREGRID_LOG_LEVEL"
AUDIT_LOGGER = "welfaregrid.audit"


def _level_from_env(default: int) -> int:
    raw = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelNamesMapping().get(raw)
    if level is None:
        raise InvalidConfigurationError(f"{LOG_LEVEL_ENV} must be a logging level, got {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger once.

    ``level`` overrides ``WELFAREGRID_LOG_LEVEL``, which defaults to INFO. The audit
    logger always stays at INFO so audit lines survive a quieter root level.
    """

    logging.basicConfig(
        level=level if level is not None else _level_from_env(logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        force=force,
    )
    logging.getLogger(AUDIT_LOGGER).setLevel(logging.INFO)
