"""Application configuration helpers."""

from __future__ import annotations

from .env import ACTOR_ENV, default_actor, env_float, env_int, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .fraud_check import (
    DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS,
    FraudCheckConfig,
    get_fraud_check_config,
)
from .logging import AUDIT_LOGGER, configure_logging
from .resolver import ResolverConfig, get_resolver_config
from .storage import (
    DatabaseConfig,
    StorageConfig,
    get_database_config,
    get_database_uri,
    get_storage_config,
)
from .thresholds import (
    THRESHOLDS,
    SettingsCacheConfig,
    ThresholdKey,
    ThresholdSpec,
    default_for,
    get_settings_cache_config,
)

__all__ = [
    "ACTOR_ENV",
    "AUDIT_LOGGER",
    "DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS",
    "THRESHOLDS",
    "ConfigurationError",
    "DatabaseConfig",
    "FraudCheckConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "ResolverConfig",
    "SettingsCacheConfig",
    "StorageConfig",
    "ThresholdKey",
    "ThresholdSpec",
    "configure_logging",
    "default_actor",
    "default_for",
    "env_float",
    "env_int",
    "get_database_config",
    "get_database_uri",
    "get_fraud_check_config",
    "get_resolver_config",
    "get_settings_cache_config",
    "get_storage_config",
    "require_env_vars",
]
