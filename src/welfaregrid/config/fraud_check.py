"""Retry cap for the fraud-check outbox relay."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int

DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS = 3


@dataclass(frozen=True, slots=True)
class FraudCheckConfig:
    # relays per outbox row before it is closed as failed
    max_attempts: int = DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS


def get_fraud_check_config() -> FraudCheckConfig:
    return FraudCheckConfig(
        max_attempts=env_int(
            "WELFAREGRID_FRAUD_CHECK_MAX_ATTEMPTS", DEFAULT_FRAUD_CHECK_MAX_ATTEMPTS, minimum=1
        ),
    )
