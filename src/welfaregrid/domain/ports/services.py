"""Ports for collaborators the registry core calls out to."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from welfaregrid.config import ThresholdKey
    from welfaregrid.domain.model import AuditSubject


@runtime_checkable
class AuditSink(Protocol):
    """Append-only record of transitions and adjudications."""

    def record(
        self,
        event: str,
        subject: tuple[AuditSubject, UUID | str],
        actor: str,
        properties: Mapping[str, Any] | None = None,
    ) -> None: ...


@runtime_checkable
class SettingsStore(Protocol):
    """Raw key/value access to runtime settings.

    Implementations raise ``ConfigurationUnavailable`` when the backing store fails.
    """

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str, *, actor: str) -> None: ...


@runtime_checkable
class ThresholdProvider(Protocol):
    """Typed threshold lookups used by the matcher and the risk scorer."""

    def get_int(self, key: ThresholdKey) -> int: ...


@runtime_checkable
class FraudCheckDispatcher(Protocol):
    """Hands a committed claim id to whatever runs the fraud check."""

    def dispatch(self, claim_id: UUID) -> None: ...
