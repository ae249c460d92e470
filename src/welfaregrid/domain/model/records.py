"""Audit trail and runtime setting records."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from welfaregrid.domain.model.entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from welfaregrid.domain.model.enums import AuditSubject


@dataclass(eq=False, kw_only=True)
class AuditEvent(Entity):
    """Append-only record of a state transition or pair adjudication."""

    event: str
    subject_type: AuditSubject
    subject_id: str
    actor: str
    properties: dict[str, Any] = field(default_factory=dict[str, Any])
    recorded_at: datetime = field(default_factory=utcnow)


@dataclass(eq=False, kw_only=True)
class SystemSetting(Entity):
    """A runtime-tunable value, stored as text with its declared type."""

    key: str
    value: str
    data_type: str = "integer"
    description: str | None = None
    updated_by: str | None = None
    updated_at: datetime = field(default_factory=utcnow)

    def int_value(self) -> int:
        if self.data_type != "integer":
            raise TypeError(f"Setting {self.key} is {self.data_type}, not integer")
        return int(self.value.strip())
