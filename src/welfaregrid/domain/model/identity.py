"""Golden Record identities and the jurisdictions they live in."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from welfaregrid.domain.model.entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import date, datetime
    from uuid import UUID

    from welfaregrid.domain.model.enums import Gender


@dataclass(eq=False, kw_only=True)
class Jurisdiction(Entity):
    """A disbursing office with its own assistance budget ledger."""

    name: str
    code: str
    allocated_budget: Decimal = Decimal("0.00")
    used_budget: Decimal = Decimal("0.00")
    is_active: bool = True

    @property
    def remaining_budget(self) -> Decimal:
        return self.allocated_budget - self.used_budget


@dataclass(eq=False, kw_only=True)
class Identity(Entity):
    """The single authoritative record for a person.

    ``home_jurisdiction_id`` records residency only; claims may be disbursed by any
    jurisdiction. ``phonetic_code`` is derived from ``last_name`` at write time.
    """

    first_name: str
    last_name: str
    birthdate: date
    home_jurisdiction_id: UUID
    middle_name: str | None = None
    suffix: str | None = None
    gender: Gender | None = None
    phonetic_code: str = ""
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    created_by: str | None = None

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name, self.suffix]
        return " ".join(part for part in parts if part)
