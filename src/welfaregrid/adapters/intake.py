"""Pydantic models describing intake payloads accepted by the CLI."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from decimal import Decimal  # noqa: TC003
from uuid import UUID  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator

from welfaregrid.domain.identity_resolution import IdentityFields
from welfaregrid.domain.model import AssistanceType, Gender


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class IntakeBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApplicantPayload(IntakeBaseModel):
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    birthdate: date
    middle_name: str | None = Field(default=None, alias="middleName")
    suffix: str | None = None
    gender: Gender | None = None

    _normalize_optional = field_validator("middle_name", "suffix", "gender", mode="before")(
        _blank_to_none
    )


class ClaimPayload(IntakeBaseModel):
    assistance_type: AssistanceType = Field(alias="assistanceType")
    amount: Decimal = Field(gt=0, decimal_places=2)
    purpose: str | None = None

    _normalize_purpose = field_validator("purpose", mode="before")(_blank_to_none)


class IntakePayload(IntakeBaseModel):
    """One applicant plus an optional claim, filed at one jurisdiction."""

    jurisdiction_id: UUID = Field(alias="jurisdictionId")
    applicant: ApplicantPayload
    claim: ClaimPayload | None = None

    def identity_fields(self) -> IdentityFields:
        applicant = self.applicant
        return IdentityFields(
            first_name=applicant.first_name,
            last_name=applicant.last_name,
            birthdate=applicant.birthdate,
            home_jurisdiction_id=self.jurisdiction_id,
            middle_name=applicant.middle_name,
            suffix=applicant.suffix,
            gender=applicant.gender,
        )
