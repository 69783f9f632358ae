"""Value objects describing an EGS unit and its generated material."""

from dataclasses import dataclass, field
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from .states import UnitStatus

# Required-field presence is the only check made here
NonEmptyStr = Annotated[str, Field(min_length=1)]


class EGSUnitLocation(BaseModel):
    """Structured address of the unit's branch."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    city: NonEmptyStr
    city_subdivision: NonEmptyStr
    street: NonEmptyStr
    plot_identification: NonEmptyStr
    building: NonEmptyStr
    postal_zone: NonEmptyStr


class EGSUnitInfo(BaseModel):
    """Identity attributes of an EGS unit, supplied by the provisioning workflow."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    uuid: NonEmptyStr
    CRN_number: NonEmptyStr
    VAT_name: NonEmptyStr
    VAT_number: NonEmptyStr
    location: EGSUnitLocation

    def template_fields(self) -> dict[str, str]:
        """Flatten identity and location fields for CSR profile templates."""
        fields = self.model_dump(exclude={"location"})
        fields.update(self.location.model_dump())
        return fields


@dataclass(frozen=True)
class EGSUnitState:
    """Snapshot of a unit: identity plus its key, CSR and certificate slots."""

    info: EGSUnitInfo
    status: UnitStatus = UnitStatus.UNPROVISIONED
    private_key: Optional[str] = field(default=None, repr=False)
    csr: Optional[str] = None
    certificate: Optional[str] = None
