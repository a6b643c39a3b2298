from datetime import date
from decimal import Decimal
from uuid import UUID
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FloorOverride(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    floor: int
    rate_per_sqm: Decimal


class RentPolicy(BaseModel):
    """Building level pricing rules.

    Stored on ``buildings.rent_policy`` with camelCase keys
    (``model_dump(by_alias=True, mode="json")``); accepted in either case.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    base_rate_per_sqm: Decimal
    decrement_per_floor: Optional[Decimal] = None
    ground_floor_multiplier: Optional[Decimal] = None
    min_rate_per_sqm: Optional[Decimal] = None
    effective_date: Optional[date] = None
    floor_overrides: List[FloorOverride] = []

    def to_storage(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class UnitRentAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    floor: Optional[int] = None
    area: Optional[Decimal] = None
    rate_per_sqm_override: Optional[Decimal] = None
    flat_rent_override: Optional[Decimal] = None


class RentResolution(BaseModel):
    total: Optional[Decimal] = None
    rate_source: str
    breakdown: Dict[str, Any] = {}


class UnitRentOverride(BaseModel):
    unit_id: UUID
    rate_per_sqm_override: Optional[Decimal] = None
    flat_rent_override: Optional[Decimal] = None


class FloorFilter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_floor: int = Field(alias="from")
    to_floor: int = Field(alias="to")


class BulkRentUpdateRequest(BaseModel):
    building_id: UUID
    policy: Optional[RentPolicy] = None
    unit_overrides: List[UnitRentOverride] = []
    floor_filter: Optional[FloorFilter] = None
    apply: bool = False
    effective_from: Optional[date] = None


class BulkRentUpdateRow(BaseModel):
    lease_id: UUID
    unit_id: UUID
    unit_label: Optional[str] = None
    tenant_id: Optional[UUID] = None
    old_rent: Optional[Decimal] = None
    new_rent: Optional[Decimal] = None
    rate_source: str
    applied: bool = False


class BulkRentUpdateResponse(BaseModel):
    message: str
    applied: bool
    count: int
    results: List[BulkRentUpdateRow]


class RentResolveRequest(BaseModel):
    unit_id: UUID
    # falls back to the building's stored policy
    policy: Optional[RentPolicy] = None


class RentResolveResponse(RentResolution):
    unit_id: UUID
    unit_label: Optional[str] = None


class RentChangeEvent(BaseModel):
    lease_id: UUID
    tenant_id: UUID
    org_id: UUID
    unit_label: Optional[str] = None
    old_rent: Optional[Decimal] = None
    new_rent: Decimal
    effective_date: date
