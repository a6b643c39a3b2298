import logging
from datetime import date
from typing import Callable, Dict, List, Optional
from uuid import UUID
from sqlalchemy.orm import Session

from shared.core.exceptions import NotFoundError, ValidationError
from shared.core.schemas import UserToken

from ...models.space_sites.buildings import Building
from ...models.space_sites.units import Unit
from ...schemas.space_sites.rent_policy_schemas import (
    BulkRentUpdateRequest, BulkRentUpdateResponse, BulkRentUpdateRow, RentChangeEvent,
    RentPolicy, RentResolveRequest, RentResolveResponse, UnitRentAttributes, UnitRentOverride
)
from ..leasing_tenants.leases_crud import current_rent, list_active_leases_for_unit
from ..system.notifications_crud import notify_rent_change
from .rent_calculator import resolve_rent

logger = logging.getLogger(__name__)

RentChangeNotifier = Callable[[Session, RentChangeEvent], bool]


def _load_policy(raw: Optional[dict]) -> Optional[RentPolicy]:
    return RentPolicy.model_validate(raw) if raw else None


def get_building(db: Session, org_id: UUID, building_id: UUID) -> Optional[Building]:
    return db.query(Building).filter(
        Building.id == building_id,
        Building.org_id == org_id,
        Building.is_deleted == False
    ).first()


def resolve_unit_rent(db: Session, current_user: UserToken, request: RentResolveRequest) -> RentResolveResponse:
    unit = db.query(Unit).filter(
        Unit.id == request.unit_id,
        Unit.org_id == current_user.org_id,
        Unit.is_deleted == False
    ).first()
    if not unit:
        raise NotFoundError("Unit not found")

    policy = request.policy or _load_policy(unit.building.rent_policy)
    resolution = resolve_rent(policy, UnitRentAttributes.model_validate(unit))

    return RentResolveResponse(
        unit_id=unit.id,
        unit_label=unit.unit_number,
        **resolution.model_dump()
    )


def _select_units(db: Session, org_id: UUID, building_id: UUID, request: BulkRentUpdateRequest) -> List[Unit]:
    q = db.query(Unit).filter(
        Unit.building_id == building_id,
        Unit.org_id == org_id,
        Unit.is_deleted == False
    )

    floor_filter = request.floor_filter
    if floor_filter:
        if floor_filter.from_floor > floor_filter.to_floor:
            raise ValidationError("Floor filter 'from' cannot be greater than 'to'")
        q = q.filter(
            Unit.floor >= floor_filter.from_floor,
            Unit.floor <= floor_filter.to_floor
        )

    return q.order_by(Unit.floor.asc(), Unit.unit_number.asc()).all()


def _check_overrides(db: Session, org_id: UUID, building_id: UUID, overrides: Dict[UUID, UnitRentOverride]):
    if not overrides:
        return
    building_unit_ids = {
        unit_id for (unit_id,) in db.query(Unit.id).filter(
            Unit.building_id == building_id,
            Unit.org_id == org_id,
            Unit.is_deleted == False
        ).all()
    }
    missing = [str(unit_id) for unit_id in overrides if unit_id not in building_unit_ids]
    if missing:
        raise NotFoundError(f"Units not found in building: {', '.join(missing)}")


def _apply_overrides(db: Session, org_id: UUID, overrides: Dict[UUID, UnitRentOverride]):
    units = db.query(Unit).filter(
        Unit.id.in_(list(overrides.keys())),
        Unit.org_id == org_id
    ).all()
    for unit in units:
        override = overrides[unit.id]
        unit.rate_per_sqm_override = override.rate_per_sqm_override
        unit.flat_rent_override = override.flat_rent_override
    db.commit()
    logger.info("Updated rent overrides on %s units", len(units))


def bulk_update_rent(
    db: Session,
    current_user: UserToken,
    request: BulkRentUpdateRequest,
    notifier: RentChangeNotifier = notify_rent_change,
) -> BulkRentUpdateResponse:
    """Recalculate the rent of every active lease in a building.

    With ``apply`` false nothing is written and the proposed policy and unit
    overrides are resolved in memory. With ``apply`` true the overrides, the
    policy and each lease are committed one after another; a failure part way
    leaves the earlier leases updated. Every lease written gets a rent-change
    notification, even when its amount is unchanged. A lease whose rent cannot
    be resolved keeps its existing rent and is not notified.
    """
    org_id = current_user.org_id

    building = get_building(db, org_id, request.building_id)
    if not building:
        raise NotFoundError("Building not found")

    units = _select_units(db, org_id, building.id, request)
    overrides = {o.unit_id: o for o in request.unit_overrides}
    _check_overrides(db, org_id, building.id, overrides)

    policy = request.policy or _load_policy(building.rent_policy)
    effective_from = (
        request.effective_from
        or (request.policy.effective_date if request.policy else None)
        or date.today()
    )

    if request.apply:
        if overrides:
            _apply_overrides(db, org_id, overrides)
        if request.policy:
            # replaced wholesale
            building.rent_policy = request.policy.to_storage()
            db.commit()
            logger.info("Rent policy updated for building %s", building.id)

    results: List[BulkRentUpdateRow] = []
    events: List[RentChangeEvent] = []

    for unit in units:
        attributes = UnitRentAttributes.model_validate(unit)
        override = overrides.get(unit.id)
        if override and not request.apply:
            attributes = attributes.model_copy(update={
                "rate_per_sqm_override": override.rate_per_sqm_override,
                "flat_rent_override": override.flat_rent_override,
            })

        resolution = resolve_rent(policy, attributes)

        for lease in list_active_leases_for_unit(db, unit.id):
            old_rent = current_rent(lease)
            row = BulkRentUpdateRow(
                lease_id=lease.id,
                unit_id=unit.id,
                unit_label=unit.unit_number,
                tenant_id=lease.tenant_id,
                old_rent=old_rent,
                new_rent=old_rent,
                rate_source=resolution.rate_source,
            )

            if resolution.total is None:
                logger.warning("Insufficient data to resolve rent for unit %s (%s); "
                               "lease %s keeps %s", unit.unit_number,
                               resolution.breakdown.get("reason"), lease.id, old_rent)
                results.append(row)
                continue

            row.new_rent = resolution.total
            if request.apply:
                lease.rent_amount = resolution.total
                lease.terms = {**(lease.terms or {}), "rent": float(resolution.total)}
                lease.calculated_rent = resolution.total
                lease.rate_source = resolution.rate_source
                lease.rent_breakdown = {
                    **resolution.breakdown,
                    "effectiveFrom": effective_from.isoformat(),
                }
                db.commit()
                row.applied = True

                events.append(RentChangeEvent(
                    lease_id=lease.id,
                    tenant_id=lease.tenant_id,
                    org_id=org_id,
                    unit_label=unit.unit_number,
                    old_rent=old_rent,
                    new_rent=resolution.total,
                    effective_date=effective_from,
                ))

            results.append(row)

    for event in events:
        try:
            notifier(db, event)
        except Exception:
            logger.exception("Rent change notification failed for lease %s", event.lease_id)

    if request.apply:
        logger.info("Applied rent update to %s leases in building %s",
                    sum(1 for r in results if r.applied), building.id)
        message = "Rent update applied"
    else:
        message = "Rent update preview"

    return BulkRentUpdateResponse(
        message=message,
        applied=request.apply,
        count=len(results),
        results=results,
    )
