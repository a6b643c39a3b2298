from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID
from sqlalchemy import or_
from sqlalchemy.orm import Session

from shared.helpers.money_helper import to_decimal

from ...enum.leasing_tenants_enum import LeaseStatus
from ...models.leasing_tenants.leases import Lease
from ...models.leasing_tenants.tenants import Tenant
from ...models.space_sites.units import Unit


def get_lease(db: Session, org_id: UUID, lease_id: UUID) -> Optional[Lease]:
    return db.query(Lease).filter(
        Lease.id == lease_id,
        Lease.org_id == org_id,
        Lease.is_deleted == False
    ).first()


def get_tenant(db: Session, org_id: UUID, tenant_id: UUID) -> Optional[Tenant]:
    return db.query(Tenant).filter(
        Tenant.id == tenant_id,
        Tenant.org_id == org_id,
        Tenant.is_deleted == False
    ).first()


def active_lease_filters(as_of: Optional[date] = None):
    """Active status and no end date, or an end date not yet passed."""
    as_of = as_of or date.today()
    return [
        Lease.status == LeaseStatus.active.value,
        Lease.is_deleted == False,
        or_(Lease.end_date.is_(None), Lease.end_date >= as_of),
    ]


def find_active_lease_for_tenant(
    db: Session,
    org_id: UUID,
    tenant_id: UUID,
    unit_id: Optional[UUID] = None,
    building_id: Optional[UUID] = None,
    as_of: Optional[date] = None,
) -> Optional[Lease]:
    q = db.query(Lease).filter(
        Lease.org_id == org_id,
        Lease.tenant_id == tenant_id,
        *active_lease_filters(as_of)
    )
    if unit_id:
        q = q.filter(Lease.unit_id == unit_id)
    if building_id:
        q = q.join(Unit, Unit.id == Lease.unit_id).filter(
            Unit.building_id == building_id)

    # most recent lease wins when a tenant holds several
    return q.order_by(Lease.start_date.desc()).first()


def list_active_leases_for_unit(db: Session, unit_id: UUID) -> List[Lease]:
    return (
        db.query(Lease)
        .filter(Lease.unit_id == unit_id, *active_lease_filters())
        .order_by(Lease.start_date.asc())
        .all()
    )


def current_rent(lease: Lease) -> Optional[Decimal]:
    """Rent currently on record: rent_amount, then terms.rent, then calculated_rent."""
    if lease.rent_amount is not None:
        return to_decimal(lease.rent_amount)
    terms = lease.terms or {}
    if terms.get("rent") is not None:
        return to_decimal(terms["rent"])
    if lease.calculated_rent is not None:
        return to_decimal(lease.calculated_rent)
    return None
