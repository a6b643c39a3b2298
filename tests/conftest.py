import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.core.auth import validate_current_token
from shared.core.database import Base, get_facility_db
from shared.core.schemas import UserToken
from shared.utils.enums import UserAccountType

from property_service.app.main import app
from property_service.app.models.leasing_tenants.leases import Lease
from property_service.app.models.leasing_tenants.tenants import Tenant
from property_service.app.models.maintenance_assets.work_order import WorkOrder
from property_service.app.models.parking_access.parking_assignments import ParkingAssignment
from property_service.app.models.space_sites.buildings import Building
from property_service.app.models.space_sites.units import Unit

POLICY = {
    "baseRatePerSqm": 500,
    "decrementPerFloor": 10,
    "groundFloorMultiplier": 0.8,
}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def org_id():
    return uuid.uuid4()


@pytest.fixture
def current_user(org_id):
    return UserToken(
        user_id="user-1",
        org_id=org_id,
        name="Org Admin",
        account_type=UserAccountType.ORGANIZATION.value,
    )


@pytest.fixture
def other_user():
    return UserToken(
        user_id="user-2",
        org_id=uuid.uuid4(),
        account_type=UserAccountType.ORGANIZATION.value,
    )


@pytest.fixture
def seed(db, org_id):
    """A building with four units, three tenants and three active leases.

    Rents under POLICY: ground 20000, first 15000, third 19200; floor two
    has no area.
    """
    building = Building(org_id=org_id, name="Bole Tower", floors=4, rent_policy=dict(POLICY))
    db.add(building)
    db.flush()

    def unit(number, floor, area):
        u = Unit(org_id=org_id, building_id=building.id, unit_number=number,
                 floor=floor, area=area)
        db.add(u)
        return u

    ground = unit("G-01", 0, Decimal("50"))
    first = unit("1-01", 1, Decimal("30"))
    no_area = unit("2-01", 2, None)
    third = unit("3-01", 3, Decimal("40"))

    tenant = Tenant(org_id=org_id, name="Abebe Trading", email="abebe@example.com")
    tenant_two = Tenant(org_id=org_id, name="Selam Cafe")
    tenant_no_lease = Tenant(org_id=org_id, name="Walk-in Tenant")
    db.add_all([tenant, tenant_two, tenant_no_lease])
    db.flush()

    def lease(tenant_, unit_, rent):
        lease_ = Lease(org_id=org_id, tenant_id=tenant_.id, unit_id=unit_.id,
                       start_date=date(2024, 1, 1), rent_amount=rent,
                       terms={"rent": float(rent), "dueDay": 5},
                       billing_cycle="monthly", status="active")
        db.add(lease_)
        return lease_

    lease_third = lease(tenant, third, Decimal("18000"))
    lease_ground = lease(tenant_two, ground, Decimal("20000"))
    lease_no_area = lease(tenant_two, no_area, Decimal("12000"))

    work_order = WorkOrder(org_id=org_id, unit_id=first.id, wo_no="WO-0001",
                           title="Leaking pipe")
    db.add(work_order)

    start = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)

    def assignment(kind, period, rate, tenant_=None):
        a = ParkingAssignment(
            org_id=org_id, building_id=building.id, parking_space_label="P-12",
            assignment_type=kind, tenant_id=tenant_.id if tenant_ else None,
            billing_period=period, rate=Decimal(rate), start_date=start,
            status="active")
        db.add(a)
        return a

    hourly = assignment("tenant", "hourly", "50", tenant)
    monthly = assignment("tenant", "monthly", "1500", tenant)
    visitor = assignment("visitor", "daily", "200")

    db.commit()

    return SimpleNamespace(
        building=building,
        ground=ground, first=first, no_area=no_area, third=third,
        tenant=tenant, tenant_two=tenant_two, tenant_no_lease=tenant_no_lease,
        lease_third=lease_third, lease_ground=lease_ground, lease_no_area=lease_no_area,
        work_order=work_order,
        parking_start=start,
        hourly=hourly, monthly=monthly, visitor=visitor,
    )


@pytest.fixture
def client(db, current_user):
    def override_get_db():
        yield db

    app.dependency_overrides[get_facility_db] = override_get_db
    app.dependency_overrides[validate_current_token] = lambda: current_user
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
