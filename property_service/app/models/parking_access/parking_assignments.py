import uuid
from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, ForeignKey, func, Index
from sqlalchemy.dialects.postgresql import UUID
from shared.core.database import Base


class ParkingAssignment(Base):
    __tablename__ = "parking_assignments"
    __table_args__ = (
        Index("ix_parking_assignment_org_building_status",
              "org_id", "building_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), nullable=False)
    building_id = Column(UUID(as_uuid=True), ForeignKey(
        "buildings.id"), nullable=False)
    parking_space_label = Column(String(32), nullable=True)

    assignment_type = Column(String(16), nullable=False)  # tenant | visitor
    tenant_id = Column(UUID(as_uuid=True), ForeignKey(
        "tenants.id"), nullable=True)
    visitor_log_id = Column(UUID(as_uuid=True), nullable=True)
    vehicle_no = Column(String(20), nullable=True)

    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    calculated_duration = Column(Integer, nullable=True)  # minutes
    billed_duration = Column(Integer, nullable=True)  # minutes

    billing_period = Column(String(16), nullable=False)  # monthly | daily | hourly
    rate = Column(Numeric(12, 2), nullable=False)
    invoice_id = Column(UUID(as_uuid=True), nullable=True)

    status = Column(String(16), default="active", nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
