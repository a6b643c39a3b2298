import uuid
from sqlalchemy import Boolean, Column, String, Date, Numeric, ForeignKey, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from shared.core.database import Base, JsonType


class Lease(Base):
    __tablename__ = "leases"
    __table_args__ = (
        Index("ix_lease_org_tenant_status", "org_id", "tenant_id", "status"),
        Index("ix_lease_unit_status", "unit_id", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), nullable=False)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey(
        "tenants.id"), nullable=False)
    unit_id = Column(UUID(as_uuid=True), ForeignKey(
        "units.id"), nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)  # open ended when null

    rent_amount = Column(Numeric(14, 2), nullable=True)
    deposit_amount = Column(Numeric(14, 2), nullable=True)
    billing_cycle = Column(String(16), default="monthly")
    terms = Column(JsonType)  # {"rent": ..., "dueDay": ...}

    # written by the bulk rent recalculation
    calculated_rent = Column(Numeric(14, 2), nullable=True)
    rate_source = Column(String(32), nullable=True)
    rent_breakdown = Column(JsonType, nullable=True)

    status = Column(String(16), default="active")
    created_at = Column(DateTime(timezone=True),
                        server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    is_deleted = Column(Boolean, default=False, nullable=False)

    # relationships
    tenant = relationship("Tenant", back_populates="leases")
    unit = relationship("Unit", back_populates="leases")
