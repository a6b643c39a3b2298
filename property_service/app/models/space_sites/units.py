from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import Boolean, Column, String, Integer, Numeric, ForeignKey, DateTime, func, Index
from sqlalchemy.orm import relationship
import uuid

from shared.core.database import Base


class Unit(Base):
    __tablename__ = "units"
    __table_args__ = (
        Index("ix_unit_building_floor", "building_id", "floor"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), nullable=False)
    building_id = Column(UUID(as_uuid=True), ForeignKey(
        "buildings.id", ondelete="CASCADE"), nullable=False)
    unit_number = Column(String(64), nullable=False)
    # 0 = ground, negative = basement
    floor = Column(Integer, nullable=True)
    area = Column(Numeric(12, 2), nullable=True)  # sqm
    rate_per_sqm_override = Column(Numeric(12, 2), nullable=True)
    flat_rent_override = Column(Numeric(14, 2), nullable=True)
    status = Column(String(24), default="available")
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    building = relationship("Building", back_populates="units")
    leases = relationship("Lease", back_populates="unit")
