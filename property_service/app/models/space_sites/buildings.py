# buildings.py
from datetime import datetime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import Boolean, Column, String, Integer, func, DateTime, Index
from sqlalchemy.orm import relationship
import uuid
from shared.core.database import Base, JsonType


class Building(Base):
    __tablename__ = "buildings"
    __table_args__ = (
        Index("ix_building_org", "org_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), nullable=False)
    name = Column(String(128), nullable=False)
    floors = Column(Integer)
    status = Column(String(16), default="active")
    # {baseRatePerSqm, decrementPerFloor, groundFloorMultiplier,
    #  minRatePerSqm, effectiveDate, floorOverrides: [{floor, ratePerSqm}]}
    rent_policy = Column(JsonType, nullable=True)
    attributes = Column(JsonType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_deleted = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime(timezone=True),
                        default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    units = relationship("Unit", back_populates="building")
