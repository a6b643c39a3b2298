from datetime import datetime
from enum import Enum as PyEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import Boolean, Column, String, DateTime, Enum
import uuid
from shared.core.database import Base, JsonType


class NotificationType(PyEnum):
    rent_change = "rent_change"
    invoice_created = "invoice_created"
    lease = "lease"
    financial = "financial"
    system = "system"


class PriorityType(PyEnum):
    low = "low"
    medium = "medium"
    high = "high"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id = Column(UUID(as_uuid=True), nullable=False)
    tenant_id = Column(UUID(as_uuid=True), nullable=False)

    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(String(500), nullable=False)
    meta = Column("metadata", JsonType)
    posted_date = Column(DateTime, default=datetime.utcnow)
    read = Column(Boolean, default=False)
    priority = Column(Enum(PriorityType), default=PriorityType.medium)
    is_deleted = Column(Boolean, default=False)
