import uuid
from sqlalchemy import (
    Column, Integer, String, Date, Numeric, Text, ForeignKey, DateTime, func, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from shared.core.database import Base

INVOICE_NO_CONSTRAINT = "uq_invoice_org_invoice_no"


class Invoice(Base):
    __tablename__ = "invoices"

    id: UUID = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    org_id: UUID = Column(UUID(as_uuid=True), nullable=False)
    # ad-hoc invoices may be anchored to a unit without a lease
    lease_id: UUID = Column(UUID(as_uuid=True), ForeignKey(
        "leases.id"), nullable=True)
    tenant_id: UUID = Column(UUID(as_uuid=True), ForeignKey(
        "tenants.id"), nullable=False)
    unit_id: UUID = Column(UUID(as_uuid=True), ForeignKey(
        "units.id"), nullable=False)

    invoice_no: str = Column(String(64), nullable=False)
    # standard|rent|maintenance|penalty|parking|other
    invoice_type: str = Column(String(16), default="standard")
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)

    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax = Column(Numeric(14, 2), nullable=False, default=0)
    vat_rate = Column(Numeric(5, 2), nullable=True)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    net_income_before_vat = Column(Numeric(14, 2), nullable=True)
    net_income_after_vat = Column(Numeric(14, 2), nullable=True)
    currency: str = Column(String(8), default="ETB")
    exchange_rate = Column(Numeric(14, 6), nullable=True)

    # draft|sent|paid|overdue|cancelled
    status: str = Column(String(16), default="draft", nullable=False)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    linked_work_order_id = Column(UUID(as_uuid=True), ForeignKey(
        "work_orders.id"), nullable=True)
    linked_invoice_id = Column(UUID(as_uuid=True), ForeignKey(
        "invoices.id"), nullable=True)
    parking_assignment_id = Column(UUID(as_uuid=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True),
                        server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # unique constraint on org_id + invoice_no
        UniqueConstraint("org_id", "invoice_no",
                         name=INVOICE_NO_CONSTRAINT),
        Index("ix_invoice_org_tenant_status", "org_id", "tenant_id", "status"),
        Index("ix_invoice_org_lease_status", "org_id", "lease_id", "status"),
        Index("ix_invoice_due_date", "due_date"),
    )

    # Relationships
    lines = relationship(
        "InvoiceLine", back_populates="invoice", cascade="all, delete-orphan",
        order_by="InvoiceLine.position")

# -------------------
# Invoice Lines
# -------------------


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id: UUID = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    invoice_id: UUID = Column(UUID(as_uuid=True), ForeignKey(
        "invoices.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    type: str = Column(String(16), nullable=False)  # rent|charge|penalty|deposit|other
    description: str = Column(Text, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    # Relationship
    invoice = relationship("Invoice", back_populates="lines")
