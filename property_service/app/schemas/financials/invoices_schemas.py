from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import AliasChoices, BaseModel, Field
from typing import List, Optional
from shared.core.schemas import CommonQueryParams

from ...enum.revenue_enum import AdHocInvoiceType, InvoiceItemType, InvoiceStatus


class InvoiceItemIn(BaseModel):
    description: str
    amount: Decimal
    type: InvoiceItemType = InvoiceItemType.other


class InvoiceItemOut(InvoiceItemIn):
    type: str

    class Config:
        from_attributes = True


class InvoiceTotals(BaseModel):
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    net_before_vat: Decimal
    net_after_vat: Decimal


class InvoiceTotalsRequest(BaseModel):
    items: List[InvoiceItemIn] = []
    tax: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None


class InvoiceCreate(BaseModel):
    lease_id: UUID
    tenant_id: UUID
    unit_id: UUID
    invoice_no: Optional[str] = None  # generated when omitted
    issue_date: Optional[date] = None  # today when omitted
    due_date: date
    period_start: date
    period_end: date
    items: List[InvoiceItemIn] = []
    tax: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    status: Optional[InvoiceStatus] = None
    notes: Optional[str] = None
    currency: Optional[str] = None


class InvoiceUpdate(BaseModel):
    """Every field is optional; only the fields sent are applied.

    Content fields (items, tax, vat_rate and the four dates) require the
    invoice to be in a mutable status. status/paid_at/notes are always
    accepted, subject to the status transition rules.
    """
    items: Optional[List[InvoiceItemIn]] = None
    tax: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    status: Optional[InvoiceStatus] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus
    paid_at: Optional[datetime] = None


class AdHocInvoiceCreate(BaseModel):
    invoice_type: AdHocInvoiceType
    tenant_id: UUID
    unit_id: Optional[UUID] = None
    lease_id: Optional[UUID] = None
    items: List[InvoiceItemIn] = []
    issue_date: Optional[date] = None
    due_date: date
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    vat_rate: Optional[Decimal] = None  # DEFAULT_VAT_RATE when omitted
    notes: Optional[str] = None
    linked_work_order_id: Optional[UUID] = None
    linked_invoice_id: Optional[UUID] = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None


class ParkingInvoiceCreate(BaseModel):
    parking_assignment_id: UUID
    amount: Decimal
    description: Optional[str] = None
    period_start: date
    period_end: date
    due_date: Optional[date] = None
    vat_rate: Optional[Decimal] = None


class LeaseRentInvoiceCreate(BaseModel):
    lease_id: UUID
    period_start: date
    period_end: date
    due_date: Optional[date] = None
    vat_rate: Optional[Decimal] = None


class InvoiceOut(BaseModel):
    id: UUID
    org_id: UUID
    invoice_no: str
    invoice_type: Optional[str] = None
    lease_id: Optional[UUID] = None
    tenant_id: UUID
    unit_id: UUID
    issue_date: date
    due_date: date
    period_start: date
    period_end: date
    items: List[InvoiceItemOut] = Field(
        default=[], validation_alias=AliasChoices("items", "lines"))
    subtotal: Decimal
    tax: Decimal
    vat_rate: Optional[Decimal] = None
    total: Decimal
    net_income_before_vat: Optional[Decimal] = None
    net_income_after_vat: Optional[Decimal] = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    status: str
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    linked_work_order_id: Optional[UUID] = None
    linked_invoice_id: Optional[UUID] = None
    parking_assignment_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class InvoicesRequest(CommonQueryParams):
    status: Optional[str] = None
    tenant_id: Optional[UUID] = None
    lease_id: Optional[UUID] = None
    invoice_type: Optional[str] = None


class InvoicesResponse(BaseModel):
    invoices: List[InvoiceOut]
    total: int

    model_config = {"from_attributes": True}
