from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.core.auth import validate_current_token
from shared.core.database import get_facility_db as get_db
from shared.core.schemas import UserToken

from ...crud.financials import invoices_crud as crud
from ...crud.financials.invoice_totals import calculate_totals
from ...schemas.financials.invoices_schemas import (
    AdHocInvoiceCreate, InvoiceCreate, InvoiceOut, InvoiceStatusUpdate, InvoiceTotals,
    InvoiceTotalsRequest, InvoiceUpdate, InvoicesRequest, InvoicesResponse,
    LeaseRentInvoiceCreate, ParkingInvoiceCreate
)

router = APIRouter(
    prefix="/api/invoices",
    tags=["invoices"],
    dependencies=[Depends(validate_current_token)]
)


@router.get("/all", response_model=InvoicesResponse)
def get_invoices(
        params: InvoicesRequest = Depends(),
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.list_invoices(db, current_user, params)


@router.get("/overdue", response_model=List[InvoiceOut])
def get_overdue_invoices(
        as_of: Optional[date] = Query(None),
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.find_overdue_invoices(db, current_user, as_of)


@router.post("/totals", response_model=InvoiceTotals)
def preview_totals(request: InvoiceTotalsRequest):
    return calculate_totals(request.items, request.tax, request.vat_rate)


@router.post("/ad-hoc", response_model=InvoiceOut)
def create_ad_hoc_invoice(
        request: AdHocInvoiceCreate,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.create_ad_hoc_invoice(db, current_user, request)


@router.post("/parking", response_model=InvoiceOut)
def create_parking_invoice(
        request: ParkingInvoiceCreate,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.create_parking_invoice(db, current_user, request)


@router.post("/lease-rent", response_model=InvoiceOut)
def generate_lease_rent_invoice(
        request: LeaseRentInvoiceCreate,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.generate_lease_rent_invoice(db, current_user, request)


@router.post("/", response_model=InvoiceOut)
def create_invoice(
        invoice: InvoiceCreate,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.create_invoice(db, current_user, invoice)


@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
        invoice_id: UUID,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.get_invoice(db, current_user, invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
        invoice_id: UUID,
        invoice: InvoiceUpdate,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.update_invoice(db, current_user, invoice_id, invoice)


@router.put("/{invoice_id}/status", response_model=InvoiceOut)
def update_invoice_status(
        invoice_id: UUID,
        request: InvoiceStatusUpdate,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.update_invoice_status(db, current_user, invoice_id, request.status, request.paid_at)


@router.post("/{invoice_id}/cancel", response_model=InvoiceOut)
def cancel_invoice(
        invoice_id: UUID,
        db: Session = Depends(get_db),
        current_user: UserToken = Depends(validate_current_token)):
    return crud.cancel_invoice(db, current_user, invoice_id)
