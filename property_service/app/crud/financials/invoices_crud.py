import calendar
import logging
import re
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
from dateutil.relativedelta import relativedelta
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.core.config import settings
from shared.core.exceptions import (
    InvalidStateError, NotFoundError, UnsupportedOperationError, ValidationError
)
from shared.core.schemas import UserToken
from shared.helpers.money_helper import round_money

from ...enum.leasing_tenants_enum import BillingCycle, LeaseStatus
from ...enum.parking_access_enum import AssignmentType
from ...enum.revenue_enum import (
    MUTABLE_INVOICE_STATUSES, InvoiceItemType, InvoiceStatus, InvoiceType
)
from ...models.financials.invoices import INVOICE_NO_CONSTRAINT, Invoice, InvoiceLine
from ...models.maintenance_assets.work_order import WorkOrder
from ...models.parking_access.parking_assignments import ParkingAssignment
from ...models.space_sites.units import Unit
from ...schemas.financials.invoices_schemas import (
    AdHocInvoiceCreate, InvoiceCreate, InvoiceItemIn, InvoiceOut, InvoiceUpdate,
    InvoicesRequest, InvoicesResponse, LeaseRentInvoiceCreate, ParkingInvoiceCreate
)
from ..leasing_tenants.leases_crud import (
    current_rent, find_active_lease_for_tenant, get_lease, get_tenant
)
from ..system.notifications_crud import notify_invoice_created
from .invoice_totals import calculate_totals

logger = logging.getLogger(__name__)

CONTENT_FIELDS = {
    "items", "tax", "vat_rate",
    "issue_date", "due_date", "period_start", "period_end",
}
DATE_FIELDS = ("issue_date", "due_date", "period_start", "period_end")
CYCLE_MONTHS = {
    BillingCycle.monthly.value: 1,
    BillingCycle.quarterly.value: 3,
    BillingCycle.annually.value: 12,
}


# ----------------------------------------------------------------------
# HELPERS
# ----------------------------------------------------------------------

def _value(member) -> Optional[str]:
    return member.value if hasattr(member, "value") else member


def generate_invoice_number(db: Session, org_id: UUID, year: Optional[int] = None) -> str:
    """Next ``INV-{year}-{seq:03d}`` for the organization.

    Sequences are compared numerically, so INV-2025-1000 follows INV-2025-999.
    """
    year = year or date.today().year
    prefix = f"{settings.INVOICE_NUMBER_PREFIX}-{year}-"
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    numbers = db.query(Invoice.invoice_no).filter(
        Invoice.org_id == org_id,
        Invoice.invoice_no.like(f"{prefix}%")
    ).all()

    highest = 0
    for (invoice_no,) in numbers:
        match = pattern.match(invoice_no)
        if match:
            highest = max(highest, int(match.group(1)))

    return f"{prefix}{highest + 1:03d}"


def _build_lines(items: List[InvoiceItemIn]) -> List[InvoiceLine]:
    return [
        InvoiceLine(
            position=position,
            type=_value(item.type),
            description=item.description,
            amount=round_money(item.amount),
        )
        for position, item in enumerate(items)
    ]


def _validate_period(period_start: date, period_end: date):
    if period_start and period_end and period_end < period_start:
        raise ValidationError("Period end cannot be before period start")


def _apply_totals(invoice: Invoice, items, tax: Optional[Decimal], vat_rate: Optional[Decimal]):
    totals = calculate_totals(items, explicit_tax=tax, vat_rate=vat_rate)
    invoice.vat_rate = vat_rate
    invoice.subtotal = totals.subtotal
    invoice.tax = totals.tax
    invoice.total = totals.total
    invoice.net_income_before_vat = totals.net_before_vat
    invoice.net_income_after_vat = totals.net_after_vat


def _get_invoice_or_404(db: Session, org_id: UUID, invoice_id: UUID) -> Invoice:
    db_invoice = get_invoice_by_id(db, org_id, invoice_id)
    if not db_invoice:
        raise NotFoundError("Invoice not found")
    return db_invoice


def _is_invoice_number_clash(error: IntegrityError) -> bool:
    # PostgreSQL reports the constraint name, SQLite the column list
    message = str(error.orig)
    return INVOICE_NO_CONSTRAINT in message or "invoices.invoice_no" in message


def _insert_invoice(
    db: Session,
    org_id: UUID,
    fields: Dict[str, Any],
    items: List[InvoiceItemIn],
    invoice_no: Optional[str] = None,
) -> Invoice:
    """Insert an invoice, regenerating its number on a unique-constraint clash.

    A caller-supplied number is never regenerated; its clash is a validation error.
    """
    _validate_period(fields.get("period_start"), fields.get("period_end"))

    generated = invoice_no is None
    attempts = max(settings.INVOICE_NUMBER_MAX_RETRIES, 1) if generated else 1

    for attempt in range(1, attempts + 1):
        number = invoice_no or generate_invoice_number(db, org_id)
        db_invoice = Invoice(org_id=org_id, invoice_no=number, **fields)
        db_invoice.lines = _build_lines(items)
        _apply_totals(db_invoice, items, fields.get("tax"), fields.get("vat_rate"))

        db.add(db_invoice)
        try:
            db.commit()
        except IntegrityError as error:
            db.rollback()
            if not _is_invoice_number_clash(error):
                raise
            if not generated:
                raise ValidationError(f"Invoice number {number} already exists")
            logger.warning("Invoice number %s already taken (attempt %s of %s)",
                           number, attempt, attempts)
            continue

        db.refresh(db_invoice)
        logger.info("Created %s invoice %s for tenant %s, total %s",
                    db_invoice.invoice_type, db_invoice.invoice_no,
                    db_invoice.tenant_id, db_invoice.total)
        return db_invoice

    raise ValidationError(
        f"Could not allocate a unique invoice number after {attempts} attempts")


def _invoice_fields(request: InvoiceCreate, invoice_type: str, **links) -> Dict[str, Any]:
    return {
        "lease_id": request.lease_id,
        "tenant_id": request.tenant_id,
        "unit_id": request.unit_id,
        "invoice_type": invoice_type,
        "issue_date": request.issue_date or date.today(),
        "due_date": request.due_date,
        "period_start": request.period_start,
        "period_end": request.period_end,
        "tax": request.tax,
        "vat_rate": request.vat_rate,
        "status": _value(request.status) or InvoiceStatus.draft.value,
        "notes": request.notes,
        "currency": request.currency or settings.CURRENCY,
        **links,
    }


def _create_lease_invoice(
    db: Session,
    org_id: UUID,
    request: InvoiceCreate,
    invoice_type: str = InvoiceType.standard.value,
    **links,
) -> Invoice:
    if not request.items:
        raise ValidationError("Invoice must have at least one item")

    lease = get_lease(db, org_id, request.lease_id)
    if not lease:
        raise NotFoundError("Lease not found")
    if lease.tenant_id != request.tenant_id:
        raise ValidationError("Tenant does not match the lease")
    if lease.unit_id != request.unit_id:
        raise ValidationError("Unit does not match the lease")

    fields = _invoice_fields(request, invoice_type, **links)
    return _insert_invoice(db, org_id, fields, request.items, request.invoice_no)


def _notify(db: Session, db_invoice: Invoice):
    if not notify_invoice_created(db, db_invoice):
        logger.warning("Invoice %s created without tenant notification",
                       db_invoice.invoice_no)


# ----------------------------------------------------------------------
# CRUD OPERATIONS
# ----------------------------------------------------------------------

def get_invoice_by_id(db: Session, org_id: UUID, invoice_id: UUID) -> Optional[Invoice]:
    return db.query(Invoice).filter(
        Invoice.id == invoice_id,
        Invoice.org_id == org_id
    ).first()


def get_invoice(db: Session, current_user: UserToken, invoice_id: UUID) -> InvoiceOut:
    db_invoice = _get_invoice_or_404(db, current_user.org_id, invoice_id)
    return InvoiceOut.model_validate(db_invoice)


def build_invoices_filters(org_id: UUID, params: InvoicesRequest):
    filters = [Invoice.org_id == org_id]

    if params.status and params.status.lower() != "all":
        filters.append(Invoice.status == params.status)

    if params.invoice_type and params.invoice_type.lower() != "all":
        filters.append(Invoice.invoice_type == params.invoice_type)

    if params.tenant_id:
        filters.append(Invoice.tenant_id == params.tenant_id)

    if params.lease_id:
        filters.append(Invoice.lease_id == params.lease_id)

    if params.search:
        search_term = f"%{params.search}%"
        filters.append(or_(
            Invoice.invoice_no.ilike(search_term),
            Invoice.notes.ilike(search_term),
        ))

    return filters


def list_invoices(db: Session, current_user: UserToken, params: InvoicesRequest) -> InvoicesResponse:
    filters = build_invoices_filters(current_user.org_id, params)
    base_query = db.query(Invoice).filter(*filters)
    total = base_query.count()

    invoices = (
        base_query
        .order_by(Invoice.issue_date.desc(), Invoice.invoice_no.desc())
        .offset(params.skip)
        .limit(params.limit)
        .all()
    )

    return InvoicesResponse(
        invoices=[InvoiceOut.model_validate(i) for i in invoices],
        total=total,
    )


def find_overdue_invoices(
    db: Session, current_user: UserToken, as_of: Optional[date] = None
) -> List[InvoiceOut]:
    """Draft or sent invoices whose due date is before ``as_of`` (today)."""
    as_of = as_of or date.today()
    invoices = db.query(Invoice).filter(
        Invoice.org_id == current_user.org_id,
        Invoice.status.in_([InvoiceStatus.draft.value, InvoiceStatus.sent.value]),
        Invoice.due_date < as_of
    ).order_by(Invoice.due_date.asc()).all()

    return [InvoiceOut.model_validate(i) for i in invoices]


def create_invoice(db: Session, current_user: UserToken, request: InvoiceCreate) -> InvoiceOut:
    db_invoice = _create_lease_invoice(db, current_user.org_id, request)
    _notify(db, db_invoice)
    return InvoiceOut.model_validate(db_invoice)


def _check_status_transition(db_invoice: Invoice, new_status: str):
    current = db_invoice.status
    if current == new_status:
        return
    if current == InvoiceStatus.paid.value and new_status == InvoiceStatus.cancelled.value:
        raise InvalidStateError(f"Invoice {db_invoice.invoice_no} is paid and cannot be cancelled")
    if current == InvoiceStatus.cancelled.value:
        raise InvalidStateError(f"Invoice {db_invoice.invoice_no} is cancelled")


def _apply_status(db_invoice: Invoice, new_status: str, paid_at: Optional[datetime] = None):
    previous = db_invoice.status
    db_invoice.status = new_status

    if new_status == InvoiceStatus.paid.value:
        db_invoice.paid_at = paid_at or db_invoice.paid_at or datetime.now(timezone.utc)
    elif previous == InvoiceStatus.paid.value or new_status == InvoiceStatus.overdue.value:
        db_invoice.paid_at = None


def update_invoice(
    db: Session, current_user: UserToken, invoice_id: UUID, update: InvoiceUpdate
) -> InvoiceOut:
    db_invoice = _get_invoice_or_404(db, current_user.org_id, invoice_id)
    sent = update.model_fields_set

    # validate everything before touching the row
    if sent & CONTENT_FIELDS and db_invoice.status not in MUTABLE_INVOICE_STATUSES:
        raise InvalidStateError(
            f"Invoice {db_invoice.invoice_no} is {db_invoice.status}; "
            "only draft, sent or overdue invoices can be edited")

    if "items" in sent and not update.items:
        raise ValidationError("Invoice must have at least one item")

    dates = {}
    for name in DATE_FIELDS:
        if name in sent:
            if getattr(update, name) is None:
                raise ValidationError(f"{name} cannot be cleared")
            dates[name] = getattr(update, name)
    _validate_period(
        dates.get("period_start", db_invoice.period_start),
        dates.get("period_end", db_invoice.period_end),
    )

    new_status = _value(update.status) if "status" in sent else None
    if new_status:
        _check_status_transition(db_invoice, new_status)

    # apply
    for name, value in dates.items():
        setattr(db_invoice, name, value)

    if sent & {"items", "tax", "vat_rate"}:
        items = update.items if "items" in sent else list(db_invoice.lines)
        if "items" in sent:
            db_invoice.lines = _build_lines(update.items)
        vat_rate = update.vat_rate if "vat_rate" in sent else db_invoice.vat_rate
        tax = update.tax if "tax" in sent else db_invoice.tax
        _apply_totals(db_invoice, items, tax, vat_rate)

    if "notes" in sent:
        db_invoice.notes = update.notes

    if new_status:
        _apply_status(db_invoice, new_status, update.paid_at)
    elif "paid_at" in sent and db_invoice.status == InvoiceStatus.paid.value and update.paid_at:
        db_invoice.paid_at = update.paid_at

    db.commit()
    db.refresh(db_invoice)
    return InvoiceOut.model_validate(db_invoice)


def update_invoice_status(
    db: Session,
    current_user: UserToken,
    invoice_id: UUID,
    status: InvoiceStatus,
    paid_at: Optional[datetime] = None,
) -> InvoiceOut:
    db_invoice = _get_invoice_or_404(db, current_user.org_id, invoice_id)
    new_status = _value(status)

    _check_status_transition(db_invoice, new_status)
    _apply_status(db_invoice, new_status, paid_at)

    db.commit()
    db.refresh(db_invoice)
    logger.info("Invoice %s status set to %s", db_invoice.invoice_no, new_status)
    return InvoiceOut.model_validate(db_invoice)


def cancel_invoice(db: Session, current_user: UserToken, invoice_id: UUID) -> InvoiceOut:
    """Cancel an invoice. Cancelling an already cancelled invoice is a no-op."""
    db_invoice = _get_invoice_or_404(db, current_user.org_id, invoice_id)

    if db_invoice.status == InvoiceStatus.paid.value:
        raise InvalidStateError(f"Invoice {db_invoice.invoice_no} is paid and cannot be cancelled")

    if db_invoice.status == InvoiceStatus.cancelled.value:
        logger.info("Invoice %s is already cancelled", db_invoice.invoice_no)
        return InvoiceOut.model_validate(db_invoice)

    db_invoice.status = InvoiceStatus.cancelled.value
    db.commit()
    db.refresh(db_invoice)
    logger.info("Cancelled invoice %s", db_invoice.invoice_no)
    return InvoiceOut.model_validate(db_invoice)


# ----------------------------------------------------------------------
# DERIVED INVOICES
# ----------------------------------------------------------------------

def create_ad_hoc_invoice(
    db: Session, current_user: UserToken, request: AdHocInvoiceCreate
) -> InvoiceOut:
    org_id = current_user.org_id
    invoice_type = _value(request.invoice_type)

    if invoice_type == InvoiceType.maintenance.value and not request.linked_work_order_id:
        raise ValidationError("Maintenance invoices require a linked work order")
    if invoice_type == InvoiceType.penalty.value and not request.linked_invoice_id:
        raise ValidationError("Penalty invoices require a linked invoice")
    if not request.items:
        raise ValidationError("Invoice must have at least one item")

    tenant = get_tenant(db, org_id, request.tenant_id)
    if not tenant:
        raise NotFoundError("Tenant not found")

    unit_id = request.unit_id
    if request.linked_work_order_id:
        work_order = db.query(WorkOrder).filter(
            WorkOrder.id == request.linked_work_order_id,
            WorkOrder.org_id == org_id,
            WorkOrder.is_deleted == False
        ).first()
        if not work_order:
            raise NotFoundError("Work order not found")
        unit_id = unit_id or work_order.unit_id

    if request.linked_invoice_id:
        original = get_invoice_by_id(db, org_id, request.linked_invoice_id)
        if not original:
            raise NotFoundError("Linked invoice not found")
        unit_id = unit_id or original.unit_id

    if request.lease_id:
        lease = get_lease(db, org_id, request.lease_id)
        if not lease:
            raise NotFoundError("Lease not found")
    else:
        lease = find_active_lease_for_tenant(db, org_id, tenant.id, unit_id=unit_id)
    if lease:
        unit_id = unit_id or lease.unit_id

    if not lease and not unit_id:
        raise NotFoundError("No active lease or unit found for this tenant")

    issue_date = request.issue_date or date.today()
    period_start = request.period_start or issue_date
    vat_rate = request.vat_rate if request.vat_rate is not None else Decimal(str(settings.DEFAULT_VAT_RATE))
    links = {
        "linked_work_order_id": request.linked_work_order_id,
        "linked_invoice_id": request.linked_invoice_id,
        "exchange_rate": request.exchange_rate,
    }

    if lease:
        db_invoice = _create_lease_invoice(
            db,
            org_id,
            InvoiceCreate(
                lease_id=lease.id,
                tenant_id=tenant.id,
                unit_id=unit_id,
                issue_date=issue_date,
                due_date=request.due_date,
                period_start=period_start,
                period_end=request.period_end or period_start,
                items=request.items,
                vat_rate=vat_rate,
                status=InvoiceStatus.sent,
                notes=request.notes,
                currency=request.currency,
            ),
            invoice_type,
            **links,
        )
    else:
        unit = db.query(Unit).filter(
            Unit.id == unit_id,
            Unit.org_id == org_id,
            Unit.is_deleted == False
        ).first()
        if not unit:
            raise NotFoundError("Unit not found")

        fields = {
            "lease_id": None,
            "tenant_id": tenant.id,
            "unit_id": unit.id,
            "invoice_type": invoice_type,
            "issue_date": issue_date,
            "due_date": request.due_date,
            "period_start": period_start,
            "period_end": request.period_end or period_start,
            "tax": None,
            "vat_rate": vat_rate,
            "status": InvoiceStatus.sent.value,
            "notes": request.notes,
            "currency": request.currency or settings.CURRENCY,
            **links,
        }
        db_invoice = _insert_invoice(db, org_id, fields, request.items)

    _notify(db, db_invoice)
    return InvoiceOut.model_validate(db_invoice)


def create_parking_invoice(
    db: Session, current_user: UserToken, request: ParkingInvoiceCreate
) -> InvoiceOut:
    org_id = current_user.org_id

    assignment = db.query(ParkingAssignment).filter(
        ParkingAssignment.id == request.parking_assignment_id,
        ParkingAssignment.org_id == org_id,
        ParkingAssignment.is_deleted == False
    ).first()
    if not assignment:
        raise NotFoundError("Parking assignment not found")

    if assignment.assignment_type == AssignmentType.visitor.value:
        raise UnsupportedOperationError(
            "Visitor parking invoices are not supported: there is no lease to bill against")

    if not assignment.tenant_id:
        raise ValidationError("Parking assignment has no tenant")
    if request.amount is None or request.amount <= 0:
        raise ValidationError("Parking invoice amount must be greater than zero")

    # a lease in the assignment's building first, then any active lease
    lease = (
        find_active_lease_for_tenant(db, org_id, assignment.tenant_id,
                                     building_id=assignment.building_id)
        or find_active_lease_for_tenant(db, org_id, assignment.tenant_id)
    )
    if not lease:
        raise NotFoundError("Tenant has no active lease")

    issue_date = date.today()
    description = request.description or (
        f"Parking fee ({assignment.billing_period})"
        + (f" - space {assignment.parking_space_label}" if assignment.parking_space_label else "")
    )

    db_invoice = _create_lease_invoice(
        db,
        org_id,
        InvoiceCreate(
            lease_id=lease.id,
            tenant_id=lease.tenant_id,
            unit_id=lease.unit_id,
            issue_date=issue_date,
            due_date=request.due_date or issue_date + timedelta(days=settings.INVOICE_DUE_DAYS),
            period_start=request.period_start,
            period_end=request.period_end,
            items=[InvoiceItemIn(description=description, amount=request.amount,
                                 type=InvoiceItemType.charge)],
            vat_rate=request.vat_rate,
            status=InvoiceStatus.sent,
        ),
        InvoiceType.parking.value,
        parking_assignment_id=assignment.id,
    )

    assignment.invoice_id = db_invoice.id
    db.commit()
    db.refresh(db_invoice)

    _notify(db, db_invoice)
    return InvoiceOut.model_validate(db_invoice)


def _due_date_from_terms(terms: Optional[dict], issue_date: date) -> date:
    """Due day of month from the lease terms, rolling into next month when passed."""
    due_day = (terms or {}).get("dueDay")
    if not due_day:
        return issue_date + timedelta(days=settings.INVOICE_DUE_DAYS)

    due_day = int(due_day)
    candidate = issue_date.replace(
        day=min(due_day, calendar.monthrange(issue_date.year, issue_date.month)[1]))
    if candidate < issue_date:
        next_month = issue_date + relativedelta(months=1)
        candidate = next_month.replace(
            day=min(due_day, calendar.monthrange(next_month.year, next_month.month)[1]))
    return candidate


def generate_lease_rent_invoice(
    db: Session, current_user: UserToken, request: LeaseRentInvoiceCreate
) -> InvoiceOut:
    """Rent invoice for one billing period, prorated by days when the period is short."""
    org_id = current_user.org_id

    lease = get_lease(db, org_id, request.lease_id)
    if not lease:
        raise NotFoundError("Lease not found")
    if lease.status != LeaseStatus.active.value:
        raise InvalidStateError(f"Lease is {lease.status}; only active leases can be billed")
    _validate_period(request.period_start, request.period_end)

    existing = db.query(Invoice.id).filter(
        Invoice.org_id == org_id,
        Invoice.lease_id == lease.id,
        Invoice.period_start == request.period_start,
        Invoice.period_end == request.period_end,
        Invoice.status != InvoiceStatus.cancelled.value
    ).first()
    if existing:
        raise ValidationError("An invoice already exists for this lease and period")

    rent = current_rent(lease)
    if not rent:
        raise ValidationError("Lease has no rent amount on record")

    months = CYCLE_MONTHS.get(lease.billing_cycle, 1)
    full_days = (request.period_start + relativedelta(months=months) - request.period_start).days
    billed_days = (request.period_end - request.period_start).days + 1

    label = "Monthly Rent" if months == 1 else f"Rent ({lease.billing_cycle})"
    amount = rent
    if billed_days < full_days:
        amount = round_money(rent * billed_days / full_days)
        label = f"{label} (prorated {billed_days}/{full_days} days)"

    issue_date = date.today()
    db_invoice = _create_lease_invoice(
        db,
        org_id,
        InvoiceCreate(
            lease_id=lease.id,
            tenant_id=lease.tenant_id,
            unit_id=lease.unit_id,
            issue_date=issue_date,
            due_date=request.due_date or _due_date_from_terms(lease.terms, issue_date),
            period_start=request.period_start,
            period_end=request.period_end,
            items=[InvoiceItemIn(description=label, amount=amount, type=InvoiceItemType.rent)],
            vat_rate=request.vat_rate,
            status=InvoiceStatus.draft,
        ),
        InvoiceType.rent.value,
    )

    _notify(db, db_invoice)
    return InvoiceOut.model_validate(db_invoice)
