import logging
import math
from datetime import datetime, timezone
from decimal import Decimal
from typing import Tuple
from uuid import UUID
from sqlalchemy.orm import Session

from shared.core.exceptions import (
    AppError, InvalidStateError, NotFoundError, UnsupportedOperationError, ValidationError
)
from shared.core.schemas import UserToken
from shared.helpers.money_helper import round_money, to_decimal

from ...enum.parking_access_enum import AssignmentStatus, BillingPeriod
from ...models.parking_access.parking_assignments import ParkingAssignment
from ...schemas.financials.invoices_schemas import ParkingInvoiceCreate
from ...schemas.parking_access.parking_assignment_schemas import (
    EndParkingAssignmentRequest, EndParkingAssignmentResponse, ParkingAssignmentOut
)
from ..financials.invoices_crud import create_parking_invoice

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # sqlite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def calculate_parking_charge(
    billing_period: str, rate, start: datetime, end: datetime
) -> Tuple[Decimal, int, int]:
    """Amount, actual minutes and billed minutes for a parking stay.

    Monthly stays are charged the flat rate; daily and hourly stays are
    charged per started day or hour.
    """
    seconds = (_as_utc(end) - _as_utc(start)).total_seconds()
    minutes = round(seconds / 60)
    rate = to_decimal(rate)

    if billing_period == BillingPeriod.daily.value:
        days = math.ceil(seconds / 86400)
        return round_money(rate * days), minutes, days * 24 * 60
    if billing_period == BillingPeriod.hourly.value:
        hours = math.ceil(seconds / 3600)
        return round_money(rate * hours), minutes, hours * 60
    return round_money(rate), minutes, minutes


def end_parking_assignment(
    db: Session,
    current_user: UserToken,
    assignment_id: UUID,
    request: EndParkingAssignmentRequest,
) -> EndParkingAssignmentResponse:
    assignment = db.query(ParkingAssignment).filter(
        ParkingAssignment.id == assignment_id,
        ParkingAssignment.org_id == current_user.org_id,
        ParkingAssignment.is_deleted == False
    ).first()
    if not assignment:
        raise NotFoundError("Parking assignment not found")

    if assignment.status != AssignmentStatus.active.value:
        raise InvalidStateError("Only active assignments can be ended")

    end_date = _as_utc(request.end_date or datetime.now(timezone.utc))
    if end_date < _as_utc(assignment.start_date):
        raise ValidationError("End date cannot be before the assignment start")

    amount, actual_minutes, billed_minutes = calculate_parking_charge(
        assignment.billing_period, assignment.rate, assignment.start_date, end_date)

    assignment.end_date = end_date
    assignment.calculated_duration = actual_minutes
    assignment.billed_duration = billed_minutes
    assignment.status = AssignmentStatus.completed.value
    db.commit()
    db.refresh(assignment)
    logger.info("Ended parking assignment %s: %s minutes, amount %s",
                assignment.id, actual_minutes, amount)

    response = EndParkingAssignmentResponse(
        parking_assignment=ParkingAssignmentOut.model_validate(assignment),
        calculated_amount=amount,
    )

    # monthly stays are billed by the regular cycle
    if (not request.generate_invoice
            or assignment.billing_period == BillingPeriod.monthly.value
            or amount <= 0):
        return response

    try:
        invoice = create_parking_invoice(db, current_user, ParkingInvoiceCreate(
            parking_assignment_id=assignment.id,
            amount=amount,
            period_start=_as_utc(assignment.start_date).date(),
            period_end=end_date.date(),
        ))
    except UnsupportedOperationError as e:
        logger.info("No invoice for parking assignment %s: %s", assignment.id, e.message)
        response.invoice_error = e.message
        return response
    except AppError as e:
        logger.warning("Invoice generation failed for parking assignment %s: %s",
                       assignment.id, e.message)
        response.invoice_error = e.message
        return response

    db.refresh(assignment)
    response.parking_assignment = ParkingAssignmentOut.model_validate(assignment)
    response.invoice_generated = True
    response.invoice_id = invoice.id
    return response
