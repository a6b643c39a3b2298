import logging
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ...models.financials.invoices import Invoice
from ...models.system.notifications import Notification, NotificationType, PriorityType
from ...schemas.space_sites.rent_policy_schemas import RentChangeEvent

logger = logging.getLogger(__name__)


def _save(db: Session, notification: Notification) -> bool:
    """Persist a tenant notification. Failures are logged, never raised."""
    try:
        db.add(notification)
        db.commit()
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to store %s notification for tenant %s",
                         notification.type, notification.tenant_id)
        return False


def notify_rent_change(db: Session, event: RentChangeEvent) -> bool:
    unit = f" for unit {event.unit_label}" if event.unit_label else ""
    old = f"{event.old_rent}" if event.old_rent is not None else "n/a"
    notification = Notification(
        org_id=event.org_id,
        tenant_id=event.tenant_id,
        type=NotificationType.rent_change,
        title=f"Rent update{unit}",
        message=(
            f"Your monthly rent{unit} changes from {old} to {event.new_rent} "
            f"effective {event.effective_date.isoformat()}."
        ),
        meta=event.model_dump(mode="json"),
        priority=PriorityType.high,
    )
    logger.info("Rent change notification for lease %s: %s -> %s",
                event.lease_id, event.old_rent, event.new_rent)
    return _save(db, notification)


def notify_invoice_created(db: Session, invoice: Invoice) -> bool:
    notification = Notification(
        org_id=invoice.org_id,
        tenant_id=invoice.tenant_id,
        type=NotificationType.invoice_created,
        title=f"New Invoice: {invoice.invoice_no}",
        message=(
            f"A new invoice has been created for you. Amount: "
            f"{invoice.currency} {invoice.total}. Due date: {invoice.due_date.isoformat()}"
        ),
        meta={
            "invoiceId": str(invoice.id),
            "invoiceNumber": invoice.invoice_no,
            "amount": str(invoice.total),
            "dueDate": invoice.due_date.isoformat(),
        },
    )
    return _save(db, notification)
