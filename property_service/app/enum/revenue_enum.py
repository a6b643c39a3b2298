from enum import Enum


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


# statuses whose content (lines, dates, amounts) may still be edited
MUTABLE_INVOICE_STATUSES = (
    InvoiceStatus.draft.value,
    InvoiceStatus.sent.value,
    InvoiceStatus.overdue.value,
)


class InvoiceItemType(str, Enum):
    rent = "rent"
    charge = "charge"
    penalty = "penalty"
    deposit = "deposit"
    other = "other"


class InvoiceType(str, Enum):
    standard = "standard"
    rent = "rent"
    maintenance = "maintenance"
    penalty = "penalty"
    parking = "parking"
    other = "other"


class AdHocInvoiceType(str, Enum):
    maintenance = "maintenance"
    penalty = "penalty"
    other = "other"
