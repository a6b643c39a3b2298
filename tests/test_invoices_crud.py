from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from shared.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from property_service.app.crud.financials import invoices_crud as crud
from property_service.app.models.financials.invoices import Invoice
from property_service.app.models.system.notifications import Notification, NotificationType
from property_service.app.schemas.financials.invoices_schemas import (
    AdHocInvoiceCreate, InvoiceCreate, InvoiceItemIn, InvoiceUpdate, InvoicesRequest,
    LeaseRentInvoiceCreate
)

YEAR = date.today().year


def invoice_request(seed, **overrides):
    values = dict(
        lease_id=seed.lease_third.id,
        tenant_id=seed.tenant.id,
        unit_id=seed.third.id,
        due_date=date(2025, 2, 5),
        period_start=date(2025, 2, 1),
        period_end=date(2025, 2, 28),
        items=[
            InvoiceItemIn(description="Monthly Rent", amount=Decimal("1000"), type="rent"),
            InvoiceItemIn(description="Service charge", amount=Decimal("500"), type="charge"),
        ],
        vat_rate=Decimal("15"),
    )
    values.update(overrides)
    return InvoiceCreate(**values)


def test_create_invoice(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    assert invoice.invoice_no == f"INV-{YEAR}-001"
    assert invoice.status == "draft"
    assert invoice.invoice_type == "standard"
    assert invoice.subtotal == Decimal("1500")
    assert invoice.tax == Decimal("225")
    assert invoice.total == Decimal("1725")
    assert invoice.issue_date == date.today()
    assert [i.description for i in invoice.items] == ["Monthly Rent", "Service charge"]
    assert invoice.items[0].type == "rent"


def test_stored_subtotal_matches_stored_lines(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed, vat_rate=None, items=[
        InvoiceItemIn(description="Half cent", amount=Decimal("0.005")),
        InvoiceItemIn(description="Half cent", amount=Decimal("0.005")),
    ]))

    db.expire_all()
    stored = db.query(Invoice).filter(Invoice.id == invoice.id).one()

    assert stored.subtotal == Decimal("0.02")
    assert stored.subtotal == sum((line.amount for line in stored.lines), Decimal(0))
    assert stored.total == stored.subtotal + stored.tax


def test_updated_subtotal_matches_stored_lines(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(items=[
        InvoiceItemIn(description="Rent", amount=Decimal("100.004")),
        InvoiceItemIn(description="Water", amount=Decimal("50.005")),
    ]))

    db.expire_all()
    stored = db.query(Invoice).filter(Invoice.id == invoice.id).one()

    assert stored.subtotal == Decimal("150.01")
    assert stored.subtotal == sum((line.amount for line in stored.lines), Decimal(0))


def test_invoice_numbers_increment(db, current_user, seed):
    first = crud.create_invoice(db, current_user, invoice_request(seed))
    second = crud.create_invoice(db, current_user, invoice_request(seed))

    assert first.invoice_no == f"INV-{YEAR}-001"
    assert second.invoice_no == f"INV-{YEAR}-002"


def test_invoice_numbers_compare_numerically(db, current_user, seed):
    crud.create_invoice(db, current_user, invoice_request(seed, invoice_no=f"INV-{YEAR}-999"))
    crud.create_invoice(db, current_user, invoice_request(seed, invoice_no=f"INV-{YEAR}-100"))

    assert crud.generate_invoice_number(db, current_user.org_id) == f"INV-{YEAR}-1000"


def test_invoice_numbers_are_per_organization(db, current_user, other_user, seed):
    crud.create_invoice(db, current_user, invoice_request(seed))

    assert crud.generate_invoice_number(db, other_user.org_id) == f"INV-{YEAR}-001"
    assert crud.generate_invoice_number(db, current_user.org_id, year=YEAR + 1) == f"INV-{YEAR + 1}-001"


def test_duplicate_supplied_number_rejected(db, current_user, seed):
    crud.create_invoice(db, current_user, invoice_request(seed, invoice_no="INV-CUSTOM-1"))

    with pytest.raises(ValidationError):
        crud.create_invoice(db, current_user, invoice_request(seed, invoice_no="INV-CUSTOM-1"))
    assert db.query(Invoice).count() == 1


def test_generated_number_collision_is_retried(db, current_user, seed, monkeypatch):
    crud.create_invoice(db, current_user, invoice_request(seed))

    numbers = iter([f"INV-{YEAR}-001", f"INV-{YEAR}-002"])
    monkeypatch.setattr(crud, "generate_invoice_number", lambda db, org_id: next(numbers))

    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    assert invoice.invoice_no == f"INV-{YEAR}-002"


def test_number_clash_detection():
    clash = IntegrityError("INSERT INTO invoices", {}, Exception(
        "UNIQUE constraint failed: invoices.org_id, invoices.invoice_no"))
    named = IntegrityError("INSERT INTO invoices", {}, Exception(
        'duplicate key value violates unique constraint "uq_invoice_org_invoice_no"'))
    foreign_key = IntegrityError("INSERT INTO invoices", {}, Exception(
        "FOREIGN KEY constraint failed"))

    assert crud._is_invoice_number_clash(clash)
    assert crud._is_invoice_number_clash(named)
    assert not crud._is_invoice_number_clash(foreign_key)


def test_other_integrity_errors_are_not_retried(db, current_user, seed, monkeypatch):
    attempts = []

    def failing_commit():
        attempts.append(1)
        raise IntegrityError("INSERT INTO invoices", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(db, "commit", failing_commit)

    with pytest.raises(IntegrityError):
        crud.create_invoice(db, current_user, invoice_request(seed))
    assert len(attempts) == 1


def test_create_requires_items(db, current_user, seed):
    with pytest.raises(ValidationError):
        crud.create_invoice(db, current_user, invoice_request(seed, items=[]))


def test_create_lease_from_other_org(db, other_user, seed):
    with pytest.raises(NotFoundError):
        crud.create_invoice(db, other_user, invoice_request(seed))


def test_create_tenant_must_match_lease(db, current_user, seed):
    with pytest.raises(ValidationError):
        crud.create_invoice(db, current_user, invoice_request(seed, tenant_id=seed.tenant_two.id))


def test_create_unit_must_match_lease(db, current_user, seed):
    with pytest.raises(ValidationError):
        crud.create_invoice(db, current_user, invoice_request(seed, unit_id=seed.first.id))


def test_create_period_order(db, current_user, seed):
    with pytest.raises(ValidationError):
        crud.create_invoice(db, current_user, invoice_request(
            seed, period_start=date(2025, 3, 1), period_end=date(2025, 2, 1)))


def test_create_sends_tenant_notification(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    notification = db.query(Notification).one()
    assert notification.type == NotificationType.invoice_created
    assert notification.tenant_id == seed.tenant.id
    assert notification.meta["invoiceNumber"] == invoice.invoice_no


def test_update_items_recomputes_totals(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    updated = crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(
        items=[InvoiceItemIn(description="Monthly Rent", amount=Decimal("2000"))]))

    assert updated.subtotal == Decimal("2000")
    assert updated.tax == Decimal("300")
    assert updated.total == Decimal("2300")
    assert len(updated.items) == 1


def test_update_vat_rate_keeps_lines(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    updated = crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(vat_rate=Decimal("10")))

    assert updated.subtotal == Decimal("1500")
    assert updated.tax == Decimal("150")
    assert updated.total == Decimal("1650")


def test_update_totals_recompute_is_idempotent(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    items = [InvoiceItemIn(description="Rent", amount=Decimal("999.99"))]

    once = crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(items=items))
    twice = crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(items=items))

    assert (once.subtotal, once.tax, once.total) == (twice.subtotal, twice.tax, twice.total)


def test_update_rejects_empty_items(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    with pytest.raises(ValidationError):
        crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(items=[]))


def test_update_paid_invoice_items_rejected(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice_status(db, current_user, invoice.id, "paid")

    with pytest.raises(InvalidStateError):
        crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(
            items=[InvoiceItemIn(description="Rent", amount=Decimal("1"))]))


def test_update_paid_invoice_cancel_rejected(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice_status(db, current_user, invoice.id, "paid")

    with pytest.raises(InvalidStateError):
        crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(status="cancelled"))
    assert crud.get_invoice(db, current_user, invoice.id).status == "paid"


def test_update_notes_on_paid_invoice(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice_status(db, current_user, invoice.id, "paid")

    updated = crud.update_invoice(db, current_user, invoice.id, InvoiceUpdate(notes="Paid by transfer"))
    assert updated.notes == "Paid by transfer"


def test_status_paid_sets_and_clears_paid_at(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    paid_at = datetime(2025, 2, 10, 9, 30, tzinfo=timezone.utc)

    paid = crud.update_invoice_status(db, current_user, invoice.id, "paid", paid_at)
    assert paid.status == "paid"
    assert paid.paid_at.replace(tzinfo=None) == paid_at.replace(tzinfo=None)

    reopened = crud.update_invoice_status(db, current_user, invoice.id, "sent")
    assert reopened.paid_at is None


def test_status_paid_defaults_to_now(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    paid = crud.update_invoice_status(db, current_user, invoice.id, "paid")
    assert paid.paid_at is not None


def test_status_overdue_clears_paid_at(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice_status(db, current_user, invoice.id, "paid")

    overdue = crud.update_invoice_status(db, current_user, invoice.id, "overdue")
    assert overdue.status == "overdue"
    assert overdue.paid_at is None


def test_cancelled_invoice_cannot_change_status(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.cancel_invoice(db, current_user, invoice.id)

    with pytest.raises(InvalidStateError):
        crud.update_invoice_status(db, current_user, invoice.id, "sent")


def test_cancel_sent_then_cancel_again(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed, status="sent"))

    cancelled = crud.cancel_invoice(db, current_user, invoice.id)
    assert cancelled.status == "cancelled"

    again = crud.cancel_invoice(db, current_user, invoice.id)
    assert again.status == "cancelled"
    assert again.updated_at == cancelled.updated_at


def test_cancel_paid_rejected(db, current_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice_status(db, current_user, invoice.id, "paid")

    with pytest.raises(InvalidStateError):
        crud.cancel_invoice(db, current_user, invoice.id)


def test_get_invoice_other_org(db, current_user, other_user, seed):
    invoice = crud.create_invoice(db, current_user, invoice_request(seed))

    with pytest.raises(NotFoundError):
        crud.get_invoice(db, other_user, invoice.id)


def test_list_invoices_filters(db, current_user, seed):
    crud.create_invoice(db, current_user, invoice_request(seed))
    sent = crud.create_invoice(db, current_user, invoice_request(seed, status="sent"))

    result = crud.list_invoices(db, current_user, InvoicesRequest(status="sent"))
    assert result.total == 1
    assert result.invoices[0].id == sent.id

    assert crud.list_invoices(db, current_user, InvoicesRequest()).total == 2
    assert crud.list_invoices(db, current_user, InvoicesRequest(search="002")).total == 1


def test_find_overdue_invoices(db, current_user, seed):
    past_due = crud.create_invoice(db, current_user, invoice_request(seed, status="sent"))
    paid = crud.create_invoice(db, current_user, invoice_request(seed))
    crud.update_invoice_status(db, current_user, paid.id, "paid")
    crud.create_invoice(db, current_user, invoice_request(
        seed, due_date=date.today() + timedelta(days=30)))

    overdue = crud.find_overdue_invoices(db, current_user)
    assert [i.id for i in overdue] == [past_due.id]


# ----------------------------------------------------------------------
# ad-hoc
# ----------------------------------------------------------------------

def ad_hoc_request(seed, **overrides):
    values = dict(
        invoice_type="other",
        tenant_id=seed.tenant.id,
        due_date=date.today() + timedelta(days=10),
        items=[InvoiceItemIn(description="Key replacement", amount=Decimal("200"), type="charge")],
    )
    values.update(overrides)
    return AdHocInvoiceCreate(**values)


def test_ad_hoc_resolves_active_lease(db, current_user, seed):
    invoice = crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(seed))

    assert invoice.lease_id == seed.lease_third.id
    assert invoice.unit_id == seed.third.id
    assert invoice.status == "sent"
    assert invoice.invoice_type == "other"
    assert invoice.vat_rate == Decimal("15")
    assert invoice.total == Decimal("230")


def test_ad_hoc_maintenance_requires_work_order(db, current_user, seed):
    with pytest.raises(ValidationError):
        crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(seed, invoice_type="maintenance"))


def test_ad_hoc_maintenance_unit_from_work_order(db, current_user, seed):
    invoice = crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(
        seed, invoice_type="maintenance", linked_work_order_id=seed.work_order.id))

    # the tenant has no lease on the work order's unit
    assert invoice.unit_id == seed.first.id
    assert invoice.lease_id is None
    assert invoice.linked_work_order_id == seed.work_order.id


def test_ad_hoc_penalty_requires_linked_invoice(db, current_user, seed):
    with pytest.raises(ValidationError):
        crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(seed, invoice_type="penalty"))


def test_ad_hoc_penalty_unit_from_linked_invoice(db, current_user, seed):
    original = crud.create_invoice(db, current_user, invoice_request(seed))

    penalty = crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(
        seed, invoice_type="penalty", linked_invoice_id=original.id, vat_rate=Decimal("0")))

    assert penalty.unit_id == seed.third.id
    assert penalty.lease_id == seed.lease_third.id
    assert penalty.linked_invoice_id == original.id
    assert penalty.tax == Decimal("0")


def test_ad_hoc_missing_work_order(db, current_user, seed, org_id):
    with pytest.raises(NotFoundError):
        crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(
            seed, invoice_type="maintenance", linked_work_order_id=org_id))


def test_ad_hoc_unknown_tenant(db, other_user, seed):
    with pytest.raises(NotFoundError):
        crud.create_ad_hoc_invoice(db, other_user, ad_hoc_request(seed))


def test_ad_hoc_no_lease_and_no_unit(db, current_user, seed):
    with pytest.raises(NotFoundError):
        crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(
            seed, tenant_id=seed.tenant_no_lease.id))


def test_ad_hoc_explicit_unit_without_lease(db, current_user, seed):
    invoice = crud.create_ad_hoc_invoice(db, current_user, ad_hoc_request(
        seed, tenant_id=seed.tenant_no_lease.id, unit_id=seed.first.id))

    assert invoice.lease_id is None
    assert invoice.unit_id == seed.first.id


# ----------------------------------------------------------------------
# lease rent
# ----------------------------------------------------------------------

def test_lease_rent_full_month(db, current_user, seed):
    invoice = crud.generate_lease_rent_invoice(db, current_user, LeaseRentInvoiceCreate(
        lease_id=seed.lease_third.id, period_start=date(2025, 1, 1), period_end=date(2025, 1, 31)))

    assert invoice.invoice_type == "rent"
    assert invoice.status == "draft"
    assert invoice.subtotal == Decimal("18000")
    assert invoice.items[0].description == "Monthly Rent"
    assert invoice.items[0].type == "rent"
    assert invoice.due_date.day == 5


def test_lease_rent_prorated(db, current_user, seed):
    invoice = crud.generate_lease_rent_invoice(db, current_user, LeaseRentInvoiceCreate(
        lease_id=seed.lease_third.id, period_start=date(2025, 1, 16), period_end=date(2025, 1, 31)))

    # 18000 * 16 / 31
    assert invoice.subtotal == Decimal("9290.32")
    assert "prorated 16/31" in invoice.items[0].description


def test_lease_rent_same_period_twice(db, current_user, seed):
    request = LeaseRentInvoiceCreate(
        lease_id=seed.lease_third.id, period_start=date(2025, 1, 1), period_end=date(2025, 1, 31))
    crud.generate_lease_rent_invoice(db, current_user, request)

    with pytest.raises(ValidationError):
        crud.generate_lease_rent_invoice(db, current_user, request)
