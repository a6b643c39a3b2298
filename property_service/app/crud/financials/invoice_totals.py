from decimal import Decimal
from typing import Iterable, Optional

from shared.helpers.money_helper import round_money, to_decimal

from ...schemas.financials.invoices_schemas import InvoiceTotals


def calculate_totals(
    items: Iterable,
    explicit_tax: Optional[Decimal] = None,
    vat_rate: Optional[Decimal] = None,
    precision: Optional[int] = None,
) -> InvoiceTotals:
    """Subtotal, tax and total for a list of invoice lines.

    ``items`` may be request items or ``InvoiceLine`` rows; only ``amount``
    is read. Each amount is rounded to the currency minor unit first, so the
    subtotal always equals the sum of the stored lines. A VAT rate (percent)
    wins over an explicit tax amount.
    """
    subtotal = sum((round_money(item.amount, precision) for item in items), Decimal(0))

    if vat_rate is not None:
        tax = round_money(subtotal * to_decimal(vat_rate) / Decimal(100), precision)
    elif explicit_tax is not None:
        tax = round_money(explicit_tax, precision)
    else:
        tax = Decimal(0)

    total = subtotal + tax
    return InvoiceTotals(
        subtotal=subtotal,
        tax=tax,
        total=total,
        net_before_vat=subtotal,
        net_after_vat=total,
    )
