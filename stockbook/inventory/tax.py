"""
stockbook/inventory/tax.py
--------------------------
Tax resolution for line items.

A product points at a TaxSetting by tax_id. The setting's `tax` value is
stored in one of two shapes, and both must be accepted:

    {"gst": 18}                   single rate object
    [{"gst": 18}, {"gst": 12}]    array of rate variants → first entry wins

Missing `gst`, a missing setting, or an inactive setting all resolve to 0%.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Mapping

from stockbook.constants import Q


@dataclass(frozen=True)
class TaxRate:
    percentage:      Decimal
    amount_per_unit: Decimal


ZERO_RATE = TaxRate(Decimal('0'), Decimal('0'))


def gst_percentage(tax_value) -> Decimal:
    """Extract the gst percentage from either stored shape."""
    entry = tax_value
    if isinstance(tax_value, (list, tuple)):
        entry = tax_value[0] if tax_value else None
    if not isinstance(entry, dict):
        return Decimal('0')
    raw = entry.get('gst')
    if raw in (None, '') or isinstance(raw, bool):
        return Decimal('0')
    try:
        pct = Decimal(str(raw))
    except InvalidOperation:
        return Decimal('0')
    return pct if pct.is_finite() and pct > 0 else Decimal('0')


def resolve_tax(product, tax_settings: Mapping[int, object], unit_price: Decimal = None) -> TaxRate:
    """
    Look up the tax rate that applies to `product`.

    Args:
        product:      Product row (uses .tax and, by default, .retailsales_price)
        tax_settings: active TaxSetting rows keyed by tax_id; inactive or
                      missing settings must simply be absent from the mapping
        unit_price:   price the rate applies to (defaults to the retail price)
    """
    setting = tax_settings.get(product.tax) if product.tax is not None else None
    if setting is None:
        return ZERO_RATE

    pct = gst_percentage(setting.tax)
    if unit_price is None:
        unit_price = Decimal(str(product.retailsales_price or 0))
    per_unit = (unit_price * pct / Decimal('100')).quantize(Q, rounding=ROUND_HALF_UP)
    return TaxRate(pct, per_unit)


def line_tax(unit_price: Decimal, quantity: Decimal, percentage: Decimal) -> Decimal:
    """unit_price × quantity × percentage / 100, rounded to paise."""
    return (unit_price * quantity * percentage / Decimal('100')).quantize(Q, rounding=ROUND_HALF_UP)
