"""
stockbook/inventory/validators.py
---------------------------------
Pure-Python validation for product and tax-setting payloads.
Returns a dict of field -> error_message.
An empty dict means all fields are valid.
"""
from decimal import Decimal, InvalidOperation

from stockbook.constants import MAX_AMOUNT

PRICE_FIELDS = ('mrp', 'retailsales_price', 'purchasesale_price', 'wholesale_price')
QTY_FIELDS = ('opening_stock_qty', 'min_stock_qty')


def _decimal(raw):
    if raw is None or raw == '' or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def validate_product_payload(data: dict) -> dict:
    """
    Validate the JSON body for creating a product.

    Returns:
        dict of {field_name: error_message}, empty if all valid.
    """
    errors = {}

    # ── product_name ──────────────────────────────────────────────
    name = data.get('product_name')
    if not isinstance(name, str) or not name.strip():
        errors['product_name'] = 'Product name is required.'
    elif len(name.strip()) > 200:
        errors['product_name'] = 'Product name must be 200 characters or fewer.'

    # ── product_code ──────────────────────────────────────────────
    code = data.get('product_code')
    if code is not None and (not isinstance(code, str) or len(code.strip()) > 100):
        errors['product_code'] = 'Product code must be text of 100 characters or fewer.'

    # ── prices ────────────────────────────────────────────────────
    if data.get('retailsales_price') in (None, ''):
        errors['retailsales_price'] = 'Retail sales price is required.'
    for field in PRICE_FIELDS:
        if field in errors or data.get(field) in (None, ''):
            continue
        value = _decimal(data.get(field))
        if value is None:
            errors[field] = 'Must be a valid number.'
        elif value < 0:
            errors[field] = 'Cannot be negative.'
        elif value >= MAX_AMOUNT:
            errors[field] = 'Must be less than 10,000,000,000.'

    # ── quantities ────────────────────────────────────────────────
    for field in QTY_FIELDS:
        if data.get(field) in (None, ''):
            continue
        value = _decimal(data.get(field))
        if value is None:
            errors[field] = 'Must be a valid number.'
        elif value < 0:
            errors[field] = 'Cannot be negative.'
        elif value >= MAX_AMOUNT:
            errors[field] = 'Must be less than 10,000,000,000.'

    # ── tax ───────────────────────────────────────────────────────
    tax = data.get('tax')
    if tax is not None and (isinstance(tax, bool) or not isinstance(tax, int)):
        errors['tax'] = 'Tax must be the id of a tax setting.'

    # ── availability ──────────────────────────────────────────────
    if 'availability' in data and not isinstance(data['availability'], bool):
        errors['availability'] = 'Availability must be true or false.'

    return errors


def parse_product_payload(data: dict) -> dict:
    """
    Convert a validated body to Product column values.
    Call only after validate_product_payload returns no errors.
    """
    values = {
        'product_name': data['product_name'].strip(),
        'product_code': (data.get('product_code') or '').strip() or None,
        'unit':         (data.get('unit') or '').strip() or None,
        'hsn_sac_code': (data.get('hsn_sac_code') or '').strip() or None,
        'tax':          data.get('tax'),
        'availability': data.get('availability', True),
    }
    for field in PRICE_FIELDS + QTY_FIELDS:
        value = _decimal(data.get(field))
        values[field] = value if value is not None else Decimal('0')
    return values


def validate_tax_payload(data: dict) -> dict:
    """
    `tax` must be a rate object or a non-empty array of rate objects,
    each with a non-negative numeric `gst` when present.
    """
    errors = {}
    tax_id = data.get('tax_id')
    if isinstance(tax_id, bool) or not isinstance(tax_id, int) or tax_id <= 0:
        errors['tax_id'] = 'tax_id must be a positive whole number.'

    tax = data.get('tax')
    entries = tax if isinstance(tax, list) else [tax]
    if not entries or not all(isinstance(e, dict) for e in entries):
        errors['tax'] = 'Tax must be a rate object or a list of rate objects.'
    else:
        for entry in entries:
            if 'gst' not in entry:
                continue
            gst = _decimal(entry['gst'])
            if gst is None or gst < 0 or gst > 100:
                errors['tax'] = 'gst must be a number between 0 and 100.'
                break
    return errors
