"""
stockbook/documents/payload.py
------------------------------
Turns a raw JSON body into a DocumentRequest for the recorder.

Only the scalar fields are converted here. The party reference and the
product lines are handed over untouched: checking them is part of the
recording steps themselves (PartyNotFound, InvalidLineItems, …).

Accepted body (field names follow the document kind):

    {
      "supplier_id" | "customer_id": "SUP0001",
      "products": [{"product_id": "PRO0001", "quantity": 10}, ...],
      "paid_amount": 400,
      "payment_method": "cash",
      "discount": {"percentage": 5, "amount": 0},
      "remarks": "...",
      "invoice_date" | "bill_date": "2026-10-19",
      "payment_date": "2026-10-19"
    }
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from stockbook.constants import PaymentMethod
from stockbook.errors import InvalidPayload
from stockbook.utils.responses import parse_decimal

ZERO = Decimal('0')


@dataclass
class DocumentRequest:
    party_id:            Any
    lines:               Any
    paid_amount:         Decimal = ZERO
    payment_method:      PaymentMethod = PaymentMethod.CASH
    discount_percentage: Decimal = ZERO
    discount_amount:     Optional[Decimal] = None   # None → derive from percentage
    remarks:             str = ''
    document_date:       Optional[datetime] = None
    payment_date:        Optional[datetime] = None
    handled_by:          Optional[str] = None


def _parse_datetime(raw, name):
    if raw in (None, ''):
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        raise InvalidPayload(f'{name} must be an ISO date', {name: 'invalid date'})


def _parse_payment_method(raw) -> PaymentMethod:
    if raw in (None, ''):
        return PaymentMethod.CASH
    try:
        return PaymentMethod(str(raw).lower())
    except ValueError:
        allowed = ', '.join(m.value for m in PaymentMethod)
        raise InvalidPayload(f'payment_method must be one of: {allowed}',
                             {'payment_method': 'invalid'})


def parse_document_request(data: dict, kind, handled_by=None) -> DocumentRequest:
    """Build a DocumentRequest for `kind` from the request body."""
    paid = parse_decimal(data.get('paid_amount'), 'paid_amount', default=ZERO)
    if paid < 0:
        raise InvalidPayload('Invalid paid amount: Paid amount cannot be negative',
                             {'paid_amount': 'negative'})

    discount = data.get('discount') or {}
    if not isinstance(discount, dict):
        raise InvalidPayload('discount must be an object with percentage and amount',
                             {'discount': 'invalid'})
    pct = parse_decimal(discount.get('percentage'), 'discount.percentage', default=ZERO)
    amount = parse_decimal(discount.get('amount'), 'discount.amount', default=ZERO)
    if pct < 0 or pct > 100:
        raise InvalidPayload('discount.percentage must be between 0 and 100',
                             {'discount.percentage': 'out of range'})
    if amount < 0:
        raise InvalidPayload('discount.amount cannot be negative',
                             {'discount.amount': 'negative'})

    remarks = data.get('remarks') or ''
    if not isinstance(remarks, str):
        raise InvalidPayload('remarks must be text', {'remarks': 'invalid'})

    return DocumentRequest(
        party_id=data.get(kind.party_label) or data.get('party_id'),
        lines=data.get('products'),
        paid_amount=paid,
        payment_method=_parse_payment_method(data.get('payment_method')),
        discount_percentage=pct,
        discount_amount=amount if amount > 0 else None,
        remarks=remarks.strip(),
        document_date=_parse_datetime(
            data.get(kind.date_label) or data.get('document_date'), kind.date_label
        ),
        payment_date=_parse_datetime(data.get('payment_date'), 'payment_date'),
        handled_by=handled_by,
    )
