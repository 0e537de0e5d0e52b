"""
stockbook/inventory/stock.py
----------------------------
Stock adjuster: moves a product's on-hand quantity up (purchase) or
down (sale) and writes a StockMovement audit row.

The quantity is changed with a single UPDATE … SET qty = round(qty + :delta, 2)
rather than read-then-write, so concurrent recordings against the same
product can't overwrite each other. There is no floor at zero: selling
more than is on hand is allowed and leaves a negative quantity.
"""
import logging
from decimal import Decimal

from sqlalchemy import update, select, func

from stockbook import db
from stockbook.constants import Q
from stockbook.inventory.models import Product, StockMovement

logger = logging.getLogger(__name__)


class StockAdjustmentError(Exception):
    """The product row to adjust does not exist."""


def adjust_stock(product_id: str, delta: Decimal, reason: str, handled_by=None,
                 commit: bool = True) -> Decimal:
    """
    Apply `delta` to the product's opening_stock_qty.

    With commit=False the change and its movement row are left in the
    session so the caller can commit them together with its own writes.

    Returns the new quantity.
    """
    delta = Decimal(delta).quantize(Q)

    result = db.session.execute(
        update(Product)
        .where(Product.product_id == product_id)
        .values(opening_stock_qty=func.round(Product.opening_stock_qty + delta, 2))
        .execution_options(synchronize_session='fetch')
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise StockAdjustmentError(f"Product {product_id!r} not found for stock adjustment")

    new_qty = db.session.execute(
        select(Product.opening_stock_qty).where(Product.product_id == product_id)
    ).scalar_one()
    new_qty = Decimal(str(new_qty)).quantize(Q)

    db.session.add(StockMovement(
        product_id=product_id,
        old_qty=new_qty - delta,
        new_qty=new_qty,
        delta=delta,
        reason=reason,
        handled_by=handled_by,
    ))
    if commit:
        db.session.commit()
    logger.info(f"Stock {product_id}: {new_qty - delta} -> {new_qty} ({reason})")
    return new_qty
