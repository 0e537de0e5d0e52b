"""
stockbook/parties/ledger.py
---------------------------
Party ledger: running totals billed / paid / due per customer or supplier.

Every document adds its effect:

    total_amount += net_total
    total_paid   += paid_amount
    total_due    += net_total - paid_amount

The increments are issued as one UPDATE … SET col = round(col + :x, 2)
so two concurrent documents for the same party can't lose each other's
update. Nothing here reads historical documents; reversing a document's
effect is the caller's job (see revert_document).
"""
import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import update, func

from stockbook import db
from stockbook.constants import RecordStatus, Q

logger = logging.getLogger(__name__)


class LedgerNotUpdated(Exception):
    """The ledger UPDATE matched no row (party vanished or went inactive)."""


def _increment(party_model, party_id, billed: Decimal, paid: Decimal,
               only_active: bool, commit: bool) -> None:
    due = billed - paid
    conditions = [party_model.public_id_attr() == party_id]
    if only_active:
        conditions.append(party_model.status == RecordStatus.ACTIVE)

    stmt = (
        update(party_model)
        .where(*conditions)
        .values(
            total_amount=func.round(party_model.total_amount + billed, 2),
            total_paid=func.round(party_model.total_paid + paid, 2),
            total_due=func.round(party_model.total_due + due, 2),
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session='fetch')
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        raise LedgerNotUpdated(
            f"{party_model.__name__} {party_id!r}: ledger update modified {result.rowcount} rows"
        )
    if commit:
        db.session.commit()


def apply_document(party_model, party_id, net_total: Decimal, paid_amount: Decimal,
                   commit: bool = True) -> None:
    """Add one document's financial effect to the party's running totals."""
    net_total   = Decimal(net_total).quantize(Q)
    paid_amount = Decimal(paid_amount).quantize(Q)
    _increment(party_model, party_id, net_total, paid_amount, only_active=True, commit=commit)
    logger.info(f"Ledger {party_id}: +{net_total} billed, +{paid_amount} paid")


def revert_document(party_model, party_id, net_total: Decimal, paid_amount: Decimal,
                    commit: bool = True) -> None:
    """
    Undo apply_document() for the same figures.
    Applies even if the party has since been deactivated.
    """
    net_total   = Decimal(net_total).quantize(Q)
    paid_amount = Decimal(paid_amount).quantize(Q)
    _increment(party_model, party_id, -net_total, -paid_amount, only_active=False, commit=commit)
    logger.warning(f"Ledger {party_id}: reverted {net_total} billed, {paid_amount} paid")
