"""
stockbook/documents/recorder.py
-------------------------------
Records a purchase or a sale: header, line items, optional payment, plus
the stock and party-ledger effects that go with them.

One recorder serves both document kinds; the DocumentKind it is built
with decides the tables, the party, the numbering series and the stock
direction.

Flow
────
  validate party → validate lines → fetch products → price
  → journal opened
  → mint number + header        (PERSISTING_HEADER)
  → line items, one batch       (PERSISTING_ITEMS)
  → stock, per line             (ADJUSTING_STOCK, best-effort)
  → payment if paid > 0         (PERSISTING_PAYMENT)
  → party ledger                (UPDATING_LEDGER)
  → COMMITTED

Each step commits on its own. Every state is committed to the journal
before its step runs, and every stock/ledger change is committed in the
same transaction as the journal entry describing it. If a step after the
header fails, compensate_journal() deletes the rows written under the
document number and reverses the recorded effects; the same function is
used by `flask recover-recordings` for journals a crashed process left
behind.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Mapping, Optional

from sqlalchemy import delete, select, func
from sqlalchemy.exc import SQLAlchemyError

from stockbook import db
from stockbook.constants import MAX_AMOUNT, PaymentMethod, RecordStatus, RecordingState, Q
from stockbook.documents.kinds import KINDS
from stockbook.documents.models import RecordingJournal
from stockbook.errors import (
    ConcurrencyExhausted, CompensationIncomplete, InvalidLineItems, InvalidPayload,
    LedgerUpdateRollback, PartialWriteRollback, PartyNotFound,
    PaymentWriteRollback, ProductsUnavailable, RecordingRollback, StockbookError,
)
from stockbook.inventory.models import Product
from stockbook.inventory.stock import StockAdjustmentError, adjust_stock
from stockbook.inventory.tax import line_tax, resolve_tax
from stockbook.parties.ledger import LedgerNotUpdated, apply_document, revert_document

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


@dataclass
class PricedLine:
    product:        Product
    quantity:       Decimal
    unit_price:     Decimal
    tax_percentage: Decimal
    tax_amount:     Decimal
    line_total:     Decimal   # unit_price × quantity, before tax


@dataclass
class Totals:
    subtotal:            Decimal
    tax_total:           Decimal
    discount_percentage: Decimal
    discount_amount:     Decimal
    net_total:           Decimal
    paid:                Decimal
    outstanding:         Decimal


def _money(value) -> Decimal:
    return Decimal(value).quantize(Q, rounding=ROUND_HALF_UP)


# ── Validation helpers ────────────────────────────────────────────

def _parse_quantity(raw) -> Optional[Decimal]:
    """Positive quantity below MAX_AMOUNT with at most two decimals, or None."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        qty = Decimal(str(raw))
        if not qty.is_finite() or qty >= MAX_AMOUNT:
            return None
        qty = qty.quantize(Q, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return qty if qty > 0 else None


def validate_lines(lines) -> List[tuple]:
    """
    Check the requested lines and return [(product_id, quantity), ...].

    Raises InvalidLineItems on an empty list, an entry without a product
    reference, a non-positive quantity, or the same product twice.
    """
    if not isinstance(lines, list) or not lines:
        raise InvalidLineItems('Invalid products: at least one product is required')

    parsed, problems, seen = [], {}, set()
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            problems[str(index)] = 'must be an object with product_id and quantity'
            continue
        product_id = line.get('product_id')
        if not isinstance(product_id, str) or not product_id.strip():
            problems[str(index)] = 'product_id is required'
            continue
        product_id = product_id.strip()
        qty = _parse_quantity(line.get('quantity'))
        if qty is None:
            problems[str(index)] = 'quantity must be a positive number'
            continue
        if product_id in seen:
            problems[str(index)] = f'{product_id} is listed more than once'
            continue
        seen.add(product_id)
        parsed.append((product_id, qty))

    if problems:
        raise InvalidLineItems(errors=problems)
    return parsed


# ── Recorder ──────────────────────────────────────────────────────

class DocumentRecorder:
    """
    Usage:
        recorder = DocumentRecorder(SALE, ReferenceData.load())
        sale = recorder.record('CLI0001', [{'product_id': 'PRO0001', 'quantity': 10}],
                               paid_amount=Decimal('400'))
    """

    def __init__(self, kind, reference):
        self.kind      = kind
        self.reference = reference

    # public ---------------------------------------------------------

    def record(self, party_id, lines, paid_amount=ZERO, discount: Mapping = None,
               metadata: Mapping = None):
        """
        Record one document and return its persisted header.

        discount: {'percentage': Decimal, 'amount': Decimal or None}
        metadata: remarks, document_date, payment_method, payment_date, handled_by
        """
        kind      = self.kind
        discount  = discount or {}
        metadata  = metadata or {}
        handled_by = metadata.get('handled_by')

        party = kind.party_model.find_active(party_id) if party_id else None
        if party is None:
            raise PartyNotFound(f'{kind.party_model.__name__} not found')

        requested = validate_lines(lines)
        products  = self._fetch_products([pid for pid, _ in requested])
        priced    = self.price_lines(requested, products)
        totals    = self.compute_totals(priced, paid_amount, discount)

        journal = RecordingJournal(kind=kind.name, party_id=party.public_id,
                                   state=RecordingState.PERSISTING_HEADER,
                                   effects=[], warnings=[])
        db.session.add(journal)
        db.session.commit()

        header = self._persist_header(journal, party.public_id, totals, metadata)
        number = header.document_number

        try:
            self._persist_items(journal, number, priced)
            self._adjust_stock(journal, number, priced, handled_by)
            if totals.paid > 0:
                self._persist_payment(journal, number, party.public_id, totals.paid, metadata)
            self._update_ledger(journal, number, party.public_id, totals)
        except StockbookError:
            raise
        except Exception as exc:
            db.session.rollback()
            self._roll_back(journal, RecordingRollback, exc)

        logger.info(
            f"{kind.label} {number} recorded for {party.public_id}: "
            f"net {totals.net_total}, paid {totals.paid}, {len(priced)} line(s)"
        )
        return header

    def record_request(self, request):
        """record() for a parsed DocumentRequest."""
        return self.record(
            request.party_id,
            request.lines,
            paid_amount=request.paid_amount,
            discount={
                'percentage': request.discount_percentage,
                'amount':     request.discount_amount,
            },
            metadata={
                'remarks':        request.remarks,
                'document_date':  request.document_date,
                'payment_method': request.payment_method,
                'payment_date':   request.payment_date,
                'handled_by':     request.handled_by,
            },
        )

    # pricing --------------------------------------------------------

    def _fetch_products(self, product_ids) -> dict:
        rows = Product.query.filter(
            Product.product_id.in_(product_ids),
            Product.status == RecordStatus.ACTIVE,
            Product.availability.is_(True),
        ).all()
        if len(rows) != len(product_ids):
            found = {p.product_id for p in rows}
            missing = [pid for pid in product_ids if pid not in found]
            raise ProductsUnavailable(errors={'product_ids': missing})
        return {p.product_id: p for p in rows}

    def price_lines(self, requested, products) -> List[PricedLine]:
        tax_settings = self.reference.tax_settings(p.tax for p in products.values())
        priced = []
        for product_id, qty in requested:
            product = products[product_id]
            unit_price = _money(str(getattr(product, self.kind.price_field) or 0))
            rate = resolve_tax(product, tax_settings, unit_price)
            priced.append(PricedLine(
                product=product,
                quantity=qty,
                unit_price=unit_price,
                tax_percentage=rate.percentage,
                tax_amount=line_tax(unit_price, qty, rate.percentage),
                line_total=_money(unit_price * qty),
            ))
        return priced

    @staticmethod
    def compute_totals(priced, paid_amount, discount) -> Totals:
        subtotal  = sum((line.line_total for line in priced), ZERO)
        tax_total = sum((line.tax_amount for line in priced), ZERO)

        pct    = Decimal(discount.get('percentage') or 0)
        amount = discount.get('amount')
        if amount:
            discount_amount = _money(amount)
        else:
            discount_amount = _money(subtotal * pct / Decimal('100'))

        net_total = _money(subtotal + tax_total - discount_amount)
        paid      = _money(paid_amount or 0)
        if max(subtotal + tax_total, discount_amount, paid) >= MAX_AMOUNT:
            raise InvalidPayload('Document total is too large', {'net_total': 'out of range'})
        return Totals(
            subtotal=_money(subtotal),
            tax_total=_money(tax_total),
            discount_percentage=_money(pct),
            discount_amount=discount_amount,
            net_total=net_total,
            paid=paid,
            outstanding=net_total - paid,
        )

    # steps ----------------------------------------------------------

    def _persist_header(self, journal, party_id, totals: Totals, metadata):
        kind = self.kind

        def persist(number):
            header = kind.header_model(
                document_number=number,
                party_id=party_id,
                document_date=metadata.get('document_date') or datetime.utcnow(),
                subtotal=totals.subtotal,
                tax_total=totals.tax_total,
                discount_percentage=totals.discount_percentage,
                discount_amount=totals.discount_amount,
                net_total=totals.net_total,
                paid=totals.paid,
                outstanding=totals.outstanding,
                remarks=metadata.get('remarks') or None,
                handled_by=metadata.get('handled_by'),
            )
            db.session.add(header)
            # the journal learns the number in the same commit as the header
            journal.document_number = number
            journal.state = RecordingState.PERSISTING_ITEMS
            db.session.commit()
            return header

        try:
            return self.reference.claim(kind.series, persist)
        except (ConcurrencyExhausted, SQLAlchemyError) as exc:
            db.session.rollback()
            _close_journal(journal, RecordingState.FAILED, f'header not written: {exc}')
            raise

    def _persist_items(self, journal, number, priced):
        kind = self.kind
        try:
            db.session.add_all([
                kind.item_model(
                    document_number=number,
                    product_id=line.product.product_id,
                    quantity=line.quantity,
                    unit=line.product.unit,
                    hsn_sac_code=line.product.hsn_sac_code,
                    price_type=kind.price_type,
                    price=line.product.price_snapshot(),
                    unit_price=line.unit_price,
                    tax_percentage=line.tax_percentage,
                    tax_amount=line.tax_amount,
                    line_total=line.line_total,
                )
                for line in priced
            ])
            db.session.commit()
            written = self._count_items(number)
        except SQLAlchemyError as exc:
            db.session.rollback()
            self._roll_back(journal, PartialWriteRollback, exc)

        if written != len(priced):
            self._roll_back(
                journal, PartialWriteRollback,
                f'{written} of {len(priced)} line items written',
            )

    def _count_items(self, number) -> int:
        model = self.kind.item_model
        return db.session.scalar(
            select(func.count()).select_from(model).where(model.document_number == number)
        )

    def _adjust_stock(self, journal, number, priced, handled_by):
        _set_state(journal, RecordingState.ADJUSTING_STOCK)
        reason = f'{self.kind.name} {number}'
        for line in priced:
            product_id = line.product.product_id
            delta = self.kind.stock_sign * line.quantity
            try:
                adjust_stock(product_id, delta, reason, handled_by=handled_by, commit=False)
                journal.effects = list(journal.effects) + [
                    {'type': 'stock', 'product_id': product_id, 'delta': str(delta)}
                ]
                db.session.commit()
            except (StockAdjustmentError, SQLAlchemyError) as exc:
                db.session.rollback()
                # the document stands; the adjustment is left for manual correction
                logger.error(f"{self.kind.label} {number}: stock adjustment for "
                             f"{product_id} by {delta} failed: {exc}")
                journal.warnings = list(journal.warnings) + [
                    f'stock not adjusted for {product_id} ({delta}): {exc}'
                ]
                db.session.commit()

    def _persist_payment(self, journal, number, party_id, paid, metadata):
        _set_state(journal, RecordingState.PERSISTING_PAYMENT)
        try:
            db.session.add(self.kind.payment_model(
                document_number=number,
                party_id=party_id,
                payment_method=metadata.get('payment_method') or PaymentMethod.CASH,
                payment_amount=paid,
                payment_date=metadata.get('payment_date') or datetime.utcnow(),
                handled_by=metadata.get('handled_by'),
            ))
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            self._roll_back(journal, PaymentWriteRollback, exc)

    def _update_ledger(self, journal, number, party_id, totals: Totals):
        _set_state(journal, RecordingState.UPDATING_LEDGER)
        try:
            apply_document(self.kind.party_model, party_id, totals.net_total, totals.paid,
                           commit=False)
            journal.effects = list(journal.effects) + [{
                'type':      'ledger',
                'party_id':  party_id,
                'net_total': str(totals.net_total),
                'paid':      str(totals.paid),
            }]
            # ledger change and COMMITTED land together
            journal.state = RecordingState.COMMITTED
            db.session.commit()
        except (LedgerNotUpdated, SQLAlchemyError) as exc:
            db.session.rollback()
            self._roll_back(journal, LedgerUpdateRollback, exc)

    def _roll_back(self, journal, error_cls, cause):
        reason = f'{error_cls.__name__}: {cause}'
        logger.warning(f"{self.kind.label} {journal.document_number}: rolling back ({reason})")
        compensate_journal(journal, reason)
        if isinstance(cause, BaseException):
            raise error_cls() from cause
        raise error_cls()


# ── Journal handling ──────────────────────────────────────────────

def _set_state(journal, state):
    journal.state = state
    db.session.commit()


def _close_journal(journal, state, reason):
    journal.state = state
    journal.failure_reason = reason
    db.session.commit()


def compensate_journal(journal, reason: str) -> None:
    """
    Undo everything a journal says was written.

    Deletes payment, items and header under the journal's document number,
    then reverses its stock and ledger effects newest first. All of it is
    committed in one transaction together with the FAILED state. If that
    transaction fails, the journal stays in ROLLING_BACK and
    CompensationIncomplete is raised; running this again is safe.
    """
    kind = KINDS[journal.kind]
    number = journal.document_number

    journal.state = RecordingState.ROLLING_BACK
    journal.failure_reason = journal.failure_reason or reason
    db.session.commit()

    try:
        if number:
            db.session.execute(
                delete(kind.payment_model).where(kind.payment_model.document_number == number)
            )
            db.session.execute(
                delete(kind.item_model).where(kind.item_model.document_number == number)
            )
            db.session.execute(
                delete(kind.header_model).where(kind.header_model.document_number == number)
            )

        for effect in reversed(journal.effects or []):
            if effect['type'] == 'stock':
                adjust_stock(effect['product_id'], -Decimal(effect['delta']),
                             f'rollback {kind.name} {number}', commit=False)
            elif effect['type'] == 'ledger':
                revert_document(kind.party_model, effect['party_id'],
                                Decimal(effect['net_total']), Decimal(effect['paid']),
                                commit=False)

        journal.state = RecordingState.FAILED
        db.session.commit()
    except (SQLAlchemyError, StockAdjustmentError, LedgerNotUpdated) as exc:
        db.session.rollback()
        logger.error(f"Journal #{journal.id} ({kind.name} {number}): "
                     f"compensation did not complete: {exc}")
        raise CompensationIncomplete(
            f'Rollback of {kind.name} {number} did not complete; '
            f'journal #{journal.id} left for recovery'
        ) from exc

    logger.warning(f"Journal #{journal.id}: {kind.name} {number} compensated ({reason})")


def stale_journals(older_than_minutes: int):
    """Journals stuck in a non-terminal state for longer than the given age."""
    cutoff = datetime.utcnow() - timedelta(minutes=older_than_minutes)
    return RecordingJournal.query.filter(
        RecordingJournal.state.notin_([RecordingState.COMMITTED, RecordingState.FAILED]),
        RecordingJournal.updated_at < cutoff,
    ).order_by(RecordingJournal.id).all()


def recover_stale_journals(older_than_minutes: int) -> dict:
    """
    Compensate every stale journal. Returns {'recovered': [...], 'failed': [...]}
    with journal ids.
    """
    outcome = {'recovered': [], 'failed': []}
    for journal in stale_journals(older_than_minutes):
        reason = f'interrupted in state {journal.state.value}'
        try:
            compensate_journal(journal, reason)
        except CompensationIncomplete:
            outcome['failed'].append(journal.id)
        else:
            outcome['recovered'].append(journal.id)
    return outcome
