"""
stockbook/sequences.py
----------------------
Human-readable sequential identifiers: INV0001, BNO0002, PRO0003 …

Format:  <PREFIX><NUMBER zero-padded to 4>
Example: BNO0001, BNO0002, … BNO9999, BNO10000

Algorithm
─────────
1. Scan the series' table for the highest identifier carrying the prefix
   (longest first, then highest, so BNO10000 beats BNO9999).
   No identifier yet → seed with <PREFIX>0000.

2. Increment the numeric suffix, and pre-check the candidate against the
   table; if taken, increment again. Bounded by max_attempts.

3. The caller inserts the row. The unique index on the identifier column is
   the real guard: two writers can pass step 2 with the same candidate.
   claim() treats an IntegrityError on insert as "someone else got it",
   rolls back, and allocates again starting after the collided number.

Both loops are bounded; running out raises ConcurrencyExhausted, which the
API surfaces as a retryable 503. Numbers are unique but not gap-free.
"""
import logging
import re
import time

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from stockbook import db
from stockbook.errors import ConcurrencyExhausted

logger = logging.getLogger(__name__)

PREFIX_PATTERN = re.compile(r'^[A-Z]{3,4}$')
SCAN_BATCH = 50


def series_columns() -> dict:
    """Identifier column for every numbered series."""
    from stockbook.documents.models import Purchase, Sale
    from stockbook.inventory.models import Product
    from stockbook.parties.models import Customer, Supplier
    return {
        'purchases': Purchase.document_number,
        'sales':     Sale.document_number,
        'products':  Product.product_id,
        'customers': Customer.customer_id,
        'suppliers': Supplier.supplier_id,
    }


def _suffix(identifier: str, prefix: str) -> int:
    digits = identifier[len(prefix):]
    return int(digits) if digits.isdigit() else 0


def next_id(prefix: str, last_issued: str = None, width: int = 4) -> str:
    """
    Return the identifier following `last_issued` in the `prefix` series.

    >>> next_id('INV', None)
    'INV0001'
    >>> next_id('BNO', 'BNO9999')
    'BNO10000'
    """
    if last_issued is None:
        last_issued = f"{prefix}{0:0{width}d}"
    if not last_issued.startswith(prefix):
        raise ValueError(f"{last_issued!r} is not in the {prefix!r} series")
    return f"{prefix}{_suffix(last_issued, prefix) + 1:0{width}d}"


class SequenceAllocator:
    """Finds the next free identifier for one series."""

    def __init__(self, series: str, prefix: str, max_attempts: int = 25, width: int = 4):
        columns = series_columns()
        if series not in columns:
            raise ValueError(f"Unknown series {series!r}")
        self.series       = series
        self.prefix       = prefix
        self.max_attempts = max_attempts
        self.width        = width
        self.column       = columns[series]
        self._pattern     = re.compile(rf'^{re.escape(prefix)}\d+$')

    def last_issued(self):
        """Highest identifier in this series, or None if there is none yet."""
        col = self.column
        stmt = (
            select(col)
            .where(col.like(f'{self.prefix}%'))
            .order_by(func.length(col).desc(), col.desc())
        )
        offset = 0
        while True:
            batch = db.session.execute(stmt.limit(SCAN_BATCH).offset(offset)).scalars().all()
            for value in batch:
                # a longer prefix sharing our letters (INV vs INVC) also matches LIKE
                if self._pattern.match(value):
                    return value
            if len(batch) < SCAN_BATCH:
                return None
            offset += SCAN_BATCH

    def is_taken(self, candidate: str) -> bool:
        col = self.column
        return db.session.execute(
            select(col).where(col == candidate).limit(1)
        ).first() is not None

    def allocate(self, after: str = None) -> str:
        """
        Return an identifier not present in the table right now.

        `after` is a number known to be taken (a lost insert race); allocation
        resumes past it even if our scan can't see the competing row yet.
        """
        last = self.last_issued()
        if after is not None and (last is None or _suffix(after, self.prefix) > _suffix(last, self.prefix)):
            last = after

        candidate = next_id(self.prefix, last, self.width)
        for _ in range(self.max_attempts):
            if not self.is_taken(candidate):
                return candidate
            logger.info(f"{self.series}: {candidate} already taken, trying next")
            candidate = next_id(self.prefix, candidate, self.width)

        raise ConcurrencyExhausted(
            f"No free {self.series} number after {self.max_attempts} attempts"
        )


def claim(allocator: SequenceAllocator, persist, backoff: float = 0.0):
    """
    Allocate a number and hand it to `persist(number)`, which must add and
    commit the row carrying it. Retries on a unique violation of that number.

    Returns whatever persist returns.
    """
    after = None
    for attempt in range(1, allocator.max_attempts + 1):
        number = allocator.allocate(after=after)
        try:
            return persist(number)
        except IntegrityError:
            db.session.rollback()
            if not allocator.is_taken(number):
                # violated some other constraint; not ours to retry
                raise
            logger.warning(
                f"{allocator.series}: lost race for {number} "
                f"(attempt {attempt}/{allocator.max_attempts})"
            )
            after = number
            if backoff:
                time.sleep(backoff * attempt)

    raise ConcurrencyExhausted(
        f"Could not claim a {allocator.series} number after {allocator.max_attempts} attempts"
    )
