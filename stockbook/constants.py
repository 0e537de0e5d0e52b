"""Enumerations shared across stockbook modules.

Stored in the database via ``db.Enum`` (by member name) and exposed
through the API by value.
"""
import enum
from decimal import Decimal


Q = Decimal('0.01')   # quantize target for money and quantities
MAX_AMOUNT = Decimal('1e10')   # exclusive bound of a Numeric(12, 2) column


class RecordStatus(enum.Enum):
    """Lifecycle of master records: parties, products, tax settings."""
    ACTIVE   = 'active'
    INACTIVE = 'inactive'
    DELETED  = 'deleted'


class DocumentStatus(enum.Enum):
    """Lifecycle of purchase/sale headers and their line items."""
    ACTIVE    = 'active'
    CANCELLED = 'cancelled'
    DELETED   = 'deleted'


class PaymentMethod(enum.Enum):
    CASH   = 'cash'
    CREDIT = 'credit'
    DEBIT  = 'debit'
    ONLINE = 'online'


class RecordingState(enum.Enum):
    """States of one recording attempt, in execution order."""
    PERSISTING_HEADER  = 'persisting_header'
    PERSISTING_ITEMS   = 'persisting_items'
    ADJUSTING_STOCK    = 'adjusting_stock'
    PERSISTING_PAYMENT = 'persisting_payment'
    UPDATING_LEDGER    = 'updating_ledger'
    ROLLING_BACK       = 'rolling_back'
    COMMITTED          = 'committed'
    FAILED             = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (RecordingState.COMMITTED, RecordingState.FAILED)
