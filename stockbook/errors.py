"""
stockbook/errors.py
-------------------
Error taxonomy for the API.

Every exception here carries the HTTP status it maps to; the handler
registered in create_app() turns it into the JSON error envelope.
"""


class StockbookError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500
    default_message = 'An unexpected error occurred'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors  = errors
        super().__init__(self.message)


# ── Request / reference errors (no side effects yet) ──────────────

class InvalidPayload(StockbookError):
    status_code = 400
    default_message = 'Invalid request payload'


class PartyNotFound(StockbookError):
    status_code = 404
    default_message = 'Party not found'


class InvalidLineItems(StockbookError):
    status_code = 400
    default_message = 'Invalid products: product_id and a positive quantity are required'


class ProductsUnavailable(StockbookError):
    status_code = 400
    default_message = 'Some products not found or out of stock'


class RecordNotFound(StockbookError):
    status_code = 404
    default_message = 'Record not found'


# ── Transient ─────────────────────────────────────────────────────

class ConcurrencyExhausted(StockbookError):
    """No free identifier could be claimed within the retry bound."""
    status_code = 503
    default_message = 'Could not allocate a document number, please retry'
    retry_after = 1


# ── Failures after the header was written ─────────────────────────

class RecordingRollback(StockbookError):
    """A step after the header write failed; written rows were compensated."""
    status_code = 500
    default_message = 'Recording failed and was rolled back'


class PartialWriteRollback(RecordingRollback):
    default_message = 'Failed to record line items'


class PaymentWriteRollback(RecordingRollback):
    default_message = 'Failed to record payment'


class LedgerUpdateRollback(RecordingRollback):
    default_message = 'Failed to update party ledger'


class CompensationIncomplete(StockbookError):
    """Compensation itself failed; the journal is left for `flask recover-recordings`."""
    status_code = 500
    default_message = 'Recording failed and rollback did not complete'
