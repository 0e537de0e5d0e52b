"""
stockbook/documents/models.py
-----------------------------
Commercial documents and the recording journal.

Tables:
  purchases, purchase_items, purchase_payments
  sales,     sale_items,     sale_payments
  recording_journal

Purchase and Sale share their columns through mixins; they differ in the
party they reference and in the field names the API exposes for them
(invoice_number/supplier_id vs bill_number/customer_id).
"""
from datetime import datetime
from decimal import Decimal

from stockbook import db
from stockbook.constants import DocumentStatus, PaymentMethod, RecordingState


def _iso(value):
    return value.isoformat() if value else None


# ── Shared columns ────────────────────────────────────────────────

class DocumentHeaderMixin:
    # API field names, overridden per document type
    number_label = 'document_number'
    party_label  = 'party_id'
    date_label   = 'document_date'

    id                  = db.Column(db.Integer, primary_key=True)
    document_number     = db.Column(db.String(20), unique=True, nullable=False, index=True)
    document_date       = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    subtotal            = db.Column(db.Numeric(12, 2), nullable=False)   # Σ line totals, excl. tax
    tax_total           = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_amount     = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    net_total           = db.Column(db.Numeric(12, 2), nullable=False)   # subtotal + tax − discount
    paid                = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    outstanding         = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    remarks             = db.Column(db.Text, nullable=True)
    status              = db.Column(db.Enum(DocumentStatus), nullable=False,
                                    default=DocumentStatus.ACTIVE, index=True)
    handled_by          = db.Column(db.String(40), nullable=True)
    created_at          = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at          = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                                    onupdate=datetime.utcnow)

    @property
    def payment_status(self) -> str:
        return 'paid' if Decimal(str(self.outstanding)) <= 0 else 'unpaid'

    def to_dict(self) -> dict:
        return {
            self.number_label: self.document_number,
            self.party_label:  self.party_id,
            self.date_label:   _iso(self.document_date),
            'subtotal':        self.subtotal,
            'tax_total':       self.tax_total,
            'discount': {
                'percentage': self.discount_percentage,
                'amount':     self.discount_amount,
            },
            'net_total':       self.net_total,
            'paid':            self.paid,
            'outstanding':     self.outstanding,
            'payment_status':  self.payment_status,
            'remarks':         self.remarks,
            'status':          self.status.value,
            'handled_by':      self.handled_by,
            'created_at':      _iso(self.created_at),
        }


class LineItemMixin:
    number_label = 'document_number'

    id             = db.Column(db.Integer, primary_key=True)
    quantity       = db.Column(db.Numeric(12, 2), nullable=False)
    unit           = db.Column(db.String(20), nullable=True)
    hsn_sac_code   = db.Column(db.String(20), nullable=True)
    price_type     = db.Column(db.String(20), nullable=False, default='retail')
    # Price list at the moment of the transaction; never updated afterwards
    price          = db.Column(db.JSON, nullable=False)
    unit_price     = db.Column(db.Numeric(12, 2), nullable=False)
    tax_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_amount     = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    line_total     = db.Column(db.Numeric(12, 2), nullable=False)   # unit_price × quantity
    status         = db.Column(db.Enum(DocumentStatus), nullable=False, default=DocumentStatus.ACTIVE)
    created_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            self.number_label: self.document_number,
            'product_id':      self.product_id,
            'product_name':    self.product.product_name if self.product else None,
            'quantity':        self.quantity,
            'unit':            self.unit,
            'hsn_sac_code':    self.hsn_sac_code,
            'price_type':      self.price_type,
            'price':           self.price,
            'unit_price':      self.unit_price,
            'tax': {
                'percentage': self.tax_percentage,
                'amount':     self.tax_amount,
            },
            'total':           self.line_total,
        }


class PaymentMixin:
    number_label = 'document_number'
    party_label  = 'party_id'

    id             = db.Column(db.Integer, primary_key=True)
    payment_method = db.Column(db.Enum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    payment_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_date   = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    handled_by     = db.Column(db.String(40), nullable=True)
    created_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            self.number_label: self.document_number,
            self.party_label:  self.party_id,
            'payment_method':  self.payment_method.value,
            'payment_amount':  self.payment_amount,
            'payment_date':    _iso(self.payment_date),
        }


# ── Purchases ─────────────────────────────────────────────────────

class Purchase(DocumentHeaderMixin, db.Model):
    """Goods bought from a supplier (stock in)."""
    __tablename__ = 'purchases'
    number_label = 'invoice_number'
    party_label  = 'supplier_id'
    date_label   = 'invoice_date'

    party_id = db.Column(db.String(20), db.ForeignKey('suppliers.supplier_id'),
                         nullable=False, index=True)

    party    = db.relationship('Supplier', lazy='select')
    items    = db.relationship('PurchaseItem', backref='purchase', lazy='select',
                               order_by='PurchaseItem.id')
    payments = db.relationship('PurchasePayment', lazy='select')

    def __repr__(self):
        return f"<Purchase {self.document_number!r} ₹{self.net_total}>"


class PurchaseItem(LineItemMixin, db.Model):
    __tablename__ = 'purchase_items'
    number_label = 'invoice_number'

    document_number = db.Column(db.String(20), db.ForeignKey('purchases.document_number'),
                                nullable=False, index=True)
    product_id      = db.Column(db.String(20), db.ForeignKey('products.product_id'), nullable=False)

    product = db.relationship('Product', lazy='select')

    __table_args__ = (
        db.UniqueConstraint('document_number', 'product_id', name='uq_purchase_item_product'),
        db.CheckConstraint('quantity > 0', name='check_purchase_item_qty_positive'),
    )

    def __repr__(self):
        return f"<PurchaseItem {self.document_number} {self.product_id} qty={self.quantity}>"


class PurchasePayment(PaymentMixin, db.Model):
    __tablename__ = 'purchase_payments'
    number_label = 'invoice_number'
    party_label  = 'supplier_id'

    # one inline payment per purchase
    document_number = db.Column(db.String(20), db.ForeignKey('purchases.document_number'),
                                unique=True, nullable=False)
    party_id        = db.Column(db.String(20), db.ForeignKey('suppliers.supplier_id'), nullable=False)


# ── Sales ─────────────────────────────────────────────────────────

class Sale(DocumentHeaderMixin, db.Model):
    """Goods sold to a customer (stock out)."""
    __tablename__ = 'sales'
    number_label = 'bill_number'
    party_label  = 'customer_id'
    date_label   = 'bill_date'

    party_id = db.Column(db.String(20), db.ForeignKey('customers.customer_id'),
                         nullable=False, index=True)

    party    = db.relationship('Customer', lazy='select')
    items    = db.relationship('SaleItem', backref='sale', lazy='select',
                               order_by='SaleItem.id')
    payments = db.relationship('SalePayment', lazy='select')

    def __repr__(self):
        return f"<Sale {self.document_number!r} ₹{self.net_total}>"


class SaleItem(LineItemMixin, db.Model):
    __tablename__ = 'sale_items'
    number_label = 'bill_number'

    document_number = db.Column(db.String(20), db.ForeignKey('sales.document_number'),
                                nullable=False, index=True)
    product_id      = db.Column(db.String(20), db.ForeignKey('products.product_id'), nullable=False)

    product = db.relationship('Product', lazy='select')

    __table_args__ = (
        db.UniqueConstraint('document_number', 'product_id', name='uq_sale_item_product'),
        db.CheckConstraint('quantity > 0', name='check_sale_item_qty_positive'),
    )

    def __repr__(self):
        return f"<SaleItem {self.document_number} {self.product_id} qty={self.quantity}>"


class SalePayment(PaymentMixin, db.Model):
    __tablename__ = 'sale_payments'
    number_label = 'bill_number'
    party_label  = 'customer_id'

    document_number = db.Column(db.String(20), db.ForeignKey('sales.document_number'),
                                unique=True, nullable=False)
    party_id        = db.Column(db.String(20), db.ForeignKey('customers.customer_id'), nullable=False)


# ── Recording journal ─────────────────────────────────────────────

class RecordingJournal(db.Model):
    """
    Persisted intent log for one recording attempt.

    The state is committed *before* the step it names runs, and every stock or
    ledger change is appended to `effects` right after it commits. A journal
    found in a non-terminal state therefore says exactly what must be undone:
    the rows under document_number, plus each listed effect, in reverse.

    effects entries:
        {"type": "stock",  "product_id": "PRO0001", "delta": "-10.00"}
        {"type": "ledger", "party_id": "CLI0001", "net_total": "590.00", "paid": "400.00"}
    """
    __tablename__ = 'recording_journal'

    id              = db.Column(db.Integer, primary_key=True)
    kind            = db.Column(db.String(20), nullable=False)        # 'purchase' / 'sale'
    document_number = db.Column(db.String(20), nullable=True, index=True)
    party_id        = db.Column(db.String(20), nullable=False)
    state           = db.Column(db.Enum(RecordingState), nullable=False,
                                default=RecordingState.PERSISTING_HEADER, index=True)
    effects         = db.Column(db.JSON, nullable=False, default=list)
    warnings        = db.Column(db.JSON, nullable=False, default=list)
    failure_reason  = db.Column(db.Text, nullable=True)
    created_at      = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at      = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                                onupdate=datetime.utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            'id':              self.id,
            'kind':            self.kind,
            'document_number': self.document_number,
            'party_id':        self.party_id,
            'state':           self.state.value,
            'effects':         self.effects,
            'warnings':        self.warnings,
            'failure_reason':  self.failure_reason,
            'updated_at':      _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Journal #{self.id} {self.kind} {self.document_number} {self.state.value}>"
