from datetime import datetime
from decimal import Decimal

from stockbook import db
from stockbook.constants import RecordStatus


class TaxSetting(db.Model):
    """
    A named tax configuration referenced by products.

    `tax` holds either a single rate object   {"gst": 18, ...}
    or an array of rate variants               [{"gst": 18, ...}, {...}]
    Only the first/only entry's `gst` value is used for pricing.
    """
    __tablename__ = 'tax_settings'

    id         = db.Column(db.Integer, primary_key=True)
    tax_id     = db.Column(db.Integer, unique=True, nullable=False, index=True)
    name       = db.Column(db.String(100), nullable=True)
    tax        = db.Column(db.JSON, nullable=False)
    status     = db.Column(db.Enum(RecordStatus), nullable=False,
                           default=RecordStatus.ACTIVE, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                           onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            'tax_id': self.tax_id,
            'name':   self.name,
            'tax':    self.tax,
            'status': self.status.value,
        }

    def __repr__(self):
        return f"<TaxSetting {self.tax_id} {self.tax!r}>"


class Product(db.Model):
    """Represents a product in the store inventory."""
    __tablename__ = 'products'

    id                 = db.Column(db.Integer, primary_key=True)
    product_id         = db.Column(db.String(20), unique=True, nullable=False, index=True)
    product_name       = db.Column(db.String(200), nullable=False, index=True)
    product_code       = db.Column(db.String(100), unique=True, nullable=True)
    unit               = db.Column(db.String(20), nullable=True)
    hsn_sac_code       = db.Column(db.String(20), nullable=True)
    tax                = db.Column(db.Integer, nullable=True)   # TaxSetting.tax_id
    # ── Price list (snapshotted onto every line item) ─────────────
    mrp                = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    retailsales_price  = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    purchasesale_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    wholesale_price    = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    # Current on-hand quantity despite the name (kept for API compatibility)
    opening_stock_qty  = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    min_stock_qty      = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    availability       = db.Column(db.Boolean, nullable=False, default=True, index=True)
    status             = db.Column(db.Enum(RecordStatus), nullable=False,
                                   default=RecordStatus.ACTIVE, index=True)
    handled_by         = db.Column(db.String(40), nullable=True)
    created_at         = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at         = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow   # auto-updated by SQLAlchemy on every UPDATE
    )

    # ── Computed helpers ──────────────────────────────────────────
    @property
    def is_low_stock(self) -> bool:
        return Decimal(str(self.opening_stock_qty)) <= Decimal(str(self.min_stock_qty))

    @property
    def is_sellable(self) -> bool:
        return self.availability and self.status == RecordStatus.ACTIVE

    def price_snapshot(self) -> dict:
        """Prices as they stand right now, for storing on a line item."""
        return {
            'retail':       str(self.retailsales_price or 0),
            'wholesale':    str(self.wholesale_price or 0),
            'purchasesale': str(self.purchasesale_price or 0),
            'mrp':          str(self.mrp or 0),
        }

    def to_dict(self) -> dict:
        return {
            'product_id':         self.product_id,
            'product_name':       self.product_name,
            'product_code':       self.product_code,
            'unit':               self.unit,
            'hsn_sac_code':       self.hsn_sac_code,
            'tax':                self.tax,
            'mrp':                self.mrp,
            'retailsales_price':  self.retailsales_price,
            'purchasesale_price': self.purchasesale_price,
            'wholesale_price':    self.wholesale_price,
            'opening_stock_qty':  self.opening_stock_qty,
            'min_stock_qty':      self.min_stock_qty,
            'is_low_stock':       self.is_low_stock,
            'availability':       self.availability,
            'status':             self.status.value,
        }

    def __repr__(self):
        return f"<Product {self.product_id!r} {self.product_name!r}>"


class StockMovement(db.Model):
    """
    Audit trail for stock changes.
    Tracks old vs new quantity, the signed delta, who changed it, and why.
    """
    __tablename__ = 'stock_movements'

    id          = db.Column(db.Integer, primary_key=True)
    product_id  = db.Column(db.String(20), db.ForeignKey('products.product_id'),
                            nullable=False, index=True)
    old_qty     = db.Column(db.Numeric(12, 2), nullable=False)
    new_qty     = db.Column(db.Numeric(12, 2), nullable=False)
    delta       = db.Column(db.Numeric(12, 2), nullable=False)
    reason      = db.Column(db.String(255), nullable=False)
    handled_by  = db.Column(db.String(40), nullable=True)
    timestamp   = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    # ── Relationships ─────────────────────────────────────────────
    product = db.relationship('Product', backref=db.backref('movements', lazy='dynamic'))

    def to_dict(self) -> dict:
        return {
            'product_id': self.product_id,
            'old_qty':    self.old_qty,
            'new_qty':    self.new_qty,
            'delta':      self.delta,
            'reason':     self.reason,
            'handled_by': self.handled_by,
            'timestamp':  self.timestamp.isoformat(),
        }

    def __repr__(self):
        return f"<Movement {self.product_id}: {self.old_qty}->{self.new_qty} ({self.reason})>"
