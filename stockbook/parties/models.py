"""
stockbook/parties/models.py
---------------------------
Counterparties: customers (sales) and suppliers (purchases).

Both carry the running ledger aggregates maintained by
stockbook.parties.ledger. Aggregates are only ever incremented,
never recomputed from documents.
"""
from datetime import datetime

from stockbook import db
from stockbook.constants import RecordStatus


class PartyMixin:
    """Columns shared by Customer and Supplier."""
    # name of the public id column, e.g. 'customer_id'
    public_id_column = None

    id             = db.Column(db.Integer, primary_key=True)
    mobile_number  = db.Column(db.String(15), nullable=True)
    gst_number     = db.Column(db.String(20), nullable=True)
    address        = db.Column(db.Text, nullable=True)
    notes          = db.Column(db.Text, nullable=True)
    total_amount   = db.Column(db.Numeric(12, 2), nullable=False, default=0)   # lifetime billed
    total_paid     = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_due      = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status         = db.Column(db.Enum(RecordStatus), nullable=False,
                               default=RecordStatus.ACTIVE, index=True)
    handled_by     = db.Column(db.String(40), nullable=True)
    created_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at     = db.Column(db.DateTime, nullable=False, default=datetime.utcnow,
                               onupdate=datetime.utcnow)

    @classmethod
    def public_id_attr(cls):
        return getattr(cls, cls.public_id_column)

    @classmethod
    def find_active(cls, public_id):
        """Return the active party with this public id, or None."""
        return cls.query.filter(
            cls.public_id_attr() == public_id,
            cls.status == RecordStatus.ACTIVE,
        ).first()

    @property
    def public_id(self):
        return getattr(self, self.public_id_column)

    def ledger_dict(self) -> dict:
        return {
            'total_amount': self.total_amount,
            'total_paid':   self.total_paid,
            'total_due':    self.total_due,
        }


class Customer(PartyMixin, db.Model):
    """A buyer in sales. customer_type: 0 → B2C, 1 → B2B."""
    __tablename__ = 'customers'
    public_id_column = 'customer_id'

    customer_id   = db.Column(db.String(20), unique=True, nullable=False, index=True)
    customer_name = db.Column(db.String(200), nullable=False, index=True)
    customer_type = db.Column(db.Integer, nullable=False, default=0)
    business_name = db.Column(db.String(200), nullable=True)

    @property
    def display_name(self):
        return self.business_name or self.customer_name

    def to_dict(self) -> dict:
        return {
            'customer_id':   self.customer_id,
            'customer_name': self.customer_name,
            'customer_type': self.customer_type,
            'business_name': self.business_name,
            'mobile_number': self.mobile_number,
            'gst_number':    self.gst_number,
            'address':       self.address,
            'notes':         self.notes,
            'status':        self.status.value,
            **self.ledger_dict(),
            'created_at':    self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Customer {self.customer_id!r} {self.customer_name!r}>"


class Supplier(PartyMixin, db.Model):
    """Vendor / supplier master record."""
    __tablename__ = 'suppliers'
    public_id_column = 'supplier_id'

    supplier_id    = db.Column(db.String(20), unique=True, nullable=False, index=True)
    business_name  = db.Column(db.String(200), nullable=False, index=True)
    contact_person = db.Column(db.String(200), nullable=True)

    @property
    def display_name(self):
        return self.business_name

    def to_dict(self) -> dict:
        return {
            'supplier_id':    self.supplier_id,
            'business_name':  self.business_name,
            'contact_person': self.contact_person,
            'mobile_number':  self.mobile_number,
            'gst_number':     self.gst_number,
            'address':        self.address,
            'notes':          self.notes,
            'status':         self.status.value,
            **self.ledger_dict(),
            'created_at':     self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Supplier {self.supplier_id!r} {self.business_name!r}>"
