"""
stockbook/documents/kinds.py
----------------------------
The two document kinds the recorder knows about.

A purchase and a sale are recorded by exactly the same steps; they differ in
which tables they write, which party they reference, which numbering series
they draw from, and which way stock moves.
"""
from dataclasses import dataclass

from stockbook.documents.models import (
    Purchase, PurchaseItem, PurchasePayment,
    Sale, SaleItem, SalePayment,
)
from stockbook.parties.models import Customer, Supplier


@dataclass(frozen=True)
class DocumentKind:
    name:          str     # 'purchase' / 'sale'
    series:        str     # numbering series in SERIES_PREFIXES
    header_model:  type
    item_model:    type
    payment_model: type
    party_model:   type
    stock_sign:    int     # +1 stock in, −1 stock out
    # Product price column a line is billed at. Purchases are priced at the
    # retail sales price too, not purchasesale_price; existing ledgers depend on it.
    price_field:   str = 'retailsales_price'
    price_type:    str = 'retail'

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @property
    def party_label(self) -> str:
        return self.header_model.party_label

    @property
    def number_label(self) -> str:
        return self.header_model.number_label

    @property
    def date_label(self) -> str:
        return self.header_model.date_label


PURCHASE = DocumentKind(
    name='purchase',
    series='purchases',
    header_model=Purchase,
    item_model=PurchaseItem,
    payment_model=PurchasePayment,
    party_model=Supplier,
    stock_sign=+1,
)

SALE = DocumentKind(
    name='sale',
    series='sales',
    header_model=Sale,
    item_model=SaleItem,
    payment_model=SalePayment,
    party_model=Customer,
    stock_sign=-1,
)

KINDS = {kind.name: kind for kind in (PURCHASE, SALE)}
