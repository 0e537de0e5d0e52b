"""
stockbook/inventory/routes.py
-----------------------------
Product master data, stock movement history and tax settings.
"""
import logging

from flask import request
from sqlalchemy import or_

from stockbook import db
from stockbook.constants import RecordStatus
from stockbook.errors import InvalidPayload, RecordNotFound
from stockbook.inventory import inventory
from stockbook.inventory.models import Product, StockMovement, TaxSetting
from stockbook.inventory.validators import (
    parse_product_payload, validate_product_payload, validate_tax_payload,
)
from stockbook.reference import ReferenceData
from stockbook.utils.responses import acting_user, get_json_body, json_response, page_args

logger = logging.getLogger(__name__)


def _get_product_or_404(product_id):
    product = Product.query.filter_by(product_id=product_id).first()
    if product is None:
        raise RecordNotFound(f'Product {product_id} not found')
    return product


# ── Products ──────────────────────────────────────────────────────

@inventory.route('/products', methods=['POST'])
def create_product():
    """Create a product; its id comes from the products series."""
    data = get_json_body()
    errors = validate_product_payload(data)
    if errors:
        raise InvalidPayload('Invalid product data', errors)
    values = parse_product_payload(data)
    handled_by = acting_user()

    def persist(number):
        product = Product(product_id=number, handled_by=handled_by, **values)
        db.session.add(product)
        if product.opening_stock_qty > 0:
            db.session.add(StockMovement(
                product=product,
                old_qty=0,
                new_qty=product.opening_stock_qty,
                delta=product.opening_stock_qty,
                reason='Opening stock',
                handled_by=handled_by,
            ))
        db.session.commit()
        return product

    product = ReferenceData.load().claim('products', persist)
    logger.info(f"Product {product.product_id} created: {product.product_name!r}")
    return json_response(201, product.to_dict(), 'Product created successfully')


@inventory.route('/products', methods=['GET'])
def list_products():
    """List active products. Optional: ?q=<name/id/code>&available=1&low_stock=1"""
    page, limit = page_args()
    query = Product.query.filter(Product.status == RecordStatus.ACTIVE)

    q = request.args.get('q', '').strip()
    if q:
        query = query.filter(or_(
            Product.product_name.ilike(f'%{q}%'),
            Product.product_id.ilike(f'%{q}%'),
            Product.product_code.ilike(f'%{q}%'),
        ))
    if request.args.get('available') in ('1', 'true'):
        query = query.filter(Product.availability.is_(True))
    if request.args.get('low_stock') in ('1', 'true'):
        query = query.filter(Product.opening_stock_qty <= Product.min_stock_qty)

    total = query.count()
    rows = query.order_by(Product.product_name.asc()).offset((page - 1) * limit).limit(limit).all()
    return json_response(200, {
        'items': [p.to_dict() for p in rows],
        'page':  page,
        'limit': limit,
        'total': total,
    })


@inventory.route('/products/<product_id>', methods=['GET'])
def get_product(product_id):
    return json_response(200, _get_product_or_404(product_id).to_dict())


@inventory.route('/products/<product_id>/movements', methods=['GET'])
def product_movements(product_id):
    """Stock movement history for one product, newest first."""
    product = _get_product_or_404(product_id)
    page, limit = page_args()
    movements = (
        product.movements
        .order_by(StockMovement.timestamp.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return json_response(200, {
        'product_id': product.product_id,
        'current_qty': product.opening_stock_qty,
        'items': [m.to_dict() for m in movements],
    })


# ── Tax settings ──────────────────────────────────────────────────

@inventory.route('/tax-settings', methods=['POST'])
def create_tax_setting():
    data = get_json_body()
    errors = validate_tax_payload(data)
    if errors:
        raise InvalidPayload('Invalid tax setting', errors)
    setting = TaxSetting(
        tax_id=data['tax_id'],
        name=(data.get('name') or '').strip() or None,
        tax=data['tax'],
    )
    db.session.add(setting)
    db.session.commit()
    logger.info(f"Tax setting {setting.tax_id} created: {setting.tax!r}")
    return json_response(201, setting.to_dict(), 'Tax setting created successfully')


@inventory.route('/tax-settings', methods=['GET'])
def list_tax_settings():
    rows = TaxSetting.query.order_by(TaxSetting.tax_id.asc()).all()
    return json_response(200, [row.to_dict() for row in rows])
