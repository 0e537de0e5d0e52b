"""
stockbook/dashboard/routes.py
-----------------------------
Summary figures built from the document, product and movement tables.

    GET /api/dashboard                    totals for today and overall
    GET /api/dashboard/sales-purchase     daily sale/purchase totals (?from=&to=)
    GET /api/dashboard/recent-sales       latest sales (?limit=)
    GET /api/dashboard/stock-movements    latest stock movements (?limit=)
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

from flask import current_app, request
from sqlalchemy import func

from stockbook import db
from stockbook.constants import DocumentStatus, RecordStatus
from stockbook.dashboard import dashboard
from stockbook.documents.models import Purchase, Sale
from stockbook.errors import InvalidPayload
from stockbook.inventory.models import Product, StockMovement
from stockbook.parties.models import Customer, Supplier
from stockbook.utils.responses import json_response

ZERO = Decimal('0')


# ── Helpers ───────────────────────────────────────────────────────

def _date_param(name, default):
    raw = request.args.get(name)
    if not raw:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidPayload(f'{name} must be an ISO date (YYYY-MM-DD)', {name: 'invalid date'})


def _limit_param(default):
    try:
        limit = int(request.args.get('limit', default))
    except ValueError:
        raise InvalidPayload('limit must be a whole number')
    return min(max(limit, 1), current_app.config['MAX_PAGE_SIZE'])


def _totals(model, on_day=None):
    """(sum of net_total, count) over active documents, optionally for one day."""
    query = db.session.query(func.sum(model.net_total), func.count(model.id))\
        .filter(model.status == DocumentStatus.ACTIVE)
    if on_day is not None:
        query = query.filter(func.date(model.document_date) == on_day)
    total, count = query.one()
    return total or ZERO, count or 0


def _daily(model, start, end):
    rows = db.session.query(func.date(model.document_date), func.sum(model.net_total))\
        .filter(
            model.status == DocumentStatus.ACTIVE,
            func.date(model.document_date) >= start,
            func.date(model.document_date) <= end,
        )\
        .group_by(func.date(model.document_date)).all()
    # SQLite hands back 'YYYY-MM-DD' strings, PostgreSQL date objects
    return {str(day): total or ZERO for day, total in rows}


# ── Routes ────────────────────────────────────────────────────────

@dashboard.route('/dashboard', methods=['GET'])
def summary():
    today = datetime.utcnow().date()
    sales_total, sales_count = _totals(Sale)
    today_sales, today_sales_count = _totals(Sale, today)
    purchases_total, purchases_count = _totals(Purchase)
    today_purchases, today_purchases_count = _totals(Purchase, today)

    active_products = Product.query.filter(Product.status == RecordStatus.ACTIVE)
    receivable = db.session.query(func.sum(Customer.total_due))\
        .filter(Customer.status == RecordStatus.ACTIVE).scalar()
    payable = db.session.query(func.sum(Supplier.total_due))\
        .filter(Supplier.status == RecordStatus.ACTIVE).scalar()

    return json_response(200, {
        'total_sales':             sales_total,
        'sales_count':             sales_count,
        'today_sales':             today_sales,
        'today_sales_count':       today_sales_count,
        'total_purchases':         purchases_total,
        'purchases_count':         purchases_count,
        'today_purchases':         today_purchases,
        'today_purchases_count':   today_purchases_count,
        'product_count':           active_products.count(),
        'low_stock_count':         active_products.filter(
            Product.opening_stock_qty <= Product.min_stock_qty).count(),
        'receivable':              receivable or ZERO,
        'payable':                 payable or ZERO,
    }, 'Dashboard data retrieved successfully')


@dashboard.route('/dashboard/sales-purchase', methods=['GET'])
def sales_purchase():
    """One entry per day in the range, default the last 7 days."""
    today = datetime.utcnow().date()
    end   = _date_param('to', today)
    start = _date_param('from', end - timedelta(days=6))
    if start > end:
        raise InvalidPayload('from must not be after to', {'from': 'after to'})
    if (end - start).days >= 366:
        raise InvalidPayload('Date range cannot exceed one year', {'from': 'range too long'})

    sales     = _daily(Sale, start, end)
    purchases = _daily(Purchase, start, end)
    days = []
    day = start
    while day <= end:
        key = day.isoformat()
        days.append({
            'date':      key,
            'sales':     sales.get(key, ZERO),
            'purchases': purchases.get(key, ZERO),
        })
        day += timedelta(days=1)
    return json_response(200, days, 'Sales and purchase data retrieved successfully')


@dashboard.route('/dashboard/recent-sales', methods=['GET'])
def recent_sales():
    rows = Sale.query.filter(Sale.status == DocumentStatus.ACTIVE)\
        .order_by(Sale.document_date.desc(), Sale.id.desc())\
        .limit(_limit_param(10)).all()
    data = []
    for sale in rows:
        item = sale.to_dict()
        item['party_name'] = sale.party.display_name if sale.party else None
        data.append(item)
    return json_response(200, data, 'Recent sales invoices retrieved successfully')


@dashboard.route('/dashboard/stock-movements', methods=['GET'])
def stock_movements():
    rows = StockMovement.query\
        .order_by(StockMovement.timestamp.desc(), StockMovement.id.desc())\
        .limit(_limit_param(20)).all()
    data = []
    for movement in rows:
        item = movement.to_dict()
        item['product_name'] = movement.product.product_name if movement.product else None
        data.append(item)
    return json_response(200, data, 'Stock movements retrieved successfully')
