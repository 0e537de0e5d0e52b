"""
test_dashboard.py — Tests for the read-only dashboard figures.
Run: pytest test_dashboard.py -v
"""
from datetime import datetime
from decimal import Decimal

import pytest

from stockbook import create_app, db
from stockbook.inventory.models import Product, TaxSetting
from stockbook.parties.models import Customer, Supplier


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        db.session.add_all([
            Customer(customer_id='CLI0001', customer_name='Asha Stores'),
            Supplier(supplier_id='SUP0001', business_name='Metro Wholesale'),
            TaxSetting(tax_id=1, name='GST 18%', tax={'gst': 18}),
            Product(product_id='PRO0001', product_name='Notebook A5', unit='pcs', tax=1,
                    retailsales_price=Decimal('50.00'), opening_stock_qty=Decimal('100'),
                    min_stock_qty=Decimal('10')),
        ])
        db.session.commit()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def post_sale(client, quantity=10, paid=400, **extra):
    body = {
        'customer_id': 'CLI0001',
        'products': [{'product_id': 'PRO0001', 'quantity': quantity}],
        'paid_amount': paid,
    }
    body.update(extra)
    resp = client.post('/api/sales', json=body)
    assert resp.status_code == 201
    return resp


def post_purchase(client, quantity=5):
    resp = client.post('/api/purchases', json={
        'supplier_id': 'SUP0001',
        'products': [{'product_id': 'PRO0001', 'quantity': quantity}],
    })
    assert resp.status_code == 201
    return resp


# ── 1. Summary ────────────────────────────────────────────────────

def test_empty_summary(client):
    resp = client.get('/api/dashboard')
    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert Decimal(data['total_sales']) == Decimal('0')
    assert data['sales_count'] == 0
    assert Decimal(data['receivable']) == Decimal('0')
    assert data['product_count'] == 1
    assert data['low_stock_count'] == 0


def test_summary_after_sale_and_purchase(client):
    post_sale(client)        # 590 net, 400 paid
    post_purchase(client)    # 5 × 50 + 18% = 295, unpaid

    data = client.get('/api/dashboard').get_json()['data']
    assert Decimal(data['total_sales']) == Decimal('590')
    assert data['sales_count'] == 1
    assert Decimal(data['today_sales']) == Decimal('590')
    assert data['today_sales_count'] == 1
    assert Decimal(data['total_purchases']) == Decimal('295')
    assert Decimal(data['today_purchases']) == Decimal('295')
    assert Decimal(data['receivable']) == Decimal('190')
    assert Decimal(data['payable']) == Decimal('295')


def test_summary_counts_low_stock(client):
    post_sale(client, quantity=95)
    data = client.get('/api/dashboard').get_json()['data']
    assert data['low_stock_count'] == 1


def test_older_sales_are_not_today(client):
    post_sale(client, bill_date='2026-01-05')
    data = client.get('/api/dashboard').get_json()['data']
    assert data['sales_count'] == 1
    if datetime.utcnow().date().isoformat() != '2026-01-05':
        assert data['today_sales_count'] == 0


# ── 2. Daily sales/purchase series ────────────────────────────────

def test_sales_purchase_defaults_to_last_week(client):
    post_sale(client)
    post_purchase(client)

    days = client.get('/api/dashboard/sales-purchase').get_json()['data']
    assert len(days) == 7
    assert days[-1]['date'] == datetime.utcnow().date().isoformat()
    assert Decimal(days[-1]['sales']) == Decimal('590')
    assert Decimal(days[-1]['purchases']) == Decimal('295')
    assert all(Decimal(d['sales']) == Decimal('0') for d in days[:-1])


def test_sales_purchase_custom_range(client):
    post_sale(client, bill_date='2026-01-05')
    post_sale(client, quantity=2, paid=0, bill_date='2026-01-05T18:30:00')

    resp = client.get('/api/dashboard/sales-purchase?from=2026-01-01&to=2026-01-10')
    days = resp.get_json()['data']
    assert [d['date'] for d in days][:2] == ['2026-01-01', '2026-01-02']
    assert len(days) == 10
    by_date = {d['date']: Decimal(d['sales']) for d in days}
    # 590 + (2 × 50 + 18%)
    assert by_date['2026-01-05'] == Decimal('708')
    assert by_date['2026-01-06'] == Decimal('0')


@pytest.mark.parametrize('query', [
    'from=2026-02-10&to=2026-02-01',
    'from=yesterday',
    'from=2024-01-01&to=2026-01-01',
])
def test_sales_purchase_rejects_bad_range(client, query):
    resp = client.get(f'/api/dashboard/sales-purchase?{query}')
    assert resp.status_code == 400
    assert resp.get_json()['success'] is False


# ── 3. Recent activity ────────────────────────────────────────────

def test_recent_sales_newest_first(client):
    post_sale(client)
    post_sale(client, quantity=1, paid=0)

    data = client.get('/api/dashboard/recent-sales').get_json()['data']
    assert [s['bill_number'] for s in data] == ['BNO0002', 'BNO0001']
    assert data[0]['party_name'] == 'Asha Stores'

    data = client.get('/api/dashboard/recent-sales?limit=1').get_json()['data']
    assert [s['bill_number'] for s in data] == ['BNO0002']
    assert client.get('/api/dashboard/recent-sales?limit=few').status_code == 400


def test_recent_stock_movements(client):
    post_sale(client)
    post_purchase(client)

    data = client.get('/api/dashboard/stock-movements').get_json()['data']
    assert [Decimal(m['delta']) for m in data] == [Decimal('5'), Decimal('-10')]
    assert data[0]['product_name'] == 'Notebook A5'
    assert data[0]['reason'] == 'purchase INV0001'
