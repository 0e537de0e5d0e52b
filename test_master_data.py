"""
test_master_data.py — Tests for customers, suppliers, products, tax settings and prefixes.
Run: pytest test_master_data.py -v
"""
from decimal import Decimal

import pytest

from stockbook import create_app, db
from stockbook.inventory.models import Product, StockMovement
from stockbook.parties.models import Customer
from stockbook.settings.models import PrefixSetting


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def create_product(client, **overrides):
    body = {
        'product_name': 'Sunflower Oil 1L',
        'unit': 'ltr',
        'retailsales_price': '185.00',
        'purchasesale_price': '160.00',
        'opening_stock_qty': 60,
    }
    body.update(overrides)
    return client.post('/api/products', json=body, headers={'X-User-Id': 'USR0001'})


# ── 1. Customers ──────────────────────────────────────────────────

def test_create_customer_mints_ids(client):
    resp = client.post('/api/customers', json={'customer_name': 'Asha', 'mobile_number': '9876543210'})
    assert resp.status_code == 201
    data = resp.get_json()['data']
    assert data['customer_id'] == 'CLI0001'
    assert data['status'] == 'active'
    assert Decimal(data['total_due']) == Decimal('0')

    resp = client.post('/api/customers', json={'customer_name': 'Ravi'})
    assert resp.get_json()['data']['customer_id'] == 'CLI0002'


def test_create_customer_ignores_ledger_fields(client):
    resp = client.post('/api/customers', json={'customer_name': 'Asha', 'total_amount': 999})
    assert Decimal(resp.get_json()['data']['total_amount']) == Decimal('0')


@pytest.mark.parametrize('body', [
    {},
    {'customer_name': '   '},
    {'customer_name': 'Asha', 'customer_type': 3},
    {'customer_name': 'Asha', 'mobile_number': 'call me'},
    {'customer_name': 'x' * 201},
])
def test_create_customer_validation(client, body):
    resp = client.post('/api/customers', json=body)
    assert resp.status_code == 400
    assert resp.get_json()['success'] is False
    with client.application.app_context():
        assert Customer.query.count() == 0


def test_get_and_list_customers(client):
    client.post('/api/customers', json={'customer_name': 'Asha Traders'})
    client.post('/api/customers', json={'customer_name': 'Ravi Kumar'})

    resp = client.get('/api/customers/CLI0002')
    assert resp.status_code == 200
    assert resp.get_json()['data']['customer_name'] == 'Ravi Kumar'

    data = client.get('/api/customers?q=asha').get_json()['data']
    assert [c['customer_id'] for c in data['items']] == ['CLI0001']
    assert client.get('/api/customers/CLI0404').status_code == 404


# ── 2. Suppliers ──────────────────────────────────────────────────

def test_create_and_get_supplier(client):
    resp = client.post('/api/suppliers', json={
        'business_name': 'Metro Wholesale',
        'contact_person': 'R. Iyer',
        'gst_number': '27AAPFU0939F1ZV',
    })
    assert resp.status_code == 201
    assert resp.get_json()['data']['supplier_id'] == 'SUP0001'

    data = client.get('/api/suppliers/SUP0001').get_json()['data']
    assert data['contact_person'] == 'R. Iyer'
    assert client.get('/api/suppliers').get_json()['data']['total'] == 1


def test_supplier_requires_business_name(client):
    assert client.post('/api/suppliers', json={'contact_person': 'R. Iyer'}).status_code == 400


# ── 3. Products ───────────────────────────────────────────────────

def test_create_product_records_opening_stock(client):
    resp = create_product(client)
    assert resp.status_code == 201
    data = resp.get_json()['data']
    assert data['product_id'] == 'PRO0001'
    assert Decimal(data['opening_stock_qty']) == Decimal('60')
    assert data['availability'] is True

    with client.application.app_context():
        mv = StockMovement.query.one()
        assert mv.product_id == 'PRO0001'
        assert mv.delta == Decimal('60')
        assert mv.reason == 'Opening stock'
        assert mv.handled_by == 'USR0001'
        assert Product.query.one().handled_by == 'USR0001'


def test_product_movements_endpoint(client):
    create_product(client)
    resp = client.get('/api/products/PRO0001/movements')
    assert resp.status_code == 200
    data = resp.get_json()['data']
    assert Decimal(data['current_qty']) == Decimal('60')
    assert len(data['items']) == 1
    assert client.get('/api/products/PRO0404/movements').status_code == 404


@pytest.mark.parametrize('overrides, field', [
    ({'product_name': ''}, 'product_name'),
    ({'retailsales_price': None}, 'retailsales_price'),
    ({'retailsales_price': 'abc'}, 'retailsales_price'),
    ({'mrp': -1}, 'mrp'),
    ({'mrp': '1e12'}, 'mrp'),
    ({'opening_stock_qty': 10000000000}, 'opening_stock_qty'),
    ({'opening_stock_qty': -5}, 'opening_stock_qty'),
    ({'tax': 'GST18'}, 'tax'),
    ({'availability': 'yes'}, 'availability'),
])
def test_create_product_validation(client, overrides, field):
    resp = create_product(client, **overrides)
    assert resp.status_code == 400
    assert field in resp.get_json()['errors']


def test_duplicate_product_code_is_422(client):
    assert create_product(client, product_code='SKU-1').status_code == 201
    resp = create_product(client, product_code='SKU-1')
    assert resp.status_code == 422
    with client.application.app_context():
        assert Product.query.count() == 1


def test_list_products_filters(client):
    create_product(client)
    create_product(client, product_name='Milk 500ml', opening_stock_qty=2, min_stock_qty=5)
    create_product(client, product_name='Paneer 200g', availability=False)

    data = client.get('/api/products').get_json()['data']
    assert data['total'] == 3
    data = client.get('/api/products?available=1').get_json()['data']
    assert data['total'] == 2
    data = client.get('/api/products?low_stock=1').get_json()['data']
    assert [p['product_name'] for p in data['items']] == ['Milk 500ml']
    data = client.get('/api/products?q=oil').get_json()['data']
    assert [p['product_id'] for p in data['items']] == ['PRO0001']


def test_bad_paging_args(client):
    assert client.get('/api/products?page=two').status_code == 400


# ── 4. Tax settings ───────────────────────────────────────────────

def test_create_and_list_tax_settings(client):
    resp = client.post('/api/tax-settings', json={'tax_id': 1, 'name': 'GST 18%', 'tax': {'gst': 18}})
    assert resp.status_code == 201
    resp = client.post('/api/tax-settings', json={'tax_id': 2, 'tax': [{'gst': 12}, {'gst': 5}]})
    assert resp.status_code == 201

    data = client.get('/api/tax-settings').get_json()['data']
    assert [t['tax_id'] for t in data] == [1, 2]
    assert data[1]['tax'] == [{'gst': 12}, {'gst': 5}]


@pytest.mark.parametrize('body', [
    {'tax': {'gst': 18}},
    {'tax_id': 0, 'tax': {'gst': 18}},
    {'tax_id': 1, 'tax': 18},
    {'tax_id': 1, 'tax': []},
    {'tax_id': 1, 'tax': {'gst': 'eighteen'}},
    {'tax_id': 1, 'tax': {'gst': 180}},
])
def test_tax_setting_validation(client, body):
    assert client.post('/api/tax-settings', json=body).status_code == 400


def test_duplicate_tax_id_is_422(client):
    client.post('/api/tax-settings', json={'tax_id': 1, 'tax': {'gst': 18}})
    assert client.post('/api/tax-settings', json={'tax_id': 1, 'tax': {'gst': 5}}).status_code == 422


# ── 5. Numbering prefixes ─────────────────────────────────────────

def test_default_prefixes(client):
    data = client.get('/api/settings/prefixes').get_json()['data']
    assert data == {
        'purchases': 'INV',
        'sales':     'BNO',
        'products':  'PRO',
        'customers': 'CLI',
        'suppliers': 'SUP',
    }


def test_update_prefix_starts_new_series(client):
    client.post('/api/customers', json={'customer_name': 'Asha'})

    resp = client.put('/api/settings/prefixes', json={'customers': 'CUST'},
                      headers={'X-User-Id': 'USR0001'})
    assert resp.status_code == 200
    assert resp.get_json()['data']['customers'] == 'CUST'

    resp = client.post('/api/customers', json={'customer_name': 'Ravi'})
    assert resp.get_json()['data']['customer_id'] == 'CUST0001'
    with client.application.app_context():
        assert PrefixSetting.query.one().handled_by == 'USR0001'


def test_swap_prefixes_in_one_update(client):
    client.put('/api/settings/prefixes', json={'sales': 'SAL'})

    resp = client.put('/api/settings/prefixes', json={'purchases': 'SAL', 'sales': 'INV'})
    assert resp.status_code == 200
    data = client.get('/api/settings/prefixes').get_json()['data']
    assert (data['purchases'], data['sales']) == ('SAL', 'INV')

    resp = client.put('/api/settings/prefixes', json={'purchases': 'INV', 'sales': 'SAL'})
    assert resp.status_code == 200
    with client.application.app_context():
        rows = {row.series: row.prefix for row in PrefixSetting.query.all()}
        assert rows == {'purchases': 'INV', 'sales': 'SAL'}


@pytest.mark.parametrize('body', [
    {'sales': 'bn'},
    {'sales': 'BN0'},
    {'sales': 'BILLS'},
    {'sales': 'INV'},
    {'invoices': 'INV'},
])
def test_prefix_validation(client, body):
    resp = client.put('/api/settings/prefixes', json=body)
    assert resp.status_code == 400
    with client.application.app_context():
        assert PrefixSetting.query.count() == 0


# ── 6. Health and error envelope ──────────────────────────────────

def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['data'] == {'status': 'ok'}


def test_unknown_route_uses_envelope(client):
    resp = client.get('/api/nope')
    assert resp.status_code == 404
    assert resp.get_json()['success'] is False


def test_method_not_allowed_uses_envelope(client):
    resp = client.delete('/api/sales')
    assert resp.status_code == 405
    assert resp.get_json()['success'] is False
