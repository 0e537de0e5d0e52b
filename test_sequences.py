"""
test_sequences.py — Tests for sequential id generation (INV0001, BNO0002 …).
Run: pytest test_sequences.py -v
"""
import pytest
from sqlalchemy.exc import IntegrityError

from stockbook import create_app, db
from stockbook.constants import RecordingState
from stockbook.documents.models import RecordingJournal, Sale
from stockbook.errors import ConcurrencyExhausted
from stockbook.inventory.models import Product
from stockbook.parties.models import Customer
from stockbook.reference import ReferenceData
from stockbook.sequences import SequenceAllocator, claim, next_id


# ── Fixtures ──────────────────────────────────────────────────────

@pytest.fixture(scope='function')
def client():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def make_customer(customer_id, name='Walk-in'):
    c = Customer(customer_id=customer_id, customer_name=name)
    db.session.add(c)
    db.session.commit()
    return c


def insert_customer(name='New Customer'):
    """persist() callback for claim(): inserts a customer under the given id."""
    def persist(number):
        c = Customer(customer_id=number, customer_name=name)
        db.session.add(c)
        db.session.commit()
        return c
    return persist


# ── 1. next_id ────────────────────────────────────────────────────

def test_next_id_seeds_series():
    assert next_id('INV') == 'INV0001'


def test_next_id_increments():
    assert next_id('BNO', 'BNO0009') == 'BNO0010'
    assert next_id('PRO', 'PRO0041') == 'PRO0042'


def test_next_id_grows_past_width():
    assert next_id('BNO', 'BNO9999') == 'BNO10000'
    assert next_id('BNO', 'BNO10000') == 'BNO10001'


def test_next_id_rejects_other_series():
    with pytest.raises(ValueError):
        next_id('INV', 'BNO0001')


# ── 2. Scanning for the last issued id ────────────────────────────

def test_last_issued_none_for_empty_series(client):
    with client.application.app_context():
        assert SequenceAllocator('customers', 'CLI').last_issued() is None


def test_last_issued_prefers_longer_numbers(client):
    with client.application.app_context():
        make_customer('CLI9999')
        make_customer('CLI10000')
        make_customer('CLI0005')
        assert SequenceAllocator('customers', 'CLI').last_issued() == 'CLI10000'


def test_last_issued_ignores_longer_prefix(client):
    with client.application.app_context():
        make_customer('CLI0002')
        make_customer('CLIX0009')
        assert SequenceAllocator('customers', 'CLI').last_issued() == 'CLI0002'


def test_unknown_series_rejected(client):
    with client.application.app_context():
        with pytest.raises(ValueError):
            SequenceAllocator('invoices', 'INV')


# ── 3. Allocation ─────────────────────────────────────────────────

def test_allocate_skips_taken_numbers(client, monkeypatch):
    """A stale scan (someone inserted after it) is corrected by the pre-check."""
    with client.application.app_context():
        for n in ('CLI0001', 'CLI0002', 'CLI0003'):
            make_customer(n)
        allocator = SequenceAllocator('customers', 'CLI')
        monkeypatch.setattr(allocator, 'last_issued', lambda: 'CLI0001')
        assert allocator.allocate() == 'CLI0004'


def test_allocate_resumes_after_collided_number(client):
    with client.application.app_context():
        allocator = SequenceAllocator('customers', 'CLI')
        assert allocator.allocate(after='CLI0007') == 'CLI0008'


def test_allocate_is_bounded(client, monkeypatch):
    with client.application.app_context():
        for n in ('CLI0001', 'CLI0002', 'CLI0003'):
            make_customer(n)
        allocator = SequenceAllocator('customers', 'CLI', max_attempts=2)
        monkeypatch.setattr(allocator, 'last_issued', lambda: None)
        with pytest.raises(ConcurrencyExhausted):
            allocator.allocate()


# ── 4. claim(): the unique index decides ──────────────────────────

def test_claim_retries_after_losing_insert_race(client, monkeypatch):
    """
    The pre-check says CLI0001 is free (a competitor hasn't committed yet),
    the insert then hits the unique index; claim moves on to CLI0002.
    """
    with client.application.app_context():
        make_customer('CLI0001', name='Competitor')
        allocator = SequenceAllocator('customers', 'CLI')
        monkeypatch.setattr(allocator, 'last_issued', lambda: None)

        real_is_taken = allocator.is_taken
        calls = []

        def blind_first_check(candidate):
            calls.append(candidate)
            return False if len(calls) == 1 else real_is_taken(candidate)

        monkeypatch.setattr(allocator, 'is_taken', blind_first_check)

        customer = claim(allocator, insert_customer('Winner'))
        assert customer.customer_id == 'CLI0002'
        assert Customer.query.count() == 2


def test_claim_reraises_unrelated_integrity_errors(client):
    with client.application.app_context():
        db.session.add(Product(product_id='PRO0001', product_name='Pen', product_code='P-1'))
        db.session.commit()

        def persist(number):
            db.session.add(Product(product_id=number, product_name='Pen copy', product_code='P-1'))
            db.session.commit()

        with pytest.raises(IntegrityError):
            claim(SequenceAllocator('products', 'PRO'), persist)


def test_claim_gives_up_after_max_attempts(client, monkeypatch):
    with client.application.app_context():
        make_customer('CLI0001')
        allocator = SequenceAllocator('customers', 'CLI', max_attempts=3)
        # every allocation lands on the same taken number
        monkeypatch.setattr(allocator, 'allocate', lambda after=None: 'CLI0001')

        with pytest.raises(ConcurrencyExhausted):
            claim(allocator, insert_customer())
        assert Customer.query.count() == 1


def test_reference_data_claim_uses_configured_prefix(client):
    with client.application.app_context():
        reference = ReferenceData({'customers': 'CUS'}, max_attempts=5)
        assert reference.claim('customers', insert_customer()).customer_id == 'CUS0001'
        assert reference.claim('customers', insert_customer()).customer_id == 'CUS0002'


def test_reference_data_unknown_series():
    with pytest.raises(ValueError):
        ReferenceData({'sales': 'BNO'}).prefix_for('purchases')


# ── 5. Exhaustion over HTTP ───────────────────────────────────────

def test_exhaustion_returns_retryable_503(client, monkeypatch):
    with client.application.app_context():
        make_customer('CLI0001')
        db.session.add(Product(product_id='PRO0001', product_name='Pen',
                               retailsales_price=10, opening_stock_qty=5))
        db.session.commit()

    def exhausted(self, after=None):
        raise ConcurrencyExhausted('No free sales number after 5 attempts')

    monkeypatch.setattr(SequenceAllocator, 'allocate', exhausted)
    resp = client.post('/api/sales', json={
        'customer_id': 'CLI0001',
        'products': [{'product_id': 'PRO0001', 'quantity': 1}],
    })
    assert resp.status_code == 503
    assert resp.headers['Retry-After'] == '1'
    assert resp.get_json()['success'] is False

    with client.application.app_context():
        assert Sale.query.count() == 0
        journal = RecordingJournal.query.one()
        assert journal.state == RecordingState.FAILED
        assert journal.document_number is None


def test_show_sequences_command(client):
    with client.application.app_context():
        make_customer('CLI0007')

    result = client.application.test_cli_runner().invoke(args=['show-sequences'])
    assert result.exit_code == 0
    assert 'CLI0007' in result.output
    assert 'CLI0008' in result.output
    assert 'INV0001' in result.output
