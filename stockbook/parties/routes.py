"""
stockbook/parties/routes.py
---------------------------
Customer and supplier master data.

Ids (CLI0001, SUP0001 …) are minted by the sequence allocator. Ledger
totals start at zero and only change through recorded documents.
"""
import logging

from flask import request
from sqlalchemy import or_

from stockbook import db
from stockbook.constants import RecordStatus
from stockbook.errors import InvalidPayload, RecordNotFound
from stockbook.parties import parties
from stockbook.parties.models import Customer, Supplier
from stockbook.reference import ReferenceData
from stockbook.utils.responses import acting_user, get_json_body, json_response, page_args

logger = logging.getLogger(__name__)


def _text(data, field, required=False, max_len=200):
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise InvalidPayload(f'{field} is required', {field: 'required'})
        return None
    if not isinstance(value, str):
        raise InvalidPayload(f'{field} must be text', {field: 'invalid'})
    value = value.strip()
    if len(value) > max_len:
        raise InvalidPayload(f'{field} must be {max_len} characters or fewer', {field: 'too long'})
    return value


def _contact_fields(data) -> dict:
    mobile = _text(data, 'mobile_number', max_len=15)
    if mobile and not mobile.lstrip('+').isdigit():
        raise InvalidPayload('mobile_number must contain digits only', {'mobile_number': 'invalid'})
    return {
        'mobile_number': mobile,
        'gst_number':    _text(data, 'gst_number', max_len=20),
        'address':       _text(data, 'address', max_len=500),
        'notes':         _text(data, 'notes', max_len=500),
    }


def _create(model, series, fields):
    handled_by = acting_user()

    def persist(number):
        party = model(**{model.public_id_column: number}, handled_by=handled_by, **fields)
        db.session.add(party)
        db.session.commit()
        return party

    party = ReferenceData.load().claim(series, persist)
    logger.info(f"{model.__name__} {party.public_id} created by {handled_by or 'unknown'}")
    return json_response(201, party.to_dict(), f'{model.__name__} created successfully')


def _list(model, name_columns):
    page, limit = page_args()
    query = model.query.filter(model.status == RecordStatus.ACTIVE)
    q = request.args.get('q', '').strip()
    if q:
        query = query.filter(or_(
            model.mobile_number.ilike(f'%{q}%'),
            model.public_id_attr().ilike(f'%{q}%'),
            *[col.ilike(f'%{q}%') for col in name_columns],
        ))
    total = query.count()
    rows = query.order_by(model.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return json_response(200, {
        'items': [row.to_dict() for row in rows],
        'page':  page,
        'limit': limit,
        'total': total,
    })


def _get(model, public_id):
    party = model.query.filter(model.public_id_attr() == public_id).first()
    if party is None:
        raise RecordNotFound(f'{model.__name__} {public_id} not found')
    return json_response(200, party.to_dict())


# ── Customers ─────────────────────────────────────────────────────

@parties.route('/customers', methods=['POST'])
def create_customer():
    data = get_json_body()
    customer_type = data.get('customer_type', 0)
    if isinstance(customer_type, bool) or customer_type not in (0, 1):
        raise InvalidPayload('customer_type must be 0 (B2C) or 1 (B2B)', {'customer_type': 'invalid'})
    fields = {
        'customer_name': _text(data, 'customer_name', required=True),
        'customer_type': customer_type,
        'business_name': _text(data, 'business_name'),
        **_contact_fields(data),
    }
    return _create(Customer, 'customers', fields)


@parties.route('/customers', methods=['GET'])
def list_customers():
    return _list(Customer, [Customer.customer_name, Customer.business_name])


@parties.route('/customers/<customer_id>', methods=['GET'])
def get_customer(customer_id):
    return _get(Customer, customer_id)


# ── Suppliers ─────────────────────────────────────────────────────

@parties.route('/suppliers', methods=['POST'])
def create_supplier():
    data = get_json_body()
    fields = {
        'business_name':  _text(data, 'business_name', required=True),
        'contact_person': _text(data, 'contact_person'),
        **_contact_fields(data),
    }
    return _create(Supplier, 'suppliers', fields)


@parties.route('/suppliers', methods=['GET'])
def list_suppliers():
    return _list(Supplier, [Supplier.business_name, Supplier.contact_person])


@parties.route('/suppliers/<supplier_id>', methods=['GET'])
def get_supplier(supplier_id):
    return _get(Supplier, supplier_id)
