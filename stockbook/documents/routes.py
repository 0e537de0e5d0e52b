"""
stockbook/documents/routes.py
-----------------------------
Purchase and sale endpoints.

    POST /api/purchases            record a purchase (stock in)
    GET  /api/purchases            list, newest first
    GET  /api/purchases/<number>   header + items + payments
    POST /api/sales                record a sale (stock out)
    GET  /api/sales
    GET  /api/sales/<number>
"""
from datetime import datetime

from flask import request

from stockbook.constants import DocumentStatus
from stockbook.documents import documents
from stockbook.documents.kinds import PURCHASE, SALE
from stockbook.documents.payload import parse_document_request
from stockbook.documents.recorder import DocumentRecorder
from stockbook.errors import InvalidPayload, RecordNotFound
from stockbook.reference import ReferenceData
from stockbook.utils.responses import acting_user, get_json_body, json_response, page_args


def _record(kind):
    data = get_json_body()
    doc_request = parse_document_request(data, kind, handled_by=acting_user())
    recorder = DocumentRecorder(kind, ReferenceData.load())
    header = recorder.record_request(doc_request)
    return json_response(201, header.to_dict(), f'{kind.label} created successfully')


def _date_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidPayload(f'{name} must be an ISO date', {name: 'invalid date'})


def _list(kind):
    model = kind.header_model
    page, limit = page_args()

    query = model.query.filter(model.status == DocumentStatus.ACTIVE)
    party_id = request.args.get(kind.party_label) or request.args.get('party_id')
    if party_id:
        query = query.filter(model.party_id == party_id)
    search = request.args.get('search', '').strip()
    if search:
        query = query.filter(model.document_number.ilike(f'%{search}%'))
    date_from = _date_arg('from')
    if date_from:
        query = query.filter(model.document_date >= date_from)
    date_to = _date_arg('to')
    if date_to:
        query = query.filter(model.document_date <= date_to)

    total = query.count()
    rows = (
        query.order_by(model.document_date.desc(), model.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return json_response(200, {
        'items': [row.to_dict() for row in rows],
        'page':  page,
        'limit': limit,
        'total': total,
    })


def _detail(kind, number):
    model = kind.header_model
    header = model.query.filter_by(document_number=number).first()
    if header is None:
        raise RecordNotFound(f'{kind.label} {number} not found')

    data = header.to_dict()
    data['party_name'] = header.party.display_name if header.party else None
    data['items']      = [item.to_dict() for item in header.items]
    data['payments']   = [payment.to_dict() for payment in header.payments]
    return json_response(200, data)


# ── Purchases ─────────────────────────────────────────────────────

@documents.route('/purchases', methods=['POST'])
def create_purchase():
    return _record(PURCHASE)


@documents.route('/purchases', methods=['GET'])
def list_purchases():
    return _list(PURCHASE)


@documents.route('/purchases/<number>', methods=['GET'])
def purchase_detail(number):
    return _detail(PURCHASE, number)


# ── Sales ─────────────────────────────────────────────────────────

@documents.route('/sales', methods=['POST'])
def create_sale():
    return _record(SALE)


@documents.route('/sales', methods=['GET'])
def list_sales():
    return _list(SALE)


@documents.route('/sales/<number>', methods=['GET'])
def sale_detail(number):
    return _detail(SALE, number)
