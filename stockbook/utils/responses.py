"""
stockbook/utils/responses.py
────────────────────────────
The JSON envelope every endpoint answers with.

    success → {"success": true,  "message": ..., "data": ...}
    failure → {"success": false, "message": ..., "errors": ...}

Decimal values are serialised as strings by Flask's JSON provider,
so money never passes through float on the way out.
"""
from decimal import Decimal, InvalidOperation

from flask import jsonify, request, current_app

from stockbook.constants import MAX_AMOUNT
from stockbook.errors import InvalidPayload


def json_response(code, data=None, message='Request successful', success=True):
    """Build a (response, status) tuple in the standard envelope."""
    body = {'success': success, 'message': message}
    if success:
        body['data'] = data
    else:
        body['errors'] = data
    return jsonify(body), code


def error_response(code, message, errors=None):
    return json_response(code, errors, message, success=False)


# ── Request helpers ───────────────────────────────────────────────

def get_json_body() -> dict:
    """Return the request JSON object; raise InvalidPayload for anything else."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidPayload('Request body must be a JSON object')
    return data


def acting_user():
    """Identifier of the user making the request (set by the auth gateway)."""
    return request.headers.get('X-User-Id') or None


def page_args():
    """Parse page/limit query args into (page, limit)."""
    try:
        page  = max(int(request.args.get('page', 1)), 1)
        limit = int(request.args.get('limit', current_app.config['DEFAULT_PAGE_SIZE']))
    except ValueError:
        raise InvalidPayload('page and limit must be whole numbers')
    limit = min(max(limit, 1), current_app.config['MAX_PAGE_SIZE'])
    return page, limit


def parse_decimal(raw, field, default=None) -> Decimal:
    """Convert a JSON number/string to Decimal or raise InvalidPayload.

    Values must fit a Numeric(12, 2) column, i.e. stay below MAX_AMOUNT.
    """
    if raw is None or raw == '':
        if default is None:
            raise InvalidPayload(f'{field} is required', {field: 'required'})
        return default
    if isinstance(raw, bool):
        raise InvalidPayload(f'{field} must be a number', {field: 'not a number'})
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise InvalidPayload(f'{field} must be a number', {field: 'not a number'})
    if not value.is_finite():
        raise InvalidPayload(f'{field} must be a finite number', {field: 'not finite'})
    if abs(value) >= MAX_AMOUNT:
        raise InvalidPayload(f'{field} is too large', {field: 'out of range'})
    return value
