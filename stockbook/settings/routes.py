"""
stockbook/settings/routes.py
----------------------------
Numbering prefixes per series.

    GET /api/settings/prefixes   → {"purchases": "INV", "sales": "BNO", ...}
    PUT /api/settings/prefixes   ← {"sales": "SAL"}   (partial update)

A prefix is 3–4 uppercase letters and no two series may share one.
Changing a prefix starts a fresh series at <PREFIX>0001; numbers already
issued under the old prefix are left as they are.
"""
import logging

from flask import current_app

from stockbook import db
from stockbook.errors import InvalidPayload
from stockbook.reference import ReferenceData
from stockbook.sequences import PREFIX_PATTERN
from stockbook.settings import settings
from stockbook.settings.models import PrefixSetting
from stockbook.utils.responses import acting_user, get_json_body, json_response

logger = logging.getLogger(__name__)


@settings.route('/settings/prefixes', methods=['GET'])
def get_prefixes():
    return json_response(200, ReferenceData.load().prefixes)


@settings.route('/settings/prefixes', methods=['PUT'])
def update_prefixes():
    data = get_json_body()
    known = set(current_app.config['SERIES_PREFIXES'])

    errors = {}
    for series, prefix in data.items():
        if series not in known:
            errors[series] = 'unknown series'
        elif not isinstance(prefix, str) or not PREFIX_PATTERN.match(prefix):
            errors[series] = 'prefix must be 3 to 4 uppercase letters'
    if errors:
        raise InvalidPayload('Invalid prefixes', errors)

    merged = {**ReferenceData.load().prefixes, **data}
    seen = {}
    for series, prefix in merged.items():
        if prefix in seen:
            errors[series] = f'prefix {prefix} is already used by {seen[prefix]}'
        seen[prefix] = series
    if errors:
        raise InvalidPayload('Prefixes must be unique across series', errors)

    handled_by = acting_user()
    rows = {row.series: row for row in PrefixSetting.query.all()}

    # park changed rows on placeholders first so a swap never collides
    for series, prefix in data.items():
        row = rows.get(series)
        if row is not None and row.prefix != prefix:
            row.prefix = f'#{row.id}'
    db.session.flush()

    for series, prefix in data.items():
        row = rows.get(series)
        if row is None:
            row = PrefixSetting(series=series)
            db.session.add(row)
        row.prefix = prefix
        row.handled_by = handled_by
    db.session.commit()
    logger.info(f"Prefixes updated by {handled_by or 'unknown'}: {data}")
    return json_response(200, merged, 'Prefixes updated successfully')
