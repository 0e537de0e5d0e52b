"""
stockbook/dashboard/__init__.py
-------------------------------
Read-only dashboard blueprint.
URL prefix: /api/dashboard
"""
from flask import Blueprint

dashboard = Blueprint('dashboard', __name__)

from stockbook.dashboard import routes  # noqa: E402, F401
