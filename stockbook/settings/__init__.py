from flask import Blueprint

settings = Blueprint('settings', __name__)

from stockbook.settings import routes  # noqa: F401, E402
from stockbook.settings import models  # noqa: F401, E402
