from flask import Blueprint

parties = Blueprint('parties', __name__)

from stockbook.parties import routes  # noqa: F401, E402
from stockbook.parties import models  # noqa: F401, E402  registers Customer/Supplier with SQLAlchemy
