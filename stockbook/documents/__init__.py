from flask import Blueprint

documents = Blueprint('documents', __name__)

from stockbook.documents import routes  # noqa: F401, E402
from stockbook.documents import models  # noqa: F401, E402  registers document tables with SQLAlchemy
