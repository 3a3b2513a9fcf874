from flask import Blueprint

bp = Blueprint("webhooks", __name__)

# Import routes so their @bp.post decorators run
from . import routes
