from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mail import Mail

db = SQLAlchemy()
migrate = Migrate()

# Mailgun posts from a small pool of addresses; key on client IP.
# Storage is configured in create_app() via limiter.init_app(...).
limiter = Limiter(key_func=get_remote_address)

mail = Mail()
