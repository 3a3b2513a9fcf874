import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("MAILGUN_WEBHOOK_SIGNING_KEY", "testsecret")

import hashlib
import hmac
import time

import pytest
from inbounder import create_app
from inbounder.extensions import db

@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        MAIL_SUPPRESS_SEND=True,
        MAILGUN_WEBHOOK_SIGNING_KEY=os.environ.get("MAILGUN_WEBHOOK_SIGNING_KEY", "testsecret"),
        MAILGUN_SECRET=None,
        MAILGUN_WEBHOOK_VERIFY_SIGNATURE=True,
        ANALYTICS_API_TOKEN=None,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture()
def runner(app):
    return app.test_cli_runner()

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

def mailgun_signature(key: str, timestamp=None, token: str = "tok-123") -> dict:
    """Nested Mailgun signature block for ``key``."""
    ts = int(time.time()) if timestamp is None else int(timestamp)
    sig = hmac.new(key.encode("utf-8"), f"{ts}{token}".encode("utf-8"), hashlib.sha256).hexdigest()
    return {"timestamp": str(ts), "token": token, "signature": sig}
