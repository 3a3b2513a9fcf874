import os
from dotenv import dotenv_values

class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")

    # Database (env in prod; dev/test may use default)
    _ENV_FALLBACK = dotenv_values(".env")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Flask-Limiter default: off globally; webhook routes carry their own limit
    RATELIMIT_DEFAULT = None

    # --- Mailgun webhooks ---
    # Global webhook signing key (Mailgun dashboard -> Webhooks -> HTTP signing key)
    MAILGUN_WEBHOOK_SIGNING_KEY = os.getenv("MAILGUN_WEBHOOK_SIGNING_KEY")
    # Mailer secret; last resort when neither a tenant nor a webhook key is set
    MAILGUN_SECRET = os.getenv("MAILGUN_SECRET")
    MAILGUN_WEBHOOK_VERIFY_SIGNATURE = (os.getenv("MAILGUN_WEBHOOK_VERIFY_SIGNATURE", "true").lower() == "true")
    MAILGUN_WEBHOOK_TOLERANCE = int(os.getenv("MAILGUN_WEBHOOK_TOLERANCE", "300"))
    # Tenants register their sending subdomain, e.g. mg.acme.com
    MAILGUN_TENANT_DOMAIN_PREFIX = os.getenv("MAILGUN_TENANT_DOMAIN_PREFIX", "mg.")
    MAILGUN_WEBHOOK_RATE_LIMIT = os.getenv("MAILGUN_WEBHOOK_RATE_LIMIT", "600 per minute")

    # Bearer token for /analytics; unset leaves the endpoints open (dev)
    ANALYTICS_API_TOKEN = os.getenv("ANALYTICS_API_TOKEN")

    # --- Inbound attachments ---
    INBOUND_STORE_ATTACHMENTS = (os.getenv("INBOUND_STORE_ATTACHMENTS", "true").lower() == "true")
    INBOUND_MAX_ATTACHMENT_SIZE = int(os.getenv("INBOUND_MAX_ATTACHMENT_SIZE", str(10 * 1024 * 1024)))
    # Defaults to <instance_path>/inbound_attachments
    INBOUND_ATTACHMENTS_DIR = os.getenv("INBOUND_ATTACHMENTS_DIR")

    # --- Mail (outbound, Mailgun SMTP) ---
    MAIL_SERVER = os.getenv("MAIL_SERVER", "smtp.mailgun.org")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = (os.getenv("MAIL_USE_TLS", "true").lower() == "true")
    MAIL_USE_SSL = (os.getenv("MAIL_USE_SSL", "false").lower() == "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "Inbounder <no-reply@local.test>")
    MAIL_SUPPRESS_SEND = (os.getenv("MAIL_SUPPRESS_SEND", "false").lower() == "true")

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    MAIL_SUPPRESS_SEND = True

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    # Presence is enforced by create_app in staging/production
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    MAIL_SUPPRESS_SEND = False

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    MAIL_SUPPRESS_SEND = True

_ENV_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
