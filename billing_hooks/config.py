import os

class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")

    # Database (env in prod; dev/test may use default)
    try:
        from dotenv import dotenv_values
        _ENV_FALLBACK = dotenv_values(".env")
    except OSError:
        _ENV_FALLBACK = {}
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Flask-Limiter default: off globally; prefer per-route limits
    RATELIMIT_DEFAULT = None
    WEBHOOK_RATE_LIMIT = os.getenv("WEBHOOK_RATE_LIMIT", "600/minute")
    OPS_RATE_LIMIT = os.getenv("OPS_RATE_LIMIT", "30/minute")

    # --- Mail (ops alerts only) ---
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.getenv("MAIL_PORT", "587"))
    MAIL_USE_TLS = (os.getenv("MAIL_USE_TLS", "true").lower() == "true")
    MAIL_USE_SSL = (os.getenv("MAIL_USE_SSL", "false").lower() == "true")
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "Billing Webhooks <no-reply@local.test>")
    MAIL_SUPPRESS_SEND = (os.getenv("MAIL_SUPPRESS_SEND", "false").lower() == "true")
    OPS_ALERT_EMAIL = os.getenv("OPS_ALERT_EMAIL")

    # --- Stripe (event source) ---
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    # Seconds a signed timestamp stays valid (replay window)
    STRIPE_WEBHOOK_TOLERANCE = int(os.getenv("STRIPE_WEBHOOK_TOLERANCE", "300"))

    # Price IDs (per environment via env vars); used when checkout metadata has no plan
    STRIPE_PRICE_STARTER = os.getenv("STRIPE_PRICE_STARTER")
    STRIPE_PRICE_PRO = os.getenv("STRIPE_PRICE_PRO")
    STRIPE_PRICE_BUSINESS = os.getenv("STRIPE_PRICE_BUSINESS")

    # Transaction limits per plan tier (-1 = unlimited)
    PLAN_LIMIT_STARTER = int(os.getenv("PLAN_LIMIT_STARTER", "500"))
    PLAN_LIMIT_PRO = int(os.getenv("PLAN_LIMIT_PRO", "5000"))
    PLAN_LIMIT_BUSINESS = int(os.getenv("PLAN_LIMIT_BUSINESS", "-1"))
    DEFAULT_PLAN = os.getenv("DEFAULT_PLAN", "starter")

    # --- Retry scheduler ---
    CRON_SECRET = os.getenv("CRON_SECRET")
    WEBHOOK_RETRY_BATCH_SIZE = int(os.getenv("WEBHOOK_RETRY_BATCH_SIZE", "10"))
    # Ceiling for an explicit ?limit= / --limit on one invocation
    WEBHOOK_RETRY_MAX_BATCH_SIZE = int(os.getenv("WEBHOOK_RETRY_MAX_BATCH_SIZE", "50"))
    WEBHOOK_MAX_ATTEMPTS = int(os.getenv("WEBHOOK_MAX_ATTEMPTS", "5"))
    PROCESSED_EVENT_RETENTION_DAYS = int(os.getenv("PROCESSED_EVENT_RETENTION_DAYS", "90"))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    MAIL_SUPPRESS_SEND = True

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    MAIL_SUPPRESS_SEND = False
    # No dev fallbacks in production; create_app() fails fast when these are unset
    SECRET_KEY = os.environ.get("SECRET_KEY")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    MAIL_SUPPRESS_SEND = True
    RATELIMIT_ENABLED = False

_ENV_MAP = {
    "development": DevelopmentConfig,
    "staging": ProductionConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
