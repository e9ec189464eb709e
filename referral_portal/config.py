import os


def _optional_bool(value):
    """Parse a tri-state env flag: "" -> None, truthy -> True, else False."""
    value = (value or "").strip().lower()
    if not value:
        return None
    return value in ("1", "true", "yes")


class Config:
    """Base configuration. Shared across all environments."""

    # --- Required ---
    SECRET_KEY = os.environ.get("SECRET_KEY")
    JWT_SECRET = os.environ.get("JWT_SECRET")

    # Handle DATABASE_URL: some PaaS providers (Railway, Heroku) use
    # "postgres://" which SQLAlchemy 1.4+ doesn't accept.
    _db_url = os.environ.get("DATABASE_URL", "")
    if _db_url.startswith("postgres://"):
        _db_url = _db_url.replace("postgres://", "postgresql://", 1)
    SQLALCHEMY_DATABASE_URI = _db_url or None

    # --- Identity hub ---
    AUTH_HUB_URL = os.environ.get("AUTH_HUB_URL", "https://auth.atap.solar")
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "auth_token")
    JWT_ALGORITHMS = ["HS256", "HS384", "HS512"]

    # Public URL of this portal. When unset, the request origin is used.
    APP_BASE_URL = os.environ.get("APP_BASE_URL") or None

    # --- Shared CRM schema ---
    CUSTOMER_TABLE_SCHEMA = os.environ.get("CUSTOMER_TABLE_SCHEMA") or None
    # None = probe the customer table; true/false skips the probe.
    CUSTOMER_LINKED_REFERRER = _optional_bool(
        os.environ.get("CUSTOMER_LINKED_REFERRER")
    )

    # --- SQLAlchemy ---
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # --- Session / cookies ---
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    # --- WTF / CSRF ---
    WTF_CSRF_ENABLED = True

    @staticmethod
    def validate():
        """Fail fast if required env vars are missing."""
        required = [
            "SECRET_KEY",
            "DATABASE_URL",
            "JWT_SECRET",
        ]
        missing = [v for v in required if not os.environ.get(v)]
        if missing:
            raise RuntimeError(
                f"Missing required environment variables: {', '.join(missing)}"
            )


class DevConfig(Config):
    """Local development."""

    DEBUG = True
    SESSION_COOKIE_SECURE = False


class TestConfig(Config):
    """Testing — in-memory SQLite, CSRF disabled."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = "test-secret-key-not-for-production"
    JWT_SECRET = "test-jwt-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    APP_BASE_URL = None
    AUTH_HUB_URL = "https://auth.example.test"
    AUTH_COOKIE_NAME = "auth_token"
    CUSTOMER_TABLE_SCHEMA = None
    CUSTOMER_LINKED_REFERRER = None  # always probe in tests
    WTF_CSRF_ENABLED = False  # disable CSRF for test forms
    RATELIMIT_ENABLED = False  # disable rate limiting in tests
    SESSION_COOKIE_SECURE = False
    SERVER_NAME = "localhost"

    @staticmethod
    def validate():
        """Skip validation in test mode — everything is hardcoded."""
        pass


class ProdConfig(Config):
    """Production."""

    DEBUG = False
    SESSION_COOKIE_SECURE = True
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": 10,
    }


config_by_name = {
    "development": DevConfig,
    "production": ProdConfig,
    "testing": TestConfig,
}
