import os
import secrets
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


class Config:
    # Generate secure keys if not provided (with warnings)
    _secret_key = os.environ.get("SECRET_KEY")
    _csrf_key = os.environ.get("WTF_CSRF_SECRET_KEY")

    if not _secret_key:
        _secret_key = secrets.token_urlsafe(32)
        warnings.warn(
            "SECRET_KEY not set! Using auto-generated key. "
            "Sessions and access tokens will reset on app restart. "
            "Run 'python3 manage.py generate-secrets' to generate secure keys.",
            UserWarning,
        )

    if not _csrf_key:
        _csrf_key = secrets.token_urlsafe(32)
        warnings.warn(
            "WTF_CSRF_SECRET_KEY not set! Using auto-generated key. "
            "Run 'python3 manage.py generate-secrets' to generate secure keys.",
            UserWarning,
        )

    SECRET_KEY = _secret_key
    WTF_CSRF_SECRET_KEY = _csrf_key

    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "perfect_slate_db"
            db_user = os.environ.get("DB_USER") or "slate_user"
            db_password = os.environ.get("DB_PASSWORD") or "slate_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "perfect_slate.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Odds provider configuration
    ODDS_API_KEY = os.environ.get("ODDS_API_KEY")
    ODDS_API_BASE_URL = (
        os.environ.get("ODDS_API_BASE_URL") or "https://api.the-odds-api.com/v4"
    )
    ODDS_API_REGIONS = os.environ.get("ODDS_API_REGIONS", "us")
    SUPPORTED_SPORTS = [
        s.strip().upper()
        for s in os.environ.get("SUPPORTED_SPORTS", "NFL,NCAAF,MLB").split(",")
        if s.strip()
    ]

    # Application settings
    SESSION_TIMEOUT = int(os.environ.get("SESSION_TIMEOUT") or 3600)
    ACCESS_TOKEN_MAX_AGE = int(os.environ.get("ACCESS_TOKEN_MAX_AGE") or 86400)
    TIMEZONE = os.environ.get("TIMEZONE", "America/New_York")  # Display timezone

    # Game rules
    SLATE_SIZE = int(os.environ.get("SLATE_SIZE") or 10)
    MAX_TOKENS_PER_SLATE = int(os.environ.get("MAX_TOKENS_PER_SLATE") or 5)
    MAX_PICKS_PER_GAME = int(os.environ.get("MAX_PICKS_PER_GAME") or 2)
    LOCK_GAMES_REMAINING = int(os.environ.get("LOCK_GAMES_REMAINING") or 5)
    STARTING_TOKEN_BALANCE = int(os.environ.get("STARTING_TOKEN_BALANCE") or 1)
    SLATES_PER_TOKEN = int(os.environ.get("SLATES_PER_TOKEN") or 5)
    DEFAULT_BASE_PRIZE_POOL = float(os.environ.get("DEFAULT_BASE_PRIZE_POOL") or 1000.0)

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "perfect_slate:"

    # Rate limiting
    RATELIMIT_ENABLED = os.environ.get("RATELIMIT_ENABLED", "True").lower() == "true"

    # Scheduler configuration
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "True").lower() == "true"

    # Socket.IO configuration
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "eventlet")
    SOCKETIO_CORS_ORIGINS = os.environ.get("SOCKETIO_CORS_ORIGINS", "*")

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "True").lower() == "true"
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "True").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"

    def __init__(self):
        super().__init__()
        # Fallback to SimpleCache if Redis isn't available in development
        try:
            import redis

            redis_client = redis.Redis.from_url(self.CACHE_REDIS_URL)
            redis_client.ping()
        except redis.exceptions.ConnectionError:
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "Redis not available, falling back to SimpleCache for development.",
                UserWarning,
            )


class ProductionConfig(Config):
    """Production configuration with security focus"""

    DEBUG = False

    def __init__(self):
        super().__init__()

        if not os.environ.get("SECRET_KEY"):
            warnings.warn(
                "PRODUCTION WARNING: SECRET_KEY not explicitly set! "
                "Using auto-generated key is not recommended for production.",
                UserWarning,
            )
        if not os.environ.get("ODDS_API_KEY"):
            warnings.warn(
                "PRODUCTION WARNING: ODDS_API_KEY not set, odds sync will fail!",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    CACHE_TYPE = "NullCache"
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    SOCKETIO_ASYNC_MODE = "threading"
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False
    ODDS_API_KEY = "test-key"

    def __init__(self):
        # In-memory database, skip environment-driven URI
        pass


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
