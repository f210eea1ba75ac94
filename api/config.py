"""
Environment-aware configuration.
Secrets, token lifetimes, database URL and SMTP settings come from the
environment (a .env file is read if present).
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _seconds(name: str, default: int) -> timedelta:
    return timedelta(seconds=int(os.getenv(name, str(default))))


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///credentials.db")
    DB_ECHO = _bool("DB_ECHO", "false")
    DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))

    # Access and refresh tokens are signed with independent keys
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", "dev-access-secret-change-me")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "dev-refresh-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "token-auth-api")
    ACCESS_TOKEN_EXPIRES = _seconds("ACCESS_TOKEN_EXPIRES_SECONDS", 15 * 60)
    REFRESH_TOKEN_EXPIRES = _seconds("REFRESH_TOKEN_EXPIRES_SECONDS", 7 * 24 * 3600)
    RESET_TOKEN_EXPIRES = _seconds("RESET_TOKEN_EXPIRES_SECONDS", 3600)
    COOKIE_SECURE = _bool("COOKIE_SECURE", "false")

    # Unset SMTP_HOST keeps reset emails in an in-memory outbox
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER = os.getenv("SMTP_USER")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM = os.getenv("SMTP_FROM")
    SMTP_USE_TLS = _bool("SMTP_USE_TLS", "true")
    SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", "10"))
    PASSWORD_RESET_URL = os.getenv("PASSWORD_RESET_URL", "http://localhost:8000/auth/reset-password")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    COOKIE_SECURE = _bool("COOKIE_SECURE", "true")
    REQUIRED_ENV = ("JWT_ACCESS_SECRET", "JWT_REFRESH_SECRET", "DATABASE_URL", "SECRET_KEY")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    JWT_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
    SMTP_HOST = None


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        missing = [key for key in ProductionConfig.REQUIRED_ENV if not os.getenv(key)]
        if missing:
            raise RuntimeError(f"Missing required settings: {', '.join(missing)}")
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
