"""
Environment-aware configuration.
Values come from the process environment (and .env via python-dotenv).
Token lifetimes and signing keys are read once by create_app() and frozen
into an AuthSettings object; nothing reads them from os.environ afterwards.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_JWT_SECRET = "dev-secret-change-me-before-deploying"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    APP_ENV = "dev"
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///channel-api.db")
    SQL_ECHO = _env_bool("SQL_ECHO", "false")

    # jwt configuration; access/refresh secrets fall back to JWT_SECRET
    JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "channel-api")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", "864000")))

    # auth cookies
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", "true")
    AUTH_COOKIE_SAMESITE = os.getenv("AUTH_COOKIE_SAMESITE", "Strict")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    APP_ENV = "dev"


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite:///:memory:"
    JWT_SECRET = "testing-secret-key-with-enough-length"
    JWT_ACCESS_SECRET = None
    JWT_REFRESH_SECRET = None
    AUTH_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "prod"


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
