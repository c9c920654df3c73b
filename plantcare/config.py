import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_flag(name, default="false"):
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _env_int(name, default):
    return int(os.getenv(name) or default)


def parse_additional_keys(raw):
    """Parse ``kid:secret`` pairs (or bare secrets) from a comma-separated string.

    Bare secrets get a positional kid so the ordering stays stable.
    """
    keys = []
    for i, item in enumerate(p.strip() for p in (raw or "").split(",")):
        if not item:
            continue
        if ":" in item:
            kid, secret = item.split(":", 1)
            keys.append((kid.strip(), secret.strip()))
        else:
            keys.append((f"key-{i + 1}", item))
    return keys


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///plantcare.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "default-secret")
    JWT_ADDITIONAL_SECRET_KEYS = parse_additional_keys(os.getenv("JWT_ADDITIONAL_SECRET_KEYS"))
    # Seconds
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(seconds=_env_int("JWT_ACCESS_TOKEN_EXPIRES", 7 * 24 * 3600))
    JWT_TOKEN_LOCATION = ["headers", "cookies"]
    JWT_COOKIE_SECURE = _env_flag("JWT_COOKIE_SECURE")
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_COOKIE_SAMESITE = "Lax"

    # Development-only shortcut: "test-token-*" bearer tokens map to a fixed user.
    ALLOW_TEST_TOKENS = _env_flag("ALLOW_TEST_TOKENS")

    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    TEMP_UPLOAD_FOLDER = os.getenv("TEMP_UPLOAD_FOLDER", os.path.join(BASE_DIR, "temp_uploads", "analysis"))
    MAX_IMAGE_SIZE = _env_int("MAX_IMAGE_SIZE", 5 * 1024 * 1024)
    MAX_ANALYSIS_IMAGE_SIZE = _env_int("MAX_ANALYSIS_IMAGE_SIZE", 10 * 1024 * 1024)
    MAX_CONTENT_LENGTH = MAX_ANALYSIS_IMAGE_SIZE + 2 * 1024 * 1024

    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "30"))

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-primary-secret"
    JWT_ADDITIONAL_SECRET_KEYS = []
    ALLOW_TEST_TOKENS = True
    GEMINI_API_KEY = "test-gemini-key"


class ProductionConfig(Config):
    ALLOW_TEST_TOKENS = False
    JWT_COOKIE_SECURE = True
