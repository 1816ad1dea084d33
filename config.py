"""
Configuration for the pantry service.

Local mode needs nothing but a writable data directory. Remote mode is not
configured here: it is switched on at runtime through the settings API and
remembered in the data directory, so it survives restarts.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so environment variables are visible to the Config class
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes", "on")


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # ==========================================================================
    # Local storage
    # ==========================================================================
    # DATA_DIR holds one JSON file per collection plus the saved remote
    # configuration. LOCAL_STORE_MAX_BYTES caps a single collection, the way
    # browser storage caps a key; writes over the cap fail instead of
    # truncating data.
    # ==========================================================================
    DATA_DIR = os.environ.get("PANTRY_DATA_DIR", str(BASE_DIR / "data"))
    LOCAL_STORE_MAX_BYTES = int(
        os.environ.get("LOCAL_STORE_MAX_BYTES", str(5 * 1024 * 1024))
    )

    # ==========================================================================
    # Remote storage
    # ==========================================================================
    # REMOTE_TIMEOUT_SECONDS bounds every database round trip so a hung
    # backend surfaces as an error instead of an indefinitely pending call.
    # REMOTE_CREATE_SCHEMA creates tables (and, on PostgreSQL, the change
    # notification triggers) when remote mode is first configured.
    # ==========================================================================
    REMOTE_TIMEOUT_SECONDS = float(
        os.environ.get("REMOTE_TIMEOUT_SECONDS", "10")
    )
    REMOTE_CREATE_SCHEMA = _env_flag("REMOTE_CREATE_SCHEMA", "0")

    # Business rules
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "10"))
    SEED_ON_STARTUP = _env_flag("SEED_ON_STARTUP", "1")


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    SEED_ON_STARTUP = False
    REMOTE_TIMEOUT_SECONDS = 5.0
