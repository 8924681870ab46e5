"""
Configuration for the Icona shipping service.

The upstream commerce API location is a configuration value handed to the
API client factory in create_app(); nothing in the service layer reads a
module-level base URL.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env early so environment variables are visible to the Config class
load_dotenv(override=True)

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    SESSION_COOKIE_NAME = "icona_shipping_session"
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"
    TESTING = False

    # ==========================================================================
    # Upstream commerce API
    # ==========================================================================
    # ICONA_API_BASE_URL: root of the commerce API (no trailing slash)
    # ICONA_API_TIMEOUT_SECONDS: per-call timeout; fan-outs are not
    #   cancelable once started, each member call is bounded by this value
    # ==========================================================================
    ICONA_API_BASE_URL = os.environ.get(
        "ICONA_API_BASE_URL", "http://localhost:5000"
    ).rstrip("/")
    ICONA_API_TIMEOUT_SECONDS = float(
        os.environ.get("ICONA_API_TIMEOUT_SECONDS", "15")
    )

    # Maximum concurrent per-order calls in one fan-out
    FANOUT_MAX_WORKERS = int(os.environ.get("FANOUT_MAX_WORKERS", "8"))

    # Label defaults
    DEFAULT_LABEL_FILE_TYPE = os.environ.get("DEFAULT_LABEL_FILE_TYPE", "PDF_4x6")
    DEFAULT_BUNDLE_SERVICE = os.environ.get("DEFAULT_BUNDLE_SERVICE", "Ground Advantage")


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 3600  # 1 hour


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    ICONA_API_BASE_URL = "http://icona.test"
    FANOUT_MAX_WORKERS = 4
