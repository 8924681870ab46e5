"""
Icona shipping service - Flask Application Entry Point.

This is a slim app factory that:
1. Loads configuration (.env + config classes)
2. Configures logging with thread context
3. Stores the upstream API client factory in app.config
4. Registers route blueprints
5. Sets up JSON error handlers

ARCHITECTURE:
    Request Thread (Flask)
    ├── Builds OrderStore / BundleService / LabelService for the caller
    │   (the API client carries the caller's bearer token)
    └── Fan-out operations
        └── ThreadPoolExecutor workers, one upstream call per member order

No state is kept between requests: orders live upstream and bundles are
re-derived from them on every read.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from logging_config import setup_logging, get_logger
from core.api_client import IconaAPIClient
from core.exceptions import ShippingServiceError
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In a frozen bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(config_object: str = "config.Config") -> Flask:
    """
    Application factory - creates and configures Flask app.

    Args:
        config_object: Import path of the configuration class

    Returns:
        Configured Flask application
    """
    # Use override=True so .env file always takes precedence over shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting Icona shipping service in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # UPSTREAM CLIENT FACTORY
    # =========================================================================

    # Routes call factory(access_token); tests replace it with a mock factory
    if not app.config.get("API_CLIENT_FACTORY"):
        app.config["API_CLIENT_FACTORY"] = functools.partial(
            _build_client,
            app.config["ICONA_API_BASE_URL"],
            app.config["ICONA_API_TIMEOUT_SECONDS"],
        )
    logger.info(f"Commerce API: {app.config['ICONA_API_BASE_URL']}")

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(ShippingServiceError)
    def handle_service_error(e: ShippingServiceError):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e}")
        else:
            logger.warning(f"{type(e).__name__}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({
            "success": False,
            "error": e.name.lower().replace(" ", "_"),
            "message": e.description,
        }), e.code

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({
            "success": False,
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again.",
        }), 500

    logger.info("Application initialized successfully")
    return app


def _build_client(base_url: str, timeout: float, access_token=None) -> IconaAPIClient:
    return IconaAPIClient(
        base_url,
        access_token=access_token,
        timeout=timeout,
        logger=get_logger("core.api_client"),
    )


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(debug=debug_mode)
