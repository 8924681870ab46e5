"""
Service routes.

Handles:
- /health - Health check endpoint
"""

from flask import Blueprint, current_app

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/health", methods=["GET"])
def health():
    """
    Health check endpoint for monitoring.

    Only local wiring is checked; the commerce API is not called.
    """
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {},
    }

    if current_app.config.get("API_CLIENT_FACTORY"):
        health_status["checks"]["api_client"] = "configured"
    else:
        health_status["checks"]["api_client"] = "not_configured"
        health_status["status"] = "degraded"

    if current_app.config.get("ICONA_API_BASE_URL"):
        health_status["checks"]["upstream"] = current_app.config["ICONA_API_BASE_URL"]
    else:
        health_status["checks"]["upstream"] = "missing"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code
