"""
Flask route blueprints for the Icona shipping service.

All handlers answer JSON:
- orders: order listing, updates, bundling and cancellation
- bundles: derived bundle listing, unbundle, bundle cancellation
- shipping: shipping page rows, metrics and label purchases
- api: health check

Errors raised by services propagate to the JSON error handlers installed
in create_app(). Each blueprint is registered with the Flask app there.
"""

from .orders import orders_bp
from .bundles import bundles_bp
from .shipping import shipping_bp
from .api import api_bp

__all__ = [
    "orders_bp",
    "bundles_bp",
    "shipping_bp",
    "api_bp",
    "register_blueprints",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(orders_bp)
    app.register_blueprint(bundles_bp)
    app.register_blueprint(shipping_bp)
    app.register_blueprint(api_bp)
