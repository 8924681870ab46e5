"""
Services layer for the Icona shipping service.

This module contains the business logic services:
- OrderStore: typed order reads and updates against the commerce API
- BundleService: create / unbundle / ship / cancel bundles
- LabelService: single, bundle and bulk label purchases
- fan_out: concurrent per-order upstream calls with per-order outcomes

Thread Model:
    Request Thread (Flask)
    └── fan_out() ThreadPoolExecutor (one worker per member call, bounded)

Services are built per request around one IconaAPIClient carrying the
caller's bearer token; they hold no state between requests.
"""

from .fanout import fan_out
from .order_store import OrderStore, OrderFilter, OrderPage
from .bundle_service import BundleService
from .label_service import LabelService

__all__ = [
    "fan_out",
    "OrderStore",
    "OrderFilter",
    "OrderPage",
    "BundleService",
    "LabelService",
]
