"""Pure helper modules: bundle aggregation and shipping metrics."""

__all__ = [
    "bundle_aggregator",
    "metrics",
]
