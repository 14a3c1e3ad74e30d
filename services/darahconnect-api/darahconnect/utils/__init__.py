"""
Utility functions and monitoring tools.
"""

from .monitoring import (
    setup_prometheus_metrics,
    track_request_metrics,
    track_api_error,
    get_prometheus_metrics
)

__all__ = [
    "setup_prometheus_metrics",
    "track_request_metrics",
    "track_api_error",
    "get_prometheus_metrics"
]
