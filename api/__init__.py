"""
API Package - HTTP surface of the aggregator.
"""

from api.server import (
    AggregatorAPI,
    create_app,
    filter_records,
    paginate,
    should_cache,
    summarize,
)


__all__ = [
    "AggregatorAPI",
    "create_app",
    "filter_records",
    "paginate",
    "should_cache",
    "summarize",
]
