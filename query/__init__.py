"""
Query cache layer: cached async fetches, retry with backoff, prefix invalidation.
"""

from query.client import (
    MutationOptions,
    MutationResult,
    QueryClient,
    QueryObserver,
    QueryOptions,
    QueryResult,
    QueryStatus,
)
from query.keys import QueryKeys, matches_prefix, normalize_key
from query.retry import call_with_retry, retry_delay, retry_delay_ms

__all__ = [
    "QueryClient",
    "QueryObserver",
    "QueryOptions",
    "QueryResult",
    "QueryStatus",
    "MutationOptions",
    "MutationResult",
    "QueryKeys",
    "normalize_key",
    "matches_prefix",
    "call_with_retry",
    "retry_delay",
    "retry_delay_ms",
]
