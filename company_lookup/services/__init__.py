"""
Request layer for the company lookup backend.

Provides:
- HttpClient: async HTTP adapter with request ids and latency logging
- classify / ApiError: closed taxonomy of request failures
- RetryPolicy: exponential backoff for transient failures
- ResponseCache: TTL cache of successful responses
"""

from company_lookup.services.errors import (
    ApiError,
    ErrorKind,
    ErrorRecord,
    ServiceError,
    classify,
    kind_for_status,
)
from company_lookup.services.cache import CacheEntry, CacheStats, ResponseCache
from company_lookup.services.retry import RetryPolicy, is_transient
from company_lookup.services.client import HttpClient, RequestDescriptor

__all__ = [
    # Errors
    "ApiError",
    "ErrorKind",
    "ErrorRecord",
    "ServiceError",
    "classify",
    "kind_for_status",
    # Cache
    "CacheEntry",
    "CacheStats",
    "ResponseCache",
    # Retry
    "RetryPolicy",
    "is_transient",
    # Client
    "HttpClient",
    "RequestDescriptor",
]
