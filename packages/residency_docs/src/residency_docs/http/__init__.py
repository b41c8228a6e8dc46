"""
HTTP Layer

Retrying REST client, retry policy and error normalization.
"""

from residency_docs.http.client import ApiClient, build_query_string
from residency_docs.http.errors import (
    ApiError,
    ValidationError,
    extract_error_message,
    format_validation_errors,
    is_api_error,
    to_api_error,
)
from residency_docs.http.retry import RequestAborted, RetryPolicy

__all__ = [
    "ApiClient",
    "build_query_string",
    "ApiError",
    "ValidationError",
    "extract_error_message",
    "format_validation_errors",
    "is_api_error",
    "to_api_error",
    "RequestAborted",
    "RetryPolicy",
]
