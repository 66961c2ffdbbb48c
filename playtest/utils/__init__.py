"""Utilities package"""
from .helpers import format_duration, generate_session_id, sanitize_filename, timestamp_now, truncate_text
from .retry import is_retryable_error, retry_with_backoff

__all__ = [
    "format_duration",
    "generate_session_id",
    "sanitize_filename",
    "timestamp_now",
    "truncate_text",
    "is_retryable_error",
    "retry_with_backoff",
]
