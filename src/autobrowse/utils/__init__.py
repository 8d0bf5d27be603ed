"""
Utilities module - Common utility functions.
"""

from autobrowse.utils.logging import setup_logging
from autobrowse.utils.retry import retry_async, RetryConfig, with_timeout, now_ms, clamp
from autobrowse.utils.urls import (
    canonicalize_url,
    dedupe_canonical_urls,
    extract_explicit_urls,
    extract_domain_hint_urls,
    is_blocked_source_url,
    is_http_url,
    is_within_site,
    sanitize_id,
    site_root,
)

__all__ = [
    "setup_logging",
    "retry_async",
    "RetryConfig",
    "with_timeout",
    "now_ms",
    "clamp",
    "canonicalize_url",
    "dedupe_canonical_urls",
    "extract_explicit_urls",
    "extract_domain_hint_urls",
    "is_blocked_source_url",
    "is_http_url",
    "is_within_site",
    "sanitize_id",
    "site_root",
]
