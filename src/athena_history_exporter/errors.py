"""Error types raised by athena-history-exporter.

Only configuration problems get a dedicated type. Throttling is absorbed by
`athena_history_exporter.retry` and every other AWS failure is a botocore
error that propagates to the caller untouched.
"""
from __future__ import annotations

__all__ = ["ConfigurationError"]


class ConfigurationError(ValueError):
    """Raised before a run starts when required configuration is missing or malformed."""
