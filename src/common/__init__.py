"""
Common helpers
--------------

HTTP retries and snapshot-partition utilities shared by every layer.
"""

from .retry import http_get_with_retries  # noqa: F401

__all__ = ["http_get_with_retries"]
