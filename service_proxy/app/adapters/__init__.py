"""
Adapters package for the Edge Proxy.

Contains the HTTP client for the upstream API. Adapters encapsulate base
URLs, credential injection, timeouts and the mapping of transport failures
onto shared errors.
"""

from .upstream_client import UpstreamClient, UpstreamResponse

__all__ = [
    "UpstreamClient",
    "UpstreamResponse",
]
