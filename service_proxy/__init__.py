"""
Edge Proxy package.

A reverse proxy in front of a single upstream REST API that:
- Enforces the cross-origin policy (allowlist, loopback, mobile clients)
- Injects the upstream API credential into forwarded requests
- Caches master data reads and lets authorized callers purge them
"""

__version__ = "1.0.0"
