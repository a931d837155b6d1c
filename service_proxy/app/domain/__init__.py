"""
Domain logic for the Edge Proxy.

Includes the CORS origin policy, pure header composition helpers and the
gateway that walks each request through its routing decisions. The gateway
depends on the caching and adapter packages, which in turn use the header
helpers, so it is imported from ``domain.gateway`` directly.
"""

from .origin_policy import CorsDecision, OriginPolicy

__all__ = [
    "CorsDecision",
    "OriginPolicy",
]
