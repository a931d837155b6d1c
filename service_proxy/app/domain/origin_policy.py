"""
Cross-origin access policy for the Edge Proxy.
"""

from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlsplit

from shared.logging import get_logger

from .headers import HeaderList, merge_headers


LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0"})

ALLOW_METHODS = "GET, POST, PATCH, DELETE, OPTIONS, PURGE, PUT"
ALLOW_HEADERS = (
    "Authorization,Content-Type,apikey,x-client-info,x-supabase-auth,accept-profile,"
    "content-profile,prefer,range,x-requested-with,user-agent,x-purge-secret"
)
EXPOSE_HEADERS = "Content-Range,Range-Unit,Content-Length,Content-Profile,Accept-Profile"
MAX_AGE = "86400"

PREFLIGHT_VARY = "Origin, Access-Control-Request-Headers"


@dataclass(frozen=True)
class CorsDecision:
    """Accepted origin and the CORS headers that go with it."""

    allow_origin: str
    allow_credentials: bool

    @property
    def is_wildcard(self) -> bool:
        return self.allow_origin == "*"

    def headers(self) -> HeaderList:
        headers = (
            ("Access-Control-Allow-Origin", self.allow_origin),
            ("Access-Control-Allow-Methods", ALLOW_METHODS),
            ("Access-Control-Allow-Headers", ALLOW_HEADERS),
            ("Access-Control-Max-Age", MAX_AGE),
            ("Access-Control-Expose-Headers", EXPOSE_HEADERS),
        )
        # Browsers refuse credentials alongside a wildcard origin.
        if self.allow_credentials and not self.is_wildcard:
            headers += (("Access-Control-Allow-Credentials", "true"),)
        return headers


def is_loopback_origin(origin: Optional[str]) -> bool:
    """True when the origin's hostname is a local development host."""
    if not origin:
        return False
    try:
        hostname = urlsplit(origin).hostname
    except ValueError:
        return False
    return hostname in LOOPBACK_HOSTS


class OriginPolicy:
    """Decides per request whether the caller's origin may use the proxy."""

    def __init__(
        self,
        allowed_origins: Iterable[str],
        mobile_markers: Iterable[str] = ("flutter", "dart"),
        *,
        log_rejections: bool = True,
    ):
        self.allowed_origins = frozenset(allowed_origins)
        self.mobile_markers = tuple(marker.lower() for marker in mobile_markers)
        self.log_rejections = log_rejections
        self.logger = get_logger("edge_proxy.origin_policy")

    def is_mobile_client(self, user_agent: Optional[str]) -> bool:
        agent = (user_agent or "").lower()
        return any(marker in agent for marker in self.mobile_markers)

    def evaluate(self, origin: Optional[str], user_agent: Optional[str] = None) -> Optional[CorsDecision]:
        """Return the CORS decision for a caller, or ``None`` to reject it."""
        if origin and (origin in self.allowed_origins or is_loopback_origin(origin)):
            return CorsDecision(allow_origin=origin, allow_credentials=True)

        if not origin or self.is_mobile_client(user_agent):
            return CorsDecision(allow_origin="*", allow_credentials=False)

        if self.log_rejections:
            self.logger.warning("CORS origin rejected", origin=origin)
        return None

    def preflight_headers(self, decision: CorsDecision, requested_headers: Optional[str]) -> HeaderList:
        """Headers for a 204 preflight reply."""
        overrides = [("Vary", PREFLIGHT_VARY)]
        if requested_headers:
            overrides.insert(0, ("Access-Control-Allow-Headers", requested_headers))
        return merge_headers(decision.headers(), overrides)
