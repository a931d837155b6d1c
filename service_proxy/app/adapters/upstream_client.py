"""
Upstream API client for the Edge Proxy.
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from shared.errors import UpstreamUnavailableError
from shared.logging import get_logger

from ..domain.headers import (
    DECODED_BODY_HEADERS,
    HOP_BY_HOP_HEADERS,
    HeaderInput,
    HeaderList,
    drop_headers,
    encode_header_list,
    get_header,
    merge_headers,
    raw_header_list,
)


# httpx negotiates and decodes content encodings itself.
CLIENT_MANAGED_HEADERS = HOP_BY_HOP_HEADERS | {"accept-encoding"}

BODYLESS_METHODS = frozenset({"GET", "HEAD"})


def build_forward_headers(inbound: HeaderInput, api_key: str) -> HeaderList:
    """Clone caller headers and inject the upstream credential.

    ``apikey`` is always replaced; ``Authorization`` is only added when the
    caller did not send one, so user sessions pass through untouched.
    """
    headers = drop_headers(inbound, CLIENT_MANAGED_HEADERS)
    overrides = [("apikey", api_key)]
    if get_header(headers, "authorization") is None:
        overrides.append(("Authorization", f"Bearer {api_key}"))
    return merge_headers(headers, overrides)


@dataclass(frozen=True)
class UpstreamResponse:
    """Fully read upstream response."""

    status_code: int
    headers: HeaderList
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class UpstreamClient:
    """Forwards proxied requests to the single configured upstream API.

    No retries: a failed call surfaces as ``UpstreamUnavailableError`` and
    upstream error statuses are returned like any other response.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.logger = get_logger("edge_proxy.upstream_client")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=False,
            )
        return self._client

    def build_url(self, path: str, query: str = "") -> str:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{query}"
        return url

    async def forward(
        self,
        method: str,
        path: str,
        query: str,
        headers: HeaderInput,
        body: Optional[bytes] = None,
    ) -> UpstreamResponse:
        """Send one request upstream and read the whole response."""
        method = method.upper()
        url = self.build_url(path, query)
        content = None if method in BODYLESS_METHODS else body

        try:
            response = await self._get_client().request(
                method,
                url,
                headers=encode_header_list(build_forward_headers(headers, self.api_key)),
                content=content,
            )
        except httpx.TimeoutException as exc:
            self.logger.error("Upstream request timed out", method=method, path=path, timeout=self.timeout)
            raise UpstreamUnavailableError(
                "Upstream service timed out",
                timed_out=True,
                details={"timeout_seconds": self.timeout},
            ) from exc
        except httpx.HTTPError as exc:
            self.logger.error("Upstream request failed", method=method, path=path, error=str(exc))
            raise UpstreamUnavailableError("Upstream service unavailable") from exc

        if method == "HEAD":
            # Nothing was decoded; the length describes the GET representation.
            excluded = HOP_BY_HOP_HEADERS - {"content-length"}
        else:
            excluded = HOP_BY_HOP_HEADERS | DECODED_BODY_HEADERS
        response_headers = drop_headers(raw_header_list(response.headers.raw), excluded)
        self.logger.debug("Upstream responded", method=method, path=path, status_code=response.status_code)
        return UpstreamResponse(response.status_code, response_headers, response.content)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
