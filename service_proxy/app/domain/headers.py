"""
Header composition helpers for the Edge Proxy.

Headers travel through the proxy as immutable tuples of ``(name, value)``
pairs so repeated headers (``Set-Cookie``) survive and every composition step
returns a new value instead of mutating a shared object. Values are latin-1
decoded strings, the same convention Starlette uses for inbound headers, so
non-ASCII bytes from either side pass through unchanged.
"""

from typing import Iterable, List, Mapping, Optional, Tuple, Union

from starlette.responses import Response


HeaderList = Tuple[Tuple[str, str], ...]
HeaderInput = Union[Mapping[str, str], Iterable[Tuple[str, str]]]

# RFC 7230 hop-by-hop headers plus those the HTTP client recomputes.
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
    "host",
    "content-length",
})

# Upstream bodies are decoded by httpx before they reach the caller.
DECODED_BODY_HEADERS = frozenset({"content-encoding", "content-length"})

CACHE_STATUS_HEADER = "X-Cache-Status"
CACHE_CONTROL_CACHEABLE = "public, max-age={ttl}"
CACHE_CONTROL_NO_STORE = "no-cache, no-store, must-revalidate"


def freeze(headers: HeaderInput) -> HeaderList:
    """Normalize a mapping or pair iterable into a header tuple."""
    if isinstance(headers, Mapping):
        headers = headers.items()
    return tuple((str(name), str(value)) for name, value in headers)


def merge_headers(base: HeaderInput, overrides: HeaderInput) -> HeaderList:
    """Return ``base`` with every header named in ``overrides`` replaced.

    Names compare case-insensitively. Headers of ``base`` that ``overrides``
    does not mention are kept in order, including repeats.
    """
    base = freeze(base)
    overrides = freeze(overrides)
    replaced = {name.lower() for name, _ in overrides}
    kept = tuple((name, value) for name, value in base if name.lower() not in replaced)

    # Last override for a name wins.
    latest = {}
    for name, value in overrides:
        latest[name.lower()] = (name, value)
    return kept + tuple(latest.values())


def drop_headers(headers: HeaderInput, names: Iterable[str]) -> HeaderList:
    """Return ``headers`` without the named entries."""
    excluded = {name.lower() for name in names}
    return tuple((name, value) for name, value in freeze(headers) if name.lower() not in excluded)


def get_header(headers: HeaderInput, name: str) -> Optional[str]:
    """First value of ``name`` in ``headers``, or ``None``."""
    wanted = name.lower()
    for key, value in freeze(headers):
        if key.lower() == wanted:
            return value
    return None


def cache_headers(cacheable: bool, ttl_seconds: int = 0) -> HeaderList:
    """Cache-Control (and cache status) headers for an upstream GET."""
    if cacheable:
        return (
            ("Cache-Control", CACHE_CONTROL_CACHEABLE.format(ttl=ttl_seconds)),
            (CACHE_STATUS_HEADER, "MISS"),
        )
    return (("Cache-Control", CACHE_CONTROL_NO_STORE),)


def build_response(
    status_code: int,
    headers: HeaderInput,
    body: bytes = b"",
    background=None,
    *,
    keep_content_length: bool = False,
) -> Response:
    """Build a Starlette response carrying ``headers`` verbatim.

    Names and values are latin-1 strings, as produced by ``raw_header_list``,
    so they encode back to the exact bytes received. Content-Length is
    recomputed from ``body`` unless ``keep_content_length`` is set and
    ``headers`` carries one (replies to HEAD).
    """
    response = Response(content=body, status_code=status_code, background=background)
    if keep_content_length and get_header(headers, "content-length") is not None:
        response.raw_headers[:] = [(name, value) for name, value in response.raw_headers if name != b"content-length"]
        forwarded = freeze(headers)
    else:
        forwarded = drop_headers(headers, ("content-length",))
    response.raw_headers.extend(
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in forwarded
    )
    return response


def raw_header_list(raw: Iterable[Tuple[bytes, bytes]]) -> HeaderList:
    """Header tuple from raw byte pairs, decoded as latin-1 so no byte is lost."""
    return tuple((name.decode("latin-1"), value.decode("latin-1")) for name, value in raw)


def encode_header_list(headers: HeaderInput) -> List[Tuple[bytes, bytes]]:
    """Inverse of ``raw_header_list``, for handing headers to the HTTP client."""
    return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in freeze(headers)]
