"""
Cache classification of upstream API resources.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from shared.logging import get_logger


REST_PREFIX = "/rest/v1/"
RPC_SEGMENT = "rpc"
DEFAULT_MASTER_DATA_TTL = 3600


class ResourceClass(str, Enum):
    """Caching class of an API resource."""

    MASTER_DATA = "master_data"
    TRANSACTIONAL = "transactional"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class CacheDisposition:
    """Whether a successful read may be cached, and for how long."""

    cacheable: bool
    ttl_seconds: int = 0
    resource_class: ResourceClass = ResourceClass.UNCLASSIFIED


def resource_identifier(path: str) -> Optional[str]:
    """Table or RPC marker named by a REST path, e.g. ``companies``.

    Only the first segment after the REST prefix counts, so
    ``/rest/v1/companies_archive`` does not reference ``companies``.
    """
    if not path.startswith(REST_PREFIX):
        return None
    segment = path[len(REST_PREFIX):].split("/", 1)[0]
    return segment or None


class CacheClassifier:
    """Maps request paths onto cache dispositions.

    Classification only reads the configured name sets, so the same
    ``(path, method)`` always yields the same result. Unknown resources are
    never cached; only master data is.
    """

    def __init__(
        self,
        master_data: Iterable[str],
        transactional: Iterable[str] = (),
        *,
        master_data_ttl: int = DEFAULT_MASTER_DATA_TTL,
    ):
        self.master_data = frozenset(master_data)
        self.transactional = frozenset(transactional)
        self.master_data_ttl = master_data_ttl
        self.logger = get_logger("edge_proxy.classifier")

        overlap = self.master_data & self.transactional
        if overlap:
            self.logger.warning(
                "Tables configured as both master data and transactional; treating as transactional",
                tables=sorted(overlap),
            )

    def resource_class(self, path: str) -> ResourceClass:
        identifier = resource_identifier(path)
        if identifier is None:
            return ResourceClass.UNCLASSIFIED
        if identifier == RPC_SEGMENT or identifier in self.transactional:
            return ResourceClass.TRANSACTIONAL
        if identifier in self.master_data:
            return ResourceClass.MASTER_DATA
        return ResourceClass.UNCLASSIFIED

    def classify(self, path: str, method: str) -> CacheDisposition:
        """Cache disposition for a successful response to ``method path``."""
        resource_class = self.resource_class(path)
        if method.upper() == "GET" and resource_class is ResourceClass.MASTER_DATA:
            return CacheDisposition(True, self.master_data_ttl, resource_class)
        return CacheDisposition(False, 0, resource_class)

    def is_purgeable(self, path: str) -> bool:
        return self.resource_class(path) is ResourceClass.MASTER_DATA
