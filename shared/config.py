"""
Shared configuration management for the Edge Proxy.
"""

from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PRODUCTION_ENVIRONMENTS = ("production", "prod")


def split_csv(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated setting into trimmed, non-empty items."""
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="EDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="info")

    # Process
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8787)


class ProxyConfig(BaseConfig):
    """Edge proxy configuration, loaded once at startup."""

    # Upstream API
    upstream_url: Optional[str] = Field(default=None)
    upstream_key: Optional[str] = Field(default=None)
    upstream_timeout: float = Field(default=30.0, gt=0)

    # Cache invalidation
    purge_secret: Optional[str] = Field(default=None)

    # CORS
    allowed_origins: str = Field(default="")
    mobile_user_agents: str = Field(default="flutter,dart")

    # Cache classification
    master_data_tables: str = Field(default="")
    transactional_tables: str = Field(default="")
    master_data_ttl: int = Field(default=3600, gt=0)

    # Cache store
    cache_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    redis_url: str = Field(default="redis://localhost:6379/0")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in PRODUCTION_ENVIRONMENTS

    @property
    def allowed_origin_list(self) -> Tuple[str, ...]:
        return split_csv(self.allowed_origins)

    @property
    def mobile_user_agent_markers(self) -> Tuple[str, ...]:
        return tuple(marker.lower() for marker in split_csv(self.mobile_user_agents))

    @property
    def master_data_set(self) -> frozenset:
        return frozenset(split_csv(self.master_data_tables))

    @property
    def transactional_set(self) -> frozenset:
        return frozenset(split_csv(self.transactional_tables))

    def missing_required(self) -> List[str]:
        """Names of mandatory settings that are unset or blank."""
        required = {
            "EDGE_UPSTREAM_URL": self.upstream_url,
            "EDGE_UPSTREAM_KEY": self.upstream_key,
            "EDGE_PURGE_SECRET": self.purge_secret,
        }
        return [name for name, value in required.items() if not value]


@lru_cache(maxsize=1)
def get_config() -> ProxyConfig:
    """Get the process-wide proxy configuration."""
    return ProxyConfig()
