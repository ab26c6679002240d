"""
Core Module - Configuration.

============================================================
CONFIGURABLE AGGREGATOR
============================================================

All tunables are configurable:
- HTTP timeouts and alternate domains
- Per-endpoint cache TTLs and Cache-Control seconds
- Market-cap allowlist provider and TTL
- Provider-specific conversion factors and batching

Configuration can be loaded from:
- Default values
- Environment variables (.env supported)
- YAML config file

============================================================
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from core.constants import ALTERNATE_DOMAINS, FUNDING_INTERVAL_SECONDS
from data_sources.exceptions import ConfigurationError
from data_sources.models import DataKind


logger = logging.getLogger(__name__)


# =============================================================
# SECTIONS
# =============================================================


@dataclass
class HttpConfig:
    """HTTP client configuration."""
    timeout_seconds: float = 10.0
    sub_request_timeout_seconds: float = 5.0
    adapter_timeout_seconds: float = 25.0
    alternate_domains: dict[str, list[str]] = field(
        default_factory=lambda: {host: list(alts) for host, alts in ALTERNATE_DOMAINS.items()}
    )


@dataclass
class EndpointCacheConfig:
    """
    Cache settings for one logical endpoint.

    - ttl_seconds: in-process freshness window
    - s_maxage / stale_while_revalidate: CDN Cache-Control on fresh responses
    - stale_s_maxage: shorter CDN window when serving STALE
    """
    ttl_seconds: float
    s_maxage: int
    stale_while_revalidate: int
    stale_s_maxage: int

    def cache_control(self, stale: bool = False) -> str:
        """Render the Cache-Control header."""
        if stale:
            return f"public, s-maxage={self.stale_s_maxage}"
        return (
            f"public, s-maxage={self.s_maxage}, "
            f"stale-while-revalidate={self.stale_while_revalidate}"
        )


@dataclass
class CacheConfig:
    """Response cache configuration."""
    max_entries: int = 100
    funding: EndpointCacheConfig = field(
        default_factory=lambda: EndpointCacheConfig(30, 30, 60, 15)
    )
    open_interest: EndpointCacheConfig = field(
        default_factory=lambda: EndpointCacheConfig(60, 60, 120, 30)
    )
    tickers: EndpointCacheConfig = field(
        default_factory=lambda: EndpointCacheConfig(15, 15, 30, 10)
    )

    def for_kind(self, kind: DataKind) -> EndpointCacheConfig:
        """Get the endpoint settings for a data kind."""
        return {
            DataKind.FUNDING: self.funding,
            DataKind.OPEN_INTEREST: self.open_interest,
            DataKind.TICKERS: self.tickers,
        }[kind]


@dataclass
class AllowlistConfig:
    """Market-cap allowlist configuration."""
    api_url: str = "https://api.coingecko.com/api/v3/coins/markets"
    api_key: Optional[str] = None
    api_key_header: str = "x-cg-demo-api-key"
    ttl_seconds: float = 1800.0
    top_n: int = 500
    page_size: int = 250
    min_size: int = 100


@dataclass
class ProviderConfig:
    """Provider-specific knobs."""
    # Kraken settles every 4h; figures are scaled to the 8h convention
    kraken_interval_multiplier: float = 2.0
    velocity_interval_seconds: int = FUNDING_INTERVAL_SECONDS
    velocity_min_rate: float = 1e-6
    open_interest_top_n: int = 100
    open_interest_batch_size: int = 25


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass
class AggregatorConfig:
    """
    Main configuration for the aggregator.

    Combines all sub-configurations.
    """
    http: HttpConfig = field(default_factory=HttpConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    allowlist: AllowlistConfig = field(default_factory=AllowlistConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> "AggregatorConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - HTTP_TIMEOUT_SECONDS
        - CACHE_MAX_ENTRIES
        - FUNDING_CACHE_TTL / OI_CACHE_TTL / TICKERS_CACHE_TTL
        - COINGECKO_API_KEY
        - ALLOWLIST_TTL_SECONDS
        - KRAKEN_INTERVAL_MULTIPLIER
        - SERVER_HOST / SERVER_PORT
        - LOG_LEVEL / LOG_FORMAT
        """
        load_dotenv()
        config = cls()

        if os.getenv("HTTP_TIMEOUT_SECONDS"):
            config.http.timeout_seconds = float(os.getenv("HTTP_TIMEOUT_SECONDS"))

        if os.getenv("CACHE_MAX_ENTRIES"):
            config.cache.max_entries = int(os.getenv("CACHE_MAX_ENTRIES"))
        if os.getenv("FUNDING_CACHE_TTL"):
            config.cache.funding.ttl_seconds = float(os.getenv("FUNDING_CACHE_TTL"))
        if os.getenv("OI_CACHE_TTL"):
            config.cache.open_interest.ttl_seconds = float(os.getenv("OI_CACHE_TTL"))
        if os.getenv("TICKERS_CACHE_TTL"):
            config.cache.tickers.ttl_seconds = float(os.getenv("TICKERS_CACHE_TTL"))

        config.allowlist.api_key = os.getenv("COINGECKO_API_KEY") or None
        if os.getenv("ALLOWLIST_TTL_SECONDS"):
            config.allowlist.ttl_seconds = float(os.getenv("ALLOWLIST_TTL_SECONDS"))

        if os.getenv("KRAKEN_INTERVAL_MULTIPLIER"):
            config.providers.kraken_interval_multiplier = float(
                os.getenv("KRAKEN_INTERVAL_MULTIPLIER")
            )

        config.server.host = os.getenv("SERVER_HOST", config.server.host)
        if os.getenv("SERVER_PORT"):
            config.server.port = int(os.getenv("SERVER_PORT"))

        config.log_level = os.getenv("LOG_LEVEL", config.log_level)
        config.log_format = os.getenv("LOG_FORMAT", config.log_format)

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "AggregatorConfig":
        """
        Load configuration from YAML file on top of environment values.

        Unknown keys are ignored; a missing or unreadable file falls back
        to the environment configuration.
        """
        import yaml

        config = cls.from_env()
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return config

        http = data.get("http", {})
        if "timeout_seconds" in http:
            config.http.timeout_seconds = float(http["timeout_seconds"])
        if "sub_request_timeout_seconds" in http:
            config.http.sub_request_timeout_seconds = float(http["sub_request_timeout_seconds"])
        if "adapter_timeout_seconds" in http:
            config.http.adapter_timeout_seconds = float(http["adapter_timeout_seconds"])
        if "alternate_domains" in http:
            config.http.alternate_domains = {
                host: list(alts) for host, alts in http["alternate_domains"].items()
            }

        cache = data.get("cache", {})
        if "max_entries" in cache:
            config.cache.max_entries = int(cache["max_entries"])
        for name in ("funding", "open_interest", "tickers"):
            if name in cache:
                endpoint = getattr(config.cache, name)
                for key, value in cache[name].items():
                    if hasattr(endpoint, key):
                        setattr(endpoint, key, value)

        for section_name in ("allowlist", "providers", "server"):
            section = getattr(config, section_name)
            for key, value in data.get(section_name, {}).items():
                if hasattr(section, key):
                    setattr(section, key, value)

        config.log_level = data.get("log_level", config.log_level)
        config.log_format = data.get("log_format", config.log_format)
        return config

    def validate(self) -> None:
        """Validate configuration values."""
        errors = []

        if self.http.timeout_seconds <= 0:
            errors.append("HTTP timeout must be positive")
        if self.cache.max_entries <= 0:
            errors.append("Cache max entries must be positive")
        for kind in DataKind:
            if self.cache.for_kind(kind).ttl_seconds <= 0:
                errors.append(f"Cache TTL for {kind.value} must be positive")
        if self.allowlist.ttl_seconds <= 0:
            errors.append("Allowlist TTL must be positive")
        if self.allowlist.min_size > self.allowlist.top_n:
            errors.append("Allowlist min_size cannot exceed top_n")
        if self.providers.open_interest_batch_size <= 0:
            errors.append("Open interest batch size must be positive")
        if not (1 <= self.server.port <= 65535):
            errors.append("Server port must be between 1 and 65535")
        if self.log_format not in ("text", "json"):
            errors.append("Log format must be 'text' or 'json'")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, masking the API key."""
        data = asdict(self)
        if data["allowlist"]["api_key"]:
            data["allowlist"]["api_key"] = "***"
        return data


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[AggregatorConfig] = None


def get_config() -> AggregatorConfig:
    """Get the global aggregator configuration."""
    global _default_config
    if _default_config is None:
        _default_config = AggregatorConfig.from_env()
    return _default_config


def set_config(config: AggregatorConfig) -> None:
    """Set the global aggregator configuration."""
    global _default_config
    _default_config = config
