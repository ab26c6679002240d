"""
Data Source Exceptions - Exception hierarchy for exchange adapters.

Adapter failures are isolated by the orchestrator; nothing in this
hierarchy is fatal to the process.
"""

from datetime import datetime, timezone
from typing import Any, Optional


GEO_BLOCK_STATUSES = frozenset({403, 451})


class DataSourceError(Exception):
    """Base exception for all data source errors."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source_name = source_name
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "source_name": self.source_name,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [self.message]
        if self.source_name:
            parts.append(f"[source={self.source_name}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class FetchError(DataSourceError):
    """Error during data fetching from provider API."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "request_url": self.request_url,
        })
        return data

    def is_geo_blocked(self) -> bool:
        """Check if the provider refused the request by region."""
        return self.status_code in GEO_BLOCK_STATUSES


class NormalizationError(DataSourceError):
    """Provider payload could not be mapped to the normalized schema."""

    def __init__(
        self,
        message: str,
        source_name: Optional[str] = None,
        raw_data: Optional[Any] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, source_name, original_error, context)
        self.raw_data = raw_data

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["raw_data"] = str(self.raw_data)[:500] if self.raw_data else None
        return data


class AdapterError(DataSourceError):
    """Unrecoverable adapter fault (bad envelope, upstream error code)."""


class ConfigurationError(DataSourceError):
    """Invalid configuration value."""


class CacheProducerError(DataSourceError):
    """A cache refresh failed and no previous value was available."""

    def __init__(
        self,
        message: str,
        cache_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, None, original_error, {"cache_key": cache_key})
        self.cache_key = cache_key
