"""
Chain Adapter Exceptions - Custom exception hierarchy.

Transport and protocol failures are NOT exceptions here: adapters turn
them into QueryResult failures. These exceptions cover programming and
configuration errors only.
"""

from datetime import datetime, timezone
from typing import Any, Optional


class ChainAdapterError(Exception):
    """Base exception for all chain adapter errors."""

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.chain = chain
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "chain": self.chain,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.chain:
            parts.append(f"[chain={self.chain}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class InvalidVersionError(ChainAdapterError, ValueError):
    """A version string could not be parsed into a comparable number."""

    def __init__(
        self,
        version: Any,
        chain: Optional[str] = None,
    ) -> None:
        super().__init__(
            f"Unparsable version string: {version!r}",
            chain=chain,
            context={"version": version},
        )
        self.version = version


class ConfigurationError(ChainAdapterError):
    """Invalid node or adapter configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        chain: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, chain, original_error)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data
