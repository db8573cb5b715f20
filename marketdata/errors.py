"""Error types for the market data gateway.

Exception Hierarchy:
    MarketDataError (base)
    ├── ValidationError - Caller input missing or malformed
    ├── UpstreamError - Network, timeout or payload failures from a provider
    └── CapabilityError - Operation not supported by the selected provider

Only UpstreamError is eligible for provider fallback. The other two are
caller or configuration problems and surface immediately.
"""

from typing import Any


class MarketDataError(Exception):
    """Base exception for all market data errors.

    Attributes:
        message: Human-readable error message.
        details: Additional error details.
        recoverable: Whether another provider might succeed.
    """

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


class ValidationError(MarketDataError):
    """Caller input is missing or malformed.

    Attributes:
        field: Name of the offending parameter, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details, recoverable=False)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base["field"] = self.field
        return base


class UpstreamError(MarketDataError):
    """An upstream provider call failed.

    Covers transport errors, timeouts, non-success statuses and payloads
    missing the fields required to build a canonical entity.

    Attributes:
        provider: Provider id that failed.
        operation: Operation being performed (quote, profile, ...).
        cause: Underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        operation: str | None = None,
        cause: BaseException | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details, recoverable=True)
        self.provider = provider
        self.operation = operation
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base.update(
            {
                "provider": self.provider,
                "operation": self.operation,
                "cause": str(self.cause) if self.cause else None,
            }
        )
        return base


class CapabilityError(MarketDataError):
    """Operation requested against a provider that does not support it.

    Attributes:
        provider: Provider id that lacks the capability.
        operation: The unsupported operation.
    """

    def __init__(self, *, provider: str, operation: str) -> None:
        super().__init__(
            f"Provider '{provider}' does not support {operation}",
            details={"provider": provider, "operation": operation},
            recoverable=False,
        )
        self.provider = provider
        self.operation = operation

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        base = super().to_dict()
        base.update({"provider": self.provider, "operation": self.operation})
        return base
