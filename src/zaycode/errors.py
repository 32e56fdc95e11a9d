"""Application-level exception types for zaycode."""

from __future__ import annotations

CAPACITY_STATUS_CODES = frozenset({402, 429})
CAPACITY_SIGNATURES = ("insufficient", "rate limit", "rate-limit", "quota", "credits")


class ZaycodeError(Exception):
    """Base exception for zaycode."""


class ConfigurationError(ZaycodeError):
    """Base exception for configuration and startup validation errors."""


class ModelNotConfiguredError(ConfigurationError):
    """Raised when no model can be resolved for a run."""


class ApiKeyNotConfiguredError(ConfigurationError):
    """Raised when a provider call is attempted without an API key."""


class TransportError(ZaycodeError):
    """Raised when the provider could not be reached or the call timed out."""


class ProviderError(ZaycodeError):
    """Raised when the provider answers with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"API error ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class CapacityError(ProviderError):
    """Provider refused the call for credit, quota or rate-limit reasons."""


class DecodeAnomaly(ZaycodeError):
    """One stream line could not be interpreted. Never escapes the decoder."""


class ToolUnknownError(ZaycodeError):
    """Raised when a tool name is not registered."""


class ToolExecutionError(ZaycodeError):
    """Raised when a tool handler fails or misuses its contract."""


class PersistenceError(ZaycodeError):
    """Raised when history could not be read or written."""


def is_capacity_failure(status_code: int | None, message: str) -> bool:
    """Return whether a provider failure looks like a capacity/quota refusal."""
    if status_code in CAPACITY_STATUS_CODES:
        return True
    lowered = message.casefold()
    return any(signature in lowered for signature in CAPACITY_SIGNATURES)


def provider_error(status_code: int, message: str) -> ProviderError:
    """Build the most specific provider error for a status and message."""
    if is_capacity_failure(status_code, message):
        return CapacityError(status_code, message)
    return ProviderError(status_code, message)
