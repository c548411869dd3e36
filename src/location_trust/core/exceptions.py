"""Standardized exception hierarchy for the location trust engine."""

from enum import Enum
from typing import Any


class LocationTrustError(Exception):
    """Base exception for all location trust errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(LocationTrustError):
    """Errors that may succeed on retry."""

    pass


class NetworkError(TransientError):
    """Network-related transient errors (DNS failure, connection refused)."""

    pass


class ProviderTimeoutError(NetworkError):
    """External provider did not answer within the configured timeout."""

    pass


class ServiceUnavailableError(TransientError):
    """External service temporarily unavailable (5xx responses)."""

    pass


class RateLimitedError(TransientError):
    """External service rejected the call with HTTP 429."""

    pass


class PermanentError(LocationTrustError):
    """Errors that will not succeed on retry."""

    pass


class InvalidCoordinatesError(PermanentError):
    """Coordinates failed the structural sanity check."""

    pass


class ConfigurationError(PermanentError):
    """Missing or invalid configuration."""

    pass


class ProviderAuthError(PermanentError):
    """External provider rejected the API key (HTTP 401/403)."""

    pass


class ProviderRequestError(PermanentError):
    """External provider rejected the request itself (other 4xx responses)."""

    pass


class UnknownRegionError(PermanentError):
    """Region name is not present in the registry."""

    pass


class DeviceErrorCode(str, Enum):
    """Error codes reported by a device location API."""

    PERMISSION_DENIED = "PERMISSION_DENIED"
    POSITION_UNAVAILABLE = "POSITION_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    UNSUPPORTED = "UNSUPPORTED"


class DeviceLocationError(LocationTrustError):
    """Device location request failed with one of the DeviceErrorCode values."""

    def __init__(
        self,
        code: DeviceErrorCode,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message or code.value, details)
        self.code = code
