"""Normalized error taxonomy shared by every provider"""

from typing import Any

import httpx


def set_key_hint(provider: str) -> str:
    """Remediation text telling the user how to store a key"""
    return f"Set it with: xyzulu config set {provider}.apiKey <key>"


class LLMError(Exception):
    """Base class for every provider-surfaced failure"""

    code = "LLM_ERROR"

    def __init__(
        self,
        message: str,
        provider: str,
        code: str | None = None,
        status_code: int | None = None,
        metadata: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        if code is not None:
            self.code = code
        self.status_code = status_code
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(provider={self.provider!r}, code={self.code!r}, "
            f"status_code={self.status_code!r}, message={self.message!r})"
        )


class AuthenticationError(LLMError):
    """Invalid or missing credentials"""

    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str, provider: str, status_code: int | None = None, metadata: dict | None = None):
        super().__init__(message, provider, status_code=status_code, metadata=metadata)


class RateLimitError(LLMError):
    """Vendor throttling"""

    code = "RATE_LIMIT_ERROR"

    def __init__(self, message: str, provider: str, status_code: int | None = None, metadata: dict | None = None):
        super().__init__(message, provider, status_code=status_code, metadata=metadata)


class NetworkError(LLMError):
    """Transport failures and vendor 5xx responses"""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, provider: str, status_code: int | None = None, metadata: dict | None = None):
        super().__init__(message, provider, status_code=status_code, metadata=metadata)


class ValidationError(LLMError):
    """Malformed request or parameters"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, provider: str, status_code: int | None = None, metadata: dict | None = None):
        super().__init__(message, provider, status_code=status_code, metadata=metadata)


class ProviderError(LLMError):
    """Catch-all for failures that fit no other category"""

    code = "PROVIDER_ERROR"


class ProviderNotImplementedError(ProviderError):
    """Raised by stub providers that have no working backend yet"""

    code = "NOT_IMPLEMENTED"

    def __init__(self, provider: str, operation: str | None = None, metadata: dict | None = None):
        if operation:
            message = f'Provider "{provider}" does not implement {operation} yet'
        else:
            message = f'Provider "{provider}" is not implemented yet'
        super().__init__(message, provider, metadata=metadata)
        self.operation = operation


def error_from_status(provider: str, status: int, details: Any = None) -> LLMError:
    """Map a vendor HTTP status to the normalized taxonomy"""
    metadata = {"error_data": details} if details is not None else {}

    if status in (401, 403):
        return AuthenticationError(
            f'Invalid or missing API key for provider "{provider}". {set_key_hint(provider)}',
            provider,
            status,
            metadata,
        )
    if status == 429:
        return RateLimitError(
            f'Rate limit exceeded for provider "{provider}". Wait a moment and try again.',
            provider,
            status,
            metadata,
        )
    if status == 400:
        return ValidationError(
            f'Provider "{provider}" rejected the request parameters',
            provider,
            status,
            metadata,
        )
    if 500 <= status < 600:
        return NetworkError(
            f'Server error from provider "{provider}": {status}',
            provider,
            status,
            metadata,
        )
    return ProviderError(
        f'HTTP error from provider "{provider}": {status}',
        provider,
        f"HTTP_{status}",
        status,
        metadata,
    )


def normalize_error(provider: str, exc: BaseException) -> LLMError:
    """Wrap any exception escaping a provider into the taxonomy"""
    if isinstance(exc, LLMError):
        return exc

    if isinstance(exc, httpx.TimeoutException):
        return NetworkError(
            f'Request to provider "{provider}" timed out',
            provider,
            metadata={"original_error": type(exc).__name__},
        )

    if isinstance(exc, httpx.TransportError):
        return NetworkError(
            f'Network error talking to provider "{provider}": {exc}',
            provider,
            metadata={"original_error": type(exc).__name__},
        )

    return ProviderError(
        str(exc) or "Unknown error occurred",
        provider,
        "UNKNOWN_ERROR",
        metadata={"original_error": type(exc).__name__},
    )
