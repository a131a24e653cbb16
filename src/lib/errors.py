"""Error taxonomy for routing and generation."""

OVERLOADED_MESSAGE = "API temporarily overloaded. Please wait a few seconds and try again."


class RouterError(Exception):
    """Base class for errors raised by the routing engine."""


class InvalidRequestError(RouterError, ValueError):
    """Request rejected before any provider call (empty prompt, oversize input)."""

    def __init__(self, message: str, param: str | None = None):
        super().__init__(message)
        self.param = param


class ProviderError(RouterError):
    """Failure reported by an upstream model provider."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        provider: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class TransientProviderError(ProviderError):
    """Rate limit, overload, unavailability or network failure. Safe to retry."""


class FatalProviderError(ProviderError):
    """Bad request or invalid credentials. Never retried."""


class ServiceOverloadedError(RouterError):
    """Raised once transient retries are exhausted."""

    def __init__(self, attempts: int, message: str = OVERLOADED_MESSAGE):
        super().__init__(message)
        self.attempts = attempts


def provider_error_from_status(
    status_code: int, message: str, provider: str | None = None
) -> ProviderError:
    """Map an HTTP status code onto the transient/fatal split.

    Args:
        status_code: HTTP status returned by the provider
        message: Provider error text
        provider: Provider name for diagnostics

    Returns:
        TransientProviderError for 408/429/5xx, FatalProviderError otherwise
    """
    if status_code in (408, 429) or status_code >= 500:
        return TransientProviderError(message, status_code=status_code, provider=provider)
    return FatalProviderError(message, status_code=status_code, provider=provider)
