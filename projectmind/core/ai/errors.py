"""
Provider error taxonomy.

Adapters translate SDK / HTTP failures into these classes at their boundary;
the router decides on retries purely from the `transient` flag.
"""

from typing import Optional

from projectmind.core.errors import ProjectMindError


class ProviderError(ProjectMindError):
    """Base class for every failure coming out of the provider layer."""

    status_code = 502
    transient: bool = False

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status = status
        if provider:
            self.details["provider"] = provider
        if status is not None:
            self.details["status"] = status


class UnsupportedProvider(ProviderError):
    """No adapter is registered for the configured provider id."""

    status_code = 400


class AuthenticationFailed(ProviderError):
    """Missing, rejected or unauthorized credentials."""


class RateLimited(ProviderError):
    """The provider asked us to slow down (HTTP 429 or quota exhausted)."""

    status_code = 429


class InvalidResponse(ProviderError):
    """The provider answered, but the body is unusable."""


class RequestRejected(ProviderError):
    """Any other client-side (4xx) rejection: bad model name, bad parameters."""


class Unreachable(ProviderError):
    """Network failure, timeout, or a 5xx from the provider."""

    status_code = 504
    transient = True


def error_for_status(status: int, message: str, provider: Optional[str] = None) -> ProviderError:
    """Map an HTTP status onto the taxonomy."""
    if status in (401, 403):
        return AuthenticationFailed(message, provider=provider, status=status)
    if status == 429:
        return RateLimited(message, provider=provider, status=status)
    if status >= 500:
        return Unreachable(message, provider=provider, status=status)
    return RequestRejected(message, provider=provider, status=status)
