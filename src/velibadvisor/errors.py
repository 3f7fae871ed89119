from __future__ import annotations

from typing import Optional


class VelibAdvisorError(RuntimeError):
    pass


# Malformed coordinates; raised before any provider call.
class InvalidInput(VelibAdvisorError, ValueError):
    pass


class ProviderError(VelibAdvisorError):
    pass


class ProviderRateLimitError(ProviderError):
    """
    Raised when a provider returns 429 (rate limit).

    `retry_after_s` is best-effort parsed from `Retry-After` header when present.
    """

    def __init__(self, message: str, *, retry_after_s: float | None = None) -> None:
        super().__init__(message)
        self.retry_after_s = retry_after_s


class ProviderTimeout(ProviderError):
    pass


class UnavailableJourney(VelibAdvisorError):
    """Bike-share cannot serve this journey; `reason_code` names the check that ruled it out."""

    def __init__(self, message: str, *, reason_code: str) -> None:
        super().__init__(message)
        self.reason_code = reason_code


class NoStationsNearby(UnavailableJourney):
    pass


class NoAvailability(UnavailableJourney):
    pass


class AddressNotFound(VelibAdvisorError):
    """
    No geocoding result matched an address.

    `role` tells callers which end of the journey failed ("departure" or "destination")
    so the message shown to the user is actionable.
    """

    def __init__(self, message: str, *, address: Optional[str] = None, role: Optional[str] = None) -> None:
        super().__init__(message)
        self.address = address
        self.role = role
