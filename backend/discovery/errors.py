"""
Error values for the discovery engine.

Engine functions return these instead of raising them, so every fallible
step hands its caller either a value or one of the errors below. They are
still ``Exception`` subclasses so the HTTP layer can log them with a
traceback-free message and map them onto status codes.
"""
from __future__ import annotations


class DiscoveryError(Exception):
    kind = "discovery_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DiscoveryError):
    """Malformed input. Returned before any network call."""

    kind = "validation_error"


class APIError(DiscoveryError):
    """The upstream provider answered with a non-success status."""

    kind = "api_error"


class NetworkError(APIError):
    """Transport failure, unparsable body, or a pass that ran out of time."""

    kind = "network_error"


class NotFoundError(DiscoveryError):
    """The pass succeeded but no candidate survived filtering."""

    kind = "not_found"

    def __init__(self, lat: float, lng: float, profile: str = "attractions") -> None:
        super().__init__(f"No {profile} found near ({lat}, {lng})")
        self.location = {"lat": lat, "lng": lng}
        self.profile = profile
