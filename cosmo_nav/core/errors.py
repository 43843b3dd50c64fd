"""
Cosmo Error Types.

Failure taxonomy shared by the capture loop, the AI fallback chain and the
routing adapters. Each error maps to a recovery policy:

- PermissionDenied: fatal to the subsystem that raised it, surfaced to the user
- RecordingConflict: transient, the capture cycle is skipped silently
- TranscriptionFailure / NetworkFailure: logged, request abandoned
- AIRateLimited: retried with back-off, then degraded to keyword routing
- NoRouteFound / RoutingDenied: surfaced as a spoken message, no retry
"""


class CosmoError(Exception):
    """Base class for all Cosmo errors."""


class PermissionDenied(CosmoError):
    """Microphone or location access was refused."""

    def __init__(self, resource: str, message: str = ""):
        self.resource = resource
        super().__init__(message or f"{resource} permission denied")


class RecordingConflict(CosmoError):
    """A recording resource is already open."""


class TranscriptionFailure(CosmoError):
    """Speech-to-text failed for a clip."""


class NetworkFailure(CosmoError):
    """An HTTP call to an external service failed."""

    def __init__(self, service: str, message: str = "", status_code: int = None):
        self.service = service
        self.status_code = status_code
        super().__init__(message or f"{service} request failed")


class AIError(CosmoError):
    """The generative backend could not produce a usable decision."""


class AIRateLimited(AIError):
    """The generative backend rejected the call for rate or quota reasons."""


class MalformedAIResponse(AIError):
    """The generative backend answered without a valid structured decision."""

    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class RoutingError(CosmoError):
    """Base class for directions failures."""


class NoRouteFound(RoutingError):
    """The directions service returned no usable route."""


class RoutingDenied(RoutingError):
    """The directions service rejected the request (key or quota)."""
