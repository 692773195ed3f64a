"""Error taxonomy shared by the cache, gateway and reconciler layers."""

from __future__ import annotations

from typing import Optional


class GoalifyError(Exception):
    """Base class for every error raised by the coaching core."""


class StorageCorruption(GoalifyError):
    """A cached value could not be decoded. Readers treat it as a miss."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Cached value for '{key}' is unreadable: {reason}")
        self.key = key
        self.reason = reason


class DurabilityFailure(GoalifyError):
    """The local cache could not be written; there is no tier below it."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Failed to persist '{key}' locally: {reason}")
        self.key = key
        self.reason = reason


class RecordConflict(GoalifyError):
    """A remote write collided with the stored state (e.g. completing a goal twice)."""


class GatewayError(GoalifyError):
    """A remote store call failed. Subclasses carry the classification."""

    kind = "unknown"

    def __init__(self, operation: str, message: Optional[str] = None) -> None:
        detail = message or self.kind.replace("_", " ")
        super().__init__(f"{operation}: {detail}")
        self.operation = operation
        self.detail = detail


class GatewayUnavailable(GatewayError):
    kind = "unavailable"


class GatewayNotFound(GatewayError):
    kind = "not_found"


class GatewayConflict(GatewayError):
    kind = "conflict"


class GatewayInvalidInput(GatewayError):
    kind = "invalid_input"


class GatewayUnknown(GatewayError):
    kind = "unknown"


__all__ = [
    "DurabilityFailure",
    "GatewayConflict",
    "GatewayError",
    "GatewayInvalidInput",
    "GatewayNotFound",
    "GatewayUnavailable",
    "GatewayUnknown",
    "GoalifyError",
    "RecordConflict",
    "StorageCorruption",
]
