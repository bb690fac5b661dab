"""Exception types raised by the generator.

Configuration problems are reported synchronously, before any task exists.
Missing devices are a precondition failure: synchronous entry points turn
them into ``success=False`` results, background runs record them as a
``failed`` task.
"""

from __future__ import annotations

__all__ = ["ConfigurationError", "InvalidTransitionError", "MissingDevicesError", "ReplayDataError"]


class ConfigurationError(ValueError):
    """A generation parameter is outside its accepted bounds."""


class MissingDevicesError(LookupError):
    """The device catalog holds none of the devices a run needs."""

    def __init__(self, message: str = "missing devices", *, device_types: list[str] | None = None) -> None:
        super().__init__(message)
        self.device_types = device_types or []


class InvalidTransitionError(RuntimeError):
    """A task was asked to move along an edge its state machine does not allow."""


class ReplayDataError(LookupError):
    """No CSV rows are loaded, so there is nothing to replay."""
