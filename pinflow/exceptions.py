from __future__ import annotations as _annotations

__all__ = 'PinflowError', 'NodeSetupError', 'NodeRuntimeError'


class PinflowError(Exception):
    """Base class for errors raised by the engine itself."""

    message: str
    """The error message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NodeSetupError(PinflowError):
    """Error caused by an incorrectly configured node or edge."""


class NodeRuntimeError(PinflowError):
    """Error caused by a node returning something the engine cannot use while running."""
