"""Exception hierarchy for the conversation engine."""

from typing import Optional


class RugvedError(Exception):
    """Base class for all conversation engine errors."""


class InvalidMessageError(RugvedError, ValueError):
    """A message was rejected before it reached the history."""


class MissingCredentialError(RugvedError):
    """No API key is available for the remote model."""

    def __init__(self, message: str = "No API key configured. Run 'rugved login' first."):
        super().__init__(message)


class InferenceError(RugvedError):
    """The remote model could not produce a reply."""


class TransportError(InferenceError):
    """The remote model could not be reached (network failure or timeout)."""


class RemoteRejectionError(InferenceError):
    """The remote model answered but signalled failure."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CaptureError(RugvedError):
    """Base class for voice capture problems."""


class UnsupportedCaptureError(CaptureError):
    """No capture device is available on this machine."""

    def __init__(self, message: str = "Speech recognition is not supported on this system."):
        super().__init__(message)


class CaptureFailedError(CaptureError):
    """The capture device failed in the middle of an activation."""

    def __init__(self, reason: str):
        super().__init__(f"Speech recognition failed: {reason}")
        self.reason = reason
