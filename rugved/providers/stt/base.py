"""Base interface for speech capture devices."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CaptureEventKind(str, Enum):
    RESULT = "result"
    ERROR = "error"
    END = "end"


@dataclass
class CaptureEvent:
    """The single terminal event of one capture activation."""

    kind: CaptureEventKind
    text: Optional[str] = None
    reason: Optional[str] = None
    confidence: Optional[float] = None
    latency: Optional[float] = None

    @classmethod
    def result(cls, text: str, **kwargs) -> "CaptureEvent":
        return cls(CaptureEventKind.RESULT, text=text, **kwargs)

    @classmethod
    def failed(cls, reason: str) -> "CaptureEvent":
        return cls(CaptureEventKind.ERROR, reason=reason)

    @classmethod
    def end(cls) -> "CaptureEvent":
        return cls(CaptureEventKind.END)


class CaptureDevice(ABC):
    """Abstract base class for speech-to-text capture devices."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the device can be used on this machine."""
        pass

    @abstractmethod
    async def listen(self) -> CaptureEvent:
        """
        Run one capture activation.

        Returns exactly one terminal event: a recognized utterance, an error
        with its reason, or an end without any result.
        """
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Ask the running activation to finish early."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the capture device."""
        pass
