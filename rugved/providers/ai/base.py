"""Base interface for remote inference providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence


@dataclass(frozen=True)
class TranscriptEntry:
    """One role-tagged turn of the transcript sent to the model."""

    role: str  # "user" or "model"
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


class InferenceService(ABC):
    """Abstract base class for remote inference providers."""

    @abstractmethod
    async def generate(
        self, transcript: Sequence[TranscriptEntry], api_key: str
    ) -> Optional[str]:
        """
        Send the full transcript and return the first generated text fragment.

        Args:
            transcript: Every message of the conversation, oldest first
            api_key: Opaque credential for the remote service

        Returns:
            The generated text, or None when the reply carries no content

        Raises:
            TransportError: The service could not be reached
            RemoteRejectionError: The service answered with a failure
        """
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the provider."""
        pass
