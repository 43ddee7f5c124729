"""Base interface for speech output devices."""

from abc import ABC, abstractmethod


class SpeechOutput(ABC):
    """Abstract base class for text-to-speech output."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the device can be used on this machine."""
        pass

    @abstractmethod
    async def speak(self, text: str) -> None:
        """
        Narrate the text, returning once playback has finished or was cancelled.

        Args:
            text: Plain text to narrate
        """
        pass

    @abstractmethod
    def cancel(self) -> None:
        """Stop the utterance currently playing, if any."""
        pass

    @abstractmethod
    def get_status(self) -> dict:
        """Get current status of the output device."""
        pass

    def close(self) -> None:
        """Release the device. The default just stops playback."""
        self.cancel()
