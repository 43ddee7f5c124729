"""
Mock provider implementations for testing the Rugved client.
"""

import asyncio
from typing import List, Optional, Sequence

from rugved.errors import RemoteRejectionError
from rugved.providers.ai.base import InferenceService, TranscriptEntry
from rugved.providers.stt.base import CaptureDevice, CaptureEvent
from rugved.providers.tts.base import SpeechOutput


class MockInferenceService(InferenceService):
    """
    Mock model that answers from a script.

    Each scripted reply is either a string, None (no generated content) or an
    exception instance to raise. Once the script runs out, canned replies are
    cycled. When a gate event is given, every call waits on it first.
    """

    def __init__(
        self,
        replies: Optional[List[object]] = None,
        gate: Optional[asyncio.Event] = None,
        delay: float = 0.0,
    ):
        self.replies = list(replies or [])
        self.gate = gate
        self.delay = delay
        self.calls: List[List[TranscriptEntry]] = []
        self.api_keys: List[str] = []
        self.mock_responses = [
            "I'm doing great, thank you for asking! How can I help you today?",
            "Here's a joke for you: **Why don't scientists trust atoms?** Because they *make up* everything!",
            "Try `pip install rugved` and then run `rugved chat`.",
        ]
        self.response_index = 0

    async def generate(
        self, transcript: Sequence[TranscriptEntry], api_key: str
    ) -> Optional[str]:
        """Return the next scripted reply."""
        self.calls.append(list(transcript))
        self.api_keys.append(api_key)

        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.replies:
            reply = self.replies.pop(0)
        else:
            reply = self.mock_responses[self.response_index % len(self.mock_responses)]
            self.response_index += 1

        if isinstance(reply, BaseException):
            raise reply
        return reply

    def get_status(self) -> dict:
        """Get mock inference status."""
        return {
            "provider": "mock_inference",
            "calls": len(self.calls),
        }


class MockCaptureDevice(CaptureDevice):
    """
    Mock microphone that returns scripted capture events.

    With hold=True an activation waits until stop() is called and then ends
    without a result, like a user toggling the microphone off.
    """

    def __init__(
        self,
        events: Optional[List[CaptureEvent]] = None,
        available: bool = True,
        hold: bool = False,
    ):
        self.events = list(events or [])
        self.available = available
        self.hold = hold
        self.is_listening = False
        self.stop_calls = 0
        self.mock_transcripts = [
            "Hello, how are you today?",
            "Tell me a joke.",
        ]
        self.transcript_index = 0
        self._stopped: Optional[asyncio.Event] = None

    def is_available(self) -> bool:
        return self.available

    async def listen(self) -> CaptureEvent:
        """Return the next scripted event."""
        self.is_listening = True
        self._stopped = asyncio.Event()
        try:
            if self.hold:
                await self._stopped.wait()
                return CaptureEvent.end()

            await asyncio.sleep(0)
            if self.events:
                return self.events.pop(0)

            text = self.mock_transcripts[self.transcript_index % len(self.mock_transcripts)]
            self.transcript_index += 1
            return CaptureEvent.result(text, confidence=0.95)
        finally:
            self.is_listening = False

    async def stop(self) -> None:
        """Stop mock capture."""
        self.stop_calls += 1
        if self._stopped is not None:
            self._stopped.set()

    def get_status(self) -> dict:
        """Get mock capture status."""
        return {
            "provider": "mock_capture",
            "is_listening": self.is_listening,
            "transcripts_generated": self.transcript_index,
        }


class MockSpeechOutput(SpeechOutput):
    """Mock speaker that records what it was asked to say."""

    def __init__(self, available: bool = True, duration: float = 0.0):
        self.available = available
        self.duration = duration
        self.spoken: List[str] = []
        self.finished: List[str] = []
        self.cancel_count = 0
        self.is_playing = False
        self.closed = False

    def is_available(self) -> bool:
        return self.available

    async def speak(self, text: str) -> None:
        """Pretend to narrate the text."""
        self.spoken.append(text)
        self.is_playing = True
        try:
            await asyncio.sleep(self.duration)
            self.finished.append(text)
        finally:
            self.is_playing = False

    def cancel(self) -> None:
        """Stop mock playback."""
        self.cancel_count += 1
        self.is_playing = False

    def close(self) -> None:
        """Release mock speaker."""
        self.cancel()
        self.closed = True

    def get_status(self) -> dict:
        """Get mock speech status."""
        return {
            "provider": "mock_speech",
            "is_playing": self.is_playing,
            "utterances": len(self.spoken),
        }


def rejection(status_code: int = 500, message: str = "Internal error") -> RemoteRejectionError:
    """Build the error a failing service would raise."""
    return RemoteRejectionError(message, status_code=status_code)
