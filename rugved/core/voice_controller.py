"""
Voice input/output controller.

Wraps a capture device and a speech output device behind a small state
machine. Capture results are handed back to the caller; the controller never
touches the conversation history itself.
"""

import asyncio
from enum import Enum
from dataclasses import dataclass
from typing import Optional
import structlog

from ..errors import CaptureFailedError, UnsupportedCaptureError
from ..providers.stt.base import CaptureDevice, CaptureEvent, CaptureEventKind
from ..providers.tts.base import SpeechOutput


logger = structlog.get_logger()


class CaptureState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    ERROR = "error"


@dataclass
class VoiceSession:
    """Transient capture state for a single utterance."""

    capture_state: CaptureState = CaptureState.IDLE
    last_transcript: Optional[str] = None


class VoiceController:
    """
    Drives capture and narration.

    Capture: idle -> listening -> idle on a result or manual stop, error on a
    device failure. Calling start_capture() while listening stops instead.

    Narration: speak() always cancels the utterance in progress before
    starting the new one, so at most one utterance is audible.
    """

    def __init__(
        self,
        capture: Optional[CaptureDevice] = None,
        output: Optional[SpeechOutput] = None,
    ):
        self.capture = capture
        self.output = output
        self.session = VoiceSession()
        self._speech_task: Optional[asyncio.Task] = None

    @property
    def capture_state(self) -> CaptureState:
        return self.session.capture_state

    @property
    def is_listening(self) -> bool:
        return self.session.capture_state is CaptureState.LISTENING

    @property
    def is_speaking(self) -> bool:
        return self._speech_task is not None and not self._speech_task.done()

    @property
    def capture_available(self) -> bool:
        return self.capture is not None and self.capture.is_available()

    @property
    def output_available(self) -> bool:
        return self.output is not None and self.output.is_available()

    async def start_capture(self) -> Optional[str]:
        """
        Listen for one utterance.

        Returns:
            The recognized text, or None if capture ended without a result
            or was stopped (including by a second start_capture() call)

        Raises:
            UnsupportedCaptureError: No capture device is available
            CaptureFailedError: The device reported a failure
        """
        if not self.capture_available:
            raise UnsupportedCaptureError()

        if self.is_listening:
            await self.stop_capture()
            return None

        self.session = VoiceSession(capture_state=CaptureState.LISTENING)
        logger.info("Capture started")

        try:
            event = await self.capture.listen()
        except asyncio.CancelledError:
            self.session = VoiceSession()
            raise
        except Exception as e:
            logger.error("Capture device raised", error=str(e), exc_info=True)
            event = CaptureEvent.failed(str(e))

        return self._finish_capture(event)

    def _finish_capture(self, event: CaptureEvent) -> Optional[str]:
        if event.kind is CaptureEventKind.ERROR:
            self.session = VoiceSession(capture_state=CaptureState.ERROR)
            logger.warning("Capture failed", reason=event.reason)
            raise CaptureFailedError(event.reason or "unknown error")

        text = (event.text or "").strip() if event.kind is CaptureEventKind.RESULT else ""
        if not text:
            self.session = VoiceSession()
            logger.info("Capture ended without a transcript")
            return None

        self.session = VoiceSession(last_transcript=text)
        logger.info("Transcript captured", length=len(text))
        return text

    async def stop_capture(self) -> None:
        """Ask the device to end the current activation."""
        if not self.is_listening or self.capture is None:
            return

        logger.info("Capture stop requested")
        await self.capture.stop()

    def speak(self, text: str) -> Optional[asyncio.Task]:
        """
        Narrate text, replacing whatever is currently being spoken.

        Returns the playback task, or None when there is nothing to play.
        Output device errors are logged, never raised. Must be called from
        inside the running event loop.
        """
        self.cancel_speech()

        if not text or self.output is None:
            return None

        try:
            if not self.output.is_available():
                logger.debug("Speech output unavailable, skipping narration")
                return None
            self._speech_task = asyncio.ensure_future(self.output.speak(text))
        except Exception as e:
            logger.error("Speech output failed", error=str(e), exc_info=True)
            return None

        self._speech_task.add_done_callback(self._on_speech_done)
        return self._speech_task

    def cancel_speech(self) -> None:
        """Stop the utterance in progress, if any."""
        if self.output is not None:
            try:
                self.output.cancel()
            except Exception as e:
                logger.error("Failed to cancel speech output", error=str(e))
        if self._speech_task is not None and not self._speech_task.done():
            self._speech_task.cancel()
        self._speech_task = None

    async def wait_until_spoken(self) -> None:
        """Wait for the current utterance to finish or be cancelled."""
        if self._speech_task is not None:
            await asyncio.wait({self._speech_task})

    @staticmethod
    def _on_speech_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Speech output failed", error=str(error))

    async def close(self) -> None:
        """Stop capture and narration, then release the output device."""
        await self.stop_capture()
        self.cancel_speech()
        if self.output is not None:
            try:
                self.output.close()
            except Exception as e:
                logger.error("Failed to release speech output", error=str(e))

    def get_status(self) -> dict:
        return {
            "capture_state": self.session.capture_state.value,
            "last_transcript": self.session.last_transcript,
            "is_speaking": self.is_speaking,
            "capture": self.capture.get_status() if self.capture else None,
            "output": self.output.get_status() if self.output else None,
        }
