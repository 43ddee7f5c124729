"""
Chat session: wires providers, history, voice control and the request pipeline.
"""

from pathlib import Path
from typing import Callable, Optional
from dataclasses import dataclass
import structlog

from .pipeline import PipelineState, RequestPipeline, TurnResult
from .voice_controller import VoiceController
from ..providers.ai.base import InferenceService
from ..providers.stt.base import CaptureDevice
from ..providers.tts.base import SpeechOutput
from ..providers.registry import registry
from ..state.conversation_store import ConversationStore
from ..state.credentials import CredentialStore, FileCredentialStore, MemoryCredentialStore
from ..config.settings import settings


logger = structlog.get_logger()


@dataclass
class ChatConfig:
    """Configuration for a chat session."""

    inference_provider: str = "gemini"
    capture_provider: Optional[str] = "whisperkit"  # None disables capture
    speech_provider: Optional[str] = "elevenlabs"  # None disables narration
    voice_output: bool = True
    mock_mode: bool = False
    transcript_path: Optional[str] = None


class ChatSession:
    """
    One conversation with the remote model.

    Owns the conversation store and hands it to the request pipeline; the
    presentation layer only calls the methods here and reads the history.
    """

    def __init__(
        self,
        config: ChatConfig,
        credentials: Optional[CredentialStore] = None,
        service: Optional[InferenceService] = None,
        capture: Optional[CaptureDevice] = None,
        output: Optional[SpeechOutput] = None,
        on_state_change: Optional[Callable[[PipelineState], None]] = None,
    ):
        self.config = config

        self.store = (
            ConversationStore.load(config.transcript_path)
            if config.transcript_path
            else ConversationStore()
        )
        self.credentials = credentials or self._initialize_credentials()
        self.service = service or self._initialize_inference_provider()
        self.voice = VoiceController(
            capture=capture or self._initialize_capture_provider(),
            output=output or self._initialize_speech_provider(),
        )
        self.pipeline = RequestPipeline(
            store=self.store,
            service=self.service,
            credentials=self.credentials,
            voice=self.voice,
            voice_output=config.voice_output,
            timeout=settings.timeouts.ai_response_timeout,
            on_state_change=on_state_change,
        )

    def _initialize_credentials(self) -> CredentialStore:
        if self.config.mock_mode:
            return MemoryCredentialStore("mock-api-key")
        return FileCredentialStore(
            path=settings.credentials.path, env_var=settings.credentials.env_var
        )

    def _initialize_inference_provider(self) -> InferenceService:
        """Initialize the inference provider based on configuration."""
        if self.config.mock_mode:
            from mocks.providers import MockInferenceService

            return MockInferenceService(delay=0.5)
        return registry.get_inference_provider(self.config.inference_provider)

    def _initialize_capture_provider(self) -> Optional[CaptureDevice]:
        """Initialize the capture provider; None leaves voice input unsupported."""
        if self.config.mock_mode:
            from mocks.providers import MockCaptureDevice

            return MockCaptureDevice()
        if not self.config.capture_provider:
            return None
        try:
            return registry.get_capture_provider(self.config.capture_provider)
        except (ValueError, OSError) as e:
            # OSError covers a missing PortAudio library
            logger.warning(
                "Capture provider unavailable",
                provider=self.config.capture_provider,
                error=str(e),
            )
            return None

    def _initialize_speech_provider(self) -> Optional[SpeechOutput]:
        """Initialize the speech provider; None disables narration."""
        if self.config.mock_mode:
            from mocks.providers import MockSpeechOutput

            return MockSpeechOutput()
        if not self.config.speech_provider:
            return None
        try:
            return registry.get_speech_provider(self.config.speech_provider)
        except (ValueError, OSError) as e:
            logger.warning(
                "Speech provider unavailable",
                provider=self.config.speech_provider,
                error=str(e),
            )
            return None

    @property
    def voice_output(self) -> bool:
        return self.pipeline.voice_output

    def toggle_voice_output(self) -> bool:
        """Flip narration on or off; returns the new setting."""
        self.pipeline.voice_output = not self.pipeline.voice_output
        if not self.pipeline.voice_output:
            self.voice.cancel_speech()
        logger.info("Voice output toggled", enabled=self.pipeline.voice_output)
        return self.pipeline.voice_output

    async def send(self, text: str) -> Optional[TurnResult]:
        """Submit typed text; see RequestPipeline.submit."""
        result = await self.pipeline.submit(text)
        if result is not None:
            self.save_transcript()
        return result

    async def capture_text(self) -> Optional[str]:
        """Listen for one utterance and return its text without sending it."""
        return await self.voice.start_capture()

    def login(self, api_key: str) -> None:
        self.credentials.set(api_key)

    def logout(self) -> None:
        """Forget the API key and the conversation."""
        self.credentials.clear()
        self.pipeline.reset()
        self.save_transcript()
        logger.info("Logged out")

    def clear(self) -> None:
        self.pipeline.reset()
        self.save_transcript()

    def save_transcript(self) -> None:
        if self.config.transcript_path:
            self.store.save(Path(self.config.transcript_path))

    async def close(self) -> None:
        await self.voice.close()
        self.save_transcript()

    def get_status(self) -> dict:
        """Get session status."""
        return {
            "pipeline_state": self.pipeline.state.value,
            "history_length": len(self.store),
            "voice_output": self.voice_output,
            "has_credential": self.credentials.get() is not None,
            "inference": self.service.get_status(),
            "voice": self.voice.get_status(),
        }
