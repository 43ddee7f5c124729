"""
Request pipeline: turns one user input into one complete conversation turn.
"""

import asyncio
from enum import Enum
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence
import structlog

from .sanitizer import SanitizedText, sanitize
from .voice_controller import VoiceController
from ..errors import InferenceError, MissingCredentialError, TransportError
from ..providers.ai.base import InferenceService, TranscriptEntry
from ..state.conversation_store import ConversationStore, Message, Sender
from ..state.credentials import CredentialStore


logger = structlog.get_logger()


FALLBACK_REPLY = "I'm sorry, I couldn't generate a response. Please try again."
ERROR_REPLY = "Sorry, something went wrong. Please try again."

_ROLES = {Sender.USER: "user", Sender.ASSISTANT: "model"}


class PipelineState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class TurnResult:
    """Outcome of one completed turn."""

    state: PipelineState
    user_message: Message
    assistant_message: Message
    speech_text: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.SUCCEEDED


def build_transcript(messages: Sequence[Message]) -> List[TranscriptEntry]:
    """Map the full history to role-tagged transcript entries."""
    return [TranscriptEntry(role=_ROLES[m.sender], content=m.text) for m in messages]


class RequestPipeline:
    """
    Sends the conversation to the remote model, one request at a time.

    submit() is a no-op while a request is in flight; there is no queue.
    Whatever happens during a turn, the pipeline ends back in IDLE.
    """

    def __init__(
        self,
        store: ConversationStore,
        service: InferenceService,
        credentials: CredentialStore,
        voice: Optional[VoiceController] = None,
        voice_output: bool = True,
        timeout: float = 30.0,
        on_state_change: Optional[Callable[[PipelineState], None]] = None,
    ):
        self.store = store
        self.service = service
        self.credentials = credentials
        self.voice = voice
        self.voice_output = voice_output
        self.timeout = timeout
        self.on_state_change = on_state_change

        self._state = PipelineState.IDLE

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_pending(self) -> bool:
        return self._state is PipelineState.SENDING

    def _set_state(self, state: PipelineState) -> None:
        self._state = state
        if self.on_state_change:
            try:
                self.on_state_change(state)
            except Exception as e:
                logger.error("State change callback error", error=str(e))

    async def submit(self, raw_input: str) -> Optional[TurnResult]:
        """
        Run one turn for the given input.

        Returns None without touching any state when the input is blank or a
        request is already in flight.

        Raises:
            MissingCredentialError: No API key is stored; history is untouched
        """
        if not raw_input or not raw_input.strip():
            logger.debug("Ignoring blank input")
            return None
        if self.is_pending:
            logger.info("Request already in flight, dropping input")
            return None

        api_key = self.credentials.get()
        if not api_key:
            raise MissingCredentialError()

        self._set_state(PipelineState.SENDING)
        try:
            user_message = self.store.append(
                Message(id=self.store.next_id(), text=raw_input, sender=Sender.USER)
            )
            transcript = build_transcript(self.store.snapshot())
            logger.info("Sending turn", turns=len(transcript))

            try:
                reply = await self._request(transcript, api_key)
            except InferenceError as e:
                return self._fail(user_message, e)
            except Exception as e:
                logger.error("Unexpected inference failure", error=str(e), exc_info=True)
                return self._fail(user_message, e)

            return self._succeed(user_message, reply)
        finally:
            self._set_state(PipelineState.IDLE)

    async def _request(self, transcript: List[TranscriptEntry], api_key: str) -> str:
        try:
            reply = await asyncio.wait_for(
                self.service.generate(transcript, api_key), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"No response after {self.timeout}s") from e

        if reply is None or not reply.strip():
            logger.warning("Reply carried no generated content, using fallback")
            return FALLBACK_REPLY
        return reply

    def _succeed(self, user_message: Message, reply: str) -> TurnResult:
        text = reply.strip()
        sanitized: SanitizedText = sanitize(text)

        assistant_message = self.store.append(
            Message(id=self.store.next_id(), text=text, sender=Sender.ASSISTANT)
        )
        self._set_state(PipelineState.SUCCEEDED)
        logger.info("Turn succeeded", reply_length=len(text))

        if self.voice_output and self.voice is not None:
            self.voice.speak(sanitized.speech)

        return TurnResult(
            state=PipelineState.SUCCEEDED,
            user_message=user_message,
            assistant_message=assistant_message,
            speech_text=sanitized.speech,
        )

    def _fail(self, user_message: Message, error: Exception) -> TurnResult:
        # Raw detail goes to the log only; the transcript gets a generic message
        logger.error(
            "Turn failed",
            error_type=type(error).__name__,
            error=str(error),
            status_code=getattr(error, "status_code", None),
        )
        assistant_message = self.store.append(
            Message(
                id=self.store.next_id(),
                text=ERROR_REPLY,
                sender=Sender.ASSISTANT,
                error=True,
            )
        )
        self._set_state(PipelineState.FAILED)
        return TurnResult(
            state=PipelineState.FAILED,
            user_message=user_message,
            assistant_message=assistant_message,
        )

    def speak_message(self, message: Message) -> Optional[asyncio.Task]:
        """Narrate a stored message again."""
        if self.voice is None or message.error:
            return None
        return self.voice.speak(sanitize(message.text).speech)

    def reset(self) -> None:
        """Drop the history and silence any narration."""
        if self.voice is not None:
            self.voice.cancel_speech()
        self.store.clear()
