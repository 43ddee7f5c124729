"""Tests for the chat session wiring."""

import asyncio
import tempfile
import pytest
from pathlib import Path
from unittest.mock import patch

from mocks.providers import (
    MockCaptureDevice,
    MockInferenceService,
    MockSpeechOutput,
)
from rugved.core.chat_session import ChatConfig, ChatSession
from rugved.core.pipeline import PipelineState
from rugved.errors import MissingCredentialError
from rugved.state.conversation_store import ConversationStore
from rugved.state.credentials import MemoryCredentialStore


class TestChatSession:
    """Test the session facade used by the terminal client."""

    def setup_method(self):
        """Set up test fixtures."""
        self.service = MockInferenceService(replies=["Hi **there**"])
        self.capture = MockCaptureDevice()
        self.output = MockSpeechOutput()
        self.credentials = MemoryCredentialStore("test-key")

    def make_session(self, **config):
        return ChatSession(
            ChatConfig(**config),
            credentials=self.credentials,
            service=self.service,
            capture=self.capture,
            output=self.output,
        )

    def test_send_runs_a_turn(self):
        session = self.make_session()

        async def run():
            result = await session.send("Hello")
            await session.voice.wait_until_spoken()
            return result

        result = asyncio.run(run())

        assert result.succeeded
        assert len(session.store) == 2
        assert self.output.finished == ["Hi there"]
        assert session.get_status()["pipeline_state"] == PipelineState.IDLE.value

    def test_toggle_voice_output(self):
        session = self.make_session(voice_output=True)

        assert session.toggle_voice_output() is False
        assert session.pipeline.voice_output is False
        assert self.output.cancel_count == 1
        assert session.toggle_voice_output() is True

    def test_capture_text(self):
        session = self.make_session()
        assert asyncio.run(session.capture_text()) == "Hello, how are you today?"

    def test_logout_clears_key_and_history(self):
        session = self.make_session()
        asyncio.run(session.send("Hello"))

        session.logout()

        assert len(session.store) == 0
        assert self.credentials.get() is None
        with pytest.raises(MissingCredentialError):
            asyncio.run(session.send("Hello again"))

    def test_transcript_is_saved_and_restored(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = str(Path(tmp_dir) / "transcript.json")

            session = self.make_session(transcript_path=path)
            asyncio.run(session.send("Hello"))

            restored = ConversationStore.load(path)
            resumed = self.make_session(transcript_path=path)

        assert [m.text for m in restored] == ["Hello", "Hi **there**"]
        assert len(resumed.store) == 2
        assert resumed.store.next_id() == 3

    def test_mock_mode_builds_mock_providers(self):
        session = ChatSession(ChatConfig(mock_mode=True))

        assert isinstance(session.service, MockInferenceService)
        assert isinstance(session.voice.capture, MockCaptureDevice)
        assert isinstance(session.voice.output, MockSpeechOutput)
        assert session.credentials.get() == "mock-api-key"

    @patch("rugved.core.chat_session.registry")
    def test_unavailable_voice_providers_are_disabled(self, mock_registry):
        mock_registry.get_capture_provider.side_effect = ValueError("Unknown capture provider")
        mock_registry.get_speech_provider.side_effect = OSError("PortAudio library not found")

        session = ChatSession(
            ChatConfig(), credentials=self.credentials, service=self.service
        )

        assert session.voice.capture is None
        assert session.voice.output is None

    @patch("rugved.core.chat_session.registry")
    def test_disabled_providers_are_not_built(self, mock_registry):
        session = ChatSession(
            ChatConfig(capture_provider=None, speech_provider=None),
            credentials=self.credentials,
            service=self.service,
        )

        mock_registry.get_capture_provider.assert_not_called()
        mock_registry.get_speech_provider.assert_not_called()
        assert session.voice.capture_available is False
