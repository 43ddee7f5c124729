"""Tests for utterance detection and the WhisperKit capture device."""

import asyncio
import pytest
import numpy as np
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from rugved.errors import CaptureFailedError
from rugved.providers.stt.base import CaptureEventKind
from rugved.utils.voice_activity import UtteranceDetector

try:
    from rugved.providers.stt.whisperkit import WhisperKitCaptureDevice
except OSError:
    # sounddevice cannot load without the PortAudio library
    pytest.skip("PortAudio library not available", allow_module_level=True)


def frame(size=480):
    return np.zeros(size, dtype=np.int16)


class TestUtteranceDetector:
    """Test end-of-utterance decisions."""

    def make_detector(self, pattern, **kwargs):
        with patch("rugved.utils.voice_activity.webrtcvad.Vad") as mock_vad_class:
            mock_vad_class.return_value.is_speech.side_effect = pattern
            return UtteranceDetector(**kwargs)

    def test_silence_never_completes(self):
        detector = self.make_detector([False] * 100)

        results = [detector.process_frame(frame()) for _ in range(100)]

        assert not any(results)
        assert detector.speech_started is False

    def test_speech_then_silence_completes(self):
        """Six voiced frames start speech; 800ms of silence ends it."""
        detector = self.make_detector([True] * 6 + [False] * 30)

        results = [detector.process_frame(frame()) for _ in range(6)]
        assert detector.speech_started is True
        assert not any(results)

        silent = [detector.process_frame(frame()) for _ in range(27)]
        assert silent[-1] is True
        assert not any(silent[:-1])

    def test_voice_resets_silence(self):
        detector = self.make_detector([True] * 6 + [False] * 20 + [True] + [False] * 26)

        results = [detector.process_frame(frame()) for _ in range(6 + 20 + 1 + 26)]

        assert not any(results)
        assert detector.silent_frames == 26

    def test_short_frames_are_padded(self):
        detector = self.make_detector([False])

        detector.process_frame(frame(100))

        sent = detector.vad.is_speech.call_args[0][0]
        assert len(sent) == detector.frame_size * 2

    def test_reset(self):
        detector = self.make_detector([True] * 6)
        for _ in range(6):
            detector.process_frame(frame())

        detector.reset()

        stats = detector.get_stats()
        assert stats["speech_started"] is False
        assert stats["frame_count"] == 0
        assert stats["recent_voice_ratio"] == 0


class TestWhisperKitCaptureDevice:
    """Test recording and transcription orchestration."""

    def setup_method(self):
        """Set up test fixtures."""
        self.device = WhisperKitCaptureDevice(whisperkit_path="/usr/local/bin/whisperkit-cli")

    @patch("rugved.providers.stt.whisperkit.sd.query_devices")
    @patch("rugved.providers.stt.whisperkit.shutil.which", return_value=None)
    def test_unavailable_without_cli(self, mock_which, mock_query):
        with patch("rugved.providers.stt.whisperkit.Path.exists", return_value=False):
            assert self.device.is_available() is False
        mock_query.assert_not_called()

    @patch("rugved.providers.stt.whisperkit.sd.query_devices", side_effect=ValueError("none"))
    @patch("rugved.providers.stt.whisperkit.shutil.which", return_value="/bin/whisperkit-cli")
    def test_unavailable_without_microphone(self, mock_which, mock_query):
        with patch("rugved.providers.stt.whisperkit.Path.exists", return_value=False):
            assert self.device.is_available() is False

    @patch("rugved.providers.stt.whisperkit.sd.query_devices")
    @patch("rugved.providers.stt.whisperkit.shutil.which", return_value="/bin/whisperkit-cli")
    def test_available(self, mock_which, mock_query):
        with patch("rugved.providers.stt.whisperkit.Path.exists", return_value=False):
            assert self.device.is_available() is True
        mock_query.assert_called_once_with(kind="input")

    def test_listen_returns_transcript(self):
        self.device._record_utterance = AsyncMock(return_value=np.ones(1600, dtype=np.int16))
        self.device._transcribe = AsyncMock(return_value="hello world")

        event = asyncio.run(self.device.listen())

        assert event.kind is CaptureEventKind.RESULT
        assert event.text == "hello world"
        assert self.device.is_listening is False
        assert self.device.activation_count == 1

    def test_listen_without_speech_ends(self):
        self.device._record_utterance = AsyncMock(return_value=np.array([], dtype=np.int16))
        self.device._transcribe = AsyncMock()

        event = asyncio.run(self.device.listen())

        assert event.kind is CaptureEventKind.END
        self.device._transcribe.assert_not_called()

    def test_listen_transcription_failure(self):
        self.device._record_utterance = AsyncMock(return_value=np.ones(10, dtype=np.int16))
        self.device._transcribe = AsyncMock(side_effect=CaptureFailedError("timed out"))

        event = asyncio.run(self.device.listen())

        assert event.kind is CaptureEventKind.ERROR
        assert event.reason == "timed out"

    def test_listen_audio_failure(self):
        self.device._record_utterance = AsyncMock(side_effect=OSError("no device"))

        event = asyncio.run(self.device.listen())

        assert event.kind is CaptureEventKind.ERROR
        assert "no device" in event.reason

    @patch("rugved.providers.stt.whisperkit.sf.write")
    @patch("rugved.providers.stt.whisperkit.asyncio.create_subprocess_exec")
    def test_transcribe_joins_output_lines(self, mock_exec, mock_write):
        process = Mock()
        process.pid = 1234
        process.returncode = 0
        process.communicate = AsyncMock(return_value=(b"Hello there.\n\nGeneral Kenobi\n", b""))
        mock_exec.return_value = process

        text = asyncio.run(self.device._transcribe(np.ones(10, dtype=np.int16)))

        assert text == "Hello there. General Kenobi"
        cmd = mock_exec.call_args[0]
        assert cmd[1] == "transcribe"
        assert "--model" in cmd
        mock_write.assert_called_once()

    @patch("rugved.providers.stt.whisperkit.sf.write")
    @patch("rugved.providers.stt.whisperkit.asyncio.create_subprocess_exec")
    def test_transcribe_nonzero_exit(self, mock_exec, mock_write):
        process = Mock()
        process.pid = 1234
        process.returncode = 1
        process.communicate = AsyncMock(return_value=(b"", b"model not found"))
        mock_exec.return_value = process

        with pytest.raises(CaptureFailedError, match="model not found"):
            asyncio.run(self.device._transcribe(np.ones(10, dtype=np.int16)))

    def test_stop_without_activation(self):
        asyncio.run(self.device.stop())
        assert self.device.get_status()["is_listening"] is False

    @patch("rugved.utils.voice_activity.webrtcvad.Vad")
    @patch("rugved.providers.stt.whisperkit.sd.InputStream")
    def test_recordings_share_one_detector(self, mock_stream, mock_vad_class):
        """Each recording resets the detector left by the previous one."""
        device = WhisperKitCaptureDevice(silence_duration_ms=60)
        utterance = [True] * 6 + [False] * 2
        mock_vad_class.return_value.is_speech.side_effect = utterance * 2

        def open_stream(callback, blocksize, **kwargs):
            for _ in utterance:
                callback(np.ones((blocksize, 1), dtype=np.int16), blocksize, None, None)
            return MagicMock()

        mock_stream.side_effect = open_stream

        async def record():
            device._stop_requested = asyncio.Event()
            return await device._record_utterance()

        first = asyncio.run(record())
        detector = device.detector
        second = asyncio.run(record())

        assert device.detector is detector
        assert len(first) == len(second) == 8 * detector.frame_size
        assert mock_vad_class.call_count == 1
        assert device.get_status()["vad"]["frame_count"] == 8
