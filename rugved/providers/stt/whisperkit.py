"""WhisperKit capture device: microphone recording plus WhisperKit CLI transcription."""

import os
import shutil
import asyncio
import tempfile
import time
from pathlib import Path
from typing import List, Optional
import numpy as np
import sounddevice as sd
import soundfile as sf
import structlog

from .base import CaptureDevice, CaptureEvent
from ...errors import CaptureFailedError
from ...utils.voice_activity import UtteranceDetector


logger = structlog.get_logger()


class WhisperKitCaptureDevice(CaptureDevice):
    """
    Records one utterance from the default microphone and transcribes it.

    Audio is captured with sounddevice until webrtcvad hears the speaker stop,
    stop() is called, or max_duration elapses. The recording is written to a
    temporary WAV file and handed to whisperkit-cli.
    """

    def __init__(
        self,
        model: str = "large-v3_turbo",
        compute_units: str = "cpuAndNeuralEngine",
        whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli",
        sample_rate: int = 16000,
        channels: int = 1,
        vad_aggressiveness: int = 2,
        silence_duration_ms: int = 800,
        max_duration: float = 15.0,
        transcribe_timeout: float = 60.0,
    ):
        self.model = model
        self.compute_units = compute_units
        self.whisperkit_path = whisperkit_path
        self.sample_rate = sample_rate
        self.channels = channels
        self.vad_aggressiveness = vad_aggressiveness
        self.silence_duration_ms = silence_duration_ms
        self.max_duration = max_duration
        self.transcribe_timeout = transcribe_timeout

        self.is_listening = False
        self.detector: Optional[UtteranceDetector] = None
        self._stop_requested: Optional[asyncio.Event] = None

        self.activation_count = 0
        self.last_latency_ms: Optional[float] = None

    def _resolve_whisperkit(self) -> Optional[str]:
        if Path(self.whisperkit_path).exists():
            return self.whisperkit_path
        return shutil.which(Path(self.whisperkit_path).name)

    def is_available(self) -> bool:
        """Check for both the WhisperKit CLI and an input device."""
        if not self._resolve_whisperkit():
            logger.debug("WhisperKit CLI not found", whisperkit_path=self.whisperkit_path)
            return False

        try:
            sd.query_devices(kind="input")
        except (sd.PortAudioError, ValueError) as e:
            logger.debug("No audio input device", error=str(e))
            return False
        return True

    async def listen(self) -> CaptureEvent:
        """Record and transcribe a single utterance."""
        if self.is_listening:
            return CaptureEvent.failed("capture already in progress")

        self.is_listening = True
        self._stop_requested = asyncio.Event()
        self.activation_count += 1
        logger.info("Listening for speech", activation=self.activation_count)

        try:
            audio = await self._record_utterance()
            if audio.size == 0:
                logger.info("Capture ended without speech")
                return CaptureEvent.end()

            start_time = time.time()
            text = await self._transcribe(audio)
            self.last_latency_ms = (time.time() - start_time) * 1000

            if not text:
                return CaptureEvent.end()
            return CaptureEvent.result(text, latency=self.last_latency_ms)

        except CaptureFailedError as e:
            logger.error("Transcription failed", reason=e.reason)
            return CaptureEvent.failed(e.reason)
        except (sd.PortAudioError, OSError) as e:
            logger.error("Audio capture failed", error=str(e))
            return CaptureEvent.failed(str(e))
        finally:
            self.is_listening = False
            self._stop_requested = None

    async def stop(self) -> None:
        """Finish the current recording early."""
        if self._stop_requested is not None:
            logger.debug("Stop requested for capture")
            self._stop_requested.set()

    async def _record_utterance(self) -> np.ndarray:
        loop = asyncio.get_running_loop()
        frames: asyncio.Queue = asyncio.Queue()
        if self.detector is None:
            self.detector = UtteranceDetector(
                sample_rate=self.sample_rate,
                vad_aggressiveness=self.vad_aggressiveness,
                silence_duration_ms=self.silence_duration_ms,
            )
        else:
            self.detector.reset()
        detector = self.detector

        def audio_callback(indata, frame_count, time_info, status) -> None:
            if status:
                logger.warning("Audio callback status", status=str(status))
            loop.call_soon_threadsafe(frames.put_nowait, indata[:, 0].copy())

        captured: List[np.ndarray] = []
        started_at = loop.time()

        with sd.InputStream(
            samplerate=self.sample_rate,
            channels=self.channels,
            dtype="int16",
            blocksize=detector.frame_size,
            callback=audio_callback,
        ):
            while not self._stop_requested.is_set():
                if loop.time() - started_at > self.max_duration:
                    logger.info("Capture reached max duration", seconds=self.max_duration)
                    break

                try:
                    frame = await asyncio.wait_for(frames.get(), timeout=0.1)
                except asyncio.TimeoutError:
                    continue

                captured.append(frame)
                if detector.process_frame(frame):
                    break

        logger.debug("Recording finished", **detector.get_stats())
        if not detector.speech_started or not captured:
            return np.array([], dtype=np.int16)
        return np.concatenate(captured)

    async def _transcribe(self, audio: np.ndarray) -> str:
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as temp_file:
            temp_filename = temp_file.name

        try:
            sf.write(temp_filename, audio, self.sample_rate, subtype="PCM_16")

            cmd = [
                self._resolve_whisperkit() or self.whisperkit_path,
                "transcribe",
                "--audio-path",
                temp_filename,
                "--model",
                self.model,
                "--audio-encoder-compute-units",
                self.compute_units,
                "--text-decoder-compute-units",
                self.compute_units,
            ]

            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            logger.debug("WhisperKit subprocess started", pid=process.pid)

            try:
                stdout, stderr = await asyncio.wait_for(
                    process.communicate(), timeout=self.transcribe_timeout
                )
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                raise CaptureFailedError("WhisperKit transcription timed out")

            if process.returncode != 0:
                raise CaptureFailedError(
                    f"WhisperKit failed with code {process.returncode}: "
                    f"{stderr.decode(errors='replace').strip()}"
                )

            lines = [
                line.strip()
                for line in stdout.decode(errors="replace").splitlines()
                if line.strip()
            ]
            return " ".join(lines)

        finally:
            try:
                os.unlink(temp_filename)
            except OSError as e:
                logger.warning("Failed to remove temporary audio file", error=str(e))

    def get_status(self) -> dict:
        """Get WhisperKit capture status."""
        return {
            "provider": "whisperkit",
            "model": self.model,
            "is_listening": self.is_listening,
            "compute_units": self.compute_units,
            "whisperkit_path": self.whisperkit_path,
            "sample_rate": self.sample_rate,
            "activation_count": self.activation_count,
            "last_latency_ms": self.last_latency_ms,
            "vad": self.detector.get_stats() if self.detector else None,
        }
