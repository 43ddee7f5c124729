"""End-of-utterance detection for microphone capture."""

import collections
from typing import Deque
import numpy as np
import webrtcvad
import structlog


logger = structlog.get_logger()


class UtteranceDetector:
    """
    Decides when a spoken utterance has finished.

    Frames are classified with webrtcvad. Speech starts once the share of voiced
    frames in a short window reaches speech_ratio; the utterance ends after
    silence_duration_ms of unvoiced frames following that start.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        frame_duration_ms: int = 30,
        vad_aggressiveness: int = 2,
        speech_ratio: float = 0.6,
        silence_duration_ms: int = 800,
        window_frames: int = 10,
    ):
        self.sample_rate = sample_rate
        self.frame_duration_ms = frame_duration_ms
        self.frame_size = int(sample_rate * frame_duration_ms / 1000)
        self.speech_ratio = speech_ratio
        self.silence_duration_ms = silence_duration_ms

        self.vad = webrtcvad.Vad(vad_aggressiveness)
        self.voice_frames: Deque[bool] = collections.deque(maxlen=window_frames)

        self.speech_started = False
        self.silent_frames = 0
        self.frame_count = 0

    def reset(self) -> None:
        self.voice_frames.clear()
        self.speech_started = False
        self.silent_frames = 0
        self.frame_count = 0

    def is_voiced(self, frame: np.ndarray) -> bool:
        """Classify a single int16 frame."""
        # webrtcvad only accepts exact 10/20/30ms frames
        if len(frame) < self.frame_size:
            frame = np.pad(frame, (0, self.frame_size - len(frame)))
        else:
            frame = frame[: self.frame_size]

        return self.vad.is_speech(frame.astype(np.int16).tobytes(), self.sample_rate)

    def process_frame(self, frame: np.ndarray) -> bool:
        """
        Feed one frame of audio.

        Returns True once the utterance is complete.
        """
        self.frame_count += 1
        voiced = self.is_voiced(frame)
        self.voice_frames.append(voiced)

        if not self.speech_started:
            ratio = sum(self.voice_frames) / self.voice_frames.maxlen
            if ratio >= self.speech_ratio:
                self.speech_started = True
                self.silent_frames = 0
                logger.debug("Speech started", frame=self.frame_count, voice_ratio=ratio)
            return False

        if voiced:
            self.silent_frames = 0
            return False

        self.silent_frames += 1
        if self.silent_frames * self.frame_duration_ms >= self.silence_duration_ms:
            logger.debug("Utterance complete", frames=self.frame_count)
            return True
        return False

    def get_stats(self) -> dict:
        return {
            "speech_started": self.speech_started,
            "silent_frames": self.silent_frames,
            "frame_count": self.frame_count,
            "recent_voice_ratio": sum(self.voice_frames) / len(self.voice_frames)
            if self.voice_frames
            else 0,
        }
