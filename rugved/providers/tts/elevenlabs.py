"""ElevenLabs speech output implementation."""

import os
import asyncio
import inspect
from io import BytesIO
from typing import Optional
import pygame
from elevenlabs import VoiceSettings
from elevenlabs.client import AsyncElevenLabs
import structlog

from .base import SpeechOutput


logger = structlog.get_logger()


class ElevenLabsSpeechOutput(SpeechOutput):
    """
    ElevenLabs TTS played through the pygame mixer.

    One utterance plays at a time; cancel() stops the mixer immediately and
    the pending speak() call returns.
    """

    def __init__(
        self,
        voice_id: str = "pNInz6obpgDQGcFmaJgB",  # Adam voice
        model_id: str = "eleven_flash_v2_5",
        output_format: str = "mp3_22050_32",
        stability: float = 0.5,
        similarity_boost: float = 0.8,
        style: float = 0.0,
        speed: float = 1.0,
        use_speaker_boost: bool = True,
        poll_interval: float = 0.05,
    ):
        self.voice_id = voice_id
        self.model_id = model_id
        self.output_format = output_format
        self.poll_interval = poll_interval

        self.voice_settings = VoiceSettings(
            stability=stability,
            similarity_boost=similarity_boost,
            style=style,
            use_speaker_boost=use_speaker_boost,
            speed=speed,
        )

        self.client: Optional[AsyncElevenLabs] = None
        self.is_playing = False
        self._cancelled = False
        self.utterance_count = 0

    def is_available(self) -> bool:
        return bool(os.getenv("ELEVENLABS_API_KEY"))

    def initialize(self) -> None:
        """Create the ElevenLabs client and the pygame mixer."""
        logger.info("Initializing ElevenLabs speech output", voice_id=self.voice_id)

        api_key = os.getenv("ELEVENLABS_API_KEY")
        if not api_key:
            raise ValueError("ELEVENLABS_API_KEY environment variable not set")

        self.client = AsyncElevenLabs(api_key=api_key)

        pygame.mixer.pre_init(frequency=22050, size=-16, channels=2, buffer=1024)
        pygame.mixer.init()

        logger.info("ElevenLabs speech output initialized")

    async def _synthesize(self, text: str) -> bytes:
        stream = self.client.text_to_speech.convert(
            voice_id=self.voice_id,
            text=text,
            model_id=self.model_id,
            output_format=self.output_format,
            voice_settings=self.voice_settings,
        )
        if inspect.isawaitable(stream):
            stream = await stream

        if isinstance(stream, (bytes, bytearray)):
            return bytes(stream)

        audio = BytesIO()
        async for chunk in stream:
            if self._cancelled:
                break
            if chunk:
                audio.write(chunk)
        return audio.getvalue()

    async def speak(self, text: str) -> None:
        """Synthesize the text and play it to completion or cancellation."""
        if not text:
            return
        if not self.client:
            self.initialize()

        self._cancelled = False
        logger.debug("Generating TTS audio", text_length=len(text))

        audio_data = await self._synthesize(text)
        if self._cancelled or not audio_data:
            return

        pygame.mixer.music.load(BytesIO(audio_data))
        pygame.mixer.music.play()
        self.is_playing = True
        self.utterance_count += 1
        logger.debug("Started audio playback", total_bytes=len(audio_data))

        try:
            while pygame.mixer.music.get_busy() and not self._cancelled:
                await asyncio.sleep(self.poll_interval)
        finally:
            if self._cancelled or pygame.mixer.music.get_busy():
                pygame.mixer.music.stop()
            self.is_playing = False
            logger.debug("Audio playback finished", cancelled=self._cancelled)

    def cancel(self) -> None:
        """Stop current audio playback."""
        self._cancelled = True
        if self.is_playing:
            logger.debug("Stopping audio playback")
            pygame.mixer.music.stop()
            self.is_playing = False

    def close(self) -> None:
        """Release the mixer and client."""
        logger.info("Stopping ElevenLabs speech output")
        self.cancel()
        if pygame.mixer.get_init() is not None:
            pygame.mixer.quit()
        self.client = None

    def get_status(self) -> dict:
        """Get ElevenLabs speech output status."""
        return {
            "provider": "elevenlabs",
            "voice_id": self.voice_id,
            "model_id": self.model_id,
            "is_playing": self.is_playing,
            "utterance_count": self.utterance_count,
            "initialized": self.client is not None,
        }
