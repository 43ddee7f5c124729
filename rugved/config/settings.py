"""Configuration settings for the Rugved client."""

import os
from pathlib import Path
from typing import Optional, Dict, Any, Union
from dataclasses import dataclass, asdict
import json
import structlog
from dotenv import load_dotenv
import threading


logger = structlog.get_logger()


@dataclass
class ProviderSettings:
    """Provider-specific settings."""
    # Gemini
    gemini_model: str = "gemini-2.5-flash"
    gemini_temperature: float = 0.7
    gemini_max_tokens: int = 2048

    # WhisperKit
    whisperkit_model: str = "large-v3_turbo"
    whisperkit_compute_units: str = "cpuAndNeuralEngine"
    whisperkit_path: str = "/opt/homebrew/bin/whisperkit-cli"

    # ElevenLabs
    elevenlabs_voice_id: str = "pNInz6obpgDQGcFmaJgB"  # Adam voice
    elevenlabs_model_id: str = "eleven_flash_v2_5"
    elevenlabs_output_format: str = "mp3_22050_32"
    elevenlabs_stability: float = 0.5
    elevenlabs_similarity_boost: float = 0.8
    elevenlabs_style: float = 0.0
    elevenlabs_speed: float = 1.0
    elevenlabs_use_speaker_boost: bool = True


@dataclass
class VoiceSettings:
    """Voice input/output settings."""
    voice_output: bool = True
    capture_provider: str = "whisperkit"
    speech_provider: str = "elevenlabs"
    sample_rate: int = 16000
    channels: int = 1
    vad_aggressiveness: int = 2
    silence_duration_ms: int = 800


@dataclass
class TimeoutSettings:
    """Timeout settings for various operations."""
    ai_response_timeout: float = 30.0  # seconds
    capture_max_duration: float = 15.0  # seconds
    transcribe_timeout: float = 60.0  # seconds


@dataclass
class CredentialSettings:
    """Where the API key lives."""
    path: str = "~/.rugved/credentials.json"
    env_var: str = "GOOGLE_API_KEY"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = "INFO"
    format: str = "json"
    file_enabled: bool = False
    file_rotation_mb: int = 10
    file_backup_count: int = 7


_SECTIONS = ("providers", "voice", "timeouts", "credentials", "logging")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Environment variable, settings section, attribute, converter
_ENV_OVERRIDES = (
    ("GEMINI_MODEL", "providers", "gemini_model", str),
    ("GEMINI_TEMPERATURE", "providers", "gemini_temperature", float),
    ("GEMINI_MAX_TOKENS", "providers", "gemini_max_tokens", int),
    ("WHISPERKIT_MODEL", "providers", "whisperkit_model", str),
    ("WHISPERKIT_COMPUTE_UNITS", "providers", "whisperkit_compute_units", str),
    ("WHISPERKIT_PATH", "providers", "whisperkit_path", str),
    ("ELEVENLABS_VOICE_ID", "providers", "elevenlabs_voice_id", str),
    ("ELEVENLABS_MODEL_ID", "providers", "elevenlabs_model_id", str),
    ("VOICE_OUTPUT", "voice", "voice_output", _as_bool),
    ("CAPTURE_PROVIDER", "voice", "capture_provider", str),
    ("SPEECH_PROVIDER", "voice", "speech_provider", str),
    ("AI_RESPONSE_TIMEOUT", "timeouts", "ai_response_timeout", float),
    ("CAPTURE_MAX_DURATION", "timeouts", "capture_max_duration", float),
    ("RUGVED_CREDENTIALS_PATH", "credentials", "path", str),
    ("LOG_LEVEL", "logging", "level", str),
    ("LOG_FORMAT", "logging", "format", str),
    ("LOG_FILE_ENABLED", "logging", "file_enabled", _as_bool),
)


class Settings:
    """Main settings class for the Rugved client."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None,
                 load_env: bool = True):
        self.config_file = Path(config_file) if config_file else None
        self._lock = threading.RLock()
        self._env_loaded = False

        self.providers = ProviderSettings()
        self.voice = VoiceSettings()
        self.timeouts = TimeoutSettings()
        self.credentials = CredentialSettings()
        self.logging = LoggingSettings()

        if load_env:
            self._load_env_file()

        if self.config_file and self.config_file.exists():
            self.load_from_file()

        if load_env:
            self.load_from_env()

    def _load_env_file(self) -> None:
        """Load environment variables from .env file."""
        if not self._env_loaded:
            # Look for .env in current directory and parent directories
            current_dir = Path.cwd()
            for parent in [current_dir] + list(current_dir.parents):
                env_file = parent / ".env"
                if env_file.exists():
                    load_dotenv(env_file)
                    logger.debug("Loaded .env file", path=str(env_file))
                    break
            self._env_loaded = True

    def load_from_file(self) -> None:
        """Load settings from configuration file."""
        if not self.config_file or not self.config_file.exists():
            return

        try:
            with self._lock:
                with open(self.config_file, 'r') as f:
                    config = json.load(f)

                for section in _SECTIONS:
                    if section not in config:
                        continue
                    target = getattr(self, section)
                    for key, value in config[section].items():
                        if hasattr(target, key):
                            setattr(target, key, value)
                        else:
                            logger.warning("Unknown setting ignored",
                                           section=section, key=key)

                logger.info("Loaded settings from file", file=str(self.config_file))

        except (OSError, ValueError) as e:
            logger.error("Failed to load settings from file",
                         file=str(self.config_file),
                         error=str(e))

    def load_from_env(self) -> None:
        """Load settings from environment variables."""
        with self._lock:
            for env_var, section, key, convert in _ENV_OVERRIDES:
                value = os.getenv(env_var)
                if not value:
                    continue
                try:
                    setattr(getattr(self, section), key, convert(value))
                except ValueError:
                    logger.warning("Invalid environment override ignored",
                                   variable=env_var, value=value)

    def save_to_file(self, file_path: Optional[Union[str, Path]] = None) -> None:
        """Save current settings to file."""
        save_path = Path(file_path) if file_path else self.config_file
        if not save_path:
            raise ValueError("No file path provided")

        with self._lock:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            with open(save_path, 'w') as f:
                json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info("Saved settings to file", file=str(save_path))

    def get_provider_config(self, provider_type: str) -> Dict[str, Any]:
        """Get configuration for a specific provider."""
        if provider_type == "gemini":
            return {
                "model_name": self.providers.gemini_model,
                "temperature": self.providers.gemini_temperature,
                "max_output_tokens": self.providers.gemini_max_tokens,
                "timeout": self.timeouts.ai_response_timeout,
            }
        elif provider_type == "whisperkit":
            return {
                "model": self.providers.whisperkit_model,
                "compute_units": self.providers.whisperkit_compute_units,
                "whisperkit_path": self.providers.whisperkit_path,
                "sample_rate": self.voice.sample_rate,
                "channels": self.voice.channels,
                "vad_aggressiveness": self.voice.vad_aggressiveness,
                "silence_duration_ms": self.voice.silence_duration_ms,
                "max_duration": self.timeouts.capture_max_duration,
                "transcribe_timeout": self.timeouts.transcribe_timeout,
            }
        elif provider_type == "elevenlabs":
            return {
                "voice_id": self.providers.elevenlabs_voice_id,
                "model_id": self.providers.elevenlabs_model_id,
                "output_format": self.providers.elevenlabs_output_format,
                "stability": self.providers.elevenlabs_stability,
                "similarity_boost": self.providers.elevenlabs_similarity_boost,
                "style": self.providers.elevenlabs_style,
                "speed": self.providers.elevenlabs_speed,
                "use_speaker_boost": self.providers.elevenlabs_use_speaker_boost,
            }
        else:
            raise ValueError(f"Unknown provider type: {provider_type}")

    def reload(self) -> None:
        """Reload settings from file and environment."""
        with self._lock:
            if self.config_file and self.config_file.exists():
                self.load_from_file()
            self.load_from_env()
            logger.info("Settings reloaded")

    def validate(self) -> list[str]:
        """Validate current settings and return list of issues."""
        issues = []

        if self.voice.sample_rate not in [8000, 16000, 32000, 48000]:
            issues.append(f"Invalid sample rate: {self.voice.sample_rate}")
        if self.voice.channels not in [1, 2]:
            issues.append(f"Invalid channels: {self.voice.channels}")
        if self.voice.vad_aggressiveness not in [0, 1, 2, 3]:
            issues.append(f"Invalid VAD aggressiveness: {self.voice.vad_aggressiveness}")

        if self.timeouts.ai_response_timeout <= 0:
            issues.append(f"Invalid AI response timeout: {self.timeouts.ai_response_timeout}")
        if self.timeouts.capture_max_duration <= 0:
            issues.append(f"Invalid capture duration: {self.timeouts.capture_max_duration}")

        if not 0.0 <= self.providers.gemini_temperature <= 2.0:
            issues.append(f"Invalid Gemini temperature: {self.providers.gemini_temperature}")

        return issues

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for serialization."""
        return {section: asdict(getattr(self, section)) for section in _SECTIONS}


# Global settings instance
settings = Settings()
