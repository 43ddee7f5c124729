"""Speech output providers."""


def register_providers():
    """Register all speech output providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .elevenlabs import ElevenLabsSpeechOutput

    registry.register_speech_provider(
        "elevenlabs",
        ElevenLabsSpeechOutput,
        lambda: settings.get_provider_config("elevenlabs"),
    )
