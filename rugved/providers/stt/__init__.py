"""Speech capture providers."""

import structlog


def register_providers():
    """Register all capture providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings

    try:
        from .whisperkit import WhisperKitCaptureDevice
    except OSError as e:
        # sounddevice raises OSError when the PortAudio library is missing
        structlog.get_logger().warning(
            "Audio input library unavailable, voice capture disabled", error=str(e)
        )
        return

    registry.register_capture_provider(
        "whisperkit",
        WhisperKitCaptureDevice,
        lambda: settings.get_provider_config("whisperkit")
    )
