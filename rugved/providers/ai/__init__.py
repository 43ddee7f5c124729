"""Inference providers."""


def register_providers():
    """Register all inference providers."""
    # Import at function level to avoid circular imports
    from ..registry import registry
    from ...config.settings import settings
    from .gemini import GeminiProvider

    registry.register_inference_provider(
        "gemini", GeminiProvider, lambda: settings.get_provider_config("gemini")
    )
