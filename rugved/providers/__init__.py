"""Provider interfaces and implementations for capture, inference and speech."""

from .registry import registry


def register_all_providers():
    """
    Register all provider types.

    Deferred until a caller needs the registry, so importing the provider base
    classes does not pull in audio libraries. Safe to call more than once.
    """
    from . import stt, ai, tts
    registry.clear()
    stt.register_providers()
    ai.register_providers()
    tts.register_providers()


__all__ = ['registry', 'register_all_providers']
