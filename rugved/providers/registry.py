"""Provider registry for dynamic provider loading."""

from typing import Dict, Type, Callable, Any
import structlog

from .stt.base import CaptureDevice
from .ai.base import InferenceService
from .tts.base import SpeechOutput


logger = structlog.get_logger()


class ProviderRegistry:
    """Registry for managing provider implementations."""

    def __init__(self):
        self._capture_providers: Dict[str, Type[CaptureDevice]] = {}
        self._inference_providers: Dict[str, Type[InferenceService]] = {}
        self._speech_providers: Dict[str, Type[SpeechOutput]] = {}
        self._provider_configs: Dict[str, Callable[[], Dict[str, Any]]] = {}

    def register_capture_provider(
        self,
        name: str,
        provider_class: Type[CaptureDevice],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a speech capture provider."""
        self._capture_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"capture:{name}"] = config_getter
        logger.debug(
            "Registered capture provider", name=name, class_name=provider_class.__name__
        )

    def register_inference_provider(
        self,
        name: str,
        provider_class: Type[InferenceService],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register an inference provider."""
        self._inference_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"inference:{name}"] = config_getter
        logger.debug(
            "Registered inference provider", name=name, class_name=provider_class.__name__
        )

    def register_speech_provider(
        self,
        name: str,
        provider_class: Type[SpeechOutput],
        config_getter: Callable[[], Dict[str, Any]] = None,
    ) -> None:
        """Register a speech output provider."""
        self._speech_providers[name] = provider_class
        if config_getter:
            self._provider_configs[f"speech:{name}"] = config_getter
        logger.debug(
            "Registered speech provider", name=name, class_name=provider_class.__name__
        )

    def _create(self, kind: str, providers: Dict[str, type], name: str, kwargs: dict):
        if name not in providers:
            raise ValueError(f"Unknown {kind} provider: {name}")

        config_key = f"{kind}:{name}"
        if config_key in self._provider_configs:
            # Explicit keyword arguments win over configured values
            kwargs = {**self._provider_configs[config_key](), **kwargs}

        return providers[name](**kwargs)

    def get_capture_provider(self, name: str, **kwargs) -> CaptureDevice:
        """Get a capture provider instance."""
        return self._create("capture", self._capture_providers, name, kwargs)

    def get_inference_provider(self, name: str, **kwargs) -> InferenceService:
        """Get an inference provider instance."""
        return self._create("inference", self._inference_providers, name, kwargs)

    def get_speech_provider(self, name: str, **kwargs) -> SpeechOutput:
        """Get a speech output provider instance."""
        return self._create("speech", self._speech_providers, name, kwargs)

    def list_capture_providers(self) -> list[str]:
        """List available capture providers."""
        return list(self._capture_providers.keys())

    def list_inference_providers(self) -> list[str]:
        """List available inference providers."""
        return list(self._inference_providers.keys())

    def list_speech_providers(self) -> list[str]:
        """List available speech providers."""
        return list(self._speech_providers.keys())

    def clear(self) -> None:
        """Clear all registered providers."""
        self._capture_providers.clear()
        self._inference_providers.clear()
        self._speech_providers.clear()
        self._provider_configs.clear()


# Global registry instance
registry = ProviderRegistry()
