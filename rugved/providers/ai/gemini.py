"""Gemini inference provider implementation."""

import time
from typing import Any, Optional, Sequence
import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
import structlog

from .base import InferenceService, TranscriptEntry
from ...errors import RemoteRejectionError, TransportError


logger = structlog.get_logger()


# Failures where the request may never have reached the model
_TRANSPORT_EXCEPTIONS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.RetryError,
    OSError,  # includes ConnectionError and TimeoutError
)


class GeminiProvider(InferenceService):
    """
    Gemini provider sending the whole transcript on every call.

    The service keeps no chat session between turns; the caller owns the
    history and replays it each time.
    """

    def __init__(
        self,
        model_name: str = "gemini-2.5-flash",
        temperature: float = 0.7,
        max_output_tokens: int = 2048,
        timeout: float = 30.0,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout

        self.is_generating = False
        self.request_count = 0
        self.last_latency_ms: Optional[float] = None

    @staticmethod
    def build_contents(transcript: Sequence[TranscriptEntry]) -> list:
        """Convert transcript entries to the Gemini contents payload."""
        return [
            {"role": entry.role, "parts": [{"text": entry.content}]}
            for entry in transcript
        ]

    @staticmethod
    def first_fragment(response: Any) -> Optional[str]:
        """Pull the first generated text part out of a response, if there is one."""
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return None

        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []
        if not parts:
            return None

        text = getattr(parts[0], "text", None)
        if text is None:
            return None
        if not isinstance(text, str):
            raise RemoteRejectionError("Malformed Gemini response: text part is not a string")
        return text or None

    async def generate(
        self, transcript: Sequence[TranscriptEntry], api_key: str
    ) -> Optional[str]:
        """Send the transcript to Gemini and return the first text fragment."""
        logger.debug(
            "Sending transcript to Gemini",
            model=self.model_name,
            turns=len(transcript),
        )

        self.is_generating = True
        self.request_count += 1
        start_time = time.time()

        try:
            genai.configure(api_key=api_key)
            model = genai.GenerativeModel(model_name=self.model_name)
            generation_config = genai.GenerationConfig(
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            )

            response = await model.generate_content_async(
                self.build_contents(transcript),
                generation_config=generation_config,
                request_options={"timeout": self.timeout},
            )
            text = self.first_fragment(response)

        except _TRANSPORT_EXCEPTIONS as e:
            logger.warning("Gemini unreachable", error=str(e))
            raise TransportError(str(e)) from e
        except google_exceptions.GoogleAPICallError as e:
            logger.warning("Gemini rejected request", status=e.code, error=str(e))
            raise RemoteRejectionError(str(e), status_code=e.code) from e
        except RemoteRejectionError:
            raise
        except (ValueError, TypeError, AttributeError, IndexError) as e:
            logger.warning("Malformed Gemini response", error=str(e))
            raise RemoteRejectionError(f"Malformed Gemini response: {e}") from e
        finally:
            self.is_generating = False
            self.last_latency_ms = (time.time() - start_time) * 1000

        logger.info(
            "Gemini response received",
            latency_ms=round(self.last_latency_ms, 1),
            has_content=text is not None,
        )
        return text

    def get_status(self) -> dict:
        """Get Gemini provider status."""
        return {
            "provider": "gemini",
            "model": self.model_name,
            "is_generating": self.is_generating,
            "request_count": self.request_count,
            "last_latency_ms": self.last_latency_ms,
        }
