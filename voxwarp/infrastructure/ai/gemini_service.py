"""
Gemini Inference Service for VoxWarp

Uses the google.genai SDK for:
- Speech-to-text on recorded webm audio
- The LLM enrichment pass (clean up, summarize, action items, notes)

Gemini's own token counts are not VoxWarp tokens, so results carry no
reported cost and the orchestrator charges the estimate.
"""

import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import types

from voxwarp.config.settings import Settings, get_settings
from voxwarp.domain.enrichment import language_instruction
from voxwarp.domain.interfaces import InferenceProvider, InferenceResult
from voxwarp.infrastructure.exceptions import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    ProviderRateLimitError,
)


logger = logging.getLogger(__name__)


TRANSCRIPTION_INSTRUCTION = (
    "Transcribe this audio recording verbatim. "
    "Return only the transcript text, without commentary."
)


class GeminiInferenceService(InferenceProvider):
    """
    Inference provider backed by Gemini.

    Blocking SDK calls run in a worker thread so the event loop stays free.
    """

    AUDIO_MIME_TYPE = "audio/webm"
    TEMPERATURE = 0.3

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[genai.Client] = None,
    ):
        settings = settings or get_settings()
        self._model = settings.gemini_model
        self._max_output_tokens = settings.enrichment_max_output_tokens

        if client is None:
            if not settings.google_api_key:
                raise ConfigurationError(
                    "Missing GOOGLE_API_KEY environment variable",
                    missing_keys=["GOOGLE_API_KEY"]
                )
            client = genai.Client(api_key=settings.google_api_key)

        self._client = client
        logger.info(f"GeminiInferenceService initialized with model: {self._model}")

    async def transcribe(
        self,
        audio: bytes,
        language_hint: Optional[str] = None,
    ) -> InferenceResult:
        """
        Transcribe a webm recording.

        Args:
            audio: Raw audio bytes
            language_hint: ISO language code, or "auto"/None to detect

        Returns:
            InferenceResult with the transcript
        """
        instruction = TRANSCRIPTION_INSTRUCTION
        if language_hint and language_hint != "auto":
            instruction += f" The spoken language is '{language_hint}'."

        contents = [
            types.Part.from_bytes(data=audio, mime_type=self.AUDIO_MIME_TYPE),
            instruction,
        ]

        text = await self._generate(
            contents,
            types.GenerateContentConfig(temperature=0.0),
            operation="transcribe",
        )
        return InferenceResult(text=text.strip())

    async def enrich(
        self,
        text: str,
        mode_prompt: str,
        language_hint: Optional[str] = None,
    ) -> InferenceResult:
        """
        Run the enrichment pass with the mode prompt as system instruction.
        """
        system_instruction = mode_prompt
        instruction = language_instruction(language_hint)
        if instruction:
            system_instruction = f"{mode_prompt}\n\n{instruction}"

        result = await self._generate(
            text,
            types.GenerateContentConfig(
                system_instruction=system_instruction,
                temperature=self.TEMPERATURE,
                max_output_tokens=self._max_output_tokens,
            ),
            operation="enrich",
        )
        return InferenceResult(text=result.strip())

    async def _generate(self, contents, config, operation: str) -> str:
        try:
            response = await asyncio.to_thread(
                self._client.models.generate_content,
                model=self._model,
                contents=contents,
                config=config,
            )
        except Exception as e:
            raise self._map_error(e, operation)

        if not response.text:
            raise ProviderError(
                "Empty response from Gemini",
                model=self._model,
                operation=operation,
            )

        return response.text

    def _map_error(self, error: Exception, operation: str) -> ProviderError:
        """Translate an SDK failure into the provider error taxonomy."""
        error_msg = str(error).lower()

        if "rate" in error_msg or "quota" in error_msg or "429" in error_msg:
            logger.warning(f"Gemini rate limited during {operation}: {error}")
            return ProviderRateLimitError(
                "Gemini API rate limit exceeded",
                model=self._model,
                operation=operation,
                original_error=error,
            )

        if "api key" in error_msg or "permission" in error_msg or "401" in error_msg:
            logger.error(f"Gemini rejected credentials during {operation}: {error}")
            return ProviderAuthError(
                "Gemini API authentication failed",
                model=self._model,
                operation=operation,
                original_error=error,
            )

        logger.error(f"Gemini {operation} failed: {error}")
        return ProviderError(
            f"Gemini {operation} failed: {str(error)}",
            model=self._model,
            operation=operation,
            original_error=error,
        )
