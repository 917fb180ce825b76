"""
Text model backends used by the content generator.

Implementations:
- GeminiTextModel: Google Gemini through the google-genai SDK
- scripted doubles in the test suite
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..config import (
    GEMINI_API_KEY, GEMINI_MODEL, GEMINI_VISION_MODEL,
    GENERATION_TEMPERATURE, GENERATION_MAX_TOKENS
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str = "image/jpeg"


class TextModel(ABC):
    """Single-shot completion: system instructions, user prompt, optional image."""

    @abstractmethod
    async def generate(self, system_prompt: str, user_prompt: str,
                       image: Optional[ImageInput] = None) -> str:
        """Return the raw completion text."""


class GeminiTextModel(TextModel):
    """
    Gemini backend. The SDK client is created on first use so the service can
    start without credentials and fail per call instead.
    """

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        vision_model: str = GEMINI_VISION_MODEL,
        temperature: float = GENERATION_TEMPERATURE,
        max_output_tokens: int = GENERATION_MAX_TOKENS,
    ):
        self.api_key = api_key
        self.model = model
        self.vision_model = vision_model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self._client = None

    def _ensure_client(self):
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("GEMINI_API_KEY is not configured")
            from google import genai
            self._client = genai.Client(api_key=self.api_key)
            logger.info("Gemini client initialized: model=%s", self.model,
                        extra={"component": "generator"})
        return self._client

    async def generate(self, system_prompt: str, user_prompt: str,
                       image: Optional[ImageInput] = None) -> str:
        from google.genai import types

        client = self._ensure_client()
        contents = [user_prompt]
        model = self.model
        if image is not None:
            contents.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
            model = self.vision_model

        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            top_p=0.8,
            top_k=40,
        )
        response = await client.aio.models.generate_content(
            model=model,
            contents=contents,
            config=config,
        )
        text = (response.text or "").strip()
        logger.debug("Gemini response length: %d chars", len(text), extra={"component": "generator"})
        return text
