"""
Content generation for catalog fields.

Every raw completion goes through `normalize` before it is used; a None result
means "skip this field" and never aborts the surrounding job.
"""

import logging
import re
from typing import Dict, Optional

import httpx

from ..catalog.items import CatalogItem, ImageRef
from ..config import FIELD_LIMITS, FieldLimits, IMAGE_FETCH_TIMEOUT_SEC, DEFAULT_TONE
from ..enums import Field, Tone
from .llm import ImageInput, TextModel
from .prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

ELLIPSIS = "..."

TONE_PROMPTS = {
    Tone.PROFESSIONAL: "Use a professional, authoritative tone. Be clear, concise, and trustworthy.",
    Tone.FUN: "Use a fun, energetic tone. Be playful and engaging while remaining informative.",
    Tone.URGENT: "Use an urgent, action-driven tone. Create a sense of scarcity and encourage immediate action.",
    Tone.LUXURY: "Use a sophisticated, premium tone. Emphasize exclusivity, quality, and elegance.",
}

FORMAT_RULES = """FORMAT:
- No hashtags, emojis or ALL CAPS words
- No quotation marks or markdown in the output
- No trademark symbols
SOURCE: only use the product information provided. Do not invent features or claims.
OUTPUT: return only the requested text. No explanations, no alternatives."""

FIELD_TASKS = {
    Field.TITLE: (
        "You are an expert SEO copywriter for e-commerce product pages.",
        "Write an SEO page title",
        "Lead with the product name and its strongest keyword. Include the brand when it helps.",
    ),
    Field.DESCRIPTION: (
        "You are an expert SEO copywriter specializing in e-commerce product descriptions.",
        "Write a meta description",
        "Start with a strong action verb, include one or two key benefits and end with a value proposition.",
    ),
    Field.ALT_TEXT: (
        "You write accessible image alt text for e-commerce product photos.",
        "Write alt text for the product image",
        "Describe what is visible: the product, its color, material and setting. Do not start with 'image of'.",
    ),
}

_HTML_TAG = re.compile(r"<[^>]*>")
_WRAPPING_QUOTES = re.compile(r"^[\"'“”‘’]+|[\"'“”‘’]+$")
_EMPHASIS = re.compile(r"\*\*|__|\*|`")
_HEADING = re.compile(r"^#+\s*")


def clean_text(html: str, limit: int = 500) -> str:
    """Strip markup and collapse whitespace so product copy fits in a prompt."""
    text = _HTML_TAG.sub(" ", html or "")
    return " ".join(text.split())[:limit].strip()


def truncate(text: str, limits: FieldLimits) -> str:
    cut = limits.max_length - len(ELLIPSIS)
    head = text[:cut]
    last_space = head.rfind(" ")
    if last_space > limits.min_break:
        return head[:last_space] + ELLIPSIS
    return head + ELLIPSIS


def normalize(raw: Optional[str], limits: FieldLimits) -> Optional[str]:
    """
    Clean a raw completion into a usable field value.

    Order: strip wrapping quotes, strip emphasis markers, collapse whitespace,
    reject values shorter than the minimum, truncate values over the maximum.
    """
    if not raw:
        return None
    text = _WRAPPING_QUOTES.sub("", raw.strip())
    text = _HEADING.sub("", _EMPHASIS.sub("", text))
    text = " ".join(text.split())
    if len(text) < limits.min_length:
        return None
    if len(text) > limits.max_length:
        text = truncate(text, limits)
    return text


def resolve_tone(tone: Optional[str]) -> Tone:
    try:
        return Tone((tone or DEFAULT_TONE).upper())
    except ValueError:
        return Tone.PROFESSIONAL


class ContentGenerator:
    """
    Produces candidate values for TITLE, DESCRIPTION and ALT_TEXT.

    ALT_TEXT uses two strategies: a vision prompt with the downloaded image
    (primary) and a text-only prompt built from product data (fallback). The
    fallback runs only when the primary yields nothing or raises.
    """

    def __init__(self, model: TextModel, http: Optional[httpx.AsyncClient] = None,
                 limits: Optional[Dict[Field, FieldLimits]] = None,
                 image_timeout: float = IMAGE_FETCH_TIMEOUT_SEC):
        self.model = model
        self.http = http
        self.limits = limits or FIELD_LIMITS
        self.image_timeout = image_timeout

    async def generate(self, field: Field, item: CatalogItem, tone: Optional[str] = None,
                       custom_instructions: Optional[str] = None,
                       image: Optional[ImageRef] = None) -> Optional[str]:
        tone_value = resolve_tone(tone)
        if field == Field.ALT_TEXT:
            if image is None:
                raise ValueError("ALT_TEXT generation needs an image")
            return await self._generate_alt_text(item, image, tone_value, custom_instructions)
        system_prompt = self._system_prompt(field, tone_value, custom_instructions)
        return await self._complete(field, system_prompt, self._product_prompt(field, item))

    async def _generate_alt_text(self, item: CatalogItem, image: ImageRef, tone: Tone,
                                 custom_instructions: Optional[str]) -> Optional[str]:
        system_prompt = self._system_prompt(Field.ALT_TEXT, tone, custom_instructions)
        value = None
        try:
            image_input = await self._fetch_image(image)
            value = await self._complete(
                Field.ALT_TEXT, system_prompt,
                self._product_prompt(Field.ALT_TEXT, item) + "\nThe product image is attached.",
                image=image_input, raise_errors=True,
            )
        except Exception as e:
            logger.warning("Vision alt text failed for %s/%s: %s", item.id, image.id, e,
                           extra={"component": "generator"})
        if value is not None:
            return value

        prometheus_metrics.increment_generation_fallbacks()
        return await self._complete(Field.ALT_TEXT, system_prompt, self._product_prompt(Field.ALT_TEXT, item))

    async def _complete(self, field: Field, system_prompt: str, user_prompt: str,
                        image: Optional[ImageInput] = None, raise_errors: bool = False) -> Optional[str]:
        try:
            raw = await self.model.generate(system_prompt, user_prompt, image=image)
        except Exception as e:
            prometheus_metrics.increment_generation(field.value, "error")
            if raise_errors:
                raise
            logger.error("Generation failed for %s: %s", field.value, e, extra={"component": "generator"})
            return None

        value = normalize(raw, self.limits[field])
        if value is None:
            prometheus_metrics.increment_generation(field.value, "rejected")
            logger.info("Discarded %s completion (%d chars)", field.value, len(raw or ""),
                        extra={"component": "generator"})
            return None
        prometheus_metrics.increment_generation(field.value, "ok")
        return value

    async def _fetch_image(self, image: ImageRef) -> ImageInput:
        if self.http is None or not image.url:
            raise RuntimeError("image download unavailable")
        resp = await self.http.get(image.url, timeout=self.image_timeout, follow_redirects=True)
        resp.raise_for_status()
        mime_type = resp.headers.get("content-type", "image/jpeg").split(";")[0].strip()
        return ImageInput(data=resp.content, mime_type=mime_type or "image/jpeg")

    def _system_prompt(self, field: Field, tone: Tone, custom_instructions: Optional[str]) -> str:
        role, _, guidance = FIELD_TASKS[field]
        limits = self.limits[field]
        parts = [
            role,
            f"LENGTH: {limits.target}, never more than {limits.max_length}.",
            f"TONE: {TONE_PROMPTS[tone]}",
            f"STRUCTURE: {guidance}",
            FORMAT_RULES,
        ]
        if custom_instructions:
            parts.append(f"ADDITIONAL INSTRUCTIONS: {custom_instructions.strip()}")
        return "\n".join(parts)

    def _product_prompt(self, field: Field, item: CatalogItem) -> str:
        _, task, _ = FIELD_TASKS[field]
        tags = ", ".join([t for t in item.tags if t][:10])
        lines = [
            f"{task} for this product:",
            "",
            f"Product Title: {item.title}",
            f"Brand: {item.vendor or 'Unknown'}",
            f"Tags/Keywords: {tags}",
        ]
        if item.price:
            lines.append(f"Price: {item.price}")
        lines.append(f"Product Details: {clean_text(item.description) or 'No description available'}")
        lines.append("")
        lines.append(f"Remember: output only the text ({self.limits[field].target}).")
        return "\n".join(lines)
