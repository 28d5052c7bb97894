"""
AI event generation through an OpenAI-compatible chat completions API.

The generator is constructed explicitly (see EventGenerator.from_settings) and
handed to request handlers through a FastAPI dependency. When the API key, base
URL or model is missing it is created uninitialized; is_initialized() reports
that and generate_events() raises GenerationUnavailable.
"""

from __future__ import annotations

import json
import random
from typing import Any, Dict, List, Optional, Tuple

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from ..core.config import Settings, get_settings
from ..core.errors import GenerationUnavailable
from ..core.logger import get_logger
from ..models.schemas import EventData

logger = get_logger(__name__)

AMOUNT_VARIATION = 0.2
MAX_TOKENS = 800

EVENT_SYSTEM_PROMPT = """You are an event creator assistant for a property trading board game.
Create between {min_count} and {max_count} game events inspired by the user's input.

Reply with a single JSON object of the form:
{{"events": [{{"message": "...", "type": "...", "baseAmount": 0, "property": "..."}}]}}

Field rules:
- message: a short, clear event text shown to the player.
- type: one of "chance", "community_chest", "trade", "auction", "property", "system".
- baseAmount: optional positive number of money involved.
- property: optional property name the event refers to.

Do not mention that you are an AI or assistant.
Write messages in the same language as the user's input."""


# PUBLIC_INTERFACE
class GenerationResult(BaseModel):
    """Events produced for one prompt."""
    success: bool
    data: List[EventData] = Field(default_factory=list)
    error: Optional[str] = None


def _extract_entries(content: str) -> List[Any]:
    parsed = json.loads(content)
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        events = parsed.get("events")
        if isinstance(events, list):
            return events
        if "message" in parsed:
            return [parsed]
    return []


# PUBLIC_INTERFACE
class EventGenerator:
    """Turns free text into a list of EventData using a chat model."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        temperature: float = 0.7,
        default_range: Tuple[int, int] = (1, 5),
        rng: Optional[random.Random] = None,
    ):
        self._client = client
        self._model = model
        self._temperature = temperature
        self._default_range = default_range
        self._rng = rng or random.Random()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EventGenerator":
        """Build a generator from settings; uninitialized when configuration is incomplete."""
        s = settings or get_settings()
        default_range = (s.GENERATION_MIN_EVENTS, max(s.GENERATION_MIN_EVENTS, s.GENERATION_MAX_EVENTS))
        if not s.generation_configured():
            logger.info(
                "Event generation not configured; generator left uninitialized.",
                extra={
                    "api_key_set": bool(s.OPENAI_API_KEY),
                    "base_url_set": bool(s.OPENAI_BASE_URL),
                    "model_set": bool(s.OPENAI_MODEL),
                },
            )
            return cls(default_range=default_range)
        client = AsyncOpenAI(api_key=s.OPENAI_API_KEY, base_url=s.OPENAI_BASE_URL)
        logger.info("Event generator initialized.", extra={"model": s.OPENAI_MODEL})
        return cls(
            client=client,
            model=s.OPENAI_MODEL,
            temperature=s.OPENAI_TEMPERATURE,
            default_range=default_range,
        )

    def is_initialized(self) -> bool:
        return self._client is not None and bool(self._model)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()

    def _vary(self, event: EventData) -> EventData:
        if event.amount is None and event.base_amount is not None:
            factor = self._rng.uniform(1 - AMOUNT_VARIATION, 1 + AMOUNT_VARIATION)
            return event.model_copy(update={"amount": round(event.base_amount * factor)})
        return event

    def _resolve_range(self, min_count: Optional[int], max_count: Optional[int]) -> Tuple[int, int]:
        low = min_count if min_count is not None else self._default_range[0]
        high = max_count if max_count is not None else max(low, self._default_range[1])
        return low, max(low, high)

    async def generate_events(
        self,
        text: str,
        min_count: Optional[int] = None,
        max_count: Optional[int] = None,
    ) -> GenerationResult:
        """Ask the model for events based on text.

        Returns:
            GenerationResult with success=False when the reply held no usable events.

        Raises:
            GenerationUnavailable: not configured, or the API call failed.
        """
        if not self.is_initialized():
            raise GenerationUnavailable("Event generation is not configured")

        low, high = self._resolve_range(min_count, max_count)
        try:
            response = await self._client.chat.completions.create(  # type: ignore[union-attr]
                model=self._model,  # type: ignore[arg-type]
                messages=[
                    {"role": "system", "content": EVENT_SYSTEM_PROMPT.format(min_count=low, max_count=high)},
                    {"role": "user", "content": text},
                ],
                temperature=self._temperature,
                max_tokens=MAX_TOKENS,
                response_format={"type": "json_object"},
            )
        except OpenAIError as exc:
            logger.error("Event generation API call failed.", exc_info=exc)
            raise GenerationUnavailable(f"Event generation failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            return GenerationResult(success=False, error="No response generated")

        try:
            entries = _extract_entries(content)
        except json.JSONDecodeError as exc:
            logger.warning("Model reply was not valid JSON.", extra={"error": str(exc)})
            return GenerationResult(success=False, error="Model reply was not valid JSON")

        events: List[EventData] = []
        for entry in entries:
            try:
                events.append(self._vary(EventData.model_validate(entry)))
            except ValidationError as exc:
                logger.warning("Skipping malformed generated event.", extra={"entry": entry, "error": str(exc)})
        events = events[:high]

        if not events:
            return GenerationResult(success=False, error="No valid events generated")
        logger.info("Events generated.", extra={"count": len(events)})
        return GenerationResult(success=True, data=events)


def events_to_payloads(events: List[EventData]) -> List[Dict[str, Any]]:
    """Render generated events as stored payload dicts."""
    return [e.to_payload() for e in events]
