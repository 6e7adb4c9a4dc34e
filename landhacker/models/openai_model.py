"""OpenAI-backed valuation model."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from .base import ValuationContext, ValuationModel, ValuationModelError
from .prompts import (
    MARKETING_SYSTEM,
    VALUATION_SYSTEM,
    build_marketing_prompt,
    build_valuation_prompt,
)
from ..core.config import settings

logger = logging.getLogger(__name__)


class OpenAIModel(ValuationModel):
    def __init__(self, client: Any = None, model: str | None = None):
        self.model = model or settings.OPENAI_MODEL
        if not self.model:
            raise RuntimeError("OPENAI_MODEL missing from settings")
        if client is None:
            if not settings.OPENAI_API_KEY:
                raise RuntimeError("OPENAI_API_KEY missing from settings")
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self.client = client

    async def _complete(self, system: str, prompt: str, **kwargs: Any) -> str:
        from openai import OpenAIError

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                **kwargs,
            )
        except OpenAIError as exc:
            raise ValuationModelError(f"OpenAI request failed: {exc}") from exc
        content = completion.choices[0].message.content
        if not content:
            raise ValuationModelError("OpenAI returned an empty message")
        return content

    async def analyze_property(self, context: ValuationContext) -> Dict[str, Any]:
        """Ask the model for a JSON valuation of ``context.subject``.

        Parameters
        ----------
        context: ValuationContext
            Subject property plus the normalized comparable summary and
            distance information gathered by the orchestrator.

        Returns
        -------
        Dict[str, Any]
            The decoded JSON object, unvalidated.
        """
        content = await self._complete(
            VALUATION_SYSTEM,
            build_valuation_prompt(context),
            response_format={"type": "json_object"},
            temperature=0,
        )
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ValuationModelError("OpenAI response was not valid JSON") from exc
        if not isinstance(data, dict):
            raise ValuationModelError("OpenAI response was not a JSON object")
        return data

    async def generate_marketing_description(self, property_details: Dict[str, Any], target_audience: str) -> str:
        return await self._complete(MARKETING_SYSTEM, build_marketing_prompt(property_details, target_audience))
