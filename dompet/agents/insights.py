"""
AI Insight Agent

DESIGN DECISION: The LLM only ever sees aggregates the Aggregation
Engine has already computed. It turns numbers into a short, friendly
paragraph; it does not compute, look up, or estimate anything.

CRITICAL BOUNDARIES:
   - CAN: Describe a month-over-month comparison in Indonesian
   - CANNOT: See individual ledger entries or member identities
   - CANNOT: Block a scheduled job. Any failure surfaces as
     InsightGenerationFailure and the caller uses deterministic text.
"""

import json
from abc import ABC, abstractmethod
from typing import Optional

import google.generativeai as genai

from dompet.config.settings import GeminiSettings, get_settings
from dompet.models.ledger import WindowSummary


class InsightGenerationFailure(Exception):
    """The insight text could not be produced (API error, empty reply)."""
    pass


class InsightGeneratorInterface(ABC):

    @abstractmethod
    async def summarize_comparison(self, current: WindowSummary, previous: WindowSummary) -> str:
        """
        Describe how `current` compares to `previous`.

        Raises:
            InsightGenerationFailure: If no text could be produced
        """
        pass


def _window_payload(summary: WindowSummary) -> dict:
    return {
        "total": str(summary.total_expense),
        "categories": {k: str(v) for k, v in summary.by_category.items()},
        "transactions": summary.entry_count,
    }


class InsightAgent(InsightGeneratorInterface):
    """Monthly spending insights via Gemini."""

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    def build_prompt(self, current: WindowSummary, previous: WindowSummary) -> str:
        current_data = json.dumps(_window_payload(current), indent=2)
        previous_data = json.dumps(_window_payload(previous), indent=2)

        return f"""Analyze this household spending data and provide insights in Indonesian.
Amounts are in Rupiah.

Current month:
{current_data}

Previous month:
{previous_data}

Provide concise insights in Indonesian with these sections:
1. 🎯 Key Trend (1 sentence about overall spending change)
2. ⚠️ Notable Pattern (1 sentence about unusual category changes, if any)
3. 💡 Recommendations (2 actionable tips)
4. 📊 Category Highlight (biggest percentage change)

IMPORTANT: Use ONLY the numbers above. Do NOT invent amounts.
Keep it brief, friendly, and actionable. Use emoji. Format as plain text, not markdown."""

    async def summarize_comparison(self, current: WindowSummary, previous: WindowSummary) -> str:
        prompt = self.build_prompt(current, previous)
        try:
            response = await self._model.generate_content_async(prompt)
            text = response.text.strip()
        except Exception as e:
            raise InsightGenerationFailure(f"Gemini request failed: {e}") from e

        if not text:
            raise InsightGenerationFailure("Gemini returned an empty response")
        return text
