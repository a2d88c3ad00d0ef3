"""Fact extraction from a single exchange using an LLM."""

import json
import logging
import math
from typing import Any

from groq import AsyncGroq
from openai import AsyncOpenAI

from ..errors import ExtractionError
from .models import Fact, FactCategory, clamp_importance

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You extract key facts about a person from a coaching conversation in the "{domain}" domain. Return a JSON array of facts. Each fact should be:
- A concise statement about the user (e.g., "Runs 3x per week", "Has two kids ages 5 and 8", "Goal: lose 20 pounds by June")
- Categorized as one of: personal, goal, preference, achievement, challenge
- Rated 1-10 for importance (10 = critical goal/identity fact, 1 = trivial detail)

Only extract facts explicitly stated or strongly implied by the USER. Do not invent information. Skip pleasantries, greetings, and meta-conversation. If there are no meaningful facts, return an empty array.

Respond ONLY with valid JSON: [{{"fact": "...", "category": "...", "importance": N}}]"""


class FactExtractor:
    """Extracts facts from an exchange using one chat-completions call."""

    def __init__(
        self,
        llm_client: AsyncOpenAI | AsyncGroq,
        model: str = "gpt-4o-mini",
        max_tokens: int = 500,
    ) -> None:
        """Initialize the extractor.

        Args:
            llm_client: An OpenAI-compatible async client.
            model: The model to use for extraction.
            max_tokens: Upper bound on the response length.
        """
        self.client = llm_client
        self.model = model
        self.max_tokens = max_tokens

    async def extract(self, user_text: str, assistant_text: str, domain: str) -> list[Fact]:
        """Extract facts about the user from one exchange.

        Args:
            user_text: What the user said.
            assistant_text: What the persona replied.
            domain: The persona's coaching domain, e.g. 'fitness'.

        Returns:
            List of extracted facts, empty if none found or on error.
        """
        if not user_text.strip():
            return []

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                temperature=0,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": EXTRACTION_PROMPT.format(domain=domain)},
                    {"role": "user", "content": self._format_exchange(user_text, assistant_text)},
                ],
            )
            content = response.choices[0].message.content or ""
            return self._parse_response(content)

        except ExtractionError as e:
            logger.warning(f"Fact extraction returned unusable content: {e}")
            return []
        except Exception as e:
            logger.warning(f"Fact extraction failed: {e}")
            return []

    def _format_exchange(self, user_text: str, assistant_text: str) -> str:
        """Format the exchange for the extraction prompt."""
        return f'USER said: "{user_text}"\n\nCOACH replied: "{assistant_text}"'

    def _parse_response(self, content: str) -> list[Fact]:
        """Parse LLM response into facts.

        Raises:
            ExtractionError: If the response is not a JSON array.
        """
        json_str = content.strip()
        if json_str.startswith("```"):
            # Remove markdown code fences around the JSON
            lines = [line for line in json_str.split("\n") if not line.startswith("```")]
            json_str = "\n".join(lines)

        if not json_str:
            return []

        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise ExtractionError("Expected a JSON array of facts")

        facts = []
        for item in data:
            fact = self._parse_item(item)
            if fact is None:
                logger.warning(f"Skipping invalid fact item: {item!r}")
                continue
            facts.append(fact)
        return facts

    def _parse_item(self, item: Any) -> Fact | None:
        """Validate one array item, or None if it is unusable."""
        if not isinstance(item, dict):
            return None

        text = item.get("fact")
        category = item.get("category")
        importance = item.get("importance")

        if not isinstance(text, str) or not text.strip():
            return None
        if isinstance(importance, bool) or not isinstance(importance, (int, float)):
            return None
        if not math.isfinite(importance):
            return None
        try:
            parsed_category = FactCategory(category)
        except ValueError:
            return None

        return Fact(
            fact=text.strip(),
            category=parsed_category,
            importance=clamp_importance(importance),
        )
