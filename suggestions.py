import logging
from typing import Optional, Sequence

import google.generativeai as genai
from rapidfuzz.distance import Levenshtein

from config import get_settings
from models import Category

logger = logging.getLogger(__name__)


class SuggestionUnavailable(RuntimeError):
    pass


def match_category_name(
    answer: Optional[str], categories: Sequence[Category]
) -> Optional[Category]:
    """Map a free-text model answer onto one of the known categories.

    Exact (case-insensitive) matches win. Otherwise a single category within
    one edit of the answer is accepted; anything else is rejected.
    """
    if not answer:
        return None
    wanted = answer.strip().strip("\"'.").strip().lower()
    if not wanted:
        return None
    for category in categories:
        if (category.name or "").strip().lower() == wanted:
            return category

    best_distance: Optional[int] = None
    best: list[Category] = []
    for category in categories:
        dist = int(Levenshtein.distance(wanted, (category.name or "").strip().lower()))
        if best_distance is None or dist < best_distance:
            best_distance = dist
            best = [category]
        elif dist == best_distance:
            best.append(category)
    if best_distance is not None and best_distance <= 1 and len(best) == 1:
        return best[0]
    return None


class CategorySuggestionService:
    def __init__(self) -> None:
        self.settings = get_settings()
        self._model = None

    def _configure(self):
        if not self.settings.gemini_api_key:
            raise SuggestionUnavailable("Category suggestions are not configured")
        if self._model is None:
            genai.configure(api_key=self.settings.gemini_api_key)
            self._model = genai.GenerativeModel(
                self.settings.suggest_model,
                generation_config={"temperature": 0.1},
            )
        return self._model

    @staticmethod
    def build_prompt(description: str, category_names: Sequence[str]) -> str:
        names = ", ".join(category_names)
        return (
            f'Based on the description "{description}", which of these categories '
            f"best fits? Options: {names}. Return only the category name."
        )

    async def _ask_model(self, prompt: str) -> Optional[str]:
        model = self._configure()
        response = await model.generate_content_async(prompt)
        text = response.text
        return text.strip() if text else None

    async def suggest(
        self, description: str, category_names: Sequence[str]
    ) -> Optional[str]:
        """Raw model answer; it may name no known category at all."""
        prompt = self.build_prompt(description, category_names)
        try:
            return await self._ask_model(prompt)
        except SuggestionUnavailable:
            raise
        except Exception as exc:
            logger.warning(f"category_suggest: provider_error={exc!r}")
            return None

    async def suggest_category(
        self, description: str, categories: Sequence[Category]
    ) -> Optional[Category]:
        if not categories:
            return None
        answer = await self.suggest(description, [c.name for c in categories])
        matched = match_category_name(answer, categories)
        matched_name = matched.name if matched else None
        logger.info(f"category_suggest: answer={answer!r} matched={matched_name!r}")
        return matched
