import asyncio

import pytest

from models import Category, TransactionType
from suggestions import (
    CategorySuggestionService,
    SuggestionUnavailable,
    match_category_name,
)

CATEGORIES = [
    Category(id=1, name="Feed", type=TransactionType.expense),
    Category(id=2, name="Fuel", type=TransactionType.expense),
    Category(id=3, name="Veterinary", type=TransactionType.expense),
]


def test_exact_match_ignores_case_and_punctuation() -> None:
    assert match_category_name("feed", CATEGORIES).id == 1
    assert match_category_name(' "Veterinary." ', CATEGORIES).id == 3


def test_single_typo_is_accepted_when_unambiguous() -> None:
    assert match_category_name("Veterinery", CATEGORIES).id == 3


def test_ambiguous_or_unknown_answers_are_rejected() -> None:
    # "Fued" is one edit from both Feed and Fuel
    assert match_category_name("Fued", CATEGORIES) is None
    assert match_category_name("Fee", CATEGORIES).id == 1
    assert match_category_name("Machinery", CATEGORIES) is None
    assert match_category_name("", CATEGORIES) is None
    assert match_category_name(None, CATEGORIES) is None


def test_prompt_lists_every_category() -> None:
    prompt = CategorySuggestionService.build_prompt("diesel for tractor", ["Feed", "Fuel"])

    assert '"diesel for tractor"' in prompt
    assert "Options: Feed, Fuel." in prompt


def test_suggest_without_api_key_is_unavailable(monkeypatch) -> None:
    service = CategorySuggestionService()
    monkeypatch.setattr(service.settings, "gemini_api_key", None)

    with pytest.raises(SuggestionUnavailable):
        asyncio.run(service.suggest("diesel", ["Fuel"]))


def test_suggest_category_validates_model_answer(monkeypatch) -> None:
    service = CategorySuggestionService()

    async def fake_ask(prompt: str):
        return "fuel."

    monkeypatch.setattr(service, "_ask_model", fake_ask)

    category = asyncio.run(service.suggest_category("diesel", CATEGORIES))

    assert category.name == "Fuel"


def test_provider_errors_yield_no_suggestion(monkeypatch, caplog) -> None:
    service = CategorySuggestionService()

    async def broken(prompt: str):
        raise ConnectionError("network down")

    monkeypatch.setattr(service, "_ask_model", broken)

    with caplog.at_level("WARNING", logger="suggestions"):
        assert asyncio.run(service.suggest_category("diesel", CATEGORIES)) is None
    assert "provider_error" in caplog.text


def test_no_categories_means_no_request(monkeypatch) -> None:
    service = CategorySuggestionService()

    async def unexpected(prompt: str):
        raise AssertionError("model should not be called")

    monkeypatch.setattr(service, "_ask_model", unexpected)

    assert asyncio.run(service.suggest_category("diesel", [])) is None
