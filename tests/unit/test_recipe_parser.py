from __future__ import annotations

import pytest

from src.services.recipe_parser import first_candidate_text, parse_recipe


def gemini_response(*texts: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": t} for t in texts]}}]}


class TestFirstCandidateText:
    def test_joins_parts(self) -> None:
        assert first_candidate_text(gemini_response('{"recipe', 'Name": "Soup"}')) == '{"recipeName": "Soup"}'

    def test_no_candidates(self) -> None:
        assert first_candidate_text({}) is None
        assert first_candidate_text({"candidates": []}) is None

    def test_candidate_without_text(self) -> None:
        assert first_candidate_text({"candidates": [{"finishReason": "SAFETY"}]}) is None


class TestParseRecipe:
    def test_plain_json(self) -> None:
        recipe = parse_recipe('{"recipeName": "Shakshuka", "ingredients": ["eggs"]}')
        assert recipe == {"recipeName": "Shakshuka", "ingredients": ["eggs"]}

    def test_fenced_json(self) -> None:
        text = 'Here you go:\n```json\n{"recipeName": "Dal"}\n```\nEnjoy!'
        assert parse_recipe(text) == {"recipeName": "Dal"}

    def test_object_inside_prose(self) -> None:
        text = 'Sure! {"recipeName": "Pho", "servings": 2} Let me know.'
        assert parse_recipe(text) == {"recipeName": "Pho", "servings": 2}

    @pytest.mark.parametrize(
        "text",
        [
            None,
            "",
            "Drink more water and sleep well.",
            '["not", "an", "object"]',
            '{"ingredients": ["rice"]}',
            '{"recipeName": "   "}',
            '{"recipeName": 42}',
            "{broken json",
        ],
    )
    def test_non_recipes_return_none(self, text) -> None:
        assert parse_recipe(text) is None
