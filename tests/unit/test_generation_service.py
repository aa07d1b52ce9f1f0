from __future__ import annotations

import json
import pytest
from typing import Any, Optional
from unittest.mock import MagicMock

from src.app.domain.errors import QuotaExceededError, RepositoryError
from src.app.domain.models import (
    CallerIdentity,
    EntitlementOutcome,
    EntitlementResult,
    GenerationConfig,
    SavedRecipe,
)
from src.app.services.generation_service import GenerationService
from src.app.services.recipes import SAVED_FOLDER
from src.services.errors import GenerationAPIError


class EntitlementStub:
    def __init__(self, result: EntitlementResult) -> None:
        self.result = result
        self.calls: list[CallerIdentity] = []

    def evaluate(self, identity: CallerIdentity, now=None) -> EntitlementResult:
        self.calls.append(identity)
        return self.result


class GeneratorStub:
    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None) -> None:
        self.text = text
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def generate(self, prompt_text: str, system_instruction=None, config=GenerationConfig()) -> dict[str, Any]:
        self.calls.append({"prompt": prompt_text, "system": system_instruction, "config": config})
        if self.error:
            raise self.error
        parts = [{"text": self.text}] if self.text is not None else []
        return {"candidates": [{"content": {"role": "model", "parts": parts}}]}


ALLOWED = EntitlementResult(outcome=EntitlementOutcome.ALLOWED, daily_limit=5, usage_count=1)
DEGRADED = EntitlementResult(outcome=EntitlementOutcome.DEGRADED, daily_limit=5, reason="Profile missing")
DENIED = EntitlementResult(
    outcome=EntitlementOutcome.DENIED,
    daily_limit=5,
    usage_count=5,
    reason="You have reached your daily limit of 5 free generations. Upgrade to premium for unlimited access.",
)

USER = CallerIdentity(user_id="user-1", ip_address="203.0.113.9")
GUEST = CallerIdentity(ip_address="203.0.113.9")
RECIPE_TEXT = json.dumps({"recipeName": "Green Curry", "ingredients": ["coconut milk"]})


def make_service(entitlement: EntitlementResult, generator: GeneratorStub):
    ledger = MagicMock()
    ledger.record_attempt.return_value = "hist-1"
    recipes = MagicMock()
    recipes.save_recipe.return_value = (
        SavedRecipe(id="r1", user_id="user-1", recipe_name="Green Curry"),
        True,
    )
    service = GenerationService(
        EntitlementStub(entitlement),
        ledger,
        recipes,
        generator,
        system_instruction="You are a nutrition advisor.",
    )
    return service, ledger, recipes


class TestDenied:
    def test_denied_caller_never_reaches_upstream(self) -> None:
        generator = GeneratorStub(RECIPE_TEXT)
        service, ledger, recipes = make_service(DENIED, generator)

        with pytest.raises(QuotaExceededError) as exc_info:
            service.generate("curry please", USER)

        assert "daily limit of 5" in exc_info.value.message
        assert exc_info.value.daily_limit == 5
        assert generator.calls == []
        ledger.record_attempt.assert_not_called()
        recipes.save_recipe.assert_not_called()


class TestAuthenticated:
    def test_saves_recipe_and_names_history(self) -> None:
        generator = GeneratorStub(RECIPE_TEXT)
        service, ledger, recipes = make_service(ALLOWED, generator)

        outcome = service.generate("curry please", USER)

        assert outcome.recipe["recipeName"] == "Green Curry"
        assert outcome.saved_recipe_id == "r1"
        ledger.record_attempt.assert_called_once_with("curry please", user_id="user-1", is_anonymous=False)
        recipes.save_recipe.assert_called_once_with(
            "user-1",
            outcome.recipe,
            folder=SAVED_FOLDER,
            skip_duplicates=False,
        )
        ledger.attach_recipe_name.assert_called_once_with("hist-1", "Green Curry")

    def test_passes_system_prompt_and_config(self) -> None:
        generator = GeneratorStub(RECIPE_TEXT)
        service, _, _ = make_service(ALLOWED, generator)

        service.generate("curry please", USER)

        assert generator.calls[0]["system"] == "You are a nutrition advisor."
        assert generator.calls[0]["config"] == GenerationConfig()

    def test_returns_raw_response(self) -> None:
        generator = GeneratorStub("Just drink water.")
        service, _, recipes = make_service(ALLOWED, generator)

        outcome = service.generate("advice", USER)

        assert outcome.response["candidates"][0]["content"]["parts"][0]["text"] == "Just drink water."
        assert outcome.recipe is None
        recipes.save_recipe.assert_not_called()

    def test_save_failure_does_not_fail_request(self) -> None:
        generator = GeneratorStub(RECIPE_TEXT)
        service, ledger, recipes = make_service(ALLOWED, generator)
        recipes.save_recipe.side_effect = RepositoryError("insert", "unavailable")

        outcome = service.generate("curry please", USER)

        assert outcome.saved_recipe_id is None
        ledger.attach_recipe_name.assert_called_once_with("hist-1", "Green Curry")

    def test_degraded_entitlement_still_generates(self) -> None:
        generator = GeneratorStub(RECIPE_TEXT)
        service, _, _ = make_service(DEGRADED, generator)

        outcome = service.generate("curry please", USER)

        assert outcome.entitlement.outcome == EntitlementOutcome.DEGRADED
        assert len(generator.calls) == 1


class TestAnonymous:
    def test_guest_recipes_are_not_saved(self) -> None:
        generator = GeneratorStub(RECIPE_TEXT)
        service, ledger, recipes = make_service(ALLOWED, generator)

        outcome = service.generate("curry please", GUEST)

        assert outcome.recipe is None
        ledger.record_attempt.assert_called_once_with("curry please", user_id=None, is_anonymous=True)
        recipes.save_recipe.assert_not_called()
        ledger.attach_recipe_name.assert_not_called()


class TestUpstreamErrors:
    def test_api_error_propagates_after_attempt_is_recorded(self) -> None:
        generator = GeneratorStub(error=GenerationAPIError(429, "Gemini API request failed: RESOURCE_EXHAUSTED"))
        service, ledger, _ = make_service(ALLOWED, generator)

        with pytest.raises(GenerationAPIError) as exc_info:
            service.generate("curry please", USER)

        assert exc_info.value.status_code == 429
        ledger.record_attempt.assert_called_once()
