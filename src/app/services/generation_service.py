# src/app/services/generation_service.py
"""
Generation gateway.
Runs entitlement, the Gemini call and the bookkeeping around it for one
request.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from src.app.domain.errors import QuotaExceededError, RepositoryError
from src.app.domain.models import CallerIdentity, EntitlementResult, GenerationConfig
from src.app.services.entitlement_service import EntitlementService
from src.app.services.recipes import RecipeService, SAVED_FOLDER
from src.app.services.usage_ledger import UsageLedger
from src.services.recipe_parser import first_candidate_text, parse_recipe

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    def generate(
        self,
        prompt_text: str,
        system_instruction: Optional[str] = None,
        config: GenerationConfig = ...,
    ) -> dict[str, Any]:
        ...


@dataclass
class GenerationOutcome:
    response: dict[str, Any]
    entitlement: EntitlementResult
    recipe: Optional[dict[str, Any]] = None
    saved_recipe_id: Optional[str] = None


class GenerationService:
    def __init__(
        self,
        entitlements: EntitlementService,
        ledger: UsageLedger,
        recipes: RecipeService,
        generator: TextGenerator,
        system_instruction: Optional[str] = None,
        config: GenerationConfig = GenerationConfig(),
    ):
        self._entitlements = entitlements
        self._ledger = ledger
        self._recipes = recipes
        self._generator = generator
        self._system_instruction = system_instruction
        self._config = config

    def generate(self, prompt_text: str, identity: CallerIdentity) -> GenerationOutcome:
        """
        Generate one response for an entitled caller.

        Raises:
            QuotaExceededError: Caller is over the daily limit; nothing was sent upstream
            GenerationAPIError: Upstream rejected the request
        """
        entitlement = self._entitlements.evaluate(identity)
        if not entitlement.allowed:
            raise QuotaExceededError(
                message=entitlement.reason or "Daily generation limit reached",
                daily_limit=entitlement.daily_limit,
                is_anonymous=identity.is_anonymous,
            )
        if not entitlement.metered:
            logger.info("Generation proceeding unmetered: user=%s, reason=%s", identity.user_id, entitlement.reason)

        record_id = self._ledger.record_attempt(
            prompt_text,
            user_id=identity.user_id,
            is_anonymous=identity.is_anonymous,
        )

        response = self._generator.generate(
            prompt_text,
            system_instruction=self._system_instruction,
            config=self._config,
        )

        outcome = GenerationOutcome(response=response, entitlement=entitlement)
        if identity.is_anonymous:
            return outcome

        recipe = parse_recipe(first_candidate_text(response))
        if recipe is None:
            return outcome

        outcome.recipe = recipe
        try:
            saved, _ = self._recipes.save_recipe(
                identity.user_id,
                recipe,
                folder=SAVED_FOLDER,
                skip_duplicates=False,
            )
            outcome.saved_recipe_id = saved.id
        except RepositoryError as error:
            logger.warning("Saving generated recipe failed: user=%s, error=%s", identity.user_id, error)

        self._ledger.attach_recipe_name(record_id, recipe["recipeName"])
        return outcome
