# src/app/services/usage_ledger.py
"""
Usage ledger.
Records each generation attempt in usage_history and later tags it with the
recipe name parsed from the model output. Store failures are logged and
swallowed so the audit trail never blocks a generation.
"""
from __future__ import annotations

import logging
from typing import Optional

from src.app.domain.errors import RepositoryError
from src.app.domain.models import UsageHistoryRecord
from src.app.infra.db.base import UsageRepository

logger = logging.getLogger(__name__)


class UsageLedger:
    """Append-only audit trail of generation attempts. Never raises."""

    def __init__(self, repository: UsageRepository):
        self._repo = repository

    def record_attempt(
        self,
        prompt_text: str,
        user_id: Optional[str] = None,
        is_anonymous: bool = False,
    ) -> Optional[str]:
        record = UsageHistoryRecord(
            prompt_text=prompt_text,
            is_anonymous=is_anonymous,
            user_id=None if is_anonymous else user_id,
        )
        try:
            return self._repo.add_history(record)
        except RepositoryError as error:
            logger.warning("Usage history insert failed: user=%s, error=%s", user_id, error)
            return None

    def attach_recipe_name(self, record_id: Optional[str], recipe_name: str) -> None:
        if not record_id:
            return
        try:
            self._repo.set_history_recipe_name(record_id, recipe_name)
        except RepositoryError as error:
            logger.warning("Usage history recipe name update failed: id=%s, error=%s", record_id, error)
