from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class GenerateRequest(BaseModel):
    # Validated in the handler so a missing prompt is a 400, not a 422
    promptText: Optional[str] = None


class LimitReachedResponse(BaseModel):
    error: str
    limitReached: bool = True
    message: str
