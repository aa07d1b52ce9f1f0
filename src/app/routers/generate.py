from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from src.app.deps import CurrentUser, get_client_ip, get_generation_service, get_optional_user
from src.app.domain.errors import QuotaExceededError
from src.app.domain.models import CallerIdentity
from src.app.schemas.generate import GenerateRequest, LimitReachedResponse
from src.app.services.generation_service import GenerationService
from src.services.errors import GenerationAPIError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generate"])


@router.post("/generate")
async def generate(
    payload: GenerateRequest,
    user: Optional[CurrentUser] = Depends(get_optional_user),
    client_ip: Optional[str] = Depends(get_client_ip),
    service: GenerationService = Depends(get_generation_service),
) -> JSONResponse:
    prompt_text = (payload.promptText or "").strip()
    if not prompt_text:
        return JSONResponse(status_code=400, content={"error": "promptText is required in the request body."})

    identity = CallerIdentity(user_id=user.id if user else None, ip_address=client_ip)
    try:
        outcome = await run_in_threadpool(service.generate, prompt_text, identity)
    except QuotaExceededError as exc:
        body = LimitReachedResponse(error="Daily limit reached", message=exc.message)
        return JSONResponse(status_code=403, content=body.model_dump())
    except GenerationAPIError as exc:
        logger.error("Gemini API error: status=%d, details=%s", exc.status_code, exc.details)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "details": exc.details},
        )
    except Exception as exc:
        logger.exception("Error calling Gemini API")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to call Gemini API.", "details": str(exc)},
        )

    return JSONResponse(status_code=200, content=outcome.response)
