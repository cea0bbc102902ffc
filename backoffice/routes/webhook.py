from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from backoffice.application import UnresolvableWebhookError, get_webhook_service

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/balance")
async def receive_balance(request: Request) -> JSONResponse:
    """Entry point for V8 balance callbacks; an empty body is the partner's validation ping."""
    raw = await request.body()
    payload = None
    if raw.strip():
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="invalid JSON body") from exc
        if not isinstance(payload, dict):
            raise HTTPException(status_code=422, detail="webhook body must be a JSON object")

    try:
        outcome = get_webhook_service().receive(payload)
    except UnresolvableWebhookError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except Exception as exc:
        log.exception("Webhook processing failed")
        return JSONResponse(
            {"status": "error", "message": "Internal error processing webhook.", "details": str(exc)},
            status_code=500,
        )
    return JSONResponse({"status": outcome.status, "message": outcome.message, "key": outcome.key})
