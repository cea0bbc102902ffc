from __future__ import annotations

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Query

from backoffice.application import get_activity_service
from backoffice.core.schema import FileResult

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("")
async def list_activity(
    email: str | None = Query(default=None),
    provider: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
) -> dict:
    entries = get_activity_service().list(email=email, provider=provider, date_from=date_from, date_to=date_to)
    return {"items": [asdict(entry) for entry in entries]}


@router.get("/export")
async def export_activity(
    email: str | None = Query(default=None),
    provider: str | None = Query(default=None),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
) -> FileResult:
    return get_activity_service().export(email=email, provider=provider, date_from=date_from, date_to=date_to)
