from __future__ import annotations

from fastapi import APIRouter, HTTPException

from backoffice.application import get_profile_service
from backoffice.core.schema import CredentialsUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.put("/{uid}/credentials")
async def update_credentials(uid: str, payload: CredentialsUpdate) -> dict:
    service = get_profile_service()
    service.update_credentials(uid, payload.model_dump(exclude_unset=True))
    return {"status": "success", "message": "Credenciais atualizadas com sucesso.", "profile": service.get_profile(uid)}


@router.get("/{uid}")
async def get_user(uid: str) -> dict:
    profile = get_profile_service().get_profile(uid)
    if profile is None:
        raise HTTPException(status_code=404, detail="user not found")
    return profile
