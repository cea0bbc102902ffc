from __future__ import annotations

from fastapi import APIRouter, HTTPException

from backoffice.application import UnsupportedOperationError, get_query_service
from backoffice.core.schema import AuthorizationLinkRequest, PartnerQuery, PartnerQueryResult
from backoffice.domain.batches import PROVIDERS

router = APIRouter(prefix="/partners", tags=["partners"])


def _check_provider(provider: str) -> str:
    provider = provider.lower()
    if provider not in PROVIDERS:
        raise HTTPException(status_code=404, detail=f"unknown provider: {provider}")
    return provider


@router.post("/{provider}/balance")
async def query_balance(provider: str, payload: PartnerQuery) -> PartnerQueryResult:
    try:
        return await get_query_service().balance(_check_provider(provider), payload)
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{provider}/offers")
async def list_offers(provider: str, payload: PartnerQuery) -> PartnerQueryResult:
    try:
        return await get_query_service().offers(_check_provider(provider), payload)
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{provider}/authorization-status")
async def authorization_status(provider: str, payload: PartnerQuery) -> PartnerQueryResult:
    try:
        return await get_query_service().authorization_status(_check_provider(provider), payload)
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.post("/{provider}/authorization-link")
async def authorization_link(provider: str, payload: AuthorizationLinkRequest) -> PartnerQueryResult:
    try:
        return await get_query_service().authorization_link(_check_provider(provider), payload)
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
