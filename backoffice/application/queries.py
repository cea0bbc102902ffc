"""Single, interactive partner queries (one CPF at a time)."""
from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable

import httpx
import structlog

from backoffice.core.schema import AuthorizationLinkRequest, PartnerQuery, PartnerQueryResult
from backoffice.domain import ResultRecord, Subject
from backoffice.domain.batches import RESULT_ERROR, RESULT_SUCCESS, display_name, result_key
from backoffice.infrastructure import ResultRepository
from backoffice.infrastructure.partners import (
    Accepted,
    AuthenticationError,
    BasePartnerGateway,
    ConfigurationError,
    PartnerError,
    PartnerReply,
    build_gateway,
)

from .activity import ActivityLogService
from .profiles import ProfileService

log = structlog.get_logger(__name__)

GatewayCall = Callable[[Any, str], Awaitable[PartnerReply]]

BALANCE_PROVIDERS = {"v8", "facta"}
OFFER_PROVIDERS = {"facta", "c6"}
LINK_PROVIDERS = {"v8", "c6"}
STATUS_PROVIDERS = {"c6"}


class UnsupportedOperationError(ValueError):
    pass


def _require(provider: str, allowed: set[str], operation: str) -> None:
    if provider not in allowed:
        raise UnsupportedOperationError(f"{operation} não disponível para {display_name(provider)}.")


class PartnerQueryService:
    def __init__(self, results: ResultRepository, profiles: ProfileService, activity: ActivityLogService) -> None:
        self._results = results
        self._profiles = profiles
        self._activity = activity

    async def _call(self, provider: str, user_id: str, call: GatewayCall) -> PartnerReply | PartnerQueryResult:
        try:
            credentials = self._profiles.get_credentials(user_id, provider)
        except ConfigurationError as exc:
            return PartnerQueryResult(success=False, outcome="error", message=str(exc))

        gateway: BasePartnerGateway = build_gateway(provider, credentials)
        async with gateway:
            try:
                token = await gateway.authenticate()
                return await call(gateway, token)
            except (AuthenticationError, PartnerError, ValueError) as exc:
                return PartnerQueryResult(success=False, outcome="error", message=str(exc))
            except httpx.HTTPError as exc:
                log.warning("Partner query transport error", provider=provider, error=str(exc))
                return PartnerQueryResult(
                    success=False, outcome="error", message=f"Erro de comunicação com {display_name(provider)}."
                )

    @staticmethod
    def _result(reply: PartnerReply) -> PartnerQueryResult:
        if reply.is_error:
            return PartnerQueryResult(success=False, outcome="error", message=reply.message)
        return PartnerQueryResult(success=True, outcome="success", message=reply.message, data=reply.payload)

    def _store(self, provider: str, identifier: str, reply: PartnerReply, correlation_id: str | None = None) -> None:
        self._results.upsert(
            ResultRecord(
                key=result_key(provider, identifier),
                identifier=identifier,
                provider=provider,
                status=RESULT_ERROR if reply.is_error else RESULT_SUCCESS,
                message=reply.message,
                payload=dict(getattr(reply, "payload", None) or {}),
                source="query",
                correlation_id=correlation_id,
            )
        )

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    async def balance(self, provider: str, query: PartnerQuery) -> PartnerQueryResult:
        _require(provider, BALANCE_PROVIDERS, "Consulta de saldo FGTS")
        if provider == "v8" and not query.v8_provider:
            raise UnsupportedOperationError("Selecione o provedor da V8 (qi, cartos ou bms).")

        correlation_id = None
        if provider == "v8":
            correlation_id = str(uuid.uuid4())
            self._results.register_correlation(correlation_id, result_key(provider, query.cpf))

        async def call(gateway: Any, token: str) -> PartnerReply:
            if provider == "v8":
                return await gateway.query_balance(
                    query.cpf, token, v8_provider=query.v8_provider, correlation_id=correlation_id
                )
            return await gateway.query_balance(query.cpf, token)

        reply = await self._call(provider, query.user_id, call)
        self._activity.log(query.user_id, "Consulta FGTS", identifier=query.cpf, provider=provider)
        if isinstance(reply, PartnerQueryResult):
            return reply
        if isinstance(reply, Accepted):
            if reply.correlation_id and reply.correlation_id != correlation_id:
                self._results.register_correlation(reply.correlation_id, result_key(provider, query.cpf))
            return PartnerQueryResult(
                success=True,
                outcome="accepted",
                message="Consulta enviada. O saldo será recebido via webhook.",
                data={"correlation_id": reply.correlation_id or correlation_id},
            )
        self._store(provider, query.cpf, reply, correlation_id)
        return self._result(reply)

    async def offers(self, provider: str, query: PartnerQuery) -> PartnerQueryResult:
        _require(provider, OFFER_PROVIDERS, "Consulta de ofertas CLT")

        async def call(gateway: Any, token: str) -> PartnerReply:
            return await gateway.list_offers(query.cpf, token)

        reply = await self._call(provider, query.user_id, call)
        self._activity.log(
            query.user_id, f"Consulta CLT {display_name(provider)}", identifier=query.cpf, provider=provider
        )
        if isinstance(reply, PartnerQueryResult):
            return reply
        return self._result(reply)

    async def authorization_status(self, provider: str, query: PartnerQuery) -> PartnerQueryResult:
        _require(provider, STATUS_PROVIDERS, "Consulta de autorização")

        async def call(gateway: Any, token: str) -> PartnerReply:
            return await gateway.check_authorization_status(query.cpf, token)

        reply = await self._call(provider, query.user_id, call)
        self._activity.log(
            query.user_id, "Consulta de Autorização CLT", identifier=query.cpf, provider=provider
        )
        if isinstance(reply, PartnerQueryResult):
            return reply
        return self._result(reply)

    async def authorization_link(self, provider: str, request: AuthorizationLinkRequest) -> PartnerQueryResult:
        _require(provider, LINK_PROVIDERS, "Geração de link de autorização")

        async def call(gateway: Any, token: str) -> PartnerReply:
            if provider == "c6":
                subject = Subject(
                    cpf=request.cpf,
                    name=request.name,
                    birth_date=request.birth_date,
                    phone_area_code=request.phone.area_code,
                    phone_number=request.phone.number,
                )
                return await gateway.generate_authorization_link(subject, token)
            if not request.email or not request.gender:
                raise ValueError("E-mail e gênero são obrigatórios para gerar o termo na V8.")
            body = {
                "borrowerDocumentNumber": request.cpf,
                "gender": request.gender,
                "birthDate": request.birth_date,
                "signerName": request.name,
                "signerEmail": request.email,
                "signerPhone": {
                    "countryCode": request.phone.country_code,
                    "areaCode": request.phone.area_code,
                    "phoneNumber": request.phone.number,
                },
            }
            return await gateway.generate_authorization_link(body, token)

        reply = await self._call(provider, request.user_id, call)
        self._activity.log(
            request.user_id, "Geração de Link de Autorização", identifier=request.cpf, provider=provider
        )
        if isinstance(reply, PartnerQueryResult):
            return reply
        return self._result(reply)
