"""Integration with the V8 Digital payroll-credit API."""
from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from .base import (
    Accepted,
    AuthenticationError,
    BasePartnerGateway,
    PartnerReply,
    RecognizedError,
    Success,
    UnrecognizedShape,
    decode_response,
    first_text,
    read_json_object,
)

log = structlog.get_logger(__name__)

DEFAULT_AUTH_URL = "https://auth.v8sistema.com/oauth/token"
DEFAULT_API_BASE = "https://bff.v8sistema.com"

# Form values mapped to the enum accepted by the balance endpoint.
BALANCE_PROVIDERS = {
    "qi": "QI_TECH",
    "cartos": "CARTOS",
    "bms": "BMS",
}
PROVIDER_ENUM_ERROR = "body/provider must be equal to one of the allowed values"


def _error_message(body: dict[str, Any]) -> str | None:
    return first_text(body, "errorMessage", "error")


def classify_balance_payload(payload: dict[str, Any], *, correlation_id: str | None = None) -> PartnerReply:
    """Classify a balance body, either returned inline or delivered by webhook."""

    message = _error_message(payload)
    if message:
        return RecognizedError(message, None, payload)
    if "balance" in payload:
        return Success(payload)
    acknowledged = payload.get("balanceId") or payload.get("id")
    if acknowledged or payload.get("status"):
        key = acknowledged or correlation_id
        return Accepted(correlation_id=str(key) if key else None, payload=payload)
    return UnrecognizedShape(provider="v8", raw=json.dumps(payload, ensure_ascii=False), status_code=None)


class V8Gateway(BasePartnerGateway):
    """Client for the V8 FGTS balance and private consignment endpoints."""

    provider = "v8"
    required_credentials = (
        ("v8_username", "Username"),
        ("v8_password", "Password"),
        ("v8_audience", "Audience"),
        ("v8_client_id", "Client ID"),
    )

    def __init__(
        self,
        credentials: dict[str, str | None],
        *,
        auth_url: str = DEFAULT_AUTH_URL,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(credentials, api_base=api_base, timeout=timeout, http_client=http_client)
        self._auth_url = auth_url

    async def authenticate(self) -> str:
        self.check_credentials(self._credentials)
        form = {
            "grant_type": "password",
            "username": self._credential("v8_username"),
            "password": self._credential("v8_password"),
            "audience": self._credential("v8_audience"),
            "scope": "offline_access",
            "client_id": self._credential("v8_client_id"),
        }
        try:
            response = await self._client.post(self._auth_url, data=form)
        except httpx.HTTPError as exc:
            log.warning("V8 authentication request failed", error=str(exc))
            raise AuthenticationError("Erro de rede ao tentar autenticar com a API parceira.") from exc

        body = read_json_object(response)
        token = body.get("access_token")
        if not response.is_success or not token:
            detail = first_text(body, "error_description", "error") or response.text or f"HTTP {response.status_code}"
            raise AuthenticationError(f"Falha na autenticação com a V8: {detail}")
        return str(token)

    async def query_balance(
        self,
        identifier: str,
        token: str,
        *,
        v8_provider: str,
        correlation_id: str | None = None,
    ) -> PartnerReply:
        provider_for_api = BALANCE_PROVIDERS.get(v8_provider)
        if provider_for_api is None:
            raise ValueError(f"Provedor inválido selecionado: {v8_provider}")

        body: dict[str, Any] = {"documentNumber": identifier, "provider": provider_for_api}
        if correlation_id:
            body["balanceId"] = correlation_id
        response = await self._client.post(self._url("/fgts/balance"), json=body, headers=self._bearer(token))

        if response.status_code == 202 and not response.text.strip():
            return self._log_reply("balance", identifier, Accepted(correlation_id=correlation_id))

        reply = decode_response(response, provider=self.provider, error_message=_error_message)
        if isinstance(reply, RecognizedError) and reply.payload.get("error") == PROVIDER_ENUM_ERROR:
            reply = RecognizedError(
                f"Erro Crítico: A API da V8 rejeitou o valor do provedor '{provider_for_api}'. "
                "Verifique os valores aceitos para 'provider' (ex: 'BMS', 'CARTOS', 'QI_TECH').",
                reply.status_code,
                reply.payload,
            )
        elif isinstance(reply, Success):
            reply = classify_balance_payload(reply.payload, correlation_id=correlation_id)
        return self._log_reply("balance", identifier, reply)

    async def generate_authorization_link(self, request: dict[str, Any], token: str) -> PartnerReply:
        """Request the private consignment consent term for a borrower."""

        response = await self._client.post(
            self._url("/private-consignment/consult"),
            json={**request, "provider": "QI"},
            headers=self._bearer(token),
        )
        reply = decode_response(
            response,
            provider=self.provider,
            error_message=lambda body: first_text(body, "message", "error") if not response.is_success else None,
        )
        if isinstance(reply, RecognizedError) and reply.status_code and reply.status_code >= 400:
            reply = RecognizedError(f"Falha ao gerar termo: {reply.message}", reply.status_code, reply.payload)
        elif isinstance(reply, Success):
            consultation_id = reply.payload.get("consultationId")
            if not consultation_id:
                reply = RecognizedError(
                    "API retornou sucesso mas não incluiu o ID da consulta.", response.status_code, reply.payload
                )
            else:
                reply = Success(
                    reply.payload,
                    message="Termo de consentimento gerado com sucesso. O ID da consulta foi recebido.",
                )
        return self._log_reply("consent", str(request.get("borrowerDocumentNumber", "")), reply)


__all__ = ["V8Gateway", "classify_balance_payload", "BALANCE_PROVIDERS"]
