"""Integration with the Facta webservice (FGTS balance and CLT offers)."""
from __future__ import annotations

from typing import Any

import httpx
import structlog

from backoffice.core.amounts import parse_amount, parse_int
from backoffice.core.schema import Offer

from .base import (
    AuthenticationError,
    BasePartnerGateway,
    EmptyBody,
    PartnerReply,
    Success,
    UnrecognizedShape,
    decode_response,
    read_json_object,
)

log = structlog.get_logger(__name__)

DEFAULT_API_BASE = "https://webservice.facta.com.br"


def _error_message(body: dict[str, Any]) -> str | None:
    if body.get("erro") in (True, "true", 1, "1"):
        return str(body.get("mensagem") or "Erro retornado pela API Facta.")
    return None


def _normalise_offer(item: dict[str, Any]) -> dict[str, Any]:
    offer = item.get("oferta") or {}
    answer = item.get("resposta") or {}
    return Offer(
        offer_id=str(answer.get("idSolicitacao") or offer.get("idSolicitacao") or "") or None,
        product="Consignado Trabalhador",
        financed_amount=parse_amount(answer.get("valorLiberado") or offer.get("valorLiberado")),
        installment_amount=parse_amount(answer.get("valorParcela")),
        installments=parse_int(answer.get("numeroParcelas") or offer.get("nroParcelas")),
        monthly_rate=parse_amount(answer.get("valorTaxaMensal")),
        status=str(offer.get("elegivelEmprestimo") or "") or None,
    ).model_dump()


class FactaGateway(BasePartnerGateway):
    """Client for the Facta webservice."""

    provider = "facta"
    required_credentials = (
        ("facta_username", "Username"),
        ("facta_password", "Password"),
    )

    def __init__(
        self,
        credentials: dict[str, str | None],
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(credentials, api_base=api_base, timeout=timeout, http_client=http_client)

    async def authenticate(self) -> str:
        self.check_credentials(self._credentials)
        auth = (self._credential("facta_username"), self._credential("facta_password"))
        try:
            response = await self._client.get(self._url("/gera-token"), auth=auth)
        except httpx.HTTPError as exc:
            log.warning("Facta authentication request failed", error=str(exc))
            raise AuthenticationError("Erro de comunicação ao gerar token da Facta.") from exc

        body = read_json_object(response)
        token = body.get("token")
        if body.get("erro") or not token:
            detail = body.get("mensagem") or response.text or f"HTTP {response.status_code}"
            raise AuthenticationError(f"Falha ao gerar token da Facta: {detail}")
        return str(token)

    async def query_balance(self, identifier: str, token: str) -> PartnerReply:
        """Facta answers the FGTS balance synchronously."""

        response = await self._client.get(
            self._url("/fgts/saldo"), params={"cpf": identifier}, headers=self._bearer(token)
        )
        reply = decode_response(response, provider=self.provider, error_message=_error_message)
        if isinstance(reply, Success):
            payload = reply.payload
            balance = payload.get("retorno", payload)
            if isinstance(balance, dict) and not balance:
                reply = EmptyBody(provider=self.provider, status_code=response.status_code)
            elif not isinstance(balance, dict) or "saldo_total" not in balance:
                reply = UnrecognizedShape(provider=self.provider, raw=response.text, status_code=response.status_code)
            else:
                reply = Success(balance, message=str(balance.get("msg") or payload.get("mensagem") or "Sucesso"))
        return self._log_reply("balance", identifier, reply)

    async def list_offers(self, identifier: str, token: str) -> PartnerReply:
        response = await self._client.get(
            self._url("/consignado-trabalhador/consulta-ofertas"),
            params={"cpf": identifier},
            headers=self._bearer(token),
        )
        reply = decode_response(response, provider=self.provider, error_message=_error_message)
        if isinstance(reply, Success):
            payload = reply.payload
            if parse_int(payload.get("total")) == 0:
                reply = Success({"offers": []}, message="Nenhuma oferta encontrada para o CPF informado.")
            elif isinstance(payload.get("dados"), list):
                offers = [_normalise_offer(item) for item in payload["dados"] if isinstance(item, dict)]
                message = f"{len(offers)} oferta(s) encontrada(s)."
                reply = Success({"offers": offers, "raw": payload["dados"]}, message=message)
            else:
                reply = UnrecognizedShape(provider=self.provider, raw=response.text, status_code=response.status_code)
        return self._log_reply("offers", identifier, reply)


__all__ = ["FactaGateway"]
