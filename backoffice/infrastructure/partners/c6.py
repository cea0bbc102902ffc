"""Integration with the C6 Bank marketplace (CLT private credit)."""
from __future__ import annotations

from typing import Any

import httpx
import structlog

from backoffice.core.amounts import parse_amount, parse_int
from backoffice.core.schema import Offer
from backoffice.domain import Subject

from .base import (
    AuthenticationError,
    BasePartnerGateway,
    PartnerReply,
    Success,
    UnrecognizedShape,
    decode_response,
    first_text,
    read_json_object,
)

log = structlog.get_logger(__name__)

DEFAULT_API_BASE = "https://marketplace-proposal-service-api-p.c6bank.info"
LOAN_PATH = "/marketplace/worker-payroll-loan"

AUTHORIZED = "AUTORIZADO"
NOT_AUTHORIZED = "NAO_AUTORIZADO"


def _error_message(body: dict[str, Any]) -> str | None:
    if body.get("errors") or body.get("error"):
        return first_text(body, "message", "error", "errors")
    return None


def _normalise_offer(item: dict[str, Any]) -> dict[str, Any]:
    return Offer(
        offer_id=str(item.get("id_oferta") or "") or None,
        product=item.get("nome_produto"),
        financed_amount=parse_amount(item.get("valor_financiado")),
        installment_amount=parse_amount(item.get("valor_parcela")),
        installments=parse_int(item.get("qtd_parcelas")),
        monthly_rate=parse_amount(item.get("taxa_mes")),
        status=item.get("status"),
    ).model_dump()


class C6Gateway(BasePartnerGateway):
    """Client for the C6 worker payroll loan marketplace."""

    provider = "c6"
    required_credentials = (
        ("c6_username", "Username"),
        ("c6_password", "Password"),
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
        form = {"username": self._credential("c6_username"), "password": self._credential("c6_password")}
        try:
            response = await self._client.post(self._url("/auth/token"), data=form)
        except httpx.HTTPError as exc:
            log.warning("C6 authentication request failed", error=str(exc))
            raise AuthenticationError("Erro de comunicação ao gerar token do C6.") from exc

        body = read_json_object(response)
        token = body.get("access_token")
        if not response.is_success or not token:
            detail = first_text(body, "message", "error") or response.text or f"HTTP {response.status_code}"
            raise AuthenticationError(f"Falha na autenticação com o C6: {detail}")
        return str(token)

    async def check_authorization_status(self, identifier: str, token: str) -> PartnerReply:
        response = await self._client.post(
            self._url(f"{LOAN_PATH}/authorization/status"),
            json={"cpf": identifier},
            headers=self._bearer(token),
        )
        reply = decode_response(response, provider=self.provider, error_message=_error_message)
        if isinstance(reply, Success):
            status = reply.payload.get("status")
            if not status:
                reply = UnrecognizedShape(provider=self.provider, raw=response.text, status_code=response.status_code)
            else:
                reply = Success(reply.payload, message=str(reply.payload.get("observacao") or status))
        return self._log_reply("authorization_status", identifier, reply)

    async def generate_authorization_link(self, subject: Subject, token: str) -> PartnerReply:
        body = {
            "cpf": subject.cpf,
            "nome": subject.name,
            "data_nascimento": subject.birth_date,
            "telefone": {"codigo_area": subject.phone_area_code, "numero": subject.phone_number},
        }
        response = await self._client.post(
            self._url(f"{LOAN_PATH}/authorization/link"), json=body, headers=self._bearer(token)
        )
        reply = decode_response(response, provider=self.provider, error_message=_error_message)
        if isinstance(reply, Success):
            if not reply.payload.get("link"):
                reply = UnrecognizedShape(provider=self.provider, raw=response.text, status_code=response.status_code)
            else:
                reply = Success(reply.payload, message="Link de autorização gerado.")
        return self._log_reply("authorization_link", subject.cpf, reply)

    async def list_offers(self, identifier: str, token: str) -> PartnerReply:
        response = await self._client.post(
            self._url(f"{LOAN_PATH}/offers"), json={"cpf": identifier}, headers=self._bearer(token)
        )
        reply = decode_response(response, provider=self.provider, error_message=_error_message)
        if isinstance(reply, Success):
            items = reply.payload.get("ofertas", reply.payload.get("items"))
            if not isinstance(items, list):
                reply = UnrecognizedShape(provider=self.provider, raw=response.text, status_code=response.status_code)
            else:
                offers = [_normalise_offer(item) for item in items if isinstance(item, dict)]
                message = f"{len(offers)} oferta(s) encontrada(s)." if offers else "Nenhuma oferta encontrada."
                reply = Success({"offers": offers}, message=message)
        return self._log_reply("offers", identifier, reply)


__all__ = ["C6Gateway", "AUTHORIZED", "NOT_AUTHORIZED"]
