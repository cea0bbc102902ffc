"""Receiver for asynchronous V8 balance callbacks."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from backoffice.core.identifiers import normalise_cpf
from backoffice.domain import ResultRecord
from backoffice.domain.batches import RESULT_ERROR, RESULT_SUCCESS, result_key
from backoffice.infrastructure import ResultRepository
from backoffice.infrastructure.partners import Accepted
from backoffice.infrastructure.partners.v8 import classify_balance_payload

log = structlog.get_logger(__name__)

PROVIDER = "v8"


class UnresolvableWebhookError(ValueError):
    """The callback carries neither a CPF nor a known correlation id."""


@dataclass(slots=True)
class WebhookOutcome:
    status: str
    message: str
    key: str | None = None


class WebhookService:
    def __init__(self, results: ResultRepository) -> None:
        self._results = results

    def _resolve(self, payload: dict[str, Any]) -> tuple[str, str]:
        document = payload.get("documentNumber")
        if document:
            try:
                identifier = normalise_cpf(document)
            except ValueError as exc:
                raise UnresolvableWebhookError(f"documentNumber inválido: {document}") from exc
            return result_key(PROVIDER, identifier), identifier

        for field_name in ("balanceId", "id"):
            correlation_id = payload.get(field_name)
            if not correlation_id:
                continue
            key = self._results.resolve_correlation(str(correlation_id))
            if key:
                return key, key.split("-", 1)[1]
        raise UnresolvableWebhookError("Não foi possível identificar o CPF da resposta recebida.")

    def receive(self, payload: dict[str, Any] | None) -> WebhookOutcome:
        """Upsert the callback into the Result Store.

        Repeated deliveries of the same payload leave the store unchanged.
        Store failures propagate to the caller.
        """

        if not payload:
            log.info("Webhook validation ping")
            return WebhookOutcome("success", "Webhook test successful. Endpoint is active.")

        key, identifier = self._resolve(payload)
        correlation_id = payload.get("balanceId") or payload.get("id")
        reply = classify_balance_payload(payload, correlation_id=str(correlation_id) if correlation_id else None)
        if isinstance(reply, Accepted):
            log.info("Webhook interim status ignored", key=key, status=payload.get("status"))
            return WebhookOutcome("ignored", "Status intermediário recebido; aguardando resultado final.", key)

        record = ResultRecord(
            key=key,
            identifier=identifier,
            provider=PROVIDER,
            status=RESULT_ERROR if reply.is_error else RESULT_SUCCESS,
            message=reply.message,
            payload=dict(payload),
            source="webhook",
            correlation_id=str(correlation_id) if correlation_id else None,
        )
        self._results.upsert(record)
        log.info("Webhook stored", key=key, status=record.status)
        return WebhookOutcome("success", "Webhook received and processed successfully.", key)
