from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import httpx
import structlog

from backoffice.domain import BatchJob, JobFinalizedError, ResultRecord
from backoffice.domain.batches import RESULT_ERROR, RESULT_SUCCESS, result_key
from backoffice.infrastructure import BatchJobRepository, ResultRepository
from backoffice.infrastructure.partners import (
    Accepted,
    AuthenticationError,
    BasePartnerGateway,
    ConfigurationError,
    PartnerError,
    PartnerReply,
    build_gateway,
)
from backoffice.infrastructure.partners.c6 import AUTHORIZED, NOT_AUTHORIZED

log = structlog.get_logger(__name__)

CredentialsLookup = Callable[[str, str], dict[str, str]]
GatewayBuilder = Callable[[str, dict[str, str]], BasePartnerGateway]


@dataclass
class RunSummary:
    stored: int = 0
    awaiting: int = 0
    failed: int = 0

    def message(self) -> str:
        return (
            f"Processamento concluído: {self.stored} com resultado, "
            f"{self.awaiting} aguardando webhook, {self.failed} com erro."
        )


class BatchRunner:
    """Drives one batch job at a time per task.

    Identifiers of a job are dispatched strictly one after another to stay
    within partner rate limits; separate jobs run in separate tasks.
    """

    def __init__(
        self,
        jobs: BatchJobRepository,
        results: ResultRepository,
        credentials: CredentialsLookup,
        *,
        gateway_builder: GatewayBuilder | None = None,
    ) -> None:
        self._jobs = jobs
        self._results = results
        self._credentials = credentials
        self._build_gateway = gateway_builder or build_gateway
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # task management
    # ------------------------------------------------------------------
    def spawn(self, job_id: str) -> asyncio.Task[None]:
        """Start processing ``job_id`` in the background and return immediately."""

        task = asyncio.get_running_loop().create_task(self.run(job_id), name=f"batch:{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every spawned job (used on shutdown and in tests)."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # job lifecycle
    # ------------------------------------------------------------------
    async def run(self, job_id: str) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            log.warning("Batch not found", batch_id=job_id)
            return
        if job.is_terminal:
            log.info("Batch already finished", batch_id=job_id, status=job.status)
            return

        log.info("Batch started", batch_id=job.id, provider=job.provider, kind=job.kind, total=job.total)
        try:
            await self._run(job)
        except Exception as exc:
            log.exception("Batch failed", batch_id=job.id)
            self._fail(job.id, str(exc) or type(exc).__name__)

    def _fail(self, job_id: str, message: str) -> None:
        try:
            self._jobs.fail(job_id, message)
        except JobFinalizedError:
            log.warning("Batch already finalised, error not recorded", batch_id=job_id, error=message)

    async def _run(self, job: BatchJob) -> None:
        try:
            credentials = self._credentials(job.owner_id, job.provider)
        except ConfigurationError as exc:
            log.warning("Batch credentials incomplete", batch_id=job.id, missing=exc.missing)
            self._jobs.fail(job.id, str(exc))
            return

        gateway = self._build_gateway(job.provider, credentials)
        async with gateway:
            try:
                token = await gateway.authenticate()
            except (ConfigurationError, AuthenticationError) as exc:
                log.warning("Batch authentication failed", batch_id=job.id, error=str(exc))
                self._jobs.fail(job.id, str(exc))
                return

            summary = RunSummary()
            for identifier in job.identifiers:
                await self._process_identifier(job, gateway, token, identifier, summary)
                processed = self._jobs.increment_processed(job.id)
                log.debug("Batch progress", batch_id=job.id, processed=processed, total=job.total)

        self._jobs.complete(job.id, summary.message())
        log.info(
            "Batch completed",
            batch_id=job.id,
            stored=summary.stored,
            awaiting=summary.awaiting,
            failed=summary.failed,
        )

    # ------------------------------------------------------------------
    # per-identifier processing
    # ------------------------------------------------------------------
    async def _process_identifier(
        self,
        job: BatchJob,
        gateway: Any,
        token: str,
        identifier: str,
        summary: RunSummary,
    ) -> None:
        try:
            record = await self._dispatch(job, gateway, token, identifier)
        except (httpx.HTTPError, PartnerError, ValueError) as exc:
            log.warning("Identifier failed", batch_id=job.id, identifier=identifier, error=str(exc))
            message = str(exc) or f"Erro de comunicação com o parceiro ({type(exc).__name__})."
            record = self._error_record(job, identifier, message)

        if record is None:
            summary.awaiting += 1
            return
        # Result Store failures are job-level and propagate.
        self._results.upsert(record)
        if record.is_success:
            summary.stored += 1
        else:
            summary.failed += 1

    async def _dispatch(self, job: BatchJob, gateway: Any, token: str, identifier: str) -> ResultRecord | None:
        if job.kind == "fgts" and job.provider == "v8":
            correlation_id = str(uuid.uuid4())
            key = result_key(job.provider, identifier)
            # The callback may land while the request is still in flight.
            self._results.register_correlation(correlation_id, key)
            reply = await gateway.query_balance(
                identifier, token, v8_provider=job.v8_provider or "", correlation_id=correlation_id
            )
            if isinstance(reply, Accepted):
                if reply.correlation_id and reply.correlation_id != correlation_id:
                    self._results.register_correlation(reply.correlation_id, key)
                return None
            return self._record_from_reply(job, identifier, reply, correlation_id=correlation_id)
        if job.kind == "fgts" and job.provider == "facta":
            reply = await gateway.query_balance(identifier, token)
            return self._record_from_reply(job, identifier, reply)
        if job.kind == "clt" and job.provider == "facta":
            reply = await gateway.list_offers(identifier, token)
            return self._record_from_reply(job, identifier, reply)
        if job.kind == "clt" and job.provider == "c6":
            return await self._dispatch_c6(job, gateway, token, identifier)
        raise PartnerError(f"Lote {job.kind.upper()} não suportado para o provedor {job.provider}.")

    async def _dispatch_c6(self, job: BatchJob, gateway: Any, token: str, identifier: str) -> ResultRecord:
        status_reply = await gateway.check_authorization_status(identifier, token)
        if status_reply.is_error:
            return self._error_record(job, identifier, status_reply.message, authorization_status="ERRO_STATUS")

        authorization = str(status_reply.payload["status"])
        if authorization == AUTHORIZED:
            offers_reply = await gateway.list_offers(identifier, token)
            if offers_reply.is_error:
                return self._error_record(
                    job,
                    identifier,
                    f"Autorizado, mas falhou ao buscar ofertas: {offers_reply.message}",
                    authorization_status=AUTHORIZED,
                )
            payload = {"authorization_status": AUTHORIZED, "offers": offers_reply.payload.get("offers", [])}
            return self._success_record(job, identifier, payload, offers_reply.message)

        if authorization == NOT_AUTHORIZED:
            subject = job.subjects.get(identifier)
            if subject is None or not subject.has_contact_data():
                return self._error_record(
                    job, identifier, "Dados insuficientes para gerar link.", authorization_status="ERRO_DADOS"
                )
            link_reply = await gateway.generate_authorization_link(subject, token)
            if link_reply.is_error:
                return self._error_record(job, identifier, link_reply.message, authorization_status="ERRO_LINK")
            payload = {"authorization_status": NOT_AUTHORIZED, "link": link_reply.payload["link"], "offers": []}
            return self._success_record(job, identifier, payload, link_reply.message)

        payload = {"authorization_status": authorization, "offers": []}
        return self._success_record(job, identifier, payload, status_reply.message)

    # ------------------------------------------------------------------
    # record builders
    # ------------------------------------------------------------------
    def _record_from_reply(
        self,
        job: BatchJob,
        identifier: str,
        reply: PartnerReply,
        *,
        correlation_id: str | None = None,
    ) -> ResultRecord:
        if reply.is_error:
            payload = dict(getattr(reply, "payload", {}) or {})
            payload.setdefault("error", reply.message)
            return ResultRecord(
                key=result_key(job.provider, identifier),
                identifier=identifier,
                provider=job.provider,
                status=RESULT_ERROR,
                message=reply.message,
                payload=payload,
                batch_id=job.id,
                correlation_id=correlation_id,
            )
        record = self._success_record(job, identifier, reply.payload, reply.message)
        record.correlation_id = correlation_id
        return record

    @staticmethod
    def _success_record(job: BatchJob, identifier: str, payload: dict[str, Any], message: str) -> ResultRecord:
        return ResultRecord(
            key=result_key(job.provider, identifier),
            identifier=identifier,
            provider=job.provider,
            status=RESULT_SUCCESS,
            message=message,
            payload=payload,
            batch_id=job.id,
        )

    @staticmethod
    def _error_record(
        job: BatchJob,
        identifier: str,
        message: str,
        *,
        authorization_status: str | None = None,
    ) -> ResultRecord:
        payload: dict[str, Any] = {"error": message}
        if authorization_status:
            payload["authorization_status"] = authorization_status
        return ResultRecord(
            key=result_key(job.provider, identifier),
            identifier=identifier,
            provider=job.provider,
            status=RESULT_ERROR,
            message=message,
            payload=payload,
            batch_id=job.id,
        )
