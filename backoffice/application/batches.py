"""Batch submission, status and report use cases."""
from __future__ import annotations

import secrets
import string
import time
from typing import Iterable

import structlog

from backoffice.core.identifiers import normalise_cpf
from backoffice.core.schema import ActionResult, BatchJobView, BatchSubmission, FileResult, ReportRequest, SubjectPayload
from backoffice.domain import BatchJob, Subject
from backoffice.domain.batches import SUPPORTED_BATCHES, display_name, provider_from_display, result_key
from backoffice.exporters.batch_report import render_batch_report, report_file_name
from backoffice.exporters.xlsx import to_data_uri
from backoffice.infrastructure import BatchJobRepository, ResultRepository
from backoffice.infrastructure.partners import ConfigurationError
from backoffice.workers.batch_runner import BatchRunner

from .activity import ActivityLogService
from .profiles import ProfileService

log = structlog.get_logger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits


def new_batch_id(kind: str, provider: str, owner_id: str, v8_provider: str | None = None) -> str:
    parts = ["batch", kind, display_name(provider)]
    if v8_provider:
        parts.append(v8_provider)
    parts.append(str(int(time.time() * 1000)))
    parts.append(owner_id[:5])
    parts.append("".join(secrets.choice(_ALPHABET) for _ in range(6)))
    return "-".join(parts)


def to_view(job: BatchJob) -> BatchJobView:
    return BatchJobView(
        id=job.id,
        kind=job.kind,
        provider=job.provider,
        display_provider=display_name(job.provider),
        v8_provider=job.v8_provider,
        file_name=job.file_name,
        status=job.status,
        total=job.total,
        processed=job.processed,
        identifiers=list(job.identifiers),
        created_at=job.created_at,
        completed_at=job.completed_at,
        message=job.message,
        owner_id=job.owner_id,
        owner_email=job.owner_email,
    )


def _subjects(payloads: Iterable[SubjectPayload]) -> dict[str, Subject]:
    return {
        payload.cpf: Subject(
            cpf=payload.cpf,
            name=payload.nome,
            birth_date=payload.data_nascimento,
            phone_area_code=payload.telefone_ddd,
            phone_number=payload.telefone_numero,
        )
        for payload in payloads
    }


class BatchService:
    """Coordinates batch jobs, their background runs and their reports."""

    def __init__(
        self,
        jobs: BatchJobRepository,
        results: ResultRepository,
        profiles: ProfileService,
        activity: ActivityLogService,
        runner: BatchRunner,
    ) -> None:
        self._jobs = jobs
        self._results = results
        self._profiles = profiles
        self._activity = activity
        self._runner = runner

    # ------------------------------------------------------------------
    # submission
    # ------------------------------------------------------------------
    async def submit(self, submission: BatchSubmission) -> ActionResult:
        """Create a job and start it in the background; returns before any partner call."""

        kind, provider = submission.kind, submission.provider
        if (kind, provider) not in SUPPORTED_BATCHES:
            return ActionResult(
                status="error",
                message=f"Consulta {kind.upper()} em lote não disponível para {display_name(provider)}.",
            )
        v8_provider = submission.v8_provider if provider == "v8" else None
        if provider == "v8" and not v8_provider:
            return ActionResult(status="error", message="Selecione o provedor da V8 (qi, cartos ou bms).")

        try:
            self._profiles.get_credentials(submission.owner_id, provider)
        except ConfigurationError as exc:
            log.info("Batch rejected", owner_id=submission.owner_id, provider=provider, missing=exc.missing)
            return ActionResult(status="error", message=str(exc))

        owner_email = submission.owner_email or self._profiles.email_for(submission.owner_id)
        job = self._jobs.create(
            BatchJob(
                id=new_batch_id(kind, provider, submission.owner_id, v8_provider),
                kind=kind,
                provider=provider,
                file_name=submission.file_name,
                identifiers=list(submission.identifiers),
                owner_id=submission.owner_id,
                owner_email=owner_email,
                v8_provider=v8_provider,
                subjects=_subjects(submission.subjects),
            )
        )
        self._activity.log(
            submission.owner_id,
            f"Consulta {kind.upper()} em Lote (Excel)",
            provider=provider,
            details=f"Arquivo: {job.file_name}, {job.total} CPFs",
            user_email=owner_email,
        )
        self._runner.spawn(job.id)
        log.info("Batch submitted", batch_id=job.id, total=job.total)
        return ActionResult(
            status="success",
            message=f"Lote com {job.total} CPFs enviado para processamento.",
            batch=to_view(job),
        )

    async def reprocess(self, batch_id: str) -> ActionResult:
        """Submit a new job with the identifiers of ``batch_id`` that have no successful result."""

        job = self._jobs.get(batch_id)
        if job is None:
            raise KeyError(batch_id)
        if not job.is_terminal:
            return ActionResult(status="error", message="O lote ainda está em processamento.", batch=to_view(job))

        records = self._results.get_many(result_key(job.provider, identifier) for identifier in job.identifiers)
        pending = [
            identifier
            for identifier in dict.fromkeys(job.identifiers)
            if not (record := records.get(result_key(job.provider, identifier))) or not record.is_success
        ]
        if not pending:
            return ActionResult(
                status="success",
                message="Todos os CPFs deste lote já possuem resultado. Nada a reprocessar.",
                batch=to_view(job),
            )

        self._activity.log(
            job.owner_id,
            "Reprocessamento de Lote",
            provider=job.provider,
            details=f"Lote original: {job.id}, {len(pending)} CPFs",
            user_email=job.owner_email,
        )
        submission = BatchSubmission(
            identifiers=pending,
            provider=job.provider,
            kind=job.kind,
            v8_provider=job.v8_provider,
            owner_id=job.owner_id,
            owner_email=job.owner_email,
            file_name=f"Reprocessamento - {job.file_name}",
            subjects=[
                SubjectPayload(
                    cpf=subject.cpf,
                    nome=subject.name,
                    data_nascimento=subject.birth_date,
                    telefone_ddd=subject.phone_area_code,
                    telefone_numero=subject.phone_number,
                )
                for cpf, subject in job.subjects.items()
                if cpf in pending
            ],
        )
        return await self.submit(submission)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def get(self, batch_id: str) -> BatchJobView | None:
        job = self._jobs.get(batch_id)
        return to_view(job) if job else None

    def list(self, owner_id: str | None = None) -> list[BatchJobView]:
        return [to_view(job) for job in self._jobs.list(owner_id)]

    # ------------------------------------------------------------------
    # reports
    # ------------------------------------------------------------------
    def generate_report(self, request: ReportRequest) -> FileResult:
        """Join ``request.identifiers`` with the Result Store and render the workbook."""

        try:
            provider = provider_from_display(request.provider)
        except ValueError as exc:
            return FileResult(status="error", message=str(exc))
        if not request.identifiers:
            return FileResult(status="error", message="Nenhum dado para gerar relatório.")

        kinds = sorted(kind for kind, supported in SUPPORTED_BATCHES if supported == provider)
        kind = request.kind or (kinds[0] if len(kinds) == 1 else None)
        if kind is None:
            return FileResult(
                status="error",
                message=f"Informe o tipo de consulta ({' ou '.join(kinds)}) para relatórios {display_name(provider)}.",
            )
        if kind not in kinds:
            return FileResult(
                status="error", message=f"Relatório {kind.upper()} não suportado para {display_name(provider)}."
            )
        identifiers = [self._normalise(identifier) for identifier in request.identifiers]
        records = self._results.get_many(result_key(provider, identifier) for identifier in identifiers)
        content = render_batch_report(kind, provider, identifiers, records)
        file_name = report_file_name(provider, request.created_at)

        if request.owner_id:
            self._activity.log(
                request.owner_id,
                "Download de Relatório de Lote",
                provider=provider,
                details=f"Arquivo: {file_name}",
            )
        log.info("Report generated", provider=provider, rows=len(identifiers), found=len(records))
        return FileResult(
            status="success",
            file_name=file_name,
            file_content=to_data_uri(content),
            message="Relatório gerado com sucesso.",
        )

    def report_for_batch(self, batch_id: str) -> FileResult:
        job = self._jobs.get(batch_id)
        if job is None:
            raise KeyError(batch_id)
        return self.generate_report(
            ReportRequest(
                identifiers=list(job.identifiers),
                file_name=job.file_name,
                created_at=job.created_at,
                provider=job.provider,
                kind=job.kind,
                owner_id=job.owner_id,
            )
        )

    @staticmethod
    def _normalise(identifier: str) -> str:
        try:
            return normalise_cpf(identifier)
        except ValueError:
            return identifier.strip()
