"""Job Store persistence for batch jobs."""
from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol

from backoffice.domain import BatchJob, JobFinalizedError
from backoffice.domain.batches import STATUS_COMPLETED, STATUS_ERROR, utcnow


class BatchJobRepository(Protocol):
    """Persistence contract for batch jobs."""

    def create(self, job: BatchJob) -> BatchJob: ...

    def get(self, job_id: str) -> BatchJob | None: ...

    def list(self, owner_id: str | None = None) -> list[BatchJob]: ...

    def increment_processed(self, job_id: str) -> int: ...

    def complete(self, job_id: str, message: str) -> BatchJob: ...

    def fail(self, job_id: str, message: str) -> BatchJob: ...

    def reset(self) -> None: ...


def _snapshot(job: BatchJob) -> BatchJob:
    return replace(job, identifiers=list(job.identifiers), subjects=dict(job.subjects))


class InMemoryBatchJobRepository:
    """Thread-safe in-memory job store.

    Readers always receive copies, so a request handler inspecting progress
    never observes a job while the runner is half-way through mutating it.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, BatchJob] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _require(self, job_id: str) -> BatchJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise KeyError(job_id)
        return job

    def _require_open(self, job_id: str) -> BatchJob:
        job = self._require(job_id)
        if job.is_terminal:
            raise JobFinalizedError(f"batch {job_id} is already {job.status}")
        return job

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def create(self, job: BatchJob) -> BatchJob:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"batch {job.id} already exists")
            stored = _snapshot(job)
            stored.total = len(stored.identifiers)
            stored.processed = 0
            self._jobs[job.id] = stored
            return _snapshot(stored)

    def get(self, job_id: str) -> BatchJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return _snapshot(job) if job else None

    def list(self, owner_id: str | None = None) -> list[BatchJob]:
        with self._lock:
            jobs = [_snapshot(job) for job in self._jobs.values() if owner_id is None or job.owner_id == owner_id]
        jobs.sort(key=lambda item: item.created_at, reverse=True)
        return jobs

    def increment_processed(self, job_id: str) -> int:
        with self._lock:
            job = self._require_open(job_id)
            if job.processed >= job.total:
                raise ValueError(f"batch {job_id} already processed {job.total} identifiers")
            job.processed += 1
            return job.processed

    def complete(self, job_id: str, message: str) -> BatchJob:
        with self._lock:
            job = self._require_open(job_id)
            if job.processed != job.total:
                raise ValueError(f"batch {job_id} processed {job.processed} of {job.total} identifiers")
            job.status = STATUS_COMPLETED
            job.message = message
            job.completed_at = utcnow()
            return _snapshot(job)

    def fail(self, job_id: str, message: str) -> BatchJob:
        with self._lock:
            job = self._require_open(job_id)
            job.status = STATUS_ERROR
            job.message = message
            job.completed_at = utcnow()
            return _snapshot(job)

    def reset(self) -> None:
        with self._lock:
            self._jobs.clear()
