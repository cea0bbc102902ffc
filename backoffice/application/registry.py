"""Process-wide service instances backed by the in-memory repositories."""
from __future__ import annotations

from backoffice.infrastructure import (
    InMemoryActivityLogRepository,
    InMemoryBatchJobRepository,
    InMemoryProfileRepository,
    InMemoryResultRepository,
)
from backoffice.workers.batch_runner import BatchRunner

from .activity import ActivityLogService
from .batches import BatchService
from .profiles import ProfileService
from .queries import PartnerQueryService
from .webhooks import WebhookService

_jobs = InMemoryBatchJobRepository()
_results = InMemoryResultRepository()
_profiles = InMemoryProfileRepository()
_activity = InMemoryActivityLogRepository()

_profile_service = ProfileService(_profiles)
_activity_service = ActivityLogService(_activity, _profile_service)
_runner = BatchRunner(_jobs, _results, _profile_service.get_credentials)
_batch_service = BatchService(_jobs, _results, _profile_service, _activity_service, _runner)
_webhook_service = WebhookService(_results)
_query_service = PartnerQueryService(_results, _profile_service, _activity_service)


def get_profile_service() -> ProfileService:
    return _profile_service


def get_activity_service() -> ActivityLogService:
    return _activity_service


def get_batch_runner() -> BatchRunner:
    return _runner


def get_batch_service() -> BatchService:
    return _batch_service


def get_webhook_service() -> WebhookService:
    return _webhook_service


def get_query_service() -> PartnerQueryService:
    return _query_service


def get_result_repository() -> InMemoryResultRepository:
    return _results


def reset_application_state() -> None:
    """Clear every store (used by tests)."""

    _jobs.reset()
    _results.reset()
    _profiles.reset()
    _activity.reset()
