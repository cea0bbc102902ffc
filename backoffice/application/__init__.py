"""Application services."""

from .activity import ActivityLogService
from .batches import BatchService
from .profiles import ProfileService
from .queries import PartnerQueryService, UnsupportedOperationError
from .registry import (
    get_activity_service,
    get_batch_runner,
    get_batch_service,
    get_profile_service,
    get_query_service,
    get_result_repository,
    get_webhook_service,
    reset_application_state,
)
from .webhooks import UnresolvableWebhookError, WebhookService

__all__ = [
    "ActivityLogService",
    "BatchService",
    "PartnerQueryService",
    "ProfileService",
    "UnresolvableWebhookError",
    "UnsupportedOperationError",
    "WebhookService",
    "get_activity_service",
    "get_batch_runner",
    "get_batch_service",
    "get_profile_service",
    "get_query_service",
    "get_result_repository",
    "get_webhook_service",
    "reset_application_state",
]
