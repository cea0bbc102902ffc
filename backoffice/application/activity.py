"""Audit trail of user actions."""
from __future__ import annotations

from datetime import datetime, time, timezone

import structlog

from backoffice.core.schema import FileResult
from backoffice.domain import ActivityLogEntry
from backoffice.domain.batches import utcnow
from backoffice.exporters.activity_report import activity_file_name, render_activity_report
from backoffice.exporters.xlsx import to_data_uri
from backoffice.infrastructure import ActivityLogRepository

from .profiles import ProfileService

log = structlog.get_logger(__name__)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _end_of_day(value: datetime) -> datetime:
    if value.time() == time(0, 0):
        return datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)
    return value


class ActivityLogService:
    def __init__(self, repository: ActivityLogRepository, profiles: ProfileService) -> None:
        self._repository = repository
        self._profiles = profiles

    def log(
        self,
        user_id: str,
        action: str,
        *,
        identifier: str | None = None,
        provider: str | None = None,
        details: str | None = None,
        user_email: str | None = None,
    ) -> ActivityLogEntry:
        entry = ActivityLogEntry(
            id=self._repository.next_entry_id(),
            user_id=user_id,
            user_email=user_email or self._profiles.email_for(user_id),
            action=action,
            identifier=identifier,
            provider=provider,
            details=details,
        )
        self._repository.append(entry)
        log.info("Activity recorded", action=action, user_id=user_id, provider=provider)
        return entry

    def list(
        self,
        *,
        email: str | None = None,
        provider: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[ActivityLogEntry]:
        """Entries matching the filters, newest first; ``date_to`` covers the whole day."""

        return self._repository.list(
            user_email=email or None,
            provider=provider or None,
            date_from=_aware(date_from) if date_from else None,
            date_to=_end_of_day(_aware(date_to)) if date_to else None,
        )

    def export(
        self,
        *,
        email: str | None = None,
        provider: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> FileResult:
        entries = self.list(email=email, provider=provider, date_from=date_from, date_to=date_to)
        if not entries:
            return FileResult(status="error", message="Nenhum registro encontrado para os filtros selecionados.")
        content = render_activity_report(entries)
        return FileResult(
            status="success",
            file_name=activity_file_name(utcnow()),
            file_content=to_data_uri(content),
            message=f"{len(entries)} registro(s) exportado(s).",
        )
