"""Domain entities for batch queries and partner results."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

PROVIDERS = ("v8", "facta", "c6")
PROVIDER_DISPLAY_NAMES = {"v8": "V8DIGITAL", "facta": "FACTA", "c6": "C6"}
V8_PROVIDERS = ("qi", "cartos", "bms")
BATCH_KINDS = ("fgts", "clt")

# (kind, provider) pairs the runner knows how to drive.
SUPPORTED_BATCHES = {
    ("fgts", "v8"),
    ("fgts", "facta"),
    ("clt", "c6"),
    ("clt", "facta"),
}

STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
TERMINAL_STATUSES = {STATUS_COMPLETED, STATUS_ERROR}

RESULT_SUCCESS = "success"
RESULT_ERROR = "error"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def display_name(provider: str) -> str:
    return PROVIDER_DISPLAY_NAMES.get(provider.lower(), provider.upper())


def provider_from_display(value: str) -> str:
    """Accept either a provider id (``v8``) or its display name (``V8DIGITAL``)."""

    lowered = value.strip().lower()
    if lowered in PROVIDERS:
        return lowered
    for provider, name in PROVIDER_DISPLAY_NAMES.items():
        if name.lower() == lowered:
            return provider
    raise ValueError(f"Provedor desconhecido: {value}")


def result_key(provider: str, identifier: str) -> str:
    """Canonical Result Store key shared by the gateway and the webhook."""

    return f"{provider}-{identifier}"


class JobFinalizedError(RuntimeError):
    """Raised when a completed or failed batch job is mutated."""


@dataclass(slots=True)
class Subject:
    """Personal data of a CPF holder, required to request C6 authorization links."""

    cpf: str
    name: str | None = None
    birth_date: str | None = None
    phone_area_code: str | None = None
    phone_number: str | None = None

    def has_contact_data(self) -> bool:
        return bool(self.name and self.birth_date and self.phone_area_code and self.phone_number)


@dataclass(slots=True)
class BatchJob:
    """A submitted batch of identifiers processed against one partner."""

    id: str
    kind: str
    provider: str
    file_name: str
    identifiers: list[str]
    owner_id: str
    owner_email: str
    v8_provider: str | None = None
    subjects: dict[str, Subject] = field(default_factory=dict)
    total: int = 0
    processed: int = 0
    status: str = STATUS_PROCESSING
    message: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass(slots=True)
class ResultRecord:
    """Latest known partner outcome for one identifier of one provider."""

    key: str
    identifier: str
    provider: str
    status: str
    message: str
    payload: dict[str, Any] = field(default_factory=dict)
    source: str = "gateway"
    batch_id: str | None = None
    correlation_id: str | None = None
    received_at: datetime = field(default_factory=utcnow)

    @property
    def is_success(self) -> bool:
        return self.status == RESULT_SUCCESS


@dataclass(frozen=True, slots=True)
class ActivityLogEntry:
    """Append-only audit record."""

    id: str
    user_id: str
    user_email: str
    action: str
    identifier: str | None = None
    provider: str | None = None
    details: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class UserProfile:
    uid: str
    email: str = ""
    role: str = "user"
    status: str = "active"
    credentials: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
