"""Persistence for user profiles and the activity log."""
from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from backoffice.domain import ActivityLogEntry, UserProfile


class ProfileRepository(Protocol):
    """Key-value profile store addressed by user id."""

    def get(self, uid: str) -> UserProfile | None: ...

    def save(self, profile: UserProfile) -> UserProfile: ...

    def reset(self) -> None: ...


class ActivityLogRepository(Protocol):
    """Append-only store for activity entries."""

    def append(self, entry: ActivityLogEntry) -> None: ...

    def list(
        self,
        *,
        user_email: str | None = None,
        provider: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[ActivityLogEntry]: ...

    def next_entry_id(self) -> str: ...

    def reset(self) -> None: ...


class InMemoryProfileRepository:
    def __init__(self) -> None:
        self._profiles: dict[str, UserProfile] = {}
        self._lock = threading.RLock()

    def get(self, uid: str) -> UserProfile | None:
        with self._lock:
            profile = self._profiles.get(uid)
            return replace(profile, credentials=dict(profile.credentials)) if profile else None

    def save(self, profile: UserProfile) -> UserProfile:
        with self._lock:
            stored = replace(profile, credentials=dict(profile.credentials))
            self._profiles[profile.uid] = stored
            return replace(stored, credentials=dict(stored.credentials))

    def reset(self) -> None:
        with self._lock:
            self._profiles.clear()


class InMemoryActivityLogRepository:
    def __init__(self) -> None:
        self._entries: list[ActivityLogEntry] = []
        self._counter = 0
        self._lock = threading.RLock()

    def append(self, entry: ActivityLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list(
        self,
        *,
        user_email: str | None = None,
        provider: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[ActivityLogEntry]:
        with self._lock:
            entries = list(reversed(self._entries))
        if user_email:
            entries = [entry for entry in entries if entry.user_email == user_email]
        if provider:
            entries = [entry for entry in entries if (entry.provider or "").lower() == provider.lower()]
        if date_from:
            entries = [entry for entry in entries if entry.created_at >= date_from]
        if date_to:
            entries = [entry for entry in entries if entry.created_at <= date_to]
        entries.sort(key=lambda entry: entry.created_at, reverse=True)
        return entries

    def next_entry_id(self) -> str:
        with self._lock:
            self._counter += 1
            return f"log-{self._counter:06d}"

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
            self._counter = 0
