"""Per-user partner credentials."""
from __future__ import annotations

from typing import Any, Mapping

import structlog

from backoffice.domain import UserProfile
from backoffice.infrastructure import ProfileRepository
from backoffice.infrastructure.partners import ConfigurationError, gateway_class

log = structlog.get_logger(__name__)

SECRET_FIELDS = {"v8_password", "facta_password", "c6_password"}
CREDENTIAL_FIELDS = (
    "v8_username",
    "v8_password",
    "v8_audience",
    "v8_client_id",
    "facta_username",
    "facta_password",
    "c6_username",
    "c6_password",
)


def _mask(value: str) -> str:
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 2) + value[-2:]


class ProfileService:
    def __init__(self, repository: ProfileRepository) -> None:
        self._repository = repository

    def get(self, uid: str) -> UserProfile | None:
        return self._repository.get(uid)

    def ensure(self, uid: str, email: str = "") -> UserProfile:
        profile = self._repository.get(uid)
        if profile is None:
            profile = self._repository.save(UserProfile(uid=uid, email=email))
        elif email and not profile.email:
            profile.email = email
            profile = self._repository.save(profile)
        return profile

    def email_for(self, uid: str) -> str:
        profile = self._repository.get(uid)
        return profile.email if profile and profile.email else "N/A"

    def update_credentials(self, uid: str, update: Mapping[str, Any]) -> UserProfile:
        """Apply a partial credentials update.

        ``None`` leaves a field untouched; an empty string clears it.
        """

        profile = self.ensure(uid)
        email = update.get("email")
        if email:
            profile.email = str(email)
        for field_name in CREDENTIAL_FIELDS:
            if field_name not in update or update[field_name] is None:
                continue
            value = str(update[field_name]).strip()
            if value:
                profile.credentials[field_name] = value
            else:
                profile.credentials.pop(field_name, None)
        saved = self._repository.save(profile)
        log.info("Credentials updated", uid=uid, fields=sorted(k for k in update if k in CREDENTIAL_FIELDS))
        return saved

    def get_credentials(self, uid: str, provider: str) -> dict[str, str]:
        """Return the provider credentials of ``uid`` or raise ``ConfigurationError``."""

        gateway = gateway_class(provider)
        profile = self._repository.get(uid)
        credentials = dict(profile.credentials) if profile else {}
        missing = gateway.missing_credentials(credentials)
        if missing:
            raise ConfigurationError(provider, missing)
        return {name: credentials[name] for name, _label in gateway.required_credentials}

    def get_profile(self, uid: str) -> dict[str, Any] | None:
        profile = self._repository.get(uid)
        if profile is None:
            return None
        credentials = {
            name: _mask(value) if name in SECRET_FIELDS else value
            for name, value in sorted(profile.credentials.items())
        }
        configured = {
            provider: not gateway_class(provider).missing_credentials(profile.credentials)
            for provider in ("v8", "facta", "c6")
        }
        return {
            "uid": profile.uid,
            "email": profile.email,
            "role": profile.role,
            "status": profile.status,
            "credentials": credentials,
            "configured": configured,
            "created_at": profile.created_at,
        }
