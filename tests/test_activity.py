from __future__ import annotations

import base64
import io
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from openpyxl import load_workbook

from backoffice.application import ActivityLogService, ProfileService, get_profile_service
from backoffice.infrastructure import InMemoryActivityLogRepository, InMemoryProfileRepository
from backoffice.infrastructure.partners import ConfigurationError

from conftest import FACTA_CREDENTIALS, V8_CREDENTIALS


@pytest.fixture()
def services():
    profiles = ProfileService(InMemoryProfileRepository())
    repository = InMemoryActivityLogRepository()
    return profiles, repository, ActivityLogService(repository, profiles)


def test_log_denormalises_email_and_lists_newest_first(services):
    profiles, _, activity = services
    profiles.update_credentials("u1", {"email": "ana@example.com"})

    first = activity.log("u1", "Consulta FGTS", identifier="11111111111", provider="v8")
    second = activity.log("u2", "Consulta CLT C6", provider="c6")

    assert first.user_email == "ana@example.com"
    assert second.user_email == "N/A"
    assert [entry.id for entry in activity.list()] == [second.id, first.id]
    assert [entry.action for entry in activity.list(email="ana@example.com")] == ["Consulta FGTS"]
    assert [entry.action for entry in activity.list(provider="C6")] == ["Consulta CLT C6"]


def test_date_to_covers_the_whole_day(services):
    _, repository, activity = services
    entry = activity.log("u1", "Consulta FGTS", user_email="ana@example.com")
    late = replace(entry, id="log-late", created_at=datetime(2026, 10, 18, 23, 15, tzinfo=timezone.utc))
    repository.append(late)

    same_day = activity.list(date_from=datetime(2026, 10, 18), date_to=datetime(2026, 10, 18))

    assert [item.id for item in same_day] == ["log-late"]


def test_export_renders_workbook(services):
    _, _, activity = services
    activity.log("u1", "Download de Relatório de Lote", provider="v8", details="Arquivo: x.xlsx", user_email="a@b.c")

    result = activity.export()

    assert result.status == "success"
    assert result.file_name.startswith("Relatorio_Atividades_")
    content = base64.b64decode(result.file_content.split(",", 1)[1])
    sheet = load_workbook(io.BytesIO(content)).active
    assert [cell.value for cell in sheet[1]] == ["Data", "Usuário", "Ação", "CPF", "Provedor", "Detalhes"]
    assert sheet["C2"].value == "Download de Relatório de Lote"


def test_export_without_entries_is_an_error(services):
    _, _, activity = services
    future = datetime.now(timezone.utc) + timedelta(days=30)

    result = activity.export(date_from=future)

    assert result.status == "error"


def test_credentials_are_checked_per_provider():
    profiles = get_profile_service()
    profiles.update_credentials("u1", {"email": "ana@example.com", **FACTA_CREDENTIALS, "v8_username": "ana"})

    assert profiles.get_credentials("u1", "facta") == FACTA_CREDENTIALS
    with pytest.raises(ConfigurationError) as excinfo:
        profiles.get_credentials("u1", "v8")
    assert excinfo.value.missing == ["Password", "Audience", "Client ID"]
    with pytest.raises(ConfigurationError):
        profiles.get_credentials("nobody", "c6")


def test_profile_masks_secrets_and_clears_fields():
    profiles = get_profile_service()
    profiles.update_credentials("u1", {"email": "ana@example.com", **V8_CREDENTIALS})
    profiles.update_credentials("u1", {"v8_client_id": "", "v8_username": None})

    profile = profiles.get_profile("u1")

    assert profile["credentials"]["v8_password"] == "********v8"
    assert profile["credentials"]["v8_username"] == V8_CREDENTIALS["v8_username"]
    assert "v8_client_id" not in profile["credentials"]
    assert profile["configured"] == {"v8": False, "facta": False, "c6": False}
