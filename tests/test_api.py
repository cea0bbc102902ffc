from __future__ import annotations

import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from backoffice.application import get_result_repository

from conftest import ALL_CREDENTIALS

CPF_OK = "11111111111"
CPF_FAIL = "22222222222"


@pytest.fixture()
def client(partner):
    from backoffice.app import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def v8_partner(partner):
    def balance(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if body["documentNumber"] == CPF_OK:
            return httpx.Response(200, json={"documentNumber": CPF_OK, "balance": 800.25})
        return httpx.Response(400, json={"errorMessage": "Saldo não encontrado"})

    partner.on("POST", "/fgts/balance", balance)
    return partner


def _configure(client: TestClient, uid: str = "user-123456") -> None:
    response = client.put(f"/api/users/{uid}/credentials", json={"email": "operador@example.com", **ALL_CREDENTIALS})
    assert response.status_code == 200


def _wait_for(client: TestClient, batch_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/batches/{batch_id}").json()
        if body["status"] != "processing":
            return body
        time.sleep(0.02)
    raise AssertionError(f"batch {batch_id} did not finish")


def _submit(client: TestClient, identifiers: list[str]) -> dict:
    response = client.post(
        "/api/batches",
        json={
            "identifiers": identifiers,
            "provider": "v8",
            "kind": "fgts",
            "v8_provider": "qi",
            "owner_id": "user-123456",
            "owner_email": "operador@example.com",
            "file_name": "lote.xlsx",
        },
    )
    assert response.status_code == 200
    return response.json()


def test_submit_poll_and_download_report(client, v8_partner):
    _configure(client)

    submitted = _submit(client, [CPF_OK, CPF_FAIL])

    assert submitted["status"] == "success"
    batch = submitted["batch"]
    assert batch["status"] == "processing"
    assert (batch["total"], batch["processed"]) == (2, 0)
    assert batch["id"].startswith("batch-fgts-V8DIGITAL-qi-")

    finished = _wait_for(client, batch["id"])
    assert finished["status"] == "completed"
    assert finished["processed"] == 2

    report = client.get(f"/api/batches/{batch['id']}/report").json()
    assert report["status"] == "success"
    assert report["file_name"].startswith("V8DIGITAL_")
    assert report["file_content"].startswith("data:application/vnd.openxmlformats")

    listed = client.get("/api/batches", params={"owner_id": "user-123456"}).json()
    assert [item["id"] for item in listed["items"]] == [batch["id"]]


def test_submit_without_credentials_creates_no_job(client, v8_partner):
    submitted = _submit(client, [CPF_OK])

    assert submitted["status"] == "error"
    assert "Faltando: Username, Password, Audience, Client ID" in submitted["message"]
    assert client.get("/api/batches").json()["items"] == []
    assert v8_partner.requests == []


def test_invalid_submission_is_rejected(client):
    response = client.post("/api/batches", json={"identifiers": [], "provider": "v8", "owner_id": "u"})
    assert response.status_code == 422


def test_unknown_batch_returns_404(client):
    assert client.get("/api/batches/batch-missing").status_code == 404
    assert client.post("/api/batches/batch-missing/reprocess").status_code == 404
    assert client.get("/api/batches/batch-missing/report").status_code == 404


def test_reprocess_resubmits_failed_identifiers(client, v8_partner):
    _configure(client)
    original = _submit(client, [CPF_OK, CPF_FAIL])["batch"]
    _wait_for(client, original["id"])

    response = client.post(f"/api/batches/{original['id']}/reprocess").json()

    assert response["status"] == "success"
    assert response["batch"]["id"] != original["id"]
    assert response["batch"]["identifiers"] == [CPF_FAIL]
    assert client.get(f"/api/batches/{original['id']}").json()["status"] == "completed"
    _wait_for(client, response["batch"]["id"])


def test_upload_spreadsheet(client, v8_partner):
    _configure(client)
    content = f"cpf\n{CPF_OK}\nabc\n{CPF_FAIL}\n".encode()

    response = client.post(
        "/api/batches/upload",
        files={"file": ("clientes.csv", content, "text/csv")},
        data={"provider": "v8", "v8_provider": "cartos", "owner_id": "user-123456"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "success"
    assert body["batch"]["identifiers"] == [CPF_OK, CPF_FAIL]
    assert body["batch"]["file_name"] == "clientes.csv"
    assert body["message"].endswith("1 linha(s) ignorada(s) sem CPF válido.")
    _wait_for(client, body["batch"]["id"])


def test_upload_without_cpf_column(client):
    response = client.post(
        "/api/batches/upload",
        files={"file": ("clientes.csv", b"nome\nAna\n", "text/csv")},
        data={"provider": "v8", "owner_id": "user-123456"},
    )
    assert response.status_code == 400


def test_webhook_endpoint(client, monkeypatch):
    assert client.post("/api/webhook/balance", content=b"").status_code == 200

    stored = client.post("/api/webhook/balance", json={"documentNumber": CPF_OK, "balance": "15,00"})
    assert stored.status_code == 200
    assert stored.json()["key"] == f"v8-{CPF_OK}"

    unknown = client.post("/api/webhook/balance", json={"balanceId": "unknown", "balance": 1})
    assert unknown.status_code == 422

    def broken(record):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(get_result_repository(), "upsert", broken)
    failed = client.post("/api/webhook/balance", json={"documentNumber": CPF_OK, "balance": "15,00"})
    assert failed.status_code == 500
    assert failed.json()["status"] == "error"


def test_single_query_is_logged(client, partner):
    _configure(client)
    partner.reply("GET", "/fgts/saldo", json_body={"erro": False, "retorno": {"saldo_total": "321.00"}})

    result = client.post("/api/partners/facta/balance", json={"user_id": "user-123456", "cpf": CPF_OK}).json()

    assert result["success"] is True
    assert result["outcome"] == "success"
    assert result["data"]["saldo_total"] == "321.00"

    activity = client.get("/api/activity", params={"provider": "facta"}).json()["items"]
    assert activity[0]["action"] == "Consulta FGTS"
    assert activity[0]["user_email"] == "operador@example.com"


def test_unsupported_partner_operation(client):
    response = client.post("/api/partners/v8/offers", json={"user_id": "u", "cpf": CPF_OK})
    assert response.status_code == 400
    assert client.post("/api/partners/banco/offers", json={"user_id": "u", "cpf": CPF_OK}).status_code == 404


def test_user_profile_is_masked(client):
    _configure(client)

    profile = client.get("/api/users/user-123456").json()

    assert profile["credentials"]["c6_password"].endswith("c6")
    assert set(profile["credentials"]["c6_password"][:-2]) == {"*"}
    assert profile["configured"] == {"v8": True, "facta": True, "c6": True}
    assert client.get("/api/users/nobody").status_code == 404
