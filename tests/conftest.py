from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from backoffice.application import get_profile_service, reset_application_state
from backoffice.infrastructure.partners import configure_gateway_factory, default_gateway_factory

V8_CREDENTIALS = {
    "v8_username": "operador@example.com",
    "v8_password": "segredo-v8",
    "v8_audience": "https://bff.v8sistema.com",
    "v8_client_id": "client-123",
}
FACTA_CREDENTIALS = {"facta_username": "facta-user", "facta_password": "segredo-facta"}
C6_CREDENTIALS = {"c6_username": "c6-user", "c6_password": "segredo-c6"}
ALL_CREDENTIALS = {**V8_CREDENTIALS, **FACTA_CREDENTIALS, **C6_CREDENTIALS}

Responder = Callable[[httpx.Request], httpx.Response]


class PartnerStub:
    """Routes partner HTTP calls by (method, path) and records every request."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Responder] = {}

    def on(self, method: str, path: str, responder: Responder) -> None:
        self._routes[(method.upper(), path)] = responder

    def reply(self, method: str, path: str, status: int = 200, json_body: Any = None, text: str | None = None) -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status, text=text)
            if json_body is None:
                return httpx.Response(status)
            return httpx.Response(status, json=json_body)

        self.on(method, path, responder)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self._routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"error": f"not stubbed: {request.method} {request.url.path}"})
        return responder(request)

    def calls(self, path: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path == path]

    def json_bodies(self, path: str) -> list[dict[str, Any]]:
        return [json.loads(request.content) for request in self.calls(path)]

    def gateway(self, provider: str, credentials: dict[str, str]):
        client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return default_gateway_factory(provider, credentials, http_client=client)

    # ------------------------------------------------------------------
    # common partner behaviour
    # ------------------------------------------------------------------
    def with_tokens(self) -> "PartnerStub":
        self.reply("POST", "/oauth/token", json_body={"access_token": "v8-token", "token_type": "Bearer"})
        self.reply("GET", "/gera-token", json_body={"erro": False, "token": "facta-token"})
        self.reply("POST", "/auth/token", json_body={"access_token": "c6-token"})
        return self


@pytest.fixture(autouse=True)
def reset_state():
    reset_application_state()
    yield
    reset_application_state()
    configure_gateway_factory(None)


@pytest.fixture()
def partner(monkeypatch) -> PartnerStub:
    for name in ("V8_AUTH_URL", "V8_API_BASE", "FACTA_API_BASE", "C6_API_BASE"):
        monkeypatch.delenv(name, raising=False)
    stub = PartnerStub().with_tokens()
    configure_gateway_factory(stub.gateway)
    return stub


@pytest.fixture()
def configured_user() -> str:
    get_profile_service().update_credentials("user-123456", {"email": "operador@example.com", **ALL_CREDENTIALS})
    return "user-123456"
