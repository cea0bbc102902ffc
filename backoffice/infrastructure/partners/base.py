"""Shared plumbing for partner API gateways.

Every partner answers in its own JSON dialect.  Responses are decoded into a
closed set of reply variants so that callers never probe raw bodies:

* :class:`Success` - actionable payload, terminal result.
* :class:`Accepted` - the partner will compute the result and call back later.
* :class:`RecognizedError` - the partner reported an error we can quote.
* :class:`EmptyBody` - 2xx without anything actionable.  At least one partner
  does this when it silently drops a request, so it keeps its own message.
* :class:`UnrecognizedShape` - non-JSON or JSON of an unexpected shape.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Union

import httpx
import structlog

from backoffice.domain.batches import display_name

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class PartnerError(RuntimeError):
    """Base class for partner integration failures."""


class ConfigurationError(PartnerError):
    """Raised when the credentials needed to reach a partner are incomplete."""

    def __init__(self, provider: str, missing: list[str]) -> None:
        self.provider = provider
        self.missing = list(missing)
        super().__init__(
            f"Credenciais da {display_name(provider)} incompletas. Faltando: {', '.join(self.missing)}. "
            "Por favor, configure-as na página de Configurações."
        )


class AuthenticationError(PartnerError):
    """Raised when a partner rejects our credentials or the token exchange fails."""


# ----------------------------------------------------------------------
# reply variants
# ----------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Success:
    payload: dict[str, Any]
    message: str = "Sucesso"
    is_error: ClassVar[bool] = False


@dataclass(frozen=True, slots=True)
class Accepted:
    correlation_id: str | None
    payload: dict[str, Any] = field(default_factory=dict)
    message: str = "Requisição aceita pelo parceiro. Aguardando resposta do webhook."
    is_error: ClassVar[bool] = False


@dataclass(frozen=True, slots=True)
class RecognizedError:
    message: str
    status_code: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    is_error: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class EmptyBody:
    provider: str
    status_code: int
    is_error: ClassVar[bool] = True

    @property
    def message(self) -> str:
        return (
            f"A API {display_name(self.provider)} respondeu HTTP {self.status_code} sem conteúdo. "
            "A requisição pode ter sido descartada pelo parceiro."
        )


@dataclass(frozen=True, slots=True)
class UnrecognizedShape:
    provider: str
    raw: str
    status_code: int | None = None
    is_error: ClassVar[bool] = True

    @property
    def message(self) -> str:
        excerpt = " ".join(self.raw.split())[:200] or "<vazio>"
        return f"Resposta não reconhecida da API {display_name(self.provider)} (HTTP {self.status_code}): {excerpt}"


PartnerReply = Union[Success, Accepted, RecognizedError, EmptyBody, UnrecognizedShape]

ErrorExtractor = Callable[[dict[str, Any]], "str | None"]


def first_text(body: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = body.get(key)
        if value:
            return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return None


def decode_response(response: httpx.Response, *, provider: str, error_message: ErrorExtractor) -> PartnerReply:
    """Turn an HTTP response into a reply variant without interpreting the payload."""

    status = response.status_code
    text = response.text
    if not text.strip():
        if response.is_success:
            return EmptyBody(provider=provider, status_code=status)
        return RecognizedError(f"Erro na API {display_name(provider)}: HTTP {status} {response.reason_phrase}.", status)

    try:
        body = response.json()
    except ValueError:
        return UnrecognizedShape(provider=provider, raw=text, status_code=status)

    if isinstance(body, list) and response.is_success:
        return Success({"items": body}) if body else EmptyBody(provider=provider, status_code=status)
    if not isinstance(body, dict):
        return UnrecognizedShape(provider=provider, raw=text, status_code=status)

    message = error_message(body)
    if message:
        return RecognizedError(message, status, body)
    if not response.is_success:
        details = json.dumps(body, ensure_ascii=False)
        return RecognizedError(
            f"Erro na API {display_name(provider)}: HTTP {status} {response.reason_phrase}. Detalhes: {details}",
            status,
            body,
        )
    if not body:
        return EmptyBody(provider=provider, status_code=status)
    return Success(body)


def read_json_object(response: httpx.Response) -> dict[str, Any]:
    """Best-effort JSON object used by token endpoints; non-objects become ``{}``."""

    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class BasePartnerGateway:
    """Common constructor and credential checks for partner gateways."""

    provider: ClassVar[str] = ""
    # (credential field, label shown to the user)
    required_credentials: ClassVar[tuple[tuple[str, str], ...]] = ()

    def __init__(
        self,
        credentials: dict[str, str | None],
        *,
        api_base: str,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._credentials = {key: value for key, value in credentials.items() if value}
        self._api_base = api_base.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    @classmethod
    def missing_credentials(cls, credentials: dict[str, Any]) -> list[str]:
        return [label for key, label in cls.required_credentials if not credentials.get(key)]

    @classmethod
    def check_credentials(cls, credentials: dict[str, Any]) -> None:
        missing = cls.missing_credentials(credentials)
        if missing:
            raise ConfigurationError(cls.provider, missing)

    def _credential(self, key: str) -> str:
        return self._credentials[key]

    def _url(self, path: str) -> str:
        return f"{self._api_base}/{path.lstrip('/')}"

    @staticmethod
    def _bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def _log_reply(self, operation: str, identifier: str, reply: PartnerReply) -> PartnerReply:
        log.debug(
            "Partner reply",
            provider=self.provider,
            operation=operation,
            identifier=identifier,
            reply=type(reply).__name__,
        )
        return reply

    async def authenticate(self) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "BasePartnerGateway":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = [
    "Accepted",
    "AuthenticationError",
    "BasePartnerGateway",
    "ConfigurationError",
    "EmptyBody",
    "PartnerError",
    "PartnerReply",
    "RecognizedError",
    "Success",
    "UnrecognizedShape",
    "decode_response",
]
