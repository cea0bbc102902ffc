"""Partner gateways and the factory used to build them.

Gateways are created per batch run (tokens are never cached across runs).
Tests and alternative deployments install their own factory through
``configure_gateway_factory`` during start-up.
"""
from __future__ import annotations

import os
from typing import Callable

import httpx

from .base import (
    Accepted,
    AuthenticationError,
    BasePartnerGateway,
    ConfigurationError,
    EmptyBody,
    PartnerError,
    PartnerReply,
    RecognizedError,
    Success,
    UnrecognizedShape,
)
from .c6 import C6Gateway
from .facta import FactaGateway
from .v8 import V8Gateway

GATEWAY_CLASSES: dict[str, type[BasePartnerGateway]] = {
    "v8": V8Gateway,
    "facta": FactaGateway,
    "c6": C6Gateway,
}

GatewayFactory = Callable[[str, dict[str, str]], BasePartnerGateway]


def gateway_class(provider: str) -> type[BasePartnerGateway]:
    try:
        return GATEWAY_CLASSES[provider]
    except KeyError as exc:
        raise ValueError(f"Provedor desconhecido: {provider}") from exc


def default_gateway_factory(
    provider: str,
    credentials: dict[str, str],
    *,
    http_client: httpx.AsyncClient | None = None,
) -> BasePartnerGateway:
    """Build a gateway whose endpoints come from the environment."""

    timeout = float(os.getenv("PARTNER_HTTP_TIMEOUT") or 30.0)
    if provider == "v8":
        kwargs: dict[str, str] = {}
        if os.getenv("V8_AUTH_URL"):
            kwargs["auth_url"] = os.environ["V8_AUTH_URL"]
        if os.getenv("V8_API_BASE"):
            kwargs["api_base"] = os.environ["V8_API_BASE"]
        return V8Gateway(credentials, timeout=timeout, http_client=http_client, **kwargs)
    if provider == "facta":
        api_base = os.getenv("FACTA_API_BASE")
        if api_base:
            return FactaGateway(credentials, api_base=api_base, timeout=timeout, http_client=http_client)
        return FactaGateway(credentials, timeout=timeout, http_client=http_client)
    if provider == "c6":
        api_base = os.getenv("C6_API_BASE")
        if api_base:
            return C6Gateway(credentials, api_base=api_base, timeout=timeout, http_client=http_client)
        return C6Gateway(credentials, timeout=timeout, http_client=http_client)
    raise ValueError(f"Provedor desconhecido: {provider}")


_factory: GatewayFactory = default_gateway_factory


def configure_gateway_factory(factory: GatewayFactory | None) -> None:
    """Install the factory used to build gateways; ``None`` restores the default."""

    global _factory
    _factory = factory or default_gateway_factory


def build_gateway(provider: str, credentials: dict[str, str]) -> BasePartnerGateway:
    return _factory(provider, credentials)


__all__ = [
    "Accepted",
    "AuthenticationError",
    "BasePartnerGateway",
    "C6Gateway",
    "ConfigurationError",
    "EmptyBody",
    "FactaGateway",
    "GatewayFactory",
    "PartnerError",
    "PartnerReply",
    "RecognizedError",
    "Success",
    "UnrecognizedShape",
    "V8Gateway",
    "build_gateway",
    "configure_gateway_factory",
    "default_gateway_factory",
    "gateway_class",
]
