from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, constr, field_validator

from backoffice.core.identifiers import normalise_cpf

Cpf = constr(pattern=r"^\d{11}$")


class Offer(BaseModel):
    """CLT credit offer normalised across partners."""

    offer_id: str | None = None
    product: str | None = None
    financed_amount: float | None = None
    installment_amount: float | None = None
    installments: int | None = None
    monthly_rate: float | None = None
    status: str | None = None


class SubjectPayload(BaseModel):
    cpf: str
    nome: str | None = None
    data_nascimento: str | None = None
    telefone_ddd: str | None = None
    telefone_numero: str | None = None

    @field_validator("cpf")
    @classmethod
    def _normalise_cpf(cls, value: str) -> str:
        return normalise_cpf(value)


class BatchSubmission(BaseModel):
    identifiers: list[str] = Field(min_length=1)
    provider: Literal["v8", "facta", "c6"]
    kind: Literal["fgts", "clt"] = "fgts"
    v8_provider: Literal["qi", "cartos", "bms"] | None = None
    owner_id: str = Field(min_length=1)
    owner_email: str = ""
    file_name: str = "lote.xlsx"
    subjects: list[SubjectPayload] = Field(default_factory=list)

    @field_validator("identifiers")
    @classmethod
    def _normalise_identifiers(cls, values: list[str]) -> list[str]:
        return [normalise_cpf(value) for value in values]


class BatchJobView(BaseModel):
    id: str
    kind: str
    provider: str
    display_provider: str
    v8_provider: str | None = None
    file_name: str
    status: Literal["processing", "completed", "error"]
    total: int
    processed: int
    identifiers: list[str]
    created_at: datetime
    completed_at: datetime | None = None
    message: str | None = None
    owner_id: str
    owner_email: str


class ActionResult(BaseModel):
    status: Literal["success", "error"]
    message: str | None = None
    batch: BatchJobView | None = None


class ReportRequest(BaseModel):
    identifiers: list[str]
    file_name: str = ""
    created_at: datetime
    provider: str
    kind: Literal["fgts", "clt"] | None = None
    owner_id: str | None = None


class FileResult(BaseModel):
    status: Literal["success", "error"]
    file_name: str = ""
    file_content: str = ""
    message: str | None = None


class PhonePayload(BaseModel):
    country_code: str = "55"
    area_code: str
    number: str


class AuthorizationLinkRequest(BaseModel):
    user_id: str
    cpf: Cpf
    name: str
    birth_date: str
    phone: PhonePayload
    email: str | None = None
    gender: Literal["male", "female"] | None = None


class PartnerQuery(BaseModel):
    user_id: str
    cpf: str
    v8_provider: Literal["qi", "cartos", "bms"] | None = None

    @field_validator("cpf")
    @classmethod
    def _normalise_cpf(cls, value: str) -> str:
        return normalise_cpf(value)


class PartnerQueryResult(BaseModel):
    success: bool
    outcome: Literal["success", "accepted", "error"]
    message: str
    data: dict[str, Any] | None = None


class CredentialsUpdate(BaseModel):
    email: str | None = None
    v8_username: str | None = None
    v8_password: str | None = None
    v8_audience: str | None = None
    v8_client_id: str | None = None
    facta_username: str | None = None
    facta_password: str | None = None
    c6_username: str | None = None
    c6_password: str | None = None
