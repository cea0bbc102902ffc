"""Spreadsheet rendering of batch results, one row per submitted identifier."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Sequence

from backoffice.core.amounts import parse_amount
from backoffice.domain import ResultRecord
from backoffice.domain.batches import display_name, result_key

from .xlsx import write_workbook

SHEET_NAME = "Resultados"
PENDING_MESSAGE = "Aguardando resposta do webhook"
REPASSE_SLOTS = range(1, 13)

FGTS_COLUMNS = ["CPF", "SALDO", "MENSAGEM"]
FACTA_FGTS_COLUMNS = FGTS_COLUMNS + ["DATA_SALDO"] + [
    column for slot in REPASSE_SLOTS for column in (f"DATA_REPASSE_{slot}", f"VALOR_{slot}")
]
CLT_COLUMNS = [
    "CPF",
    "STATUS",
    "MENSAGEM",
    "LINK_AUTORIZACAO",
    "QTD_OFERTAS",
    "ID_OFERTA",
    "PRODUTO_OFERTA",
    "VALOR_FINANCIADO",
    "VALOR_PARCELA",
    "QTD_PARCELAS",
    "TAXA_MES",
    "STATUS_OFERTA",
]


def report_file_name(provider: str, created_at: datetime) -> str:
    return f"{display_name(provider)}_{created_at.strftime('%d-%m-%Y')}_{created_at.strftime('%H-%M-%S')}.xlsx"


def _amount(value: Any) -> float:
    return parse_amount(value, default=0.0)


# ----------------------------------------------------------------------
# FGTS
# ----------------------------------------------------------------------
def _fgts_row(provider: str, identifier: str, record: ResultRecord | None) -> dict[str, Any]:
    if record is None:
        return {"CPF": identifier, "SALDO": 0.0, "MENSAGEM": PENDING_MESSAGE}
    if not record.is_success:
        return {"CPF": identifier, "SALDO": 0.0, "MENSAGEM": record.message or "Erro no processamento."}

    payload = record.payload
    if provider != "facta":
        return {"CPF": identifier, "SALDO": _amount(payload.get("balance")), "MENSAGEM": record.message or "Sucesso"}

    row: dict[str, Any] = {
        "CPF": identifier,
        "SALDO": _amount(payload.get("saldo_total")),
        "MENSAGEM": payload.get("msg") or record.message or "Sucesso",
        "DATA_SALDO": payload.get("data_saldo"),
    }
    for slot in REPASSE_SLOTS:
        if payload.get(f"dataRepasse_{slot}"):
            row[f"DATA_REPASSE_{slot}"] = payload[f"dataRepasse_{slot}"]
            row[f"VALOR_{slot}"] = _amount(payload.get(f"valor_{slot}"))
    return row


# ----------------------------------------------------------------------
# CLT
# ----------------------------------------------------------------------
def _best_offer(offers: Sequence[Mapping[str, Any]]) -> Mapping[str, Any] | None:
    if not offers:
        return None
    return max(offers, key=lambda offer: parse_amount(offer.get("financed_amount"), default=0.0))


def _clt_row(identifier: str, record: ResultRecord | None) -> dict[str, Any]:
    if record is None:
        return {"CPF": identifier, "STATUS": "PENDENTE", "MENSAGEM": PENDING_MESSAGE, "QTD_OFERTAS": 0}

    payload = record.payload
    offers = [offer for offer in payload.get("offers") or [] if isinstance(offer, Mapping)]
    status = payload.get("authorization_status") or ("SUCESSO" if record.is_success else "ERRO")
    row: dict[str, Any] = {
        "CPF": identifier,
        "STATUS": status,
        "MENSAGEM": record.message,
        "LINK_AUTORIZACAO": payload.get("link") or "",
        "QTD_OFERTAS": len(offers),
    }
    best = _best_offer(offers)
    if best is not None:
        row.update(
            {
                "ID_OFERTA": best.get("offer_id"),
                "PRODUTO_OFERTA": best.get("product"),
                "VALOR_FINANCIADO": _amount(best.get("financed_amount")),
                "VALOR_PARCELA": _amount(best.get("installment_amount")),
                "QTD_PARCELAS": best.get("installments"),
                "TAXA_MES": best.get("monthly_rate"),
                "STATUS_OFERTA": best.get("status"),
            }
        )
    return row


def build_rows(
    kind: str,
    provider: str,
    identifiers: Sequence[str],
    records: Mapping[str, ResultRecord],
) -> tuple[list[str], list[dict[str, Any]], list[str]]:
    """Return ``(columns, rows, currency_columns)`` for the given identifiers."""

    if kind == "clt":
        rows = [_clt_row(identifier, records.get(result_key(provider, identifier))) for identifier in identifiers]
        return CLT_COLUMNS, rows, ["VALOR_FINANCIADO", "VALOR_PARCELA"]

    rows = [_fgts_row(provider, identifier, records.get(result_key(provider, identifier))) for identifier in identifiers]
    if provider == "facta":
        return FACTA_FGTS_COLUMNS, rows, ["SALDO"] + [f"VALOR_{slot}" for slot in REPASSE_SLOTS]
    return FGTS_COLUMNS, rows, ["SALDO"]


def render_batch_report(
    kind: str,
    provider: str,
    identifiers: Sequence[str],
    records: Mapping[str, ResultRecord],
) -> bytes:
    columns, rows, currency = build_rows(kind, provider, identifiers, records)
    return write_workbook(rows, columns, sheet_name=SHEET_NAME, currency_columns=currency)
