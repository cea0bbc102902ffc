from __future__ import annotations

import base64
import io
from datetime import datetime

from openpyxl import load_workbook

from backoffice.application import get_batch_service, get_result_repository
from backoffice.core.schema import ReportRequest
from backoffice.domain import ResultRecord
from backoffice.exporters.batch_report import PENDING_MESSAGE
from backoffice.exporters.xlsx import CURRENCY_FORMAT, XLSX_MIME

CREATED_AT = datetime(2026, 3, 7, 9, 30, 15)


def _record(provider: str, cpf: str, status: str, message: str, payload: dict) -> ResultRecord:
    return ResultRecord(
        key=f"{provider}-{cpf}", identifier=cpf, provider=provider, status=status, message=message, payload=payload
    )


def _report(identifiers, provider="v8", kind=None):
    return get_batch_service().generate_report(
        ReportRequest(identifiers=identifiers, created_at=CREATED_AT, provider=provider, kind=kind)
    )


def _sheet(result):
    prefix = f"data:{XLSX_MIME};base64,"
    assert result.file_content.startswith(prefix)
    workbook = load_workbook(io.BytesIO(base64.b64decode(result.file_content[len(prefix):])))
    return workbook["Resultados"]


def _rows(sheet) -> list[dict]:
    values = list(sheet.iter_rows(values_only=True))
    header = values[0]
    return [dict(zip(header, row)) for row in values[1:]]


def test_report_with_no_results_lists_every_identifier_as_pending():
    result = _report(["11111111111", "22222222222"])

    assert result.status == "success"
    assert result.file_name == "V8DIGITAL_07-03-2026_09-30-15.xlsx"
    rows = _rows(_sheet(result))
    assert [row["CPF"] for row in rows] == ["11111111111", "22222222222"]
    assert all(row["MENSAGEM"] == PENDING_MESSAGE for row in rows)
    assert all(row["SALDO"] == 0 for row in rows)


def test_mixed_results_keep_original_order():
    store = get_result_repository()
    store.upsert(_record("v8", "33333333333", "success", "Sucesso", {"balance": "1.234,56"}))
    store.upsert(_record("v8", "11111111111", "error", "Saldo insuficiente", {"errorMessage": "Saldo insuficiente"}))

    rows = _rows(_sheet(_report(["33333333333", "22222222222", "11111111111"])))

    assert [row["CPF"] for row in rows] == ["33333333333", "22222222222", "11111111111"]
    assert rows[0]["SALDO"] == 1234.56
    assert rows[0]["MENSAGEM"] == "Sucesso"
    assert rows[1]["MENSAGEM"] == PENDING_MESSAGE
    assert rows[2]["MENSAGEM"] == "Saldo insuficiente"


def test_unparseable_balance_renders_zero():
    get_result_repository().upsert(_record("v8", "11111111111", "success", "Sucesso", {"balance": "n/d"}))

    rows = _rows(_sheet(_report(["11111111111"])))

    assert rows[0]["SALDO"] == 0


def test_balance_cells_use_currency_format():
    get_result_repository().upsert(_record("v8", "11111111111", "success", "Sucesso", {"balance": 99.9}))

    sheet = _sheet(_report(["11111111111"]))

    assert sheet["A1"].value == "CPF"
    assert sheet["B1"].value == "SALDO"
    assert sheet["B2"].value == 99.9
    assert sheet["B2"].number_format == CURRENCY_FORMAT


def test_identifiers_are_normalised_before_lookup():
    get_result_repository().upsert(_record("v8", "01234567890", "success", "Sucesso", {"balance": 10}))

    rows = _rows(_sheet(_report(["123.456.789-0"])))

    assert rows[0]["CPF"] == "01234567890"
    assert rows[0]["SALDO"] == 10


def test_empty_identifier_list_is_an_error():
    result = _report([])

    assert result.status == "error"
    assert result.file_content == ""


def test_unknown_provider_is_an_error():
    assert _report(["11111111111"], provider="banco-x").status == "error"


def test_facta_report_has_transfer_columns():
    payload = {
        "saldo_total": "1500.00",
        "msg": "Saldo disponível",
        "data_saldo": "01/03/2026",
        "dataRepasse_1": "01/04/2026",
        "valor_1": "500.00",
    }
    get_result_repository().upsert(_record("facta", "11111111111", "success", "Sucesso", payload))

    result = _report(["11111111111"], provider="FACTA", kind="fgts")
    sheet = _sheet(result)
    row = _rows(sheet)[0]

    assert result.file_name.startswith("FACTA_07-03-2026")
    assert row["SALDO"] == 1500
    assert row["MENSAGEM"] == "Saldo disponível"
    assert row["DATA_SALDO"] == "01/03/2026"
    assert row["DATA_REPASSE_1"] == "01/04/2026"
    assert row["VALOR_1"] == 500
    assert row["DATA_REPASSE_12"] is None
    header = [cell.value for cell in sheet[1]]
    assert header.index("VALOR_1") == header.index("DATA_REPASSE_1") + 1


def test_clt_report_shows_best_offer():
    payload = {
        "authorization_status": "AUTORIZADO",
        "offers": [
            {"offer_id": "a", "product": "Consignado", "financed_amount": 2000.0, "installment_amount": 150.0},
            {"offer_id": "b", "product": "Consignado", "financed_amount": 8000.0, "installment_amount": 420.0},
        ],
    }
    store = get_result_repository()
    store.upsert(_record("c6", "11111111111", "success", "2 oferta(s) encontrada(s).", payload))
    store.upsert(
        _record(
            "c6",
            "22222222222",
            "error",
            "Dados insuficientes para gerar link.",
            {"authorization_status": "ERRO_DADOS"},
        )
    )

    sheet = _sheet(_report(["11111111111", "22222222222", "33333333333"], provider="C6"))
    rows = _rows(sheet)

    assert rows[0]["STATUS"] == "AUTORIZADO"
    assert rows[0]["QTD_OFERTAS"] == 2
    assert rows[0]["ID_OFERTA"] == "b"
    assert rows[0]["VALOR_FINANCIADO"] == 8000
    assert rows[1]["STATUS"] == "ERRO_DADOS"
    assert rows[1]["QTD_OFERTAS"] == 0
    assert rows[2]["STATUS"] == "PENDENTE"
    assert rows[2]["MENSAGEM"] == PENDING_MESSAGE

    header = [cell.value for cell in sheet[1]]
    financed = sheet.cell(row=2, column=header.index("VALOR_FINANCIADO") + 1)
    assert financed.number_format == CURRENCY_FORMAT


def test_facta_report_requires_kind():
    get_result_repository().upsert(_record("facta", "11111111111", "success", "1 oferta(s)", {"offers": []}))

    result = _report(["11111111111"], provider="FACTA")

    assert result.status == "error"
    assert "fgts ou clt" in result.message


def test_facta_clt_report_uses_offer_columns():
    payload = {"offers": [{"offer_id": "f-1", "financed_amount": 5200.0}]}
    get_result_repository().upsert(_record("facta", "11111111111", "success", "1 oferta(s) encontrada(s).", payload))

    rows = _rows(_sheet(_report(["11111111111"], provider="FACTA", kind="clt")))

    assert "SALDO" not in rows[0]
    assert rows[0]["ID_OFERTA"] == "f-1"
    assert rows[0]["VALOR_FINANCIADO"] == 5200


def test_kind_is_inferred_for_single_kind_providers():
    assert _report(["11111111111"], provider="C6").file_name.startswith("C6_")
    assert _report(["11111111111"], provider="v8", kind="clt").status == "error"
