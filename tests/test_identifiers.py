from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import Workbook

from backoffice.core.amounts import parse_amount, parse_int
from backoffice.core.identifiers import normalise_cpf, read_identifiers


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("123.456.789-01", "12345678901"),
        (" 12345678901 ", "12345678901"),
        ("1234567890", "01234567890"),
        (1234567890, "01234567890"),
        ("1234567890.0", "01234567890"),
    ],
)
def test_normalise_cpf(raw, expected):
    assert normalise_cpf(raw) == expected


@pytest.mark.parametrize("raw", ["", "abc", "123456789012", None])
def test_normalise_cpf_rejects_garbage(raw):
    with pytest.raises(ValueError):
        normalise_cpf(raw)


def test_parse_amount_handles_brazilian_format():
    assert parse_amount("R$ 1.234,56") == 1234.56
    assert parse_amount("980.10") == 980.1
    assert parse_amount("abc") is None
    assert parse_amount("NaN", default=0.0) == 0.0
    assert parse_int("24") == 24


def test_read_csv_keeps_order_and_duplicates(tmp_path: Path):
    path = tmp_path / "lote.csv"
    path.write_text("Nome,CPF\nAna,123.456.789-01\nBeto,\nCarla,98765432100\nAna,12345678901\nZé,abc\n", encoding="utf-8")

    sheet = read_identifiers(path)

    assert sheet.identifiers == ["12345678901", "98765432100", "12345678901"]
    assert sheet.skipped == 1
    assert [subject.name for subject in sheet.subjects] == ["Ana", "Carla", "Ana"]


def test_read_excel_with_contact_columns(tmp_path: Path):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Documento", "Nome", "Data_Nascimento", "Telefone_DDD", "Telefone_Numero"])
    sheet.append(["1234567890", "Maria", "1990-01-01", "11", "999990000"])
    path = tmp_path / "clientes.xlsx"
    workbook.save(path)

    result = read_identifiers(path)

    assert result.identifiers == ["01234567890"]
    subject = result.subjects[0]
    assert subject.has_contact_data()
    assert (subject.phone_area_code, subject.phone_number) == ("11", "999990000")


def test_missing_cpf_column(tmp_path: Path):
    path = tmp_path / "lote.csv"
    path.write_text("nome\nAna\n", encoding="utf-8")

    with pytest.raises(ValueError, match="CPF"):
        read_identifiers(path)


def test_unsupported_format(tmp_path: Path):
    path = tmp_path / "lote.txt"
    path.write_text("cpf\n1\n", encoding="utf-8")

    with pytest.raises(ValueError, match="não suportado"):
        read_identifiers(path)


def test_area_code_column_is_not_reused_as_phone_number(tmp_path: Path):
    path = tmp_path / "lote.csv"
    path.write_text("cpf,telefone_ddd,telefone_celular\n12345678901,11,988887777\n", encoding="utf-8")

    subject = read_identifiers(path).subjects[0]

    assert subject.phone_area_code == "11"
    assert subject.phone_number == "988887777"


def test_phone_number_stays_empty_without_its_own_column(tmp_path: Path):
    path = tmp_path / "lote.csv"
    path.write_text("cpf,telefone_ddd\n12345678901,11\n", encoding="utf-8")

    subject = read_identifiers(path).subjects[0]

    assert subject.phone_area_code == "11"
    assert subject.phone_number is None
