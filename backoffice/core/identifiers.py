"""CPF helpers and spreadsheet intake for batch submissions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from backoffice.domain import Subject

CPF_COLUMNS = ["cpf", "documento", "document", "documentnumber"]
SUBJECT_COLUMNS = {
    "name": ["nome", "name"],
    "birth_date": ["data_nascimento", "nascimento", "birth_date"],
    "phone_area_code": ["telefone_ddd", "ddd"],
    "phone_number": ["telefone_numero", "telefone", "phone"],
}

_NON_DIGITS = re.compile(r"\D")


def normalise_cpf(value: Any) -> str:
    """Return an 11 digit CPF, restoring leading zeros lost by spreadsheets."""

    text = str(value if value is not None else "").strip()
    if text.endswith(".0"):
        text = text[:-2]
    digits = _NON_DIGITS.sub("", text)
    if not digits or len(digits) > 11:
        raise ValueError(f"CPF inválido: {value!r}")
    return digits.zfill(11)


@dataclass
class IdentifierSheet:
    identifiers: list[str]
    subjects: list[Subject] = field(default_factory=list)
    skipped: int = 0


def _token(column: Any) -> str:
    return re.sub(r"[\s\-]+", "_", str(column).strip().lower())


def _find_column(columns: Iterable[Any], candidates: list[str], claimed: Iterable[Any] = ()) -> Any | None:
    taken = set(claimed)
    by_token = {_token(column): column for column in columns if column not in taken}
    for candidate in candidates:
        if candidate in by_token:
            return by_token[candidate]
    for candidate in candidates:
        for token, column in by_token.items():
            if candidate in token:
                return column
    return None


def _subject_columns(columns: list[Any], cpf_column: Any) -> dict[str, Any | None]:
    """Map contact attributes to columns, each column used at most once.

    Exact header matches are settled first so a loose match (``telefone``
    inside ``telefone_ddd``) cannot take a column another attribute names.
    """

    tokens = {_token(column): column for column in columns}
    resolved: dict[str, Any | None] = {}
    for attribute, candidates in SUBJECT_COLUMNS.items():
        exact = next((tokens[candidate] for candidate in candidates if candidate in tokens), None)
        resolved[attribute] = exact if exact != cpf_column else None
    claimed = {cpf_column, *(column for column in resolved.values() if column is not None)}
    for attribute, candidates in SUBJECT_COLUMNS.items():
        if resolved[attribute] is None:
            resolved[attribute] = _find_column(columns, candidates, claimed)
            if resolved[attribute] is not None:
                claimed.add(resolved[attribute])
    return resolved


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "nan":
        return None
    return text


def read_identifiers(path: Path) -> IdentifierSheet:
    """Read CPFs (and optional contact data) from a CSV or Excel upload.

    Order and duplicates are preserved; rows whose CPF cannot be parsed are
    counted in ``skipped``.
    """

    suffix = path.suffix.lower()
    if suffix == ".csv":
        dataframe = pd.read_csv(path, dtype=str, keep_default_na=False)
    elif suffix in {".xlsx", ".xls", ".xlsm"}:
        dataframe = pd.read_excel(path, dtype=str, keep_default_na=False)
    else:
        raise ValueError(f"Formato de arquivo não suportado: {path.suffix or path.name}")

    dataframe = dataframe.dropna(how="all")
    cpf_column = _find_column(dataframe.columns, CPF_COLUMNS)
    if cpf_column is None:
        raise ValueError("Coluna de CPF não encontrada na planilha")

    subject_columns = _subject_columns(list(dataframe.columns), cpf_column)

    identifiers: list[str] = []
    subjects: list[Subject] = []
    skipped = 0
    for row in dataframe.to_dict(orient="records"):
        raw = _clean(row.get(cpf_column))
        if raw is None:
            continue
        try:
            cpf = normalise_cpf(raw)
        except ValueError:
            skipped += 1
            continue
        identifiers.append(cpf)
        details = {
            attribute: _clean(row.get(column)) if column is not None else None
            for attribute, column in subject_columns.items()
        }
        if any(details.values()):
            subjects.append(Subject(cpf=cpf, **details))

    return IdentifierSheet(identifiers=identifiers, subjects=subjects, skipped=skipped)
