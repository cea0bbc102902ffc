from __future__ import annotations

from datetime import datetime
from typing import Iterable

from backoffice.domain import ActivityLogEntry

from .xlsx import write_workbook

COLUMNS = ["Data", "Usuário", "Ação", "CPF", "Provedor", "Detalhes"]


def activity_file_name(generated_at: datetime) -> str:
    return f"Relatorio_Atividades_{generated_at.strftime('%d-%m-%Y')}.xlsx"


def render_activity_report(entries: Iterable[ActivityLogEntry]) -> bytes:
    rows = [
        {
            "Data": entry.created_at.strftime("%d/%m/%Y %H:%M:%S"),
            "Usuário": entry.user_email,
            "Ação": entry.action,
            "CPF": entry.identifier or "",
            "Provedor": entry.provider or "",
            "Detalhes": entry.details or "",
        }
        for entry in entries
    ]
    return write_workbook(rows, COLUMNS, sheet_name="Atividades")
