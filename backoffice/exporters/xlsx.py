from __future__ import annotations

import base64
import io
from typing import Iterable, Sequence

import pandas as pd
from openpyxl.utils import get_column_letter

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CURRENCY_FORMAT = '"R$"#,##0.00'


def write_workbook(
    rows: Sequence[dict],
    columns: Sequence[str],
    *,
    sheet_name: str,
    currency_columns: Iterable[str] = (),
) -> bytes:
    """Render ``rows`` as a single-sheet workbook and return the file bytes."""

    df = pd.DataFrame(list(rows), columns=list(columns))
    df = df.astype(object).where(df.notna(), None)
    currency = set(currency_columns)

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
        sheet = writer.sheets[sheet_name]
        for index, column in enumerate(columns, start=1):
            letter = get_column_letter(index)
            sheet.column_dimensions[letter].width = max(15, len(column) + 2)
            if column not in currency:
                continue
            for (cell,) in sheet.iter_rows(min_row=2, min_col=index, max_col=index):
                if isinstance(cell.value, (int, float)):
                    cell.number_format = CURRENCY_FORMAT
    return buffer.getvalue()


def to_data_uri(content: bytes) -> str:
    return f"data:{XLSX_MIME};base64,{base64.b64encode(content).decode('ascii')}"
