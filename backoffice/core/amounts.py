from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any


def parse_amount(value: Any, default: float | None = None) -> float | None:
    """Parse partner money fields such as ``1234.56``, ``"1.234,56"`` or ``"R$ 10,00"``."""

    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float, Decimal)):
        text = str(value)
    else:
        text = str(value).strip().replace("R$", "").replace(" ", "")
        if not text:
            return default
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
    try:
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite():
        return default
    return float(result)


def parse_int(value: Any, default: int | None = None) -> int | None:
    amount = parse_amount(value)
    if amount is None:
        return default
    return int(amount)
