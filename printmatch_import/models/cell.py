from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

import pandas as pd
from pandas.api.types import is_bool, is_number, is_scalar

"""Cell model: tagged value of a single spreadsheet cell.

Every value coming out of the row parser is one of three kinds, so the
validation rules can branch on ``kind`` instead of guessing from Python types.
"""

__all__ = [
    "Cell",
    "CellKind",
    "EMPTY",
]


class CellKind(Enum):
    """Kind tag for a parsed cell."""
    STRING = "string"
    NUMBER = "number"
    EMPTY = "empty"


@dataclass(frozen=True)
class Cell:
    """A parsed cell value tagged with its kind.

    - STRING: trimmed, non-empty text
    - NUMBER: int/float read from a workbook (may be non-finite)
    - EMPTY: missing, NaN, or whitespace-only
    """
    kind: CellKind
    value: str | float | None = None

    @staticmethod
    def of(value: Any) -> Cell:
        """Build a Cell from a raw value as returned by pandas."""
        if value is None or (is_scalar(value) and pd.isna(value)):
            return EMPTY
        if is_bool(value):
            # bool は数値扱いされるので先に判定
            return Cell(CellKind.STRING, "True" if value else "False")
        if is_number(value):
            return Cell(CellKind.NUMBER, float(value))
        if isinstance(value, datetime):
            return Cell(CellKind.STRING, value.date().isoformat())
        if isinstance(value, date):
            return Cell(CellKind.STRING, value.isoformat())
        text = str(value).strip()
        if not text:
            return EMPTY
        return Cell(CellKind.STRING, text)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def text(self) -> str:
        """String rendering of the value ("" for EMPTY, 101.0 -> "101")."""
        if self.kind is CellKind.EMPTY:
            return ""
        if self.kind is CellKind.NUMBER:
            number = float(self.value)  # type: ignore[arg-type]
            if math.isfinite(number) and number.is_integer():
                return str(int(number))
            return repr(number)
        return str(self.value)


EMPTY = Cell(CellKind.EMPTY)
