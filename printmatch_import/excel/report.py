from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.import_row import ImportRow, RowStatus
from ..validation.rules import TODAY
from ..validation.variants import ImportVariant

"""Workbook output: error report and import templates (openpyxl engine)."""

__all__ = [
    "ERROR_SHEET",
    "write_error_report",
    "write_template",
]

ERROR_SHEET = "Errores_Importacion"
TEMPLATE_SHEET = "Plantilla"
DIELINE_SHEET = "Plantilla_Dielines"


def write_error_report(rows: Sequence[ImportRow], variant: ImportVariant, path: Path) -> int:
    """Write one line per ERROR row so users can fix the source file.

    Columns: fila, the variant's key columns, errores, advertencias.

    Returns:
        Number of rows written
    """
    columns = ["fila", *variant.key_fields, "errores", "advertencias"]
    data = [
        {
            "fila": row.row_index,
            **{k: row.raw(k).text for k in variant.key_fields},
            "errores": "; ".join(row.errors),
            "advertencias": "; ".join(row.warnings),
        }
        for row in rows
        if row.status is RowStatus.ERROR
    ]
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(data, columns=columns).to_excel(writer, sheet_name=ERROR_SHEET, index=False)
    return len(data)


def _resolve(row: dict[str, Any], today: date) -> dict[str, Any]:
    return {k: (today.isoformat() if v is TODAY else v) for k, v in row.items()}


def write_template(variant: ImportVariant, path: Path, today: date | None = None) -> Path:
    """Write an example workbook with the variant's columns.

    The quotations template carries a second sheet with the dieline columns.
    """
    today = today or date.today()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        frame = pd.DataFrame(
            [_resolve(r, today) for r in variant.template_rows], columns=variant.columns
        )
        frame.to_excel(writer, sheet_name=TEMPLATE_SHEET, index=False)
        if variant.dieline_template_rows:
            pd.DataFrame(list(variant.dieline_template_rows)).to_excel(
                writer, sheet_name=DIELINE_SHEET, index=False
            )
    return path
