from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import replace
from typing import Any

from ..models.import_row import ImportRow, MatchType, RowMessage, Severity
from ..models.reference import DIMENSION_FIELDS, TECHNICAL_FIELDS, TechnicalRecord

"""Quotation <-> technical record (dieline) matcher.

Two automatic passes, first hit wins:

1. exact key: row SKU or product name equals the record's (case-insensitive,
   empty keys never match)
2. dimensional tolerance: all three dimensions within DIMENSION_TOLERANCE_MM

Automatic matches only fill fields the row left empty. A manual assignment
replaces the dimensions and fills the remaining technical fields. Key fields
(sku, nombre_producto) are never copied, so matching the same rows again
gives the same result.
"""

__all__ = [
    "DIMENSION_TOLERANCE_MM",
    "assign_manual_match",
    "find_exact",
    "find_dimensional",
    "match_row",
    "match_rows",
    "technical_record_from_cells",
]

DIMENSION_TOLERANCE_MM = 1.0
_EPS = 1e-9  # 浮動小数の丸め誤差吸収

CODE_PREFIX = "match."
_MATCH_REFS = ("technical_record_id", "troquel_id")
MSG_DIMENSIONAL = "Matched by dimensions; verify compatibility"
MSG_NONE = "No technical record found for this SKU"


def _key(value: Any) -> str:
    return str(value).strip().casefold() if value is not None else ""


def find_exact(row: ImportRow, records: Sequence[TechnicalRecord]) -> TechnicalRecord | None:
    sku = _key(row.value("sku"))
    name = _key(row.value("nombre_producto"))
    for record in records:
        if sku and _key(record.sku) == sku:
            return record
        if name and _key(record.product_name) == name:
            return record
    return None


def _row_dimensions(row: ImportRow) -> tuple[float, float, float] | None:
    dims = [row.value(f) for f in DIMENSION_FIELDS]
    if any(not isinstance(d, (int, float)) or isinstance(d, bool) for d in dims):
        return None
    return (float(dims[0]), float(dims[1]), float(dims[2]))


def find_dimensional(row: ImportRow, records: Sequence[TechnicalRecord]) -> TechnicalRecord | None:
    dims = _row_dimensions(row)
    if dims is None:
        return None
    for record in records:
        other = record.dimensions()
        if any(d is None for d in other):
            continue
        if all(abs(a - b) <= DIMENSION_TOLERANCE_MM + _EPS for a, b in zip(dims, other)):  # type: ignore[operator]
            return record
    return None


def _without_match_refs(row: ImportRow) -> dict[str, str]:
    return {k: v for k, v in row.resolved_references.items() if k not in _MATCH_REFS}


def _merge(row: ImportRow, record: TechnicalRecord, *, overwrite_dimensions: bool) -> ImportRow:
    typed = dict(row.typed_fields)
    own_troquel = typed.get("troquel_id")
    for name, value in zip(DIMENSION_FIELDS, record.dimensions()):
        if value is None:
            continue
        if overwrite_dimensions or typed.get(name) is None:
            typed[name] = value
    for name in TECHNICAL_FIELDS:
        value = record.details.get(name)
        if value and not typed.get(name):
            typed[name] = value
    refs = _without_match_refs(row)
    refs["technical_record_id"] = record.record_id
    troquel = record.details.get("troquel_id")
    # 行自身の troquel_id は手動割当のときだけ上書きする
    if troquel and (overwrite_dimensions or not own_troquel):
        refs["troquel_id"] = troquel
    return replace(row, typed_fields=typed, resolved_references=refs)


def match_row(row: ImportRow, records: Sequence[TechnicalRecord]) -> ImportRow:
    """Run the automatic passes for one row.

    Rows with MatchType.MANUAL are returned unchanged.
    """
    if row.match_type is MatchType.MANUAL:
        return row
    row = replace(
        row.without_messages(CODE_PREFIX),
        match_type=MatchType.NONE,
        resolved_references=_without_match_refs(row),
    )

    record = find_exact(row, records)
    if record is not None:
        return replace(_merge(row, record, overwrite_dimensions=False), match_type=MatchType.EXACT_KEY)

    record = find_dimensional(row, records)
    if record is not None:
        merged = _merge(row, record, overwrite_dimensions=False)
        return replace(merged, match_type=MatchType.DIMENSIONAL_TOLERANCE).with_messages(
            RowMessage(Severity.WARNING, MSG_DIMENSIONAL, CODE_PREFIX + "dimensional")
        )

    return row.with_messages(RowMessage(Severity.WARNING, MSG_NONE, CODE_PREFIX + "none"))


def match_rows(rows: Sequence[ImportRow], records: Sequence[TechnicalRecord]) -> list[ImportRow]:
    return [match_row(r, records) for r in rows]


def assign_manual_match(
    row: ImportRow, record_id: str, records: Sequence[TechnicalRecord]
) -> ImportRow:
    """Link a row to a chosen technical record.

    Raises:
        KeyError: ``record_id`` is not among ``records``
    """
    by_id = {r.record_id: r for r in records}
    if record_id not in by_id:
        raise KeyError(record_id)
    row = row.without_messages(CODE_PREFIX)
    return replace(_merge(row, by_id[record_id], overwrite_dimensions=True), match_type=MatchType.MANUAL)


def technical_record_from_cells(record_id: str, cells: dict[str, Any]) -> TechnicalRecord:
    """Build a TechnicalRecord from a dieline sheet row or a ``dielines`` table row.

    ``cells`` maps column name -> value (Cell, number, text or None).
    """

    def text(name: str) -> str:
        value = cells.get(name)
        if value is None:
            return ""
        if hasattr(value, "text"):
            return value.text
        return str(value).strip()

    def number(name: str) -> float | None:
        raw = text(name).replace(",", ".")
        if not raw:
            return None
        try:
            number = float(raw)
        except ValueError:
            return None
        return number if math.isfinite(number) else None

    details = {name: text(name) for name in TECHNICAL_FIELDS if text(name)}
    return TechnicalRecord(
        record_id=record_id,
        sku=text("sku"),
        product_name=text("nombre_producto"),
        alto_mm=number("alto_mm"),
        ancho_mm=number("ancho_mm"),
        profundidad_mm=number("profundidad_mm"),
        details=details,
    )
