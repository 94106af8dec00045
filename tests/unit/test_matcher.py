from __future__ import annotations

from datetime import date

import pytest

from printmatch_import.excel.reader import RawRecord
from printmatch_import.models.cell import Cell
from printmatch_import.models.import_row import MatchType, RowStatus
from printmatch_import.models.reference import ReferenceData, TechnicalRecord
from printmatch_import.services.matcher import (
    MSG_DIMENSIONAL,
    MSG_NONE,
    assign_manual_match,
    match_row,
    match_rows,
    technical_record_from_cells,
)
from printmatch_import.validation import QUOTATIONS, validate_row

FARM = TechnicalRecord(
    record_id="dieline-1",
    sku="FARM-001",
    product_name="Caja Paracetamol",
    alto_mm=95,
    ancho_mm=45,
    profundidad_mm=28,
    details={"troquel_id": "TRQ-9", "layout_impresion": "2x4"},
)
OTHER = TechnicalRecord(record_id="dieline-2", sku="COS-002", product_name="Estuche Crema",
                        alto_mm=150, ancho_mm=60, profundidad_mm=40)
RECORDS = (FARM, OTHER)


def quotation_row(**overrides):
    values = {
        "sku": "NEW-1",
        "nombre_producto": "Caja Nueva",
        "cliente_nombre": "Farmacia ABC",
        "cantidad_cotizada": 100,
        "precio_unitario": 1.0,
    }
    values.update(overrides)
    raw = RawRecord(1, {k: Cell.of(v) for k, v in values.items()})
    return validate_row(raw, QUOTATIONS, ReferenceData(), date(2025, 1, 1)).without_messages("resolve.")


def test_exact_sku_fills_empty_dimensions():
    row = match_row(quotation_row(sku="FARM-001", alto_mm=""), RECORDS)
    assert row.match_type is MatchType.EXACT_KEY
    assert [row.value(f) for f in ("alto_mm", "ancho_mm", "profundidad_mm")] == [95, 45, 28]
    assert row.resolved_references["technical_record_id"] == "dieline-1"
    assert row.resolved_references["troquel_id"] == "TRQ-9"
    assert row.value("layout_impresion") == "2x4"
    assert row.status is RowStatus.VALID


def test_exact_match_by_name_is_case_insensitive():
    row = match_row(quotation_row(nombre_producto="caja paracetamol"), RECORDS)
    assert row.match_type is MatchType.EXACT_KEY


def test_exact_match_keeps_values_the_row_supplied():
    row = match_row(quotation_row(sku="FARM-001", alto_mm=90, observaciones="x"), RECORDS)
    assert row.value("alto_mm") == 90
    assert row.value("ancho_mm") == 45
    assert row.value("sku") == "FARM-001"


def test_dimensional_match_within_tolerance_warns():
    row = match_row(quotation_row(alto_mm=95.5, ancho_mm=45, profundidad_mm=27.2), RECORDS)
    assert row.match_type is MatchType.DIMENSIONAL_TOLERANCE
    assert row.warnings == [MSG_DIMENSIONAL]
    assert row.value("alto_mm") == 95.5
    assert row.resolved_references["technical_record_id"] == "dieline-1"


def test_dimension_outside_tolerance_is_no_match():
    row = match_row(quotation_row(alto_mm=96.2, ancho_mm=45, profundidad_mm=28), RECORDS)
    assert row.match_type is MatchType.NONE
    assert row.warnings == [MSG_NONE]
    assert "technical_record_id" not in row.resolved_references


@pytest.mark.parametrize("alto,matched", [(96.0, True), (96.1, False)])
def test_tolerance_boundary_is_inclusive(alto, matched):
    row = match_row(quotation_row(alto_mm=alto, ancho_mm=45, profundidad_mm=28), RECORDS)
    assert (row.match_type is MatchType.DIMENSIONAL_TOLERANCE) is matched


def test_partial_dimensions_never_match_dimensionally():
    row = match_row(quotation_row(alto_mm=95, ancho_mm=45), RECORDS)
    assert row.match_type is MatchType.NONE


def test_matching_twice_gives_the_same_row():
    rows = [
        quotation_row(sku="FARM-001"),
        quotation_row(alto_mm=95.5, ancho_mm=45, profundidad_mm=27.2),
        quotation_row(),
    ]
    once = match_rows(rows, RECORDS)
    assert match_rows(once, RECORDS) == once


def test_no_records_is_no_match():
    row = match_row(quotation_row(sku="FARM-001"), ())
    assert row.match_type is MatchType.NONE


def test_manual_assignment_overwrites_dimensions():
    row = match_row(quotation_row(alto_mm=10, ancho_mm=10, profundidad_mm=10), RECORDS)
    manual = assign_manual_match(row, "dieline-2", RECORDS)
    assert manual.match_type is MatchType.MANUAL
    assert [manual.value(f) for f in ("alto_mm", "ancho_mm", "profundidad_mm")] == [150, 60, 40]
    assert manual.warnings == []
    assert manual.resolved_references["technical_record_id"] == "dieline-2"
    assert "troquel_id" not in manual.resolved_references


def test_manual_rows_are_skipped_by_automatic_passes():
    manual = assign_manual_match(quotation_row(), "dieline-2", RECORDS)
    assert match_row(manual, RECORDS) is manual


def test_manual_assignment_unknown_record():
    with pytest.raises(KeyError):
        assign_manual_match(quotation_row(), "dieline-99", RECORDS)


def test_technical_record_from_cells():
    record = technical_record_from_cells(
        "dieline-3",
        {
            "sku": Cell.of("X-1"),
            "nombre_producto": "Caja X",
            "alto_mm": Cell.of(100),
            "ancho_mm": "50,5",
            "profundidad_mm": Cell.of(float("nan")),
            "troquel_id": Cell.of("TRQ-1"),
            "subformas": None,
        },
    )
    assert record.sku == "X-1"
    assert record.dimensions() == (100.0, 50.5, None)
    assert record.details == {"troquel_id": "TRQ-1"}


def test_automatic_match_keeps_the_rows_own_troquel_id():
    row = match_row(quotation_row(sku="FARM-001", troquel_id="TRQ-ROW"), RECORDS)
    assert row.match_type is MatchType.EXACT_KEY
    assert row.value("troquel_id") == "TRQ-ROW"
    assert "troquel_id" not in row.resolved_references


def test_manual_assignment_replaces_the_rows_troquel_id():
    manual = assign_manual_match(quotation_row(troquel_id="TRQ-ROW"), "dieline-1", RECORDS)
    assert manual.resolved_references["troquel_id"] == "TRQ-9"
