from __future__ import annotations

from datetime import date

import pytest

from printmatch_import.db.memory import InMemoryStore
from printmatch_import.db.store import MissingTableError, StoreError
from printmatch_import.excel.report import write_template
from printmatch_import.models.import_row import MatchType, RowStatus
from printmatch_import.models.reference import ReferenceData
from printmatch_import.services.importer import ImportBlockedError
from printmatch_import.services.pipeline import load_dielines, load_reference_data, prepare_session
from printmatch_import.validation import INVENTORY, PRODUCTS, QUOTATIONS

TODAY = date(2025, 5, 2)

QUOTATION_CSV = """sku,nombre_producto,cliente_nombre,cantidad_cotizada,precio_unitario,alto_mm,ancho_mm,profundidad_mm
FARM-001,Caja Paracetamol,Farmacia ABC,1000,0.85,,,
NEW-002,Caja Nueva,Farmacia ABC,500,1.2,95.5,45,27.2
BAD-003,,Farmacia ABC,abc,1,,,
"""

DIELINE_CSV = """sku,nombre_producto,alto_mm,ancho_mm,profundidad_mm,troquel_id,layout_impresion
FARM-001,Caja Paracetamol,95,45,28,TRQ-1,2x4
COS-002,Estuche Crema,150,60,40,TRQ-2,
"""


@pytest.fixture()
def reference_store() -> InMemoryStore:
    return InMemoryStore(
        {
            "clientes": [
                {"id": "c-1", "nombre_empresa": "Farmacia ABC", "rif": "J-1", "user_id": "user-1"},
                {"id": "c-9", "nombre_empresa": "Otro", "rif": "J-9", "user_id": "user-2"},
            ],
            "inventario_consumibles": [
                {"id": "i-1", "sku": "TINTA-001", "nombre_producto": "Tinta", "cantidad_disponible": 3, "user_id": "user-1"},
            ],
            "dielines": [
                {"id": 7, "sku": "DB-1", "nombre_producto": "Caja DB", "alto_mm": 10, "ancho_mm": 10, "profundidad_mm": 10, "user_id": "user-1"},
            ],
        }
    )


def test_reference_data_is_scoped_to_the_user(reference_store):
    refs = load_reference_data(reference_store, QUOTATIONS, "user-1")
    assert [c.id for c in refs.clients] == ["c-1"]
    assert [r.record_id for r in refs.technical_records] == ["7"]
    assert refs.technical_records[0].dimensions() == (10.0, 10.0, 10.0)
    assert refs.inventory_items == ()


def test_reference_data_per_variant(reference_store):
    products = load_reference_data(reference_store, PRODUCTS, "user-1")
    assert products.technical_records == ()
    inventory = load_reference_data(reference_store, INVENTORY, "user-1")
    assert inventory.clients == ()
    assert inventory.inventory_items[0].quantity == 3.0
    assert ("fetch_all", "dielines") not in reference_store.calls


def test_load_dielines(make_csv):
    records = load_dielines(make_csv(DIELINE_CSV, "dielines.csv"))
    assert [r.record_id for r in records] == ["dieline-1", "dieline-2"]
    assert records[0].details == {"troquel_id": "TRQ-1", "layout_impresion": "2x4"}


@pytest.fixture()
def session(make_csv):
    refs = load_reference_data(
        InMemoryStore({"clientes": [{"id": "c-1", "nombre_empresa": "Farmacia ABC", "user_id": "u"}]}),
        QUOTATIONS,
        "u",
    )
    return prepare_session(
        make_csv(QUOTATION_CSV),
        QUOTATIONS,
        refs,
        dieline_path=make_csv(DIELINE_CSV, "dielines.csv"),
        today=TODAY,
    )


def test_prepare_session_validates_and_matches(session):
    exact, dimensional, bad = session.rows
    assert exact.match_type is MatchType.EXACT_KEY
    assert exact.value("alto_mm") == 95.0
    assert exact.resolved_references == {
        "client_id": "c-1",
        "technical_record_id": "dieline-1",
        "troquel_id": "TRQ-1",
    }
    assert dimensional.match_type is MatchType.DIMENSIONAL_TOLERANCE
    assert dimensional.status is RowStatus.WARNING
    assert bad.status is RowStatus.ERROR
    assert (session.counts.valid, session.counts.warning, session.counts.error) == (1, 1, 1)
    assert [r.row_index for r in session.eligible_rows] == [1, 2]
    assert session.source.name == "upload.csv"
    assert session.source.size > 0


def test_blocked_until_error_rows_are_fixed(session):
    with pytest.raises(ImportBlockedError) as exc:
        session.ensure_importable()
    assert exc.value.row_indexes == [3]

    fixed = session.edit_row(3, {"nombre_producto": "Caja Reparada", "cantidad_cotizada": "10"})
    fixed.ensure_importable()
    assert fixed.row(3).status is RowStatus.WARNING  # no technical record
    assert session.row(3).status is RowStatus.ERROR
    assert fixed.row(1) is session.row(1)


def test_manual_match_replaces_automatic_result(session):
    updated = session.assign_manual_match(2, "dieline-2")
    row = updated.row(2)
    assert row.match_type is MatchType.MANUAL
    assert row.status is RowStatus.VALID
    assert (row.value("alto_mm"), row.value("ancho_mm"), row.value("profundidad_mm")) == (150.0, 60.0, 40.0)
    assert row.resolved_references["troquel_id"] == "TRQ-2"


def test_manual_match_unknown_ids(session):
    with pytest.raises(KeyError):
        session.assign_manual_match(2, "dieline-99")
    with pytest.raises(KeyError):
        session.assign_manual_match(99, "dieline-1")


def test_session_without_references(make_csv):
    session = prepare_session(make_csv(QUOTATION_CSV), QUOTATIONS, ReferenceData(), today=TODAY)
    first = session.row(1)
    assert first.match_type is MatchType.NONE
    assert len(first.warnings) == 2  # client + no technical record


def test_missing_dielines_table_falls_back_to_the_sheet(reference_store, make_csv):
    reference_store.fail_on[("fetch_all", "dielines")] = MissingTableError('relation "dielines" does not exist')
    refs = load_reference_data(reference_store, QUOTATIONS, "user-1")
    assert refs.technical_records == ()
    assert [c.id for c in refs.clients] == ["c-1"]

    s = prepare_session(
        make_csv(QUOTATION_CSV),
        QUOTATIONS,
        refs,
        dieline_path=make_csv(DIELINE_CSV, "dielines.csv"),
        today=TODAY,
    )
    assert s.row(1).match_type is MatchType.EXACT_KEY


def test_other_store_errors_on_dielines_propagate(reference_store):
    reference_store.fail_on[("fetch_all", "dielines")] = StoreError("permission denied for table dielines")
    with pytest.raises(StoreError):
        load_reference_data(reference_store, QUOTATIONS, "user-1")


def test_load_dielines_reads_the_template_dieline_sheet(tmp_path):
    path = write_template(QUOTATIONS, tmp_path / "plantilla.xlsx", today=TODAY)
    [record] = load_dielines(path)
    assert record.sku
    assert record.details["troquel_id"] == "TRQ-001"
    assert None not in record.dimensions()
