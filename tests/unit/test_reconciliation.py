from __future__ import annotations

from datetime import date

import pytest

from printmatch_import.db.memory import InMemoryStore
from printmatch_import.models.reconciliation import BankMovement, InternalMovement
from printmatch_import.services.reconciliation import (
    load_internal_movements,
    parse_bank_statement,
    record_reconciliation,
    suggest_reconciliations,
)

STATEMENT = """fecha,descripcion,monto,referencia
2025-03-01,"Transferencia recibida",150.00,REF-1
02/03/2025,Pago proveedor,-80.5,REF-2
2025-03-03,Sin referencia,10,
ayer,Fecha invalida,10,REF-4
2025-03-05,Monto invalido,diez,REF-5
"""


def internal(id: str, amount: float, day: int, reconciled: bool = False) -> InternalMovement:
    return InternalMovement(id=id, kind="ingreso", amount=amount, date=date(2025, 3, day), reconciled=reconciled)


def bank(ref: str, amount: float, day: int) -> BankMovement:
    return BankMovement(ref, "", amount, date(2025, 3, day), "ingreso" if amount > 0 else "egreso")


def test_parse_bank_statement_skips_incomplete_lines(make_csv):
    lines = parse_bank_statement(make_csv(STATEMENT, "extracto.csv"))
    assert [(m.reference, m.amount, m.kind) for m in lines] == [
        ("REF-1", 150.0, "ingreso"),
        ("REF-2", -80.5, "egreso"),
    ]
    assert lines[0].description == "Transferencia recibida"
    assert lines[1].date == date(2025, 3, 2)


def test_amount_and_date_windows():
    suggestions = suggest_reconciliations(
        [internal("p1", 100.0, 10), internal("p2", 80.5, 10), internal("p3", 50.0, 10)],
        [bank("B1", 100.005, 11), bank("B2", -80.5, 9), bank("B3", 50.0, 12)],
    )
    assert [(s.internal.id, s.bank.reference) for s in suggestions] == [("p1", "B1"), ("p2", "B2")]


def test_bank_line_is_used_once():
    suggestions = suggest_reconciliations(
        [internal("p1", 20.0, 5), internal("p2", 20.0, 5)],
        [bank("B1", 20.0, 5)],
    )
    assert [s.internal.id for s in suggestions] == ["p1"]


def test_reconciled_movements_are_not_proposed():
    assert suggest_reconciliations([internal("p1", 20.0, 5, reconciled=True)], [bank("B1", 20.0, 5)]) == []


def test_amount_difference_of_one_cent_is_not_a_match():
    assert suggest_reconciliations([internal("p1", 20.0, 5)], [bank("B1", 20.01, 5)]) == []


@pytest.fixture()
def account_store() -> InMemoryStore:
    owner = {"user_id": "u1", "cuenta_bancaria_id": "acc-1"}
    return InMemoryStore(
        {
            "pagos": [
                {"id": 1, "tipo": "ingreso", "monto": "150.00", "fecha": "2025-03-01", **owner},
                {"id": 2, "tipo": "egreso", "monto": 80.5, "fecha": date(2025, 3, 4), **owner},
                {"id": 3, "tipo": "egreso", "monto": 9, "fecha": "2025-03-02",
                 "user_id": "u1", "cuenta_bancaria_id": "acc-2"},
            ],
            "conciliaciones": [{"movimiento_id": "2", "conciliado": True, **owner}],
        }
    )


def test_load_internal_movements(account_store):
    movements = load_internal_movements(account_store, "u1", "acc-1")
    assert [(m.id, m.amount, m.reconciled) for m in movements] == [("2", 80.5, True), ("1", 150.0, False)]


def test_record_reconciliation(account_store):
    [suggestion] = suggest_reconciliations(
        load_internal_movements(account_store, "u1", "acc-1"), [bank("REF-1", 150.0, 1)]
    )
    record_reconciliation(account_store, "u1", "acc-1", suggestion, notes="ok")
    saved = account_store.tables["conciliaciones"][-1]
    assert saved["movimiento_id"] == "1"
    assert saved["referencia_bancaria"] == "REF-1"
    assert saved["fecha"] == "2025-03-01"
    assert saved["conciliado"] is True
    assert saved["observaciones"] == "ok"
