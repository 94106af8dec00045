from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path

from ..db.store import Store
from ..excel.reader import parse_file
from ..models.cell import Cell
from ..models.reconciliation import BankMovement, InternalMovement, ReconciliationSuggestion
from ..validation.rules import CoercionError, parse_date, parse_number

"""Bank reconciliation: statement parsing, match suggestions, recording.

A suggestion pairs a not-yet-reconciled internal payment with a statement
line of the same absolute amount (within AMOUNT_TOLERANCE) dated at most
MAX_DAY_DIFFERENCE days apart. Suggestions are only proposals; nothing is
recorded until record_reconciliation is called for an accepted pair.
"""

__all__ = [
    "AMOUNT_TOLERANCE",
    "MAX_DAY_DIFFERENCE",
    "load_internal_movements",
    "parse_bank_statement",
    "record_reconciliation",
    "suggest_reconciliations",
]

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = 0.01
MAX_DAY_DIFFERENCE = 1

STATEMENT_COLUMNS = ("fecha", "descripcion", "monto", "referencia")


def _strip_quotes(text: str) -> str:
    return text.replace('"', "").replace("'", "").strip()


def parse_bank_statement(path: Path) -> list[BankMovement]:
    """Read a statement file with columns fecha, descripcion, monto, referencia.

    Lines missing any of the four values, or with an unreadable amount or
    date, are skipped.
    """
    movements: list[BankMovement] = []
    for record in parse_file(Path(path)):
        values = {c: _strip_quotes(record.text(c)) for c in STATEMENT_COLUMNS}
        if not all(values.values()):
            continue
        try:
            amount = parse_number(Cell.of(values["monto"]))
            when = parse_date(Cell.of(values["fecha"]))
        except CoercionError as e:
            logger.debug("statement line %d skipped: %s", record.row_index, e)
            continue
        movements.append(
            BankMovement(
                reference=values["referencia"],
                description=values["descripcion"],
                amount=amount,
                date=when,
                kind="ingreso" if amount > 0 else "egreso",
            )
        )
    logger.info("%s: %d statement line(s)", Path(path).name, len(movements))
    return movements


def _as_date(value: object) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def load_internal_movements(store: Store, user_id: str, account_id: str) -> list[InternalMovement]:
    """Payments of one bank account, newest first, with their reconciled flag."""
    owner = {"user_id": user_id, "cuenta_bancaria_id": account_id}
    payments = store.fetch_all(
        "pagos", ["id", "tipo", "monto", "fecha", "metodo_pago", "observaciones"], owner
    )
    done = store.fetch_all("conciliaciones", ["movimiento_id", "conciliado"], owner)
    reconciled = {str(r["movimiento_id"]) for r in done if r.get("conciliado") and r.get("movimiento_id")}
    movements = [
        InternalMovement(
            id=str(p["id"]),
            kind=p.get("tipo") or "",
            amount=float(p.get("monto") or 0),
            date=_as_date(p["fecha"]),
            payment_method=p.get("metodo_pago") or "",
            notes=p.get("observaciones"),
            reconciled=str(p["id"]) in reconciled,
        )
        for p in payments
    ]
    movements.sort(key=lambda m: m.date, reverse=True)
    return movements


def suggest_reconciliations(
    internal: Sequence[InternalMovement],
    bank: Sequence[BankMovement],
) -> list[ReconciliationSuggestion]:
    """Propose internal/bank pairs.

    Internal movements are taken in order; each gets the first unused bank
    line that matches. A bank line is proposed at most once.
    """
    used: set[int] = set()
    suggestions: list[ReconciliationSuggestion] = []
    for movement in internal:
        if movement.reconciled:
            continue
        for i, line in enumerate(bank):
            if i in used:
                continue
            if abs(movement.amount - abs(line.amount)) >= AMOUNT_TOLERANCE:
                continue
            if abs((movement.date - line.date).days) > MAX_DAY_DIFFERENCE:
                continue
            used.add(i)
            suggestions.append(ReconciliationSuggestion(movement, line))
            break
    return suggestions


def record_reconciliation(
    store: Store,
    user_id: str,
    account_id: str,
    suggestion: ReconciliationSuggestion,
    notes: str | None = None,
) -> str:
    """Persist an accepted pair into ``conciliaciones`` and return its id."""
    bank = suggestion.bank
    return store.insert(
        "conciliaciones",
        {
            "user_id": user_id,
            "cuenta_bancaria_id": account_id,
            "movimiento_id": suggestion.internal.id,
            "referencia_bancaria": bank.reference,
            "monto": bank.amount,
            "fecha": bank.date.isoformat(),
            "conciliado": True,
            "observaciones": notes,
        },
    )
