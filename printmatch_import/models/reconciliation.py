from __future__ import annotations

from dataclasses import dataclass
from datetime import date

"""Bank reconciliation models."""

__all__ = [
    "BankMovement",
    "InternalMovement",
    "ReconciliationSuggestion",
]


@dataclass(frozen=True)
class InternalMovement:
    """A payment recorded in ``pagos`` for one bank account."""
    id: str
    kind: str  # tipo
    amount: float
    date: date
    payment_method: str = ""
    notes: str | None = None
    reconciled: bool = False


@dataclass(frozen=True)
class BankMovement:
    """One line of an uploaded bank statement. Outflows have negative amounts."""
    reference: str
    description: str
    amount: float
    date: date
    kind: str  # ingreso / egreso


@dataclass(frozen=True)
class ReconciliationSuggestion:
    internal: InternalMovement
    bank: BankMovement
