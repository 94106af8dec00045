from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

"""Commercial document models (invoice, delivery note, receipt, ...).

A DocumentRecord is fully resolved before rendering: the client snapshot is
embedded and the item lists are already decoded.
"""

__all__ = [
    "ClientSnapshot",
    "DocumentRecord",
    "LineItem",
    "RenderedDocument",
]


@dataclass(frozen=True)
class ClientSnapshot:
    name: str
    tax_id: str | None = None
    address: str | None = None
    phone: str | None = None
    email: str | None = None


@dataclass(frozen=True)
class LineItem:
    description: str
    quantity: float
    unit_price: float
    subtotal: float


@dataclass(frozen=True)
class DocumentRecord:
    """A row of ``documentos_generados`` joined with its client.

    Attributes:
        number: numero_documento
        kind: tipo_documento code (FACT, NDE, REC, SAL, NCRE)
        issue_date: fecha_emision
        total: Amount after discount
        discount: Discount percentage (0-100)
        products: Raw product items (dicts as stored)
        extras: Raw extra items (dicts as stored)
    """
    id: str
    number: str
    kind: str
    issue_date: date
    total: float
    client: ClientSnapshot
    discount: float = 0.0
    payment_terms: str = ""
    notes: str | None = None
    currency: str = "USD"
    products: tuple[dict[str, Any], ...] = ()
    extras: tuple[dict[str, Any], ...] = ()


@dataclass(frozen=True)
class RenderedDocument:
    document_key: str  # "<tipo>-<numero>", also the output file stem
    html: str
