from __future__ import annotations

from dataclasses import dataclass, field

"""Reference entity projections loaded once per import session.

These are read-only snapshots of what already exists in the store. The import
pipeline never mutates them; new entities are created through the store.
"""

__all__ = [
    "ClientRef",
    "InventoryItemRef",
    "ReferenceData",
    "TechnicalRecord",
    "TECHNICAL_FIELDS",
    "DIMENSION_FIELDS",
]

DIMENSION_FIELDS: tuple[str, ...] = ("alto_mm", "ancho_mm", "profundidad_mm")

# Technical (non-dimension) fields copied into quotation rows on match
TECHNICAL_FIELDS: tuple[str, ...] = (
    "troquel_id",
    "troquel_descripcion",
    "layout_impresion",
    "subformas",
    "unidades_por_hoja",
    "estrategia_corte",
    "observaciones_tecnicas",
    "arte_final_pdf_url",
    "fuente_troquel",
)


@dataclass(frozen=True)
class ClientRef:
    id: str
    name: str  # nombre_empresa
    tax_id: str | None = None  # rif


@dataclass(frozen=True)
class InventoryItemRef:
    id: str
    sku: str
    name: str = ""
    quantity: float = 0.0


@dataclass(frozen=True)
class TechnicalRecord:
    """Dieline (technical) record used to enrich quotation rows.

    Dimensions are in millimetres; None when the source did not supply a number.
    """
    record_id: str
    sku: str = ""
    product_name: str = ""
    alto_mm: float | None = None
    ancho_mm: float | None = None
    profundidad_mm: float | None = None
    details: dict[str, str] = field(default_factory=dict)  # TECHNICAL_FIELDS -> value

    def dimensions(self) -> tuple[float | None, float | None, float | None]:
        return (self.alto_mm, self.ancho_mm, self.profundidad_mm)


@dataclass(frozen=True)
class ReferenceData:
    """Snapshot of reference entities for one import session."""
    clients: tuple[ClientRef, ...] = ()
    technical_records: tuple[TechnicalRecord, ...] = ()
    inventory_items: tuple[InventoryItemRef, ...] = ()
