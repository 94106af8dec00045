from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..models.import_row import ImportRow, Severity
from ..models.reference import DIMENSION_FIELDS
from .rules import TODAY, FieldKind, FieldRule

"""Import variants: rule tables, target tables and record builders.

Column names are the template contract users fill in, so they stay in
Spanish. Each variant knows how to turn a validated ImportRow into the
column mapping of its target table.
"""

__all__ = [
    "ImportVariant",
    "INVENTORY",
    "PRODUCTS",
    "QUOTATIONS",
    "VARIANTS",
    "get_variant",
]

INDUSTRIES = ("Farmacia", "Alimentos", "Cosmética", "Otros")


@dataclass(frozen=True)
class ImportVariant:
    """Static description of one import flavour.

    Attributes:
        name: CLI / log name (quotations, products, inventory)
        table: Target table
        log_table: Import log table for this variant
        rules: Field rules in template column order
        key_fields: Columns copied into the error report next to ``fila``
        template_rows: Example rows written by ``write_template``
        client_field: Column holding the client name (None when the variant has no client)
        uses_matcher: Rows go through the technical record matcher
        build_insert: (row, user_id, client_id) -> column mapping for INSERT
        build_update: (row, current) -> column mapping for UPDATE of an existing record
        update_read_columns: Columns of the existing record passed to build_update as ``current``
    """
    name: str
    table: str
    log_table: str
    rules: tuple[FieldRule, ...]
    key_fields: tuple[str, ...]
    template_rows: tuple[dict[str, Any], ...]
    build_insert: Callable[[ImportRow, str, str | None], dict[str, Any]]
    client_field: str | None = None
    uses_matcher: bool = False
    build_update: Callable[[ImportRow, dict[str, Any]], dict[str, Any]] | None = None
    update_read_columns: tuple[str, ...] = ()
    dieline_template_rows: tuple[dict[str, Any], ...] = ()

    @property
    def columns(self) -> list[str]:
        return [r.field for r in self.rules]

    @property
    def supports_update(self) -> bool:
        return self.build_update is not None


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, date) else value


def _text_or_none(row: ImportRow, column: str) -> str | None:
    value = row.value(column)
    if value is None or value == "":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# quotations (cotizaciones)
# ---------------------------------------------------------------------------

QUOTATION_RULES: tuple[FieldRule, ...] = (
    FieldRule("sku", required=True),
    FieldRule("nombre_producto", required=True),
    FieldRule("cliente_nombre", required=True),
    FieldRule(
        "tipo_empaque",
        FieldKind.ENUM,
        choices=("Caja de cartón", "Estuche", "Bolsa", "Blister", "Otro"),
        case_sensitive=False,
        enum_severity=Severity.WARNING,
    ),
    FieldRule(
        "industria",
        FieldKind.ENUM,
        choices=INDUSTRIES,
        case_sensitive=False,
        enum_severity=Severity.WARNING,
    ),
    FieldRule("descripcion_montaje"),
    FieldRule("cantidad_cotizada", FieldKind.INTEGER, required=True, exclusive_minimum=0),
    FieldRule("precio_unitario", FieldKind.NUMBER, required=True, exclusive_minimum=0),
    FieldRule("alto_mm", FieldKind.NUMBER, minimum=0),
    FieldRule("ancho_mm", FieldKind.NUMBER, minimum=0),
    FieldRule("profundidad_mm", FieldKind.NUMBER, minimum=0),
    FieldRule("troquel_id"),
    FieldRule("observaciones"),
    FieldRule("fecha_cotizacion", FieldKind.DATE, default=TODAY),
)


def _quotation_notes(row: ImportRow) -> str | None:
    layout = row.value("layout_impresion")
    strategy = row.value("estrategia_corte")
    parts = [
        row.value("observaciones"),
        row.value("observaciones_tecnicas"),
        f"Layout: {layout}" if layout else None,
        f"Estrategia: {strategy}" if strategy else None,
    ]
    joined = " | ".join(str(p) for p in parts if p)
    return joined or None


def build_quotation(row: ImportRow, user_id: str, client_id: str | None) -> dict[str, Any]:
    troquel = row.resolved_references.get("troquel_id") or _text_or_none(row, "troquel_id")
    return {
        "user_id": user_id,
        "sku": row.value("sku"),
        "nombre_producto": row.value("nombre_producto"),
        "cliente_id": client_id,
        "tipo_empaque": row.value("tipo_empaque"),
        "industria": row.value("industria"),
        "descripcion_montaje": _text_or_none(row, "descripcion_montaje"),
        "cantidad_cotizada": row.value("cantidad_cotizada"),
        "precio_unitario": row.value("precio_unitario"),
        "medidas_caja_mm": {f: row.value(f) or 0 for f in DIMENSION_FIELDS},
        "troquel_id": troquel,
        "observaciones": _quotation_notes(row),
        "fecha_cotizacion": _iso(row.value("fecha_cotizacion")),
    }


QUOTATIONS = ImportVariant(
    name="quotations",
    table="cotizaciones",
    log_table="log_cargas_cotizaciones",
    rules=QUOTATION_RULES,
    key_fields=("sku", "nombre_producto"),
    template_rows=(
        {
            "sku": "COT-001",
            "nombre_producto": "Caja Farmacéutica Paracetamol 500mg x24",
            "cliente_nombre": "Farmacia ABC",
            "tipo_empaque": "Estuche",
            "industria": "Farmacia",
            "descripcion_montaje": "Caja con troquelado especial para blíster",
            "cantidad_cotizada": 1000,
            "precio_unitario": 0.85,
            "alto_mm": 100,
            "ancho_mm": 50,
            "profundidad_mm": 30,
            "troquel_id": "",
            "observaciones": "Urgente para producción",
            "fecha_cotizacion": TODAY,
        },
    ),
    dieline_template_rows=(
        {
            "sku": "COT-001",
            "nombre_producto": "Caja Farmacéutica Paracetamol 500mg x24",
            "alto_mm": 100,
            "ancho_mm": 50,
            "profundidad_mm": 30,
            "troquel_id": "TRQ-001",
            "troquel_descripcion": "Troquel estándar farmacéutico",
            "layout_impresion": "2x4 unidades por hoja",
            "subformas": "8 cajas por hoja A1",
            "unidades_por_hoja": 8,
            "estrategia_corte": "Troquelado con guillotina automática",
            "observaciones_tecnicas": "Requiere adhesivo especial para solapas",
            "arte_final_pdf_url": "arte_paracetamol_final.pdf",
            "fuente_troquel": "escaneado_troquel_farmacia.pdf",
        },
    ),
    build_insert=build_quotation,
    client_field="cliente_nombre",
    uses_matcher=True,
)


# ---------------------------------------------------------------------------
# finished products (productos_elaborados)
# ---------------------------------------------------------------------------

PRODUCT_RULES: tuple[FieldRule, ...] = (
    FieldRule("cliente_nombre", required=True),
    FieldRule("nombre_producto", required=True),
    FieldRule("tipo_producto", FieldKind.ENUM, choices=("Estuche", "Caja", "Microcorrugado", "Otro")),
    FieldRule("industria", FieldKind.ENUM, choices=INDUSTRIES),
    FieldRule("alto_mm", FieldKind.NUMBER, required=True),
    FieldRule("ancho_mm", FieldKind.NUMBER, required=True),
    FieldRule("profundidad_mm", FieldKind.NUMBER, required=True),
    FieldRule("sustrato"),
    FieldRule("calibre"),
    FieldRule("colores"),
    FieldRule("barniz", FieldKind.ENUM, choices=("UV", "AQ", "Ninguno"), default="Ninguno"),
    FieldRule(
        "plastificado", FieldKind.ENUM, choices=("Mate", "Brillante", "Ninguno"), default="Ninguno"
    ),
    FieldRule("troquelado", FieldKind.BOOLEAN, default=False),
    FieldRule("empaquetado"),
    FieldRule("pegado"),
    FieldRule("numero_paquetes"),
    FieldRule("precio_unitario_usd", FieldKind.NUMBER),
    FieldRule("observaciones"),
)


def _mm_to_cm(value: float | None) -> float | None:
    return None if value is None else value / 10


def build_product(row: ImportRow, user_id: str, client_id: str | None) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "actualizado_por": user_id,
        "cliente_id": client_id,
        "nombre_producto": row.value("nombre_producto"),
        "tipo_producto": row.value("tipo_producto"),
        "industria": row.value("industria"),
        # テーブルは cm 単位
        "alto": _mm_to_cm(row.value("alto_mm")),
        "ancho": _mm_to_cm(row.value("ancho_mm")),
        "profundidad": _mm_to_cm(row.value("profundidad_mm")),
        "sustrato": _text_or_none(row, "sustrato"),
        "calibre": _text_or_none(row, "calibre"),
        "colores": _text_or_none(row, "colores"),
        "barniz": row.value("barniz"),
        "plastificado": row.value("plastificado"),
        "troquelado": bool(row.value("troquelado", False)),
        "empaquetado": _text_or_none(row, "empaquetado"),
        "pegado": _text_or_none(row, "pegado"),
        "numero_paquetes": _text_or_none(row, "numero_paquetes"),
        "precio_unitario_usd": row.value("precio_unitario_usd"),
        "observaciones": _text_or_none(row, "observaciones"),
    }


PRODUCTS = ImportVariant(
    name="products",
    table="productos_elaborados",
    log_table="log_cargas_productos",
    rules=PRODUCT_RULES,
    key_fields=("cliente_nombre", "nombre_producto"),
    template_rows=(
        {
            "cliente_nombre": "Empresa Ejemplo C.A.",
            "nombre_producto": "Caja Medicamento X",
            "tipo_producto": "Caja",
            "industria": "Farmacia",
            "alto_mm": 100,
            "ancho_mm": 200,
            "profundidad_mm": 50,
            "sustrato": "Cartón",
            "calibre": "300gsm",
            "colores": "4+1",
            "barniz": "UV",
            "plastificado": "Mate",
            "troquelado": "Sí",
            "empaquetado": "Individual",
            "pegado": "Automático",
            "numero_paquetes": "1000",
            "precio_unitario_usd": 1.5,
            "observaciones": "Urgente para el 30/01/2025",
        },
    ),
    build_insert=build_product,
    client_field="cliente_nombre",
)


# ---------------------------------------------------------------------------
# consumables inventory (inventario_consumibles)
# ---------------------------------------------------------------------------

INVENTORY_RULES: tuple[FieldRule, ...] = (
    FieldRule("nombre_producto", required=True),
    FieldRule("sku", required=True),
    FieldRule(
        "categoria",
        FieldKind.ENUM,
        required=True,
        choices=("tinta", "plancha", "negativo", "uniforme", "otros"),
    ),
    FieldRule("cantidad", FieldKind.NUMBER, minimum=0, default=0.0),
    FieldRule("unidad_medida", FieldKind.ENUM, required=True, choices=("und", "kg", "l", "m", "resma")),
    FieldRule("precio_unitario_usd", FieldKind.NUMBER, minimum=0, default=0.0),
    FieldRule("stock_minimo", FieldKind.NUMBER, minimum=0, default=0.0),
    FieldRule("proveedor"),
    FieldRule("descripcion"),
)


def build_inventory_item(row: ImportRow, user_id: str, client_id: str | None) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "nombre_producto": row.value("nombre_producto"),
        "sku": row.value("sku"),
        "categoria": row.value("categoria"),
        "cantidad_disponible": row.value("cantidad", 0.0),
        "unidad_medida": row.value("unidad_medida"),
        "precio_unitario": row.value("precio_unitario_usd", 0.0),
        "stock_minimo": row.value("stock_minimo", 0.0),
        "proveedor": _text_or_none(row, "proveedor"),
        "descripcion": _text_or_none(row, "descripcion"),
    }


def update_inventory_item(row: ImportRow, current: dict[str, Any]) -> dict[str, Any]:
    """Stock is additive: the file quantity is added to what is on hand."""
    on_hand = float(current.get("cantidad_disponible") or 0)
    return {
        "cantidad_disponible": on_hand + float(row.value("cantidad", 0.0) or 0),
        "precio_unitario": row.value("precio_unitario_usd", 0.0),
        "stock_minimo": row.value("stock_minimo", 0.0),
        "proveedor": _text_or_none(row, "proveedor"),
        "descripcion": _text_or_none(row, "descripcion"),
    }


INVENTORY = ImportVariant(
    name="inventory",
    table="inventario_consumibles",
    log_table="log_cargas_inventario",
    rules=INVENTORY_RULES,
    key_fields=("sku", "nombre_producto"),
    template_rows=(
        {
            "nombre_producto": "Tinta Negra CMYK",
            "sku": "TINTA-001",
            "categoria": "tinta",
            "cantidad": 100,
            "unidad_medida": "l",
            "precio_unitario_usd": 25.5,
            "stock_minimo": 10,
            "proveedor": "Proveedor Ejemplo",
            "descripcion": "Tinta para impresión offset",
        },
        {
            "nombre_producto": "Plancha Offset",
            "sku": "PLAN-001",
            "categoria": "plancha",
            "cantidad": 50,
            "unidad_medida": "und",
            "precio_unitario_usd": 15.0,
            "stock_minimo": 5,
            "proveedor": "Proveedor Ejemplo",
            "descripcion": "Plancha de aluminio para offset",
        },
    ),
    build_insert=build_inventory_item,
    build_update=update_inventory_item,
    update_read_columns=("cantidad_disponible",),
)


VARIANTS: dict[str, ImportVariant] = {v.name: v for v in (QUOTATIONS, PRODUCTS, INVENTORY)}


def get_variant(name: str) -> ImportVariant:
    try:
        return VARIANTS[name]
    except KeyError:
        known = ", ".join(VARIANTS)
        raise ValueError(f"unknown import variant '{name}' (expected one of: {known})") from None
