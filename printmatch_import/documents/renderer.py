from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..db.store import Store
from ..models.config_models import CompanyConfig
from ..models.document import ClientSnapshot, DocumentRecord, LineItem, RenderedDocument

"""Printable HTML rendering of commercial documents."""

__all__ = [
    "DOCUMENT_TITLES",
    "DocumentNotFoundError",
    "decode_items",
    "line_items",
    "load_document",
    "render_document",
]

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
TEMPLATE_NAME = "document.html.j2"

DOCUMENT_TITLES = {
    "FACT": "FACTURA",
    "NDE": "NOTA DE ENTREGA",
    "REC": "RECIBO",
    "SAL": "SALIDA DE ALMACÉN",
    "NCRE": "NOTA DE CRÉDITO",
}
DEFAULT_TITLE = "DOCUMENTO"

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€"}


class DocumentNotFoundError(LookupError):
    pass


def _format_currency(amount: float, currency: str = "USD") -> str:
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    body = f"{abs(amount):,.2f}"
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{body}" if symbol else f"{sign}{currency.upper()} {body}"


def _format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")


def _format_quantity(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "j2"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["currency"] = _format_currency
_env.filters["format_date"] = _format_date
_env.filters["quantity"] = _format_quantity


def decode_items(value: Any) -> tuple[dict[str, Any], ...]:
    """Item list as stored: a list, a JSON string of a list, or anything else (-> empty)."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("malformed item list ignored: %.80s", value)
            return ()
    if not isinstance(value, list):
        return ()
    return tuple(item for item in value if isinstance(item, dict))


def _num(item: dict[str, Any], *keys: str, default: float = 0.0) -> float:
    for key in keys:
        value = item.get(key)
        if value in (None, "", 0):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return default


def line_items(products: Sequence[dict[str, Any]], extras: Sequence[dict[str, Any]]) -> list[LineItem]:
    """Products first, then extras, with the display fallbacks used on printed documents."""
    items = [
        LineItem(
            description=p.get("nombre") or p.get("descripcion") or "Producto sin nombre",
            quantity=_num(p, "cantidad", default=1),
            unit_price=_num(p, "precio_unitario", "precio"),
            subtotal=_num(p, "subtotal"),
        )
        for p in products
    ]
    items += [
        LineItem(
            description=e.get("nombre") or e.get("descripcion") or (e.get("tipo") or "Extra"),
            quantity=_num(e, "cantidad", default=1),
            unit_price=_num(e, "precio"),
            subtotal=_num(e, "subtotal", "precio"),
        )
        for e in extras
    ]
    return items


def render_document(
    document: DocumentRecord,
    company: CompanyConfig,
    generated_on: date | None = None,
) -> RenderedDocument:
    """Render a resolved document to a self-contained HTML page.

    Args:
        document: Document with its client snapshot and decoded items
        company: Issuer name and tagline for the header
        generated_on: Date printed in the footer (today when omitted)

    Returns:
        RenderedDocument whose key is ``<tipo>-<numero>``
    """
    discount = document.discount or 0.0
    # 100% 引きでは逆算できないので合計をそのまま使う
    subtotal = document.total / (1 - discount / 100) if discount < 100 else document.total
    html = _env.get_template(TEMPLATE_NAME).render(
        doc=document,
        title=DOCUMENT_TITLES.get(document.kind, DEFAULT_TITLE),
        company=company,
        items=line_items(document.products, document.extras),
        subtotal=subtotal,
        discount_amount=subtotal * discount / 100,
        generated_on=generated_on or date.today(),
    )
    return RenderedDocument(document_key=f"{document.kind}-{document.number}", html=html)


def load_document(store: Store, document_id: str) -> DocumentRecord:
    """Read a generated document and its client snapshot.

    Raises:
        DocumentNotFoundError: No document (or no client) with that id
    """
    rows = store.fetch_all(
        "documentos_generados",
        [
            "id", "numero_documento", "tipo_documento", "fecha_emision", "total", "descuento",
            "condiciones_pago", "observaciones", "moneda", "productos", "extras", "cliente_id",
        ],
        {"id": document_id},
    )
    if not rows:
        raise DocumentNotFoundError(f"document not found: {document_id}")
    doc = rows[0]
    clients = store.fetch_all(
        "clientes",
        ["nombre_empresa", "rif", "direccion_fiscal", "telefono_empresa", "correo"],
        {"id": doc["cliente_id"]},
    )
    if not clients:
        raise DocumentNotFoundError(f"client {doc['cliente_id']} of document {document_id} not found")
    client = clients[0]
    issued = doc["fecha_emision"]
    if not isinstance(issued, date):
        issued = date.fromisoformat(str(issued)[:10])
    return DocumentRecord(
        id=str(doc["id"]),
        number=str(doc["numero_documento"]),
        kind=str(doc["tipo_documento"]),
        issue_date=issued,
        total=float(doc.get("total") or 0),
        discount=float(doc.get("descuento") or 0),
        payment_terms=doc.get("condiciones_pago") or "",
        notes=doc.get("observaciones"),
        currency=doc.get("moneda") or "USD",
        products=decode_items(doc.get("productos")),
        extras=decode_items(doc.get("extras")),
        client=ClientSnapshot(
            name=client.get("nombre_empresa") or "",
            tax_id=client.get("rif"),
            address=client.get("direccion_fiscal"),
            phone=client.get("telefono_empresa"),
            email=client.get("correo"),
        ),
    )
