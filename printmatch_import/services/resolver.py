from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from ..models.import_row import ImportRow, RowMessage, Severity
from ..models.reference import ClientRef, InventoryItemRef

"""Entity resolution against the reference snapshot.

Resolution only annotates rows (resolved_references + messages). A missing
client is a warning, never a blocker: the importer creates it later.
"""

__all__ = [
    "find_client",
    "find_inventory_item",
    "resolve_client",
    "resolve_existing_sku",
]

CODE_CLIENT = "resolve.client"
CODE_EXISTING = "resolve.existing"


def find_client(name: str, clients: Sequence[ClientRef]) -> ClientRef | None:
    """Case-insensitive name match, then exact tax id (rif) match."""
    key = name.strip().casefold()
    if not key:
        return None
    for client in clients:
        if client.name.strip().casefold() == key:
            return client
    for client in clients:
        if client.tax_id and client.tax_id.strip() == name.strip():
            return client
    return None


def find_inventory_item(sku: str, items: Sequence[InventoryItemRef]) -> InventoryItemRef | None:
    sku = sku.strip()
    if not sku:
        return None
    for item in items:
        if item.sku.strip() == sku:
            return item
    return None


def resolve_client(row: ImportRow, column: str, clients: Sequence[ClientRef]) -> ImportRow:
    row = row.without_messages(CODE_CLIENT)
    refs = {k: v for k, v in row.resolved_references.items() if k != "client_id"}
    name = row.raw(column).text
    if not name:
        # 必須チェック側で ERROR 済み
        return replace(row, resolved_references=refs)
    client = find_client(name, clients)
    if client is not None:
        refs["client_id"] = client.id
        return replace(row, resolved_references=refs)
    row = replace(row, resolved_references=refs)
    return row.with_messages(
        RowMessage(
            Severity.WARNING,
            f"Client '{name}' not found; a new client will be created",
            CODE_CLIENT,
        )
    )


def resolve_existing_sku(row: ImportRow, items: Sequence[InventoryItemRef]) -> ImportRow:
    row = row.without_messages(CODE_EXISTING)
    refs = {k: v for k, v in row.resolved_references.items() if k != "existing_id"}
    item = find_inventory_item(row.raw("sku").text, items)
    row = replace(row, resolved_references=refs)
    if item is None:
        return row
    refs["existing_id"] = item.id
    return replace(row, resolved_references=refs).with_messages(
        RowMessage(
            Severity.INFO,
            f"SKU '{item.sku}' already exists; stock will be added to the current quantity",
            CODE_EXISTING,
        )
    )
