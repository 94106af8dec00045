from __future__ import annotations

from datetime import date
from typing import Any

from ..excel.reader import RawRecord
from ..models.import_row import ImportRow, RowMessage, Severity
from ..models.reference import ReferenceData
from ..services.resolver import resolve_client, resolve_existing_sku
from .rules import CoercionError, FieldKind, coerce
from .variants import ImportVariant

"""Row validator.

validate_row applies every rule of the variant to a raw record and then runs
reference resolution. Every rule is evaluated, so a row reports all of its
problems at once.
"""

__all__ = [
    "CODE_PREFIX",
    "validate_row",
    "validate_rows",
]

CODE_PREFIX = "validate."


def validate_row(
    record: RawRecord,
    variant: ImportVariant,
    references: ReferenceData,
    today: date | None = None,
) -> ImportRow:
    """Validate and resolve one raw record.

    Args:
        record: Parsed spreadsheet row
        variant: Import variant describing the rules
        references: Reference snapshot used for resolution
        today: Date used for "today" defaults (local date when omitted)

    Returns:
        A new ImportRow with typed_fields, resolved_references and messages set.
        ``match_type`` is left untouched (NONE); matching is a later stage.
    """
    today = today or date.today()
    typed: dict[str, Any] = {}
    messages: list[RowMessage] = []

    for rule in variant.rules:
        cell = record.cells.get(rule.field)
        code = CODE_PREFIX + rule.field
        if cell is None or cell.is_empty:
            if rule.required:
                messages.append(RowMessage(Severity.ERROR, f"{rule.display} is required", code))
            typed[rule.field] = rule.default_value(today)
            continue
        try:
            typed[rule.field] = coerce(rule, cell)
        except CoercionError as e:
            severity = rule.enum_severity if rule.kind is FieldKind.ENUM else Severity.ERROR
            messages.append(RowMessage(severity, f"{rule.display}: {e}", code))
            # WARNING の列挙値は原文のまま保持して取り込みを続ける
            typed[rule.field] = cell.text if severity is not Severity.ERROR else None

    row = ImportRow(
        row_index=record.row_index,
        raw_fields=dict(record.cells),
        typed_fields=typed,
        messages=tuple(messages),
    )

    if variant.client_field is not None:
        row = resolve_client(row, variant.client_field, references.clients)
    if variant.supports_update:
        row = resolve_existing_sku(row, references.inventory_items)
    return row


def validate_rows(
    records: list[RawRecord],
    variant: ImportVariant,
    references: ReferenceData,
    today: date | None = None,
) -> list[ImportRow]:
    return [validate_row(r, variant, references, today) for r in records]
