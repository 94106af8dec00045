from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Any

from ..db.store import MissingTableError, Store
from ..excel.reader import RawRecord, parse_file
from ..excel.report import DIELINE_SHEET
from ..models.cell import Cell
from ..models.import_log import SourceFile
from ..models.import_row import ImportRow, RowStatus
from ..models.processing_result import StatusCounts
from ..models.reference import (
    DIMENSION_FIELDS,
    TECHNICAL_FIELDS,
    ClientRef,
    InventoryItemRef,
    ReferenceData,
    TechnicalRecord,
)
from ..validation.validator import validate_row
from ..validation.variants import ImportVariant
from . import matcher
from .importer import ImportBlockedError

"""Import session: parse -> validate/resolve -> match, then human review.

An ImportSession is immutable. Review operations (manual match, cell edit)
return a new session with the affected row recomputed; the other rows are
left as they are.
"""

__all__ = [
    "ImportSession",
    "load_dielines",
    "load_reference_data",
    "prepare_session",
]

logger = logging.getLogger(__name__)

DIELINES_TABLE = "dielines"


def load_reference_data(store: Store, variant: ImportVariant, user_id: str | None) -> ReferenceData:
    """Load the reference snapshot needed by ``variant``.

    Store errors propagate: without reference data the session cannot be
    validated, so the caller treats them as fatal. The one exception is a
    database without a ``dielines`` table; technical records then come from
    the dieline sheet only.
    """
    owner = {"user_id": user_id} if user_id else {}
    clients: tuple[ClientRef, ...] = ()
    records: tuple[TechnicalRecord, ...] = ()
    items: tuple[InventoryItemRef, ...] = ()

    if variant.client_field is not None:
        rows = store.fetch_all("clientes", ["id", "nombre_empresa", "rif"], owner)
        clients = tuple(
            ClientRef(id=str(r["id"]), name=r.get("nombre_empresa") or "", tax_id=r.get("rif"))
            for r in rows
        )
    if variant.uses_matcher:
        columns = ["id", "sku", "nombre_producto", *DIMENSION_FIELDS, *TECHNICAL_FIELDS]
        try:
            rows = store.fetch_all(DIELINES_TABLE, columns, owner)
        except MissingTableError as e:
            logger.warning("table %s not available, using the dieline sheet only: %s", DIELINES_TABLE, e)
            rows = []
        records = tuple(matcher.technical_record_from_cells(str(r["id"]), r) for r in rows)
    if variant.supports_update:
        rows = store.fetch_all(
            variant.table, ["id", "sku", "nombre_producto", "cantidad_disponible"], owner
        )
        items = tuple(
            InventoryItemRef(
                id=str(r["id"]),
                sku=str(r.get("sku") or ""),
                name=r.get("nombre_producto") or "",
                quantity=float(r.get("cantidad_disponible") or 0),
            )
            for r in rows
        )
    logger.debug(
        "reference data: clients=%d technical_records=%d inventory_items=%d",
        len(clients), len(records), len(items),
    )
    return ReferenceData(clients=clients, technical_records=records, inventory_items=items)


def load_dielines(path: Path) -> tuple[TechnicalRecord, ...]:
    """Technical records from a dieline sheet (ids ``dieline-<row_index>``).

    A workbook built from the quotations template is read from its
    dieline sheet; any other file from its first sheet.
    """
    return tuple(
        matcher.technical_record_from_cells(f"dieline-{r.row_index}", r.cells)
        for r in parse_file(path, sheet=DIELINE_SHEET)
    )


@dataclass(frozen=True)
class ImportSession:
    """Validated, matched rows of one uploaded file awaiting review.

    Attributes:
        variant: Import variant
        source: Uploaded file name and size
        references: Reference snapshot the rows were resolved against
        rows: One ImportRow per data row, in file order
        today: Date used for "today" defaults
    """
    variant: ImportVariant
    source: SourceFile
    references: ReferenceData
    rows: tuple[ImportRow, ...]
    today: date

    @property
    def counts(self) -> StatusCounts:
        return StatusCounts.from_rows(self.rows)

    @property
    def eligible_rows(self) -> list[ImportRow]:
        """Rows the importer may persist (status valid or warning)."""
        return [r for r in self.rows if r.status is not RowStatus.ERROR]

    @property
    def error_rows(self) -> list[ImportRow]:
        return [r for r in self.rows if r.status is RowStatus.ERROR]

    def row(self, row_index: int) -> ImportRow:
        for r in self.rows:
            if r.row_index == row_index:
                return r
        raise KeyError(row_index)

    def _evaluate(self, record: RawRecord) -> ImportRow:
        row = validate_row(record, self.variant, self.references, self.today)
        if self.variant.uses_matcher:
            row = matcher.match_row(row, self.references.technical_records)
        return row

    def _replace_row(self, new_row: ImportRow) -> ImportSession:
        rows = tuple(new_row if r.row_index == new_row.row_index else r for r in self.rows)
        return replace(self, rows=rows)

    def assign_manual_match(self, row_index: int, record_id: str) -> ImportSession:
        """Link a row to a technical record chosen by the reviewer.

        Raises:
            KeyError: Unknown row index or record id
        """
        current = self.row(row_index)
        base = validate_row(
            RawRecord(row_index, current.raw_fields), self.variant, self.references, self.today
        )
        manual = matcher.assign_manual_match(base, record_id, self.references.technical_records)
        return self._replace_row(manual)

    def edit_row(self, row_index: int, changes: Mapping[str, Any]) -> ImportSession:
        """Apply cell edits to one row and re-run validation, resolution and matching for it."""
        current = self.row(row_index)
        cells = dict(current.raw_fields)
        for column, value in changes.items():
            cells[column] = value if isinstance(value, Cell) else Cell.of(value)
        return self._replace_row(self._evaluate(RawRecord(row_index, cells)))

    def ensure_importable(self) -> None:
        """Raise ImportBlockedError while any ERROR row remains."""
        blocked = [r.row_index for r in self.error_rows]
        if blocked:
            raise ImportBlockedError(blocked)


def prepare_session(
    path: Path,
    variant: ImportVariant,
    references: ReferenceData,
    dieline_path: Path | None = None,
    today: date | None = None,
) -> ImportSession:
    """Parse, validate, resolve and (for quotations) match an uploaded file.

    Raises:
        FormatError: The file (or the dieline file) cannot be read
    """
    path = Path(path)
    records = parse_file(path)
    if dieline_path is not None:
        extra = load_dielines(Path(dieline_path))
        references = replace(references, technical_records=references.technical_records + extra)
        logger.info("loaded %d technical record(s) from %s", len(extra), Path(dieline_path).name)

    session = ImportSession(
        variant=variant,
        source=SourceFile(name=path.name, size=path.stat().st_size),
        references=references,
        rows=(),
        today=today or date.today(),
    )
    rows = tuple(session._evaluate(r) for r in records)
    session = replace(session, rows=rows)
    counts = session.counts
    logger.info(
        "%s: %d row(s) parsed (valid=%d warning=%d error=%d)",
        path.name, counts.total, counts.valid, counts.warning, counts.error,
    )
    return session
