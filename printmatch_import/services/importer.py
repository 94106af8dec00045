from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from ..db.store import PersistenceTimeoutError, Store, StoreError, StoreUnavailableError
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import ErrorRecord
from ..models.import_log import ImportLogEntry, ManifestEntry, SourceFile
from ..models.import_row import ImportRow, RowStatus
from ..models.processing_result import ImportResult
from ..validation.variants import ImportVariant

"""Importer: persist eligible rows one at a time.

Rows are written sequentially in file order. A failing row is recorded in the
error manifest and the local error log and the run moves on; rows persisted
before it stay persisted. Exactly one ImportLogEntry is written per run.
"""

__all__ = [
    "AuthenticationError",
    "ImportAbortedError",
    "ImportBlockedError",
    "ProgressCallback",
    "placeholder_tax_id",
    "run_import",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

CLIENTS_TABLE = "clientes"


class ImportAbortedError(Exception):
    """The run was refused before any row was persisted."""


class AuthenticationError(ImportAbortedError):
    """No authenticated user context is available."""


class ImportBlockedError(ImportAbortedError):
    """Rows with ERROR status were handed to the importer."""

    def __init__(self, row_indexes: Sequence[int]) -> None:
        self.row_indexes = list(row_indexes)
        shown = ", ".join(str(i) for i in self.row_indexes[:10])
        more = " ..." if len(self.row_indexes) > 10 else ""
        super().__init__(
            f"{len(self.row_indexes)} row(s) with errors must be fixed or excluded: {shown}{more}"
        )


def placeholder_tax_id() -> str:
    """Unique temporary rif for auto-created clients."""
    return f"RIF-{time.time_ns()}-{uuid.uuid4().hex[:9]}"


def _error_type(error: StoreError) -> str:
    if isinstance(error, PersistenceTimeoutError):
        return "PERSISTENCE_TIMEOUT"
    if isinstance(error, StoreUnavailableError):
        return "STORE_UNAVAILABLE"
    return "STORE_ERROR"


def _client_id(
    row: ImportRow,
    variant: ImportVariant,
    store: Store,
    user_id: str,
    cache: dict[str, str],
) -> str | None:
    """Resolved client id, or the id of a client created for this run."""
    if variant.client_field is None:
        return None
    resolved = row.resolved_references.get("client_id")
    if resolved:
        return resolved
    name = row.raw(variant.client_field).text
    key = name.casefold()
    if key in cache:
        return cache[key]
    client_id = store.insert(
        CLIENTS_TABLE,
        {"nombre_empresa": name, "user_id": user_id, "rif": placeholder_tax_id()},
    )
    cache[key] = client_id
    logger.info("created client '%s' (id=%s)", name, client_id)
    return client_id


def _persist_row(
    row: ImportRow,
    variant: ImportVariant,
    store: Store,
    user_id: str,
    cache: dict[str, str],
) -> bool:
    """Write one row. Returns True for an update, False for an insert."""
    existing_id = row.resolved_references.get("existing_id")
    if existing_id and variant.build_update is not None:
        current = store.fetch_all(variant.table, variant.update_read_columns, {"id": existing_id})
        values = variant.build_update(row, current[0] if current else {})
        values["updated_at"] = datetime.now(UTC).isoformat()
        store.update(variant.table, {"id": existing_id}, values)
        return True
    client_id = _client_id(row, variant, store, user_id, cache)
    store.insert(variant.table, variant.build_insert(row, user_id, client_id))
    return False


def run_import(
    rows: Sequence[ImportRow],
    variant: ImportVariant,
    store: Store,
    *,
    user_id: str | None,
    source: SourceFile,
    total_rows: int | None = None,
    progress: ProgressCallback | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ImportResult:
    """Persist the eligible rows of a reviewed session.

    Args:
        rows: Rows to import, in file order. Must not contain ERROR rows
        variant: Import variant (target table and record builders)
        store: Store used for clients, records and the import log
        user_id: Authenticated user performing the import
        source: Uploaded file name and size for the log entry
        total_rows: Data rows in the file (defaults to ``len(rows)``)
        progress: Called with ``(processed, eligible)`` after every row
        error_log: Buffer receiving one record per failed row

    Returns:
        ImportResult with inserted + updated + errored == eligible_rows

    Raises:
        AuthenticationError: ``user_id`` is missing
        ImportBlockedError: ``rows`` contains ERROR rows
    """
    if not user_id or not str(user_id).strip():
        raise AuthenticationError("an authenticated user is required to import")
    blocked = [r.row_index for r in rows if r.status is RowStatus.ERROR]
    if blocked:
        raise ImportBlockedError(blocked)

    eligible = len(rows)
    started = time.perf_counter()
    inserted = updated = errored = 0
    manifest: list[ManifestEntry] = []
    client_cache: dict[str, str] = {}

    logger.info("importing %d row(s) from %s into %s", eligible, source.name, variant.table)
    for processed, row in enumerate(rows, start=1):
        try:
            if _persist_row(row, variant, store, user_id, client_cache):
                updated += 1
            else:
                inserted += 1
        except StoreError as e:
            errored += 1
            message = str(e) or e.__class__.__name__
            manifest.append(ManifestEntry(row.row_index, (f"Store error: {message}",)))
            logger.warning("row %d failed: %s", row.row_index, message)
            if error_log is not None:
                error_log.append(
                    ErrorRecord.create(source.name, variant.name, row.row_index, _error_type(e), message)
                )
        if progress is not None:
            progress(processed, eligible)

    elapsed = time.perf_counter() - started
    entry = ImportLogEntry(
        timestamp=datetime.now(UTC),
        variant=variant.name,
        source_name=source.name,
        source_size=source.size,
        total_rows=eligible if total_rows is None else total_rows,
        eligible_rows=eligible,
        inserted=inserted,
        updated=updated,
        errored=errored,
        error_manifest=tuple(manifest),
    )

    log_written = True
    try:
        store.insert(variant.log_table, entry.to_record(user_id))
    except StoreError as e:
        # 取り込み結果は確定済みなので失敗はログのみ
        log_written = False
        logger.error("could not write import log to %s: %s", variant.log_table, e)
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(source.name, variant.name, -1, "LOG_WRITE_FAILED", str(e))
            )

    if error_log is not None and len(error_log):
        path = error_log.flush()
        logger.info("error log written: %s", path)

    return ImportResult(
        inserted=inserted,
        updated=updated,
        errored=errored,
        eligible_rows=eligible,
        elapsed_seconds=elapsed,
        log_entry=entry,
        log_written=log_written,
    )
