from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .import_log import ImportLogEntry
from .import_row import ImportRow, RowStatus

"""Result models for preview counts and completed import runs."""


@dataclass(frozen=True)
class StatusCounts:
    """Per-status row counts shown before an import is allowed to proceed."""
    valid: int = 0
    warning: int = 0
    error: int = 0

    @property
    def total(self) -> int:
        return self.valid + self.warning + self.error

    @property
    def eligible(self) -> int:
        return self.valid + self.warning

    @staticmethod
    def from_rows(rows: Iterable[ImportRow]) -> StatusCounts:
        valid = warning = error = 0
        for row in rows:
            status = row.status
            if status is RowStatus.ERROR:
                error += 1
            elif status is RowStatus.WARNING:
                warning += 1
            else:
                valid += 1
        return StatusCounts(valid=valid, warning=warning, error=error)


@dataclass(frozen=True)
class ImportResult:
    """Final counts of an import run.

    Invariant: inserted + updated + errored == eligible_rows
    """
    inserted: int
    updated: int
    errored: int
    eligible_rows: int
    elapsed_seconds: float
    log_entry: ImportLogEntry
    log_written: bool = True

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.eligible_rows / self.elapsed_seconds
