from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

"""ImportLogEntry: append-only audit record of one completed import run."""

__all__ = [
    "ImportLogEntry",
    "ManifestEntry",
    "SourceFile",
]


@dataclass(frozen=True)
class SourceFile:
    """Name and size (bytes) of the uploaded spreadsheet."""
    name: str
    size: int = 0


@dataclass(frozen=True)
class ManifestEntry:
    row_index: int
    messages: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"fila": self.row_index, "errores": list(self.messages)}


@dataclass(frozen=True)
class ImportLogEntry:
    """Summary of an import run, written once when the run completes.

    ``total_rows`` counts every data row of the file; ``eligible_rows`` only
    the rows handed to the importer (status valid/warning).
    """
    timestamp: datetime
    variant: str
    source_name: str
    source_size: int
    total_rows: int
    eligible_rows: int
    inserted: int
    updated: int
    errored: int
    error_manifest: tuple[ManifestEntry, ...] = ()

    def to_record(self, user_id: str) -> dict[str, Any]:
        """Column mapping for the ``log_cargas_*`` tables."""
        return {
            "usuario_id": user_id,
            "nombre_archivo": self.source_name,
            "tamaño_archivo": self.source_size,
            "total_filas": self.total_rows,
            "filas_insertadas": self.inserted,
            "filas_actualizadas": self.updated,
            "filas_con_error": self.errored,
            "detalle_errores": [entry.to_dict() for entry in self.error_manifest],
            "created_at": self.timestamp.isoformat(),
        }
