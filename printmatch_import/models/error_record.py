from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the local JSON Lines error log.

Every row that fails during an import run (and every run-level failure) is
written as one ErrorRecord. Row -1 marks failures that are not tied to a
specific row (e.g. the import log entry could not be stored).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source spreadsheet filename
        variant: Import variant name (quotations / products / inventory)
        row: 1-based data row index. -1 when the failure is not tied to a row
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Store error message or description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    variant: str
    row: int  # 行番号。不明な場合 -1 許容
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, variant: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            variant=variant,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
