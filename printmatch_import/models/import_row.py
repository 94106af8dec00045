from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .cell import EMPTY, Cell

"""ImportRow model for the spreadsheet import pipeline.

One ImportRow exists per data row of the uploaded file. Each pipeline stage
(validate -> resolve -> match) returns a new ImportRow via dataclasses.replace,
so a row value is never mutated after it is built.

``status`` is derived from ``messages`` and cannot be set directly.
"""

__all__ = [
    "ImportRow",
    "MatchType",
    "RowMessage",
    "RowStatus",
    "Severity",
]


class Severity(Enum):
    """Message severity. INFO never affects row status."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class RowStatus(Enum):
    VALID = "valid"
    WARNING = "warning"
    ERROR = "error"


class MatchType(Enum):
    """How a quotation row was linked to a technical (dieline) record."""
    NONE = "none"
    EXACT_KEY = "exact-key"
    DIMENSIONAL_TOLERANCE = "dimensional-tolerance"
    MANUAL = "manual"


@dataclass(frozen=True)
class RowMessage:
    severity: Severity
    text: str
    code: str = ""  # 発生元ステージ識別 (例: "match.none")


@dataclass(frozen=True)
class ImportRow:
    """A single spreadsheet row moving through the import pipeline.

    Attributes:
        row_index: 1-based data row position in the source file (blank rows skipped)
        raw_fields: Column name -> parsed Cell, as read from the file
        typed_fields: Column name -> coerced value (None for absent optional fields)
        resolved_references: Identifiers of existing entities (client_id, existing_id,
            technical_record_id)
        match_type: Technical record match outcome
        messages: Ordered validation/resolution/match messages
    """
    row_index: int
    raw_fields: dict[str, Cell]
    typed_fields: dict[str, Any] = field(default_factory=dict)
    resolved_references: dict[str, str] = field(default_factory=dict)
    match_type: MatchType = MatchType.NONE
    messages: tuple[RowMessage, ...] = ()

    @property
    def status(self) -> RowStatus:
        severities = {m.severity for m in self.messages}
        if Severity.ERROR in severities:
            return RowStatus.ERROR
        if Severity.WARNING in severities:
            return RowStatus.WARNING
        return RowStatus.VALID

    @property
    def errors(self) -> list[str]:
        return [m.text for m in self.messages if m.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[str]:
        return [m.text for m in self.messages if m.severity is Severity.WARNING]

    def raw(self, column: str) -> Cell:
        return self.raw_fields.get(column, EMPTY)

    def value(self, column: str, default: Any = None) -> Any:
        return self.typed_fields.get(column, default)

    def with_messages(self, *messages: RowMessage) -> ImportRow:
        """Return a copy with ``messages`` appended."""
        return replace(self, messages=self.messages + tuple(messages))

    def without_messages(self, code_prefix: str) -> ImportRow:
        """Return a copy without the messages whose code starts with ``code_prefix``."""
        kept = tuple(m for m in self.messages if not m.code.startswith(code_prefix))
        return replace(self, messages=kept)
