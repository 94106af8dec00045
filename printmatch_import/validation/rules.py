from __future__ import annotations

import math
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any

from ..models.cell import Cell, CellKind
from ..models.import_row import Severity

"""Declarative field rules and cell coercion.

A variant is described by a tuple of FieldRule. ``coerce`` turns one non-empty
Cell into a typed value or raises CoercionError. Error texts do not name the
field; the validator prefixes the rule label.
"""

__all__ = [
    "FieldKind",
    "FieldRule",
    "CoercionError",
    "TODAY",
    "coerce",
    "parse_boolean",
    "parse_date",
    "parse_number",
]

# Excel シリアル日付の基準日 (1900 年うるう年バグ込み)
EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 25000

TRUE_WORDS = frozenset({"sí", "si", "yes", "true", "1"})
FALSE_WORDS = frozenset({"no", "false", "0"})

_DMY = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


class FieldKind(Enum):
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    DATE = "date"
    BOOLEAN = "boolean"
    ENUM = "enum"


class _Today:
    """Sentinel default resolved to the validation date."""

    def __repr__(self) -> str:  # pragma: no cover (trivial)
        return "TODAY"


TODAY: Any = _Today()


class CoercionError(ValueError):
    pass


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for one template column.

    Attributes:
        field: Column name in the template (Spanish, as users fill it in)
        kind: Expected value kind
        required: Missing/blank value is an ERROR
        choices: Allowed values for ENUM fields (canonical spelling)
        case_sensitive: ENUM comparison mode
        enum_severity: Severity reported when an ENUM value is not allowed
        minimum: Inclusive lower bound for numeric fields
        exclusive_minimum: Exclusive lower bound for numeric fields
        default: Value used when an optional field is absent (TODAY for dates)
        label: Human readable name used in messages (defaults to field)
    """
    field: str
    kind: FieldKind = FieldKind.TEXT
    required: bool = False
    choices: tuple[str, ...] = ()
    case_sensitive: bool = True
    enum_severity: Severity = Severity.ERROR
    minimum: float | None = None
    exclusive_minimum: float | None = None
    default: Any = None
    label: str = ""

    @property
    def display(self) -> str:
        return self.label or self.field

    def default_value(self, today: date) -> Any:
        if self.default is TODAY:
            return today
        return self.default


def parse_number(cell: Cell) -> float:
    if cell.kind is CellKind.NUMBER:
        number = float(cell.value)  # type: ignore[arg-type]
    else:
        text = cell.text.replace(" ", "")
        # "1.234,5" のような欧州表記は受け付けない。小数点のカンマのみ許容
        if text.count(",") == 1 and "." not in text:
            text = text.replace(",", ".")
        try:
            number = float(text)
        except ValueError as e:
            raise CoercionError(f"'{cell.text}' is not a number") from e
    if not math.isfinite(number):
        raise CoercionError(f"'{cell.text}' is not a finite number")
    return number


def parse_date(cell: Cell) -> date:
    if cell.kind is CellKind.NUMBER:
        serial = float(cell.value)  # type: ignore[arg-type]
        if math.isfinite(serial) and serial > EXCEL_SERIAL_MIN:
            return EXCEL_EPOCH + timedelta(days=int(serial))
        raise CoercionError(f"'{cell.text}' is not a valid date")
    text = cell.text
    try:
        return date.fromisoformat(text[:10]) if len(text) >= 10 else date.fromisoformat(text)
    except ValueError:
        pass
    m = _DMY.match(text)
    if m:
        day, month, year = (int(g) for g in m.groups())
        try:
            return date(year, month, day)
        except ValueError as e:
            raise CoercionError(f"'{text}' is not a valid date") from e
    if text.isdigit() and int(text) > EXCEL_SERIAL_MIN:
        return EXCEL_EPOCH + timedelta(days=int(text))
    raise CoercionError(f"'{text}' is not a valid date (use YYYY-MM-DD or DD/MM/YYYY)")


def parse_boolean(cell: Cell) -> bool:
    word = cell.text.strip().casefold()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    raise CoercionError(f"'{cell.text}' is not a yes/no value")


def _coerce_number(rule: FieldRule, cell: Cell) -> float | int:
    number = parse_number(cell)
    if rule.kind is FieldKind.INTEGER:
        if not number.is_integer():
            raise CoercionError("must be a whole number")
        number = int(number)
    if rule.exclusive_minimum is not None and number <= rule.exclusive_minimum:
        raise CoercionError(f"must be greater than {rule.exclusive_minimum:g}")
    if rule.minimum is not None and number < rule.minimum:
        raise CoercionError(f"must be at least {rule.minimum:g}")
    return number


def _coerce_enum(rule: FieldRule, cell: Cell) -> str:
    text = cell.text
    for choice in rule.choices:
        if choice == text or (not rule.case_sensitive and choice.casefold() == text.casefold()):
            return choice
    raise CoercionError(
        f"'{text}' is not one of: {', '.join(rule.choices)}"
    )


_COERCERS: dict[FieldKind, Callable[[FieldRule, Cell], Any]] = {
    FieldKind.TEXT: lambda rule, cell: cell.text,
    FieldKind.NUMBER: _coerce_number,
    FieldKind.INTEGER: _coerce_number,
    FieldKind.DATE: lambda rule, cell: parse_date(cell),
    FieldKind.BOOLEAN: lambda rule, cell: parse_boolean(cell),
    FieldKind.ENUM: _coerce_enum,
}


def coerce(rule: FieldRule, cell: Cell) -> Any:
    """Coerce a non-empty cell according to ``rule``.

    Raises:
        CoercionError: The value does not satisfy the rule
    """
    return _COERCERS[rule.kind](rule, cell)
