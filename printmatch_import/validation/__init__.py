"""Field rules, import variants and the row validator."""

from .rules import FieldKind, FieldRule
from .validator import validate_row, validate_rows
from .variants import INVENTORY, PRODUCTS, QUOTATIONS, VARIANTS, ImportVariant, get_variant

__all__ = [
    "FieldKind",
    "FieldRule",
    "ImportVariant",
    "INVENTORY",
    "PRODUCTS",
    "QUOTATIONS",
    "VARIANTS",
    "get_variant",
    "validate_row",
    "validate_rows",
]
