"""Domain models for the PrintMatch spreadsheet import tool.

This package contains the model classes shared by the parser, validator,
matcher, importer and the reconciliation/document helpers.
"""

from .cell import EMPTY, Cell, CellKind
from .config_models import AppConfig, CompanyConfig, DatabaseConfig
from .document import ClientSnapshot, DocumentRecord, LineItem, RenderedDocument
from .import_log import ImportLogEntry, ManifestEntry, SourceFile
from .import_row import ImportRow, MatchType, RowMessage, RowStatus, Severity
from .processing_result import ImportResult, StatusCounts
from .reconciliation import BankMovement, InternalMovement, ReconciliationSuggestion
from .reference import ClientRef, InventoryItemRef, ReferenceData, TechnicalRecord

__all__ = [
    # Configuration models
    "AppConfig",
    "CompanyConfig",
    "DatabaseConfig",
    # Pipeline models
    "Cell",
    "CellKind",
    "EMPTY",
    "ImportRow",
    "MatchType",
    "RowMessage",
    "RowStatus",
    "Severity",
    # Reference entities
    "ClientRef",
    "InventoryItemRef",
    "ReferenceData",
    "TechnicalRecord",
    # Results
    "ImportLogEntry",
    "ImportResult",
    "ManifestEntry",
    "SourceFile",
    "StatusCounts",
    # Reconciliation and documents
    "BankMovement",
    "ClientSnapshot",
    "DocumentRecord",
    "InternalMovement",
    "LineItem",
    "ReconciliationSuggestion",
    "RenderedDocument",
]
