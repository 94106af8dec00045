from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.cell import Cell

"""Row parser: spreadsheet file -> ordered raw records.

- .csv: comma separated, first line is the header, blank lines skipped.
  Every value is read as text.
- .xlsx: first sheet (or a named sheet when the workbook has it), first row
  is the header, all-empty rows skipped. NA-like text ("NA", "NULL") is kept
  as text, as in CSV.

The extension is checked before the file is opened; anything else raises
UnsupportedFormatError. Row order is preserved and row_index is 1-based over
the data rows that survive blank-line skipping.
"""

__all__ = [
    "FormatError",
    "RawRecord",
    "UnparseableFileError",
    "UnsupportedFormatError",
    "SUPPORTED_EXTENSIONS",
    "parse_file",
    "parse_frame",
]

CSV_EXTENSIONS = frozenset({".csv"})
WORKBOOK_EXTENSIONS = frozenset({".xlsx"})
SUPPORTED_EXTENSIONS = CSV_EXTENSIONS | WORKBOOK_EXTENSIONS


class FormatError(Exception):
    """Base class for errors that abort a run before any row is parsed."""


class UnsupportedFormatError(FormatError):
    """Raised when the file extension is not .csv or .xlsx."""


class UnparseableFileError(FormatError):
    """Raised when pandas cannot read the file."""


@dataclass(frozen=True)
class RawRecord:
    row_index: int  # 1-based data row position
    cells: dict[str, Cell]  # 列名 -> Cell

    def text(self, column: str) -> str:
        cell = self.cells.get(column)
        return cell.text if cell is not None else ""


def _read_frame(path: Path, sheet: str | None = None) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormatError(
            f"unsupported file format '{suffix or path.name}': use .csv or .xlsx"
        )
    try:
        if suffix in CSV_EXTENSIONS:
            return pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding="utf-8-sig",  # BOM 除去
            )
        with pd.ExcelFile(path, engine="openpyxl") as xls:
            name = sheet if sheet is not None and sheet in xls.sheet_names else xls.sheet_names[0]
            # "NA" / "N/A" / "NULL" などの文字列は値として残す (CSV と同じ扱い)
            return xls.parse(name, header=0, keep_default_na=False, na_values=[""])
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except Exception as e:  # pandas / openpyxl は多様な例外型を投げる (zip, xml, csv)
        raise UnparseableFileError(f"could not read {path.name}: {e}") from e


def parse_frame(df: pd.DataFrame) -> list[RawRecord]:
    """Convert a header-applied DataFrame into RawRecords.

    Unnamed columns (pandas "Unnamed: N") are dropped and header names trimmed.
    Rows whose cells are all empty are skipped.
    """
    columns: list[tuple[Any, str]] = []
    for col in df.columns:
        name = str(col).strip()
        if not name or name.startswith("Unnamed:"):
            continue
        columns.append((col, name))

    records: list[RawRecord] = []
    for raw in df.itertuples(index=False, name=None):
        values = dict(zip(df.columns, raw, strict=False))
        cells = {name: Cell.of(values[col]) for col, name in columns}
        if all(c.is_empty for c in cells.values()):
            continue
        records.append(RawRecord(row_index=len(records) + 1, cells=cells))
    return records


def parse_file(path: Path, sheet: str | None = None) -> list[RawRecord]:
    """Parse an uploaded spreadsheet into ordered raw records.

    Args:
        path: Path to a .csv or .xlsx file
        sheet: Workbook sheet to read when present (first sheet otherwise;
            ignored for .csv)

    Returns:
        One RawRecord per non-empty data row, in file order

    Raises:
        UnsupportedFormatError: Extension is not supported (nothing is read)
        UnparseableFileError: The file could not be parsed
    """
    path = Path(path)
    df = _read_frame(path, sheet)
    return parse_frame(df)
