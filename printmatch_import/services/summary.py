from __future__ import annotations

from ..models.processing_result import ImportResult, StatusCounts

"""SUMMARY / preview line rendering.

Format:
    SUMMARY variant={v} rows={total} eligible={eligible} inserted={i}
    updated={u} errored={e} elapsed_sec={s} throughput_rps={t}
"""

__all__ = [
    "format_number",
    "render_preview_line",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Render a metric without scientific notation or a trailing ``.0``."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_preview_line(counts: StatusCounts) -> str:
    """Per-status counts shown before importing."""
    return (
        f"rows={counts.total} valid={counts.valid} "
        f"warning={counts.warning} error={counts.error}"
    )


def render_summary_line(variant: str, result: ImportResult) -> str:
    """Render the SUMMARY line of a finished import run.

    Examples:
        >>> from datetime import datetime, UTC
        >>> from printmatch_import.models import ImportLogEntry
        >>> entry = ImportLogEntry(datetime(2025, 1, 1, tzinfo=UTC), "inventory",
        ...     "stock.csv", 120, total_rows=3, eligible_rows=3, inserted=2, updated=1, errored=0)
        >>> result = ImportResult(2, 1, 0, 3, 1.5, entry)
        >>> render_summary_line("inventory", result)
        'SUMMARY variant=inventory rows=3 eligible=3 inserted=2 updated=1 errored=0 elapsed_sec=1.5 throughput_rps=2'
    """
    return (
        f"SUMMARY variant={variant} "
        f"rows={result.log_entry.total_rows} "
        f"eligible={result.eligible_rows} "
        f"inserted={result.inserted} "
        f"updated={result.updated} "
        f"errored={result.errored} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )
