from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

In non-TTY environments (CI, redirected output) no bar is created so the log
stays free of control sequences. The tracker is callable with
``(processed, total)`` and can be passed directly as the importer's progress
callback.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True if stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class ProgressTracker:
    """Row progress bar for one import run."""

    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        """Initialize progress tracker.

        Args:
            total_rows: Number of eligible rows the importer will process
            description: Description for the progress bar
        """
        self.total_rows = total_rows
        self.description = description
        self.processed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def __call__(self, processed: int, total: int) -> None:
        """Importer callback: ``processed`` rows out of ``total`` are done."""
        delta = processed - self.processed
        self.processed = processed
        if self.pbar is not None and delta > 0:
            self.pbar.update(delta)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
