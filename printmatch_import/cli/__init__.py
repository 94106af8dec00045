"""Command-line interface (``python -m printmatch_import.cli``)."""


def main(argv: list[str] | None = None) -> int:
    # __main__ を遅延 import (python -m 実行時の二重 import 警告回避)
    from .__main__ import main as _main

    return _main(argv)
