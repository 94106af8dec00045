# Shared pytest fixtures
from __future__ import annotations

import logging
import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from printmatch_import.db.memory import InMemoryStore
from printmatch_import.logging.init import LOGGER_NAME, reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    # capsys の stdout に束縛されたハンドラを次のテストへ持ち越さない
    logger = logging.getLogger(LOGGER_NAME)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """user_id: user-1
logs_directory: ./logs
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: printmatch
  statement_timeout_ms: 5000
company:
  name: PrintMatch PRO
  tagline: Soluciones de Impresión Profesional
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def make_workbook(tmp_path: Path) -> Callable[..., Path]:
    """Write rows (list of dicts) to an .xlsx via pandas/openpyxl and return the path."""

    def _make(rows: list[dict], name: str = "upload.xlsx", columns: list[str] | None = None) -> Path:
        path = tmp_path / name
        pd.DataFrame(rows, columns=columns).to_excel(path, index=False, engine="openpyxl")
        return path

    return _make


@pytest.fixture()
def make_csv(tmp_path: Path) -> Callable[..., Path]:
    def _make(text: str, name: str = "upload.csv") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _make
