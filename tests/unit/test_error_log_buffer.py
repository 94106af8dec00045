from __future__ import annotations
import json
import re
from pathlib import Path
from printmatch_import.logging.error_log import ErrorRecord, ErrorLogBuffer

KEYS = {"timestamp", "file", "variant", "row", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="cotizaciones.xlsx",
        variant="quotations",
        row=10,
        error_type="STORE_ERROR",
        message="duplicate key",
    )
    data = json.loads(rec.to_json_line())
    assert data["file"] == "cotizaciones.xlsx"
    assert data["variant"] == "quotations"
    assert data["row"] == 10
    assert data["error_type"] == "STORE_ERROR"
    assert "timestamp" in data and data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_non_ascii_is_kept():
    rec = ErrorRecord.create("año.xlsx", "products", 1, "STORE_ERROR", "tamaño inválido")
    assert "tamaño inválido" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f1.xlsx", "inventory", 1, "STORE_ERROR", "dup"))
    buf.append(ErrorRecord.create("f1.xlsx", "inventory", -1, "LOG_WRITE_FAILED", "log table missing"))
    path = buf.flush()
    assert path.exists()
    assert path.parent.resolve() == (temp_workdir / "logs").resolve()
    assert re.fullmatch(r"errors-\d{8}-\d{6}\.log", path.name)
    # ファイル内容検証
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_flush_appends_to_same_file(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("a.csv", "products", 1, "STORE_ERROR", "x"))
    first = buf.flush()
    buf.append(ErrorRecord.create("a.csv", "products", 2, "STORE_ERROR", "y"))
    second = buf.flush()
    assert first == second
    assert len(second.read_text(encoding="utf-8").splitlines()) == 2


def test_flush_without_records_writes_nothing(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path / "logs")
    assert buf.flush() is None
    assert not (tmp_path / "logs").exists()
