from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import AppConfig, CompanyConfig, DatabaseConfig

"""Config loader.

Responsibilities:
- Load YAML (config/import.yml by default)
- Validate against the bundled config_schema.json
- Apply defaults (logs_directory=./logs, timeouts, company header)
- Let the environment override the authenticated user (IMPORT_USER_ID)

Database environment variables (DATABASE_URL, PG*) are applied when the DSN
is built, see printmatch_import.db.store.build_dsn.
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "apply_env_overrides",
    "load_config",
]

SCHEMA_PATH = Path(__file__).resolve().parent / "config_schema.json"
DEFAULT_CONFIG_PATH = Path("config/import.yml")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: The schema file is missing or invalid, or the data does
            not satisfy it (unknown keys, wrong types, ...)
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        where = ".".join(str(p) for p in e.absolute_path)
        raise ConfigError(f"config validation failed{f' at {where}' if where else ''}: {e.message}") from e


def apply_env_overrides(cfg: AppConfig, env: Mapping[str, str]) -> AppConfig:
    user_id = env.get("IMPORT_USER_ID")
    if user_id:
        cfg = replace(cfg, user_id=user_id)
    return cfg


def load_config(path: Path = DEFAULT_CONFIG_PATH, env: Mapping[str, str] | None = None) -> AppConfig:
    """Load and validate the configuration file.

    Args:
        path: YAML file to read
        env: Environment used for overrides (os.environ when omitted)

    Raises:
        ConfigError: Missing file, invalid YAML, or schema violation
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    defaults = DatabaseConfig()
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        statement_timeout_ms=db_raw.get("statement_timeout_ms", defaults.statement_timeout_ms),
        connect_timeout=db_raw.get("connect_timeout", defaults.connect_timeout),
    )
    company_raw = data.get("company") or {}
    company_defaults = CompanyConfig()
    company = CompanyConfig(
        name=company_raw.get("name", company_defaults.name),
        tagline=company_raw.get("tagline", company_defaults.tagline),
    )
    cfg = AppConfig(
        user_id=data.get("user_id"),
        logs_directory=data.get("logs_directory", "./logs"),
        database=db,
        company=company,
    )
    return apply_env_overrides(cfg, os.environ if env is None else env)
