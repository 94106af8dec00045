from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import psycopg2
from psycopg2 import sql
from psycopg2 import errors as pg_errors
from psycopg2.extensions import QueryCanceledError
from psycopg2.extras import Json, RealDictCursor

from ..models.config_models import DatabaseConfig

"""Relational store access.

The importer only needs three operations (select by equality filters,
insert returning the id, update by key), so the store is a small Protocol
with a psycopg2 implementation and an in-memory one for mock mode.

Identifiers are always composed with psycopg2.sql; values are bound
parameters. dict / list values are sent as JSON (jsonb columns such as
medidas_caja_mm and detalle_errores).
"""

__all__ = [
    "MissingTableError",
    "PersistenceTimeoutError",
    "PostgresStore",
    "Store",
    "StoreError",
    "StoreUnavailableError",
    "build_dsn",
]

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A single store operation failed (constraint, type, permission, ...)."""


class PersistenceTimeoutError(StoreError):
    """The statement exceeded statement_timeout and was cancelled."""


class MissingTableError(StoreError):
    """The referenced table does not exist in this database."""


class StoreUnavailableError(StoreError):
    """The store could not be reached at all. Fatal for the run."""


class Store(Protocol):
    def fetch_all(
        self,
        table: str,
        columns: Sequence[str],
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]: ...

    def insert(self, table: str, values: Mapping[str, Any]) -> str: ...

    def update(self, table: str, key: Mapping[str, Any], values: Mapping[str, Any]) -> None: ...


def build_dsn(db_cfg: DatabaseConfig, env: Mapping[str, str]) -> str:
    """Resolve the connection string.

    Priority: DATABASE_URL / PGDSN, then the configured dsn, then individual
    PG* variables with the config section as fallback.
    """
    dsn = env.get("DATABASE_URL") or env.get("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = env.get("PGHOST", db_cfg.host or "localhost")
    port = env.get("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = env.get("PGUSER", db_cfg.user or "postgres")
    password = env.get("PGPASSWORD", db_cfg.password or "")
    database = env.get("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


def _where(filters: Mapping[str, Any]) -> tuple[sql.Composable, list[Any]]:
    if not filters:
        return sql.SQL(""), []
    parts = [sql.SQL("{} = %s").format(sql.Identifier(col)) for col in filters]
    return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(parts), [_adapt(v) for v in filters.values()]


class PostgresStore:
    """psycopg2 backed Store.

    Each statement runs in autocommit mode, so one failed row never rolls back
    the rows persisted before it.
    """

    def __init__(self, conn: Any) -> None:
        self._conn = conn
        self._conn.autocommit = True

    @classmethod
    def connect(cls, dsn: str, *, statement_timeout_ms: int = 30000, connect_timeout: int = 10) -> PostgresStore:
        """Open a connection with a per-statement timeout.

        Raises:
            StoreUnavailableError: The server could not be reached
        """
        try:
            conn = psycopg2.connect(
                dsn,
                connect_timeout=connect_timeout,
                options=f"-c statement_timeout={int(statement_timeout_ms)}",
            )
        except psycopg2.Error as e:
            raise StoreUnavailableError(f"could not connect to database: {e}") from e
        logger.debug("connected (statement_timeout=%sms)", statement_timeout_ms)
        return cls(conn)

    def _execute(self, query: sql.Composable, params: Sequence[Any], *, fetch: str | None = None) -> Any:
        if self._conn.closed:
            raise StoreUnavailableError("database connection is closed")
        try:
            with self._conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                if fetch == "all":
                    return [dict(r) for r in cur.fetchall()]
                if fetch == "one":
                    return cur.fetchone()
                return None
        except QueryCanceledError as e:
            raise PersistenceTimeoutError(f"statement timed out: {e}") from e
        except pg_errors.UndefinedTable as e:
            raise MissingTableError(str(e).strip()) from e
        except (psycopg2.InterfaceError, psycopg2.OperationalError) as e:
            if self._conn.closed:
                raise StoreUnavailableError(f"database connection lost: {e}") from e
            raise StoreError(str(e).strip()) from e
        except psycopg2.Error as e:
            raise StoreError(str(e).strip()) from e

    def fetch_all(
        self,
        table: str,
        columns: Sequence[str],
        filters: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        where, params = _where(filters or {})
        query = sql.SQL("SELECT {cols} FROM {table}").format(
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            table=sql.Identifier(table),
        ) + where
        return self._execute(query, params, fetch="all")

    def insert(self, table: str, values: Mapping[str, Any]) -> str:
        query = sql.SQL("INSERT INTO {table} ({cols}) VALUES ({vals}) RETURNING id").format(
            table=sql.Identifier(table),
            cols=sql.SQL(", ").join(sql.Identifier(c) for c in values),
            vals=sql.SQL(", ").join(sql.Placeholder() for _ in values),
        )
        row = self._execute(query, [_adapt(v) for v in values.values()], fetch="one")
        return str(row["id"]) if row is not None else ""

    def update(self, table: str, key: Mapping[str, Any], values: Mapping[str, Any]) -> None:
        assignments = sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(c)) for c in values
        )
        where, key_params = _where(key)
        query = sql.SQL("UPDATE {table} SET ").format(table=sql.Identifier(table)) + assignments + where
        self._execute(query, [_adapt(v) for v in values.values()] + key_params)

    def close(self) -> None:
        if not self._conn.closed:
            self._conn.close()

    def __enter__(self) -> PostgresStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
