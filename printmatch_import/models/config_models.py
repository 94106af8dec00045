from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the PrintMatch import tool.

Built by printmatch_import.config.loader from config/import.yml. Environment
variables take precedence over the values held here (see cli._resolve_dsn).
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    statement_timeout_ms: int = 30000  # 行単位の永続化タイムアウト
    connect_timeout: int = 10


@dataclass(frozen=True)
class CompanyConfig:
    """Issuer details printed on rendered documents."""
    name: str = "PrintMatch PRO"
    tagline: str = "Soluciones de Impresión Profesional"


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object for the import tool."""
    user_id: str | None  # 認証コンテキスト (IMPORT_USER_ID で上書き可)
    logs_directory: str = "./logs"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    company: CompanyConfig = field(default_factory=CompanyConfig)
