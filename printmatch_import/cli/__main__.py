from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv

from printmatch_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from printmatch_import.db.memory import InMemoryStore
from printmatch_import.db.store import PostgresStore, Store, StoreError, build_dsn
from printmatch_import.documents.renderer import DocumentNotFoundError, load_document, render_document
from printmatch_import.excel.reader import FormatError
from printmatch_import.excel.report import write_error_report, write_template
from printmatch_import.logging.error_log import ErrorLogBuffer
from printmatch_import.logging.init import log_summary, setup_logging
from printmatch_import.models.config_models import AppConfig
from printmatch_import.services.importer import (
    AuthenticationError,
    ImportAbortedError,
    ImportBlockedError,
    run_import,
)
from printmatch_import.services.pipeline import load_reference_data, prepare_session
from printmatch_import.services.progress import ProgressTracker
from printmatch_import.services.reconciliation import (
    load_internal_movements,
    parse_bank_statement,
    record_reconciliation,
    suggest_reconciliations,
)
from printmatch_import.services.summary import render_preview_line, render_summary_line
from printmatch_import.validation.variants import VARIANTS, get_variant

"""CLI entrypoint.

Commands:
    import     parse, validate, match and import a spreadsheet
    template   write an example workbook for a variant
    reconcile  suggest (and optionally record) bank reconciliations
    render     render a generated document to printable HTML

Exit codes: 0 success, 2 partial failure (rows errored or blocked),
1 fatal (config, file format, authentication, store unavailable).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

logger = logging.getLogger("printmatch_import.cli")


@contextmanager
def open_store(cfg: AppConfig) -> Iterator[Store]:
    """Store for one command.

    DISABLE_DB_CONNECT=1 selects an empty in-memory store (mock mode).
    Connection parameters: DATABASE_URL / PGDSN, then config dsn, then PG*
    variables with the config database section as fallback.
    """
    if os.getenv("DISABLE_DB_CONNECT") == "1":
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        yield InMemoryStore()
        return
    store = PostgresStore.connect(
        build_dsn(cfg.database, os.environ),
        statement_timeout_ms=cfg.database.statement_timeout_ms,
        connect_timeout=cfg.database.connect_timeout,
    )
    try:
        yield store
    finally:
        store.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; override=True で既存の環境変数より .env を優先する。"""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="printmatch-import", description="PrintMatch spreadsheet import toolkit"
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config file")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Validate and import a spreadsheet")
    imp.add_argument("--variant", required=True, choices=sorted(VARIANTS))
    imp.add_argument("file", type=Path)
    imp.add_argument("--dielines", type=Path, help="Dieline sheet with technical records (quotations)")
    imp.add_argument("--error-report", type=Path, help="Write ERROR rows to this .xlsx")
    imp.add_argument("--skip-invalid", action="store_true", help="Import valid rows and skip ERROR rows")
    imp.add_argument("--dry-run", action="store_true", help="Validate only, do not write")

    tpl = sub.add_parser("template", help="Write an example workbook")
    tpl.add_argument("--variant", required=True, choices=sorted(VARIANTS))
    tpl.add_argument("output", type=Path)

    rec = sub.add_parser("reconcile", help="Suggest bank reconciliations")
    rec.add_argument("--account", required=True, help="cuenta_bancaria_id")
    rec.add_argument("statement", type=Path)
    rec.add_argument("--apply", action="store_true", help="Record every suggestion")

    ren = sub.add_parser("render", help="Render a generated document to HTML")
    ren.add_argument("document_id")
    ren.add_argument("--output", type=Path, default=Path("."))
    return p.parse_args(argv)


def _cmd_import(args: argparse.Namespace, cfg: AppConfig) -> int:
    variant = get_variant(args.variant)
    if not args.dry_run and not cfg.user_id:
        raise AuthenticationError("an authenticated user is required to import (user_id / IMPORT_USER_ID)")
    with open_store(cfg) as store:
        references = load_reference_data(store, variant, cfg.user_id)
        session = prepare_session(args.file, variant, references, dieline_path=args.dielines)

        logger.info(render_preview_line(session.counts))
        for row in session.error_rows:
            logger.warning("row %d: %s", row.row_index, "; ".join(row.errors))

        if args.error_report is not None:
            written = write_error_report(session.rows, variant, args.error_report)
            logger.info("error report: %s (%d row(s))", args.error_report, written)

        has_errors = session.counts.error > 0
        if args.dry_run:
            logger.info("dry run: nothing imported")
            return EXIT_PARTIAL_FAILURE if has_errors else EXIT_SUCCESS_ALL

        if has_errors and not args.skip_invalid:
            session.ensure_importable()

        rows = session.eligible_rows
        with ProgressTracker(len(rows), description=f"Importing {variant.name}") as progress:
            result = run_import(
                rows,
                variant,
                store,
                user_id=cfg.user_id,
                source=session.source,
                total_rows=session.counts.total,
                progress=progress,
                error_log=ErrorLogBuffer(cfg.logs_directory),
            )

    # log_summary が "SUMMARY " を付けるので除去
    log_summary(render_summary_line(variant.name, result).removeprefix("SUMMARY "))
    if result.errored > 0 or has_errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _cmd_template(args: argparse.Namespace, cfg: AppConfig) -> int:
    path = write_template(get_variant(args.variant), args.output)
    logger.info("template written: %s", path)
    return EXIT_SUCCESS_ALL


def _cmd_reconcile(args: argparse.Namespace, cfg: AppConfig) -> int:
    if not cfg.user_id:
        logger.error("auth: an authenticated user is required (user_id / IMPORT_USER_ID)")
        return EXIT_FATAL
    bank = parse_bank_statement(args.statement)
    recorded = failed = 0
    with open_store(cfg) as store:
        internal = load_internal_movements(store, cfg.user_id, args.account)
        suggestions = suggest_reconciliations(internal, bank)
        for s in suggestions:
            logger.info(
                "match: pago %s %.2f %s <-> %s %.2f %s",
                s.internal.id, s.internal.amount, s.internal.date.isoformat(),
                s.bank.reference, s.bank.amount, s.bank.date.isoformat(),
            )
            if not args.apply:
                continue
            try:
                record_reconciliation(store, cfg.user_id, args.account, s)
                recorded += 1
            except StoreError as e:
                failed += 1
                logger.error("could not record reconciliation for %s: %s", s.internal.id, e)
    log_summary(
        f"internal={len(internal)} bank={len(bank)} suggested={len(suggestions)} "
        f"recorded={recorded} failed={failed}"
    )
    return EXIT_PARTIAL_FAILURE if failed else EXIT_SUCCESS_ALL


def _cmd_render(args: argparse.Namespace, cfg: AppConfig) -> int:
    with open_store(cfg) as store:
        document = load_document(store, args.document_id)
    rendered = render_document(document, cfg.company)
    args.output.mkdir(parents=True, exist_ok=True)
    path = args.output / f"{rendered.document_key}.html"
    path.write_text(rendered.html, encoding="utf-8")
    logger.info("document written: %s", path)
    return EXIT_SUCCESS_ALL


COMMANDS = {
    "import": _cmd_import,
    "template": _cmd_template,
    "reconcile": _cmd_reconcile,
    "render": _cmd_render,
}


def main(argv: list[str] | None = None) -> int:
    # NOTE: [] が渡された場合に sys.argv[1:] が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        return COMMANDS[args.command](args, cfg)
    except FormatError as e:
        logger.error(f"file: {e}")
        return EXIT_FATAL
    except ImportAbortedError as e:
        # ブロック (ERROR 行残存) は部分失敗、認証欠如は致命的
        logger.error(f"import: {e}")
        return EXIT_PARTIAL_FAILURE if isinstance(e, ImportBlockedError) else EXIT_FATAL
    except DocumentNotFoundError as e:
        logger.error(f"render: {e}")
        return EXIT_FATAL
    except StoreError as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
