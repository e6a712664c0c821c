"""Punto de entrada CLI del ledger de ventas."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any

from .batch_log import ImportBatchLogger
from .database import LedgerStore
from .errors import LedgerError
from .filters import CHANNELS, CHANNEL_ALL
from .pipeline import ingest, process_inbox
from .queries import STORE_COMPARISON_TOP, classify_abc, store_comparison
from .settings import VALUE_BASES, Settings, load_settings

logger = logging.getLogger(__name__)


def _iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Fecha invalida {value!r} (use AAAA-MM-DD)") from exc


def _add_range(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--from", dest="date_from", type=_iso_date, required=True, help="Fecha inicial (AAAA-MM-DD).")
    parser.add_argument("--to", dest="date_to", type=_iso_date, required=True, help="Fecha final (AAAA-MM-DD).")
    parser.add_argument("--category", help="Familia (tienda) o subfamilia (delivery).")
    parser.add_argument("--channel", choices=CHANNELS, default=CHANNEL_ALL)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ledger de ventas a partir de los Excel del POS.")
    parser.add_argument("--db", type=Path, help="Ruta del archivo SQLite (por defecto SALES_LEDGER_DB).")
    parser.add_argument("--env-file", type=Path, help="Archivo .env alternativo.")
    parser.add_argument("--log-level", help="Nivel de logging (DEBUG, INFO, ...).")
    sub = parser.add_subparsers(dest="command", required=True)

    p_ingest = sub.add_parser("ingest", help="Importa uno o varios archivos Excel.")
    p_ingest.add_argument("files", nargs="+", type=Path)

    p_inbox = sub.add_parser("inbox", help="Procesa la bandeja de entrada y mueve los archivos.")
    p_inbox.add_argument("--inbox", type=Path)
    p_inbox.add_argument("--processed", type=Path)
    p_inbox.add_argument("--errors", type=Path)

    p_abc = sub.add_parser("abc", help="Ranking ABC de Valor x Cantidad.")
    _add_range(p_abc)
    p_abc.add_argument("--store", dest="store_id", help="Identificador de tienda.")
    p_abc.add_argument("--value-basis", choices=VALUE_BASES)
    p_abc.add_argument("--inactive-days", type=int)

    p_stores = sub.add_parser("stores", help="Comparacion de articulos entre tiendas.")
    _add_range(p_stores)
    p_stores.add_argument("--top", type=int, default=STORE_COMPARISON_TOP, help="Articulos a comparar (0 = todos).")
    p_stores.add_argument("--value-basis", choices=VALUE_BASES)

    p_history = sub.add_parser("history", help="Historial de importaciones, del mas reciente al mas antiguo.")
    p_history.add_argument("--limit", type=int, default=50)
    p_history.add_argument("--offset", type=int, default=0)
    return parser


def _override(settings: Settings, args: argparse.Namespace) -> Settings:
    changes: dict[str, Any] = {}
    if args.db:
        changes["db_path"] = args.db
    if args.log_level:
        changes["log_level"] = args.log_level.upper()
    for option, name in (
        ("inbox", "inbox_dir"),
        ("processed", "processed_dir"),
        ("errors", "errors_dir"),
        ("value_basis", "value_basis"),
        ("inactive_days", "inactive_after_days"),
    ):
        value = getattr(args, option, None)
        if value is not None:
            changes[name] = value
    return dataclasses.replace(settings, **changes) if changes else settings


def _emit(payload: Any) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2, default=str)
    sys.stdout.write("\n")


def run(args: argparse.Namespace, settings: Settings, store: LedgerStore) -> int:
    if args.command == "ingest":
        batches = [ingest(path, store) for path in args.files]
        _emit([batch.to_dict() for batch in batches])
        return 1 if any(batch.failed for batch in batches) else 0

    if args.command == "inbox":
        summary = process_inbox(settings.inbox_dir, settings.processed_dir, settings.errors_dir, store)
        _emit(
            {
                "inserted": summary.inserted,
                "updated": summary.updated,
                "failed": summary.failed,
                "batches": [batch.to_dict() for batch in summary.batches],
                "moved": {name: str(target) for name, target in summary.moved.items()},
            }
        )
        return 0

    if args.command == "abc":
        report = classify_abc(
            store,
            args.date_from,
            args.date_to,
            store_id=args.store_id,
            category=args.category,
            channel=args.channel,
            settings=settings,
        )
        _emit(report.to_dict())
        return 0

    if args.command == "stores":
        rows = store_comparison(
            store,
            args.date_from,
            args.date_to,
            category=args.category,
            channel=args.channel,
            top_articles=args.top or None,
            settings=settings,
        )
        _emit([dataclasses.asdict(row) for row in rows])
        return 0

    if args.command == "history":
        batches = ImportBatchLogger(store).history(limit=args.limit, offset=args.offset)
        _emit([batch.to_dict() for batch in batches])
        return 0

    raise ValueError(f"Comando desconocido {args.command!r}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = _override(load_settings(args.env_file), args)
    except ValueError as exc:
        print(f"Configuracion invalida: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    store = LedgerStore(settings.db_path)
    try:
        return run(args, settings, store)
    except (LedgerError, ValueError) as exc:
        logger.error("%s", exc)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
