"""Capa de acceso a datos del ledger usando SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, fields
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from .errors import LedgerWriteConflict
from .models import (
    AbcSnapshotRow,
    ArticleSaleRecord,
    DailySettlementRecord,
    HourlySlotRecord,
    ImportBatch,
    ReportKind,
    ZoneRecord,
)

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


@dataclass(frozen=True, slots=True)
class LedgerTable:
    """Tabla del ledger: tipo de registro y su clave natural."""

    name: str
    record_type: type
    key: tuple[str, ...]

    @property
    def columns(self) -> tuple[str, ...]:
        names = tuple(f.name for f in fields(self.record_type))
        if self.record_type is ArticleSaleRecord:
            return ("period_key",) + names
        return names

    def to_row(self, record: Any) -> dict[str, Any]:
        row = {name: _to_sql(value) for name, value in asdict(record).items()}
        if isinstance(record, ArticleSaleRecord):
            row["period_key"] = record.period_key
        return row

    def from_row(self, row: sqlite3.Row) -> Any:
        values: dict[str, Any] = {}
        for f in fields(self.record_type):
            value = row[f.name]
            if f.name in ("date", "period_start", "period_end"):
                value = date.fromisoformat(value)
            elif f.name == "is_closed":
                value = bool(value)
            values[f.name] = value
        return self.record_type(**values)


LEDGER_TABLES: dict[ReportKind, LedgerTable] = {
    ReportKind.FULL_SETTLEMENT: LedgerTable("daily_settlements", DailySettlementRecord, ("store_id", "date")),
    ReportKind.ZONES: LedgerTable("zone_sales", ZoneRecord, ("store_id", "date", "zone")),
    ReportKind.HOURLY: LedgerTable("hourly_sales", HourlySlotRecord, ("store_id", "date", "zone", "time_slot")),
    ReportKind.ARTICLES: LedgerTable("article_sales", ArticleSaleRecord, ("store_id", "period_key", "article_code")),
}

ABC_ROW_COLUMNS = tuple(f.name for f in fields(AbcSnapshotRow))


def _to_sql(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class LedgerStore:
    """Encapsula todas las operaciones sobre la base SQLite del ledger.

    Una instancia por base; se pasa explicitamente a la ingesta y a las
    consultas. Todas las escrituras se serializan con un lock y una
    transaccion, de modo que dos archivos que cubren la misma clave se
    aplican uno detras del otro (gana el ultimo).
    """

    def __init__(self, db_path: Path | str = MEMORY) -> None:
        self.db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(str(self.db_path), timeout=30, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        schema = """
        PRAGMA foreign_keys = ON;
        CREATE TABLE IF NOT EXISTS daily_settlements (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            store_id TEXT NOT NULL,
            date TEXT NOT NULL,
            gross_revenue REAL NOT NULL DEFAULT 0,
            net_revenue REAL NOT NULL DEFAULT 0,
            vat REAL NOT NULL DEFAULT 0,
            ticket_count INTEGER NOT NULL DEFAULT 0,
            customer_count INTEGER NOT NULL DEFAULT 0,
            item_qty REAL NOT NULL DEFAULT 0,
            target_revenue REAL NOT NULL DEFAULT 0,
            is_closed INTEGER NOT NULL DEFAULT 0,
            UNIQUE(store_id, date)
        );

        CREATE TABLE IF NOT EXISTS zone_sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            store_id TEXT NOT NULL,
            date TEXT NOT NULL,
            zone TEXT NOT NULL,
            revenue REAL NOT NULL DEFAULT 0,
            net_revenue REAL NOT NULL DEFAULT 0,
            UNIQUE(store_id, date, zone)
        );

        CREATE TABLE IF NOT EXISTS hourly_sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            store_id TEXT NOT NULL,
            date TEXT NOT NULL,
            zone TEXT NOT NULL,
            time_slot TEXT NOT NULL,
            ticket_count INTEGER NOT NULL DEFAULT 0,
            customer_count INTEGER NOT NULL DEFAULT 0,
            net_revenue REAL NOT NULL DEFAULT 0,
            gross_revenue REAL NOT NULL DEFAULT 0,
            UNIQUE(store_id, date, zone, time_slot)
        );

        CREATE TABLE IF NOT EXISTS article_sales (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            store_id TEXT NOT NULL,
            period_key TEXT NOT NULL,
            period_start TEXT NOT NULL,
            period_end TEXT NOT NULL,
            article_code TEXT NOT NULL,
            article_name TEXT NOT NULL,
            family TEXT NOT NULL DEFAULT '',
            subfamily TEXT NOT NULL DEFAULT '',
            quantity REAL NOT NULL DEFAULT 0,
            net_value REAL NOT NULL DEFAULT 0,
            gross_value REAL NOT NULL DEFAULT 0,
            UNIQUE(store_id, period_key, article_code)
        );

        CREATE TABLE IF NOT EXISTS abc_snapshots (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            date_from TEXT NOT NULL,
            date_to TEXT NOT NULL,
            filename TEXT NOT NULL,
            imported_at TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(date_from, date_to)
        );

        CREATE TABLE IF NOT EXISTS abc_snapshot_rows (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            snapshot_id INTEGER NOT NULL,
            store_id TEXT NOT NULL,
            date TEXT NOT NULL,
            article_code TEXT NOT NULL,
            article_name TEXT NOT NULL,
            quantity REAL NOT NULL DEFAULT 0,
            qty_pct REAL NOT NULL DEFAULT 0,
            net_value REAL NOT NULL DEFAULT 0,
            gross_value REAL NOT NULL DEFAULT 0,
            value_pct REAL NOT NULL DEFAULT 0,
            cumulative_value REAL NOT NULL DEFAULT 0,
            cumulative_pct REAL NOT NULL DEFAULT 0,
            ranking INTEGER NOT NULL DEFAULT 0,
            abc_class TEXT NOT NULL DEFAULT '',
            exclude_reason TEXT,
            FOREIGN KEY(snapshot_id) REFERENCES abc_snapshots(id) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS import_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            filename TEXT NOT NULL,
            detected_kind TEXT NOT NULL,
            date_from TEXT,
            date_to TEXT,
            records_inserted INTEGER NOT NULL DEFAULT 0,
            records_updated INTEGER NOT NULL DEFAULT 0,
            warnings TEXT NOT NULL DEFAULT '[]',
            imported_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_daily_settlements_date ON daily_settlements(date);
        CREATE INDEX IF NOT EXISTS idx_zone_sales_store_date ON zone_sales(store_id, date);
        CREATE INDEX IF NOT EXISTS idx_hourly_sales_store_date ON hourly_sales(store_id, date);
        CREATE INDEX IF NOT EXISTS idx_article_sales_dates ON article_sales(period_start, period_end);
        CREATE INDEX IF NOT EXISTS idx_article_sales_store ON article_sales(store_id);
        CREATE INDEX IF NOT EXISTS idx_abc_rows_snapshot ON abc_snapshot_rows(snapshot_id);
        CREATE INDEX IF NOT EXISTS idx_import_log_imported ON import_log(imported_at);
        """
        with self._lock:
            if self.db_path != MEMORY:
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.executescript(schema)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    # ------------------------------------------------------------ escrituras

    def upsert(self, kind: ReportKind, records: Iterable[Any]) -> tuple[int, int]:
        """Inserta o sobreescribe por clave natural; devuelve (insertados, actualizados).

        Toda clave ya existente cuenta como actualizada aunque sus valores no
        cambien. Nunca borra filas.
        """
        table = LEDGER_TABLES.get(kind)
        if table is None:
            raise ValueError(f"{kind.value} no se guarda por clave natural")
        columns = table.columns
        updates = ", ".join(f"{col}=excluded.{col}" for col in columns if col not in table.key)
        insert_sql = f"""
            INSERT INTO {table.name} ({", ".join(columns)})
            VALUES ({", ".join("?" for _ in columns)})
            ON CONFLICT({", ".join(table.key)}) DO UPDATE SET {updates}
        """
        exists_sql = f"SELECT 1 FROM {table.name} WHERE {' AND '.join(f'{col} = ?' for col in table.key)}"

        inserted = updated = 0
        try:
            with self.transaction():
                for record in records:
                    row = table.to_row(record)
                    key = tuple(row[col] for col in table.key)
                    if self._conn.execute(exists_sql, key).fetchone():
                        updated += 1
                    else:
                        inserted += 1
                    self._conn.execute(insert_sql, tuple(row[col] for col in columns))
        except sqlite3.IntegrityError as exc:
            raise LedgerWriteConflict(f"Conflicto escribiendo {table.name}: {exc}") from exc
        logger.debug("%s: %d insertados, %d actualizados", table.name, inserted, updated)
        return inserted, updated

    def replace_abc_snapshot(
        self,
        date_from: date,
        date_to: date,
        rows: Iterable[AbcSnapshotRow],
        *,
        filename: str,
    ) -> tuple[int, int]:
        """Reemplaza completo el snapshot ABC del rango (no mezcla fila a fila).

        Las filas cuya (tienda, fecha, codigo) ya estaba en el snapshot
        reemplazado cuentan como actualizadas.
        """
        start, end = date_from.isoformat(), date_to.isoformat()
        inserted = updated = 0
        with self.transaction():
            previous = self._conn.execute(
                "SELECT id FROM abc_snapshots WHERE date_from = ? AND date_to = ?", (start, end)
            ).fetchone()
            old_keys: set[tuple[str, str, str]] = set()
            if previous:
                old_keys = {
                    (r["store_id"], r["date"], r["article_code"])
                    for r in self._conn.execute(
                        "SELECT store_id, date, article_code FROM abc_snapshot_rows WHERE snapshot_id = ?",
                        (previous["id"],),
                    )
                }
                self._conn.execute("DELETE FROM abc_snapshots WHERE id = ?", (previous["id"],))
            cursor = self._conn.execute(
                "INSERT INTO abc_snapshots (date_from, date_to, filename, imported_at) VALUES (?, ?, ?, ?)",
                (start, end, filename, datetime.now().isoformat(timespec="seconds")),
            )
            snapshot_id = cursor.lastrowid
            payload = []
            for row in rows:
                values = {name: _to_sql(value) for name, value in asdict(row).items()}
                if (values["store_id"], values["date"], values["article_code"]) in old_keys:
                    updated += 1
                else:
                    inserted += 1
                payload.append((snapshot_id, *(values[col] for col in ABC_ROW_COLUMNS)))
            self._conn.executemany(
                f"""
                INSERT INTO abc_snapshot_rows (snapshot_id, {", ".join(ABC_ROW_COLUMNS)})
                VALUES (?, {", ".join("?" for _ in ABC_ROW_COLUMNS)})
                """,
                payload,
            )
        return inserted, updated

    def insert_import_batch(self, batch: ImportBatch) -> int:
        with self.transaction():
            cursor = self._conn.execute(
                """
                INSERT INTO import_log (
                    filename, detected_kind, date_from, date_to,
                    records_inserted, records_updated, warnings, imported_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    batch.filename,
                    batch.detected_kind.value,
                    _to_sql(batch.date_from),
                    _to_sql(batch.date_to),
                    batch.records_inserted,
                    batch.records_updated,
                    json.dumps(list(batch.warnings), ensure_ascii=False),
                    batch.imported_at.isoformat(),
                ),
            )
            return int(cursor.lastrowid)

    # ------------------------------------------------------------ lecturas

    def fetch_article_sales(
        self,
        date_from: date,
        date_to: date,
        store_id: Optional[str] = None,
    ) -> list[ArticleSaleRecord]:
        """Filas de articulos cuyo periodo se solapa con [date_from, date_to]."""
        table = LEDGER_TABLES[ReportKind.ARTICLES]
        query = "SELECT * FROM article_sales WHERE period_start <= ? AND period_end >= ?"
        params: list[object] = [date_to.isoformat(), date_from.isoformat()]
        if store_id:
            query += " AND store_id = ?"
            params.append(store_id)
        query += " ORDER BY period_start, store_id, article_code"
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [table.from_row(row) for row in rows]

    def fetch_records(self, kind: ReportKind) -> list[Any]:
        """Todas las filas de una tabla del ledger, ordenadas por clave."""
        table = LEDGER_TABLES[kind]
        order = ", ".join(table.key)
        with self._lock:
            rows = self._conn.execute(f"SELECT * FROM {table.name} ORDER BY {order}").fetchall()
        return [table.from_row(row) for row in rows]

    def fetch_abc_snapshot(self, date_from: date, date_to: date) -> list[AbcSnapshotRow]:
        query = """
        SELECT r.*
        FROM abc_snapshot_rows r
        JOIN abc_snapshots s ON s.id = r.snapshot_id
        WHERE s.date_from = ? AND s.date_to = ?
        ORDER BY r.store_id, r.date, r.ranking
        """
        with self._lock:
            rows = self._conn.execute(query, (date_from.isoformat(), date_to.isoformat())).fetchall()
        result = []
        for row in rows:
            values = {col: row[col] for col in ABC_ROW_COLUMNS}
            values["date"] = date.fromisoformat(values["date"])
            result.append(AbcSnapshotRow(**values))
        return result

    def fetch_import_log(self, limit: int = 50, offset: int = 0) -> list[ImportBatch]:
        query = """
        SELECT id, filename, detected_kind, date_from, date_to,
               records_inserted, records_updated, warnings, imported_at
        FROM import_log
        ORDER BY imported_at DESC, id DESC
        LIMIT ? OFFSET ?
        """
        with self._lock:
            rows = self._conn.execute(query, (int(limit), int(offset))).fetchall()
        return [
            ImportBatch(
                id=row["id"],
                filename=row["filename"],
                detected_kind=ReportKind(row["detected_kind"]),
                date_from=date.fromisoformat(row["date_from"]) if row["date_from"] else None,
                date_to=date.fromisoformat(row["date_to"]) if row["date_to"] else None,
                records_inserted=row["records_inserted"],
                records_updated=row["records_updated"],
                warnings=tuple(json.loads(row["warnings"])),
                imported_at=datetime.fromisoformat(row["imported_at"]),
            )
            for row in rows
        ]
