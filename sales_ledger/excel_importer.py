"""Importador de los reportes Excel exportados por el back-office del POS."""

from __future__ import annotations

import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional, Sequence

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from .detector import detect
from .errors import UnreadableFile, UnrecognizedFileType
from .models import ArticleSaleRecord, ReportKind
from .normalizer import RowNormalizer, clean_text, parse_date, row_marker

logger = logging.getLogger(__name__)

# "01-01-2025 a 31-01-2025" en alguna celda de los metadatos.
_RANGE_IN_CELL = re.compile(
    r"(\d{2})[/-](\d{2})[/-](\d{4})\s*(?:a|até|ate)\s*(\d{2})[/-](\d{2})[/-](\d{4})"
)
METADATA_ROWS = 5


@dataclass(slots=True)
class ParsedReport:
    """Contenido normalizado de un archivo, listo para persistir."""

    source_file: Path
    kind: ReportKind
    records: list[Any] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    stores: set[str] = field(default_factory=set)


class ExcelImporter:
    """Lee los archivos Excel, detecta su tipo y normaliza sus filas."""

    def __init__(self, sheet_name: str | int = 0, *, today: Optional[date] = None) -> None:
        self.sheet_name = sheet_name
        self.today = today

    def load(self, excel_path: Path) -> ParsedReport:
        """Carga un archivo y devuelve el reporte normalizado.

        Lanza ``UnreadableFile`` si no es una planilla y
        ``UnrecognizedFileType`` si ningun encabezado coincide.
        """
        excel_path = Path(excel_path)
        rows = self.read_rows(excel_path)
        return self.parse_rows(excel_path, rows)

    def read_rows(self, excel_path: Path) -> list[list[Any]]:
        try:
            df = pd.read_excel(excel_path, sheet_name=self.sheet_name, header=None)
        except (ValueError, zipfile.BadZipFile, InvalidFileException, ImportError) as exc:
            # ImportError: .xls antiguo sin el motor xlrd instalado.
            raise UnreadableFile(f"No se pudo leer {excel_path.name}: {exc}") from exc
        df = df.astype(object).where(pd.notna(df), None)
        return df.values.tolist()

    def parse_rows(self, source: Path, rows: Sequence[Sequence[Any]]) -> ParsedReport:
        detection = detect(rows)
        if not detection.recognized:
            raise UnrecognizedFileType(source.name, "ningun encabezado conocido en las primeras filas")

        period = self._find_period(rows)
        report = ParsedReport(source_file=source, kind=detection.kind)
        normalizer = RowNormalizer(
            detection.kind, detection.columns, today=self.today, period=period
        )
        store_index = detection.columns["store"]

        for idx in range(detection.header_index + 1, len(rows)):
            row = rows[idx]
            if not row:
                continue
            marker = row_marker(row, store_index)
            if marker == "end":
                break
            if marker == "skip":
                continue
            result = normalizer.normalize(row, line=idx + 1)
            report.warnings.extend(result.warnings)
            if not result.skipped:
                report.records.append(result.record)

        if detection.kind is ReportKind.ARTICLES:
            report.records = merge_article_rows(report.records)
        self._fill_range(report, period)
        logger.info(
            "%s: %s, %d registros, %d avisos",
            source.name,
            report.kind.value,
            len(report.records),
            len(report.warnings),
        )
        return report

    def _find_period(self, rows: Sequence[Sequence[Any]]) -> tuple[Optional[date], Optional[date]]:
        """Periodo declarado en los metadatos (solo articulos y ABC lo traen)."""
        for row in rows[:METADATA_ROWS]:
            for cell in row:
                match = _RANGE_IN_CELL.search(clean_text(cell))
                if match:
                    d1, m1, y1, d2, m2, y2 = (int(part) for part in match.groups())
                    try:
                        return date(y1, m1, d1), date(y2, m2, d2)
                    except ValueError:
                        continue
            # Variante "Datas:" | desde | "a" | hasta
            if len(row) > 2 and "data" in clean_text(row[1]).lower():
                start = parse_date(row[2])
                end = (parse_date(row[4]) if len(row) > 4 else None) or parse_date(row[3] if len(row) > 3 else None)
                if start and end:
                    return start, end
        return None, None

    def _fill_range(self, report: ParsedReport, period: tuple[Optional[date], Optional[date]]) -> None:
        days: list[date] = []
        for record in report.records:
            report.stores.add(record.store_id)
            if isinstance(record, ArticleSaleRecord):
                days.extend((record.period_start, record.period_end))
            else:
                days.append(record.date)
        if report.kind is ReportKind.ABC_RANKING and all(period):
            # El snapshot ABC cubre el rango declarado aunque haya dias sin ventas.
            report.date_from, report.date_to = period
        elif days:
            report.date_from, report.date_to = min(days), max(days)
        else:
            report.date_from, report.date_to = period


def merge_article_rows(records: list[ArticleSaleRecord]) -> list[ArticleSaleRecord]:
    """Suma filas repetidas de (tienda, periodo, codigo) dentro del archivo."""
    merged: dict[tuple[str, str, str], ArticleSaleRecord] = {}
    for record in records:
        key = (record.store_id, record.period_key, record.article_code)
        existing = merged.get(key)
        if existing is None:
            merged[key] = record
            continue
        existing.quantity += record.quantity
        existing.net_value += record.net_value
        existing.gross_value += record.gross_value
    return list(merged.values())
