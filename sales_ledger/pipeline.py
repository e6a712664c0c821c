"""Ingesta de archivos: detectar -> normalizar -> upsert -> registrar lote."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from .batch_log import ImportBatchLogger
from .database import LedgerStore
from .errors import UnreadableFile, UnrecognizedFileType
from .excel_importer import ExcelImporter
from .models import ImportBatch, ReportKind

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xls")


def ingest(
    file_path: Path | str,
    store: LedgerStore,
    *,
    importer: Optional[ExcelImporter] = None,
) -> ImportBatch:
    """Procesa un archivo completo y devuelve el resumen del lote.

    Los archivos no reconocidos o ilegibles no lanzan excepcion: quedan
    registrados como lote ``unknown`` con un unico aviso. Solo los errores
    del almacenamiento se propagan.
    """
    path = Path(file_path)
    importer = importer or ExcelImporter()
    batch_log = ImportBatchLogger(store)

    try:
        report = importer.load(path)
    except (UnrecognizedFileType, UnreadableFile) as exc:
        logger.warning("%s", exc)
        return batch_log.record(
            ImportBatch(filename=path.name, detected_kind=ReportKind.UNKNOWN, warnings=(str(exc),))
        )

    warnings = list(report.warnings)
    inserted = updated = 0
    if report.kind is ReportKind.ABC_RANKING:
        if report.date_from is None or report.date_to is None:
            warnings.append("El reporte ABC no indica el periodo; no se guardo el snapshot")
        else:
            inserted, updated = store.replace_abc_snapshot(
                report.date_from, report.date_to, report.records, filename=path.name
            )
    elif report.records:
        inserted, updated = store.upsert(report.kind, report.records)

    for warning in warnings:
        logger.debug("%s: %s", path.name, warning)
    return batch_log.record(
        ImportBatch(
            filename=path.name,
            detected_kind=report.kind,
            date_from=report.date_from,
            date_to=report.date_to,
            records_inserted=inserted,
            records_updated=updated,
            warnings=tuple(warnings),
        )
    )


@dataclass(slots=True)
class InboxSummary:
    batches: list[ImportBatch] = field(default_factory=list)
    moved: dict[str, Path] = field(default_factory=dict)

    @property
    def inserted(self) -> int:
        return sum(batch.records_inserted for batch in self.batches)

    @property
    def updated(self) -> int:
        return sum(batch.records_updated for batch in self.batches)

    @property
    def failed(self) -> int:
        return sum(1 for batch in self.batches if batch.failed)


def process_inbox(
    inbox_dir: Path,
    processed_dir: Path,
    errors_dir: Path,
    store: LedgerStore,
    *,
    importer: Optional[ExcelImporter] = None,
) -> InboxSummary:
    """Ingiere cada Excel de la bandeja, en orden, y mueve el archivo.

    Los procesados van a ``processed/YYYY-MM/`` y los no reconocidos a
    ``errors/``, ambos con prefijo de fecha y hora. Un archivo fallido no
    detiene el resto.
    """
    importer = importer or ExcelImporter()
    summary = InboxSummary()
    for directory in (inbox_dir, processed_dir, errors_dir):
        directory.mkdir(parents=True, exist_ok=True)

    files = sorted(p for p in inbox_dir.iterdir() if p.is_file() and p.suffix.lower() in EXCEL_SUFFIXES)
    if not files:
        logger.info("No hay archivos en %s", inbox_dir)
        return summary

    for path in files:
        batch = ingest(path, store, importer=importer)
        summary.batches.append(batch)
        now = datetime.now()
        target_dir = errors_dir if batch.failed else processed_dir / f"{now:%Y-%m}"
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / f"{now:%Y-%m-%dT%H-%M-%S}_{path.name}"
        shutil.move(str(path), target)
        summary.moved[path.name] = target
        if batch.failed:
            logger.warning("%s movido a cuarentena: %s", path.name, target)

    logger.info(
        "Bandeja: %d insertados, %d actualizados, %d con error",
        summary.inserted,
        summary.updated,
        summary.failed,
    )
    return summary
