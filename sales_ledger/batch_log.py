"""Historial de ingestas (solo se agrega, nunca se modifica)."""

from __future__ import annotations

import dataclasses
import logging

from .database import LedgerStore
from .models import ImportBatch

logger = logging.getLogger(__name__)


class ImportBatchLogger:
    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def record(self, batch: ImportBatch) -> ImportBatch:
        """Guarda el lote y lo devuelve con su ``id`` asignado."""
        batch_id = self.store.insert_import_batch(batch)
        logger.info(
            "Lote %d %s (%s): %d insertados, %d actualizados, %d avisos",
            batch_id,
            batch.filename,
            batch.detected_kind.value,
            batch.records_inserted,
            batch.records_updated,
            len(batch.warnings),
        )
        return dataclasses.replace(batch, id=batch_id)

    def history(self, limit: int = 50, offset: int = 0) -> list[ImportBatch]:
        """Lotes del mas reciente al mas antiguo."""
        return self.store.fetch_import_log(limit=limit, offset=offset)
