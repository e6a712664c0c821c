"""Deteccion del tipo de reporte a partir de la fila de encabezados."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .models import ReportKind
from .schemas import SCHEMAS, ReportSchema

logger = logging.getLogger(__name__)

# Los reportes traen metadatos arriba; el encabezado nunca esta mas abajo.
MAX_HEADER_SCAN = 12


@dataclass(frozen=True, slots=True)
class Detection:
    """Resultado del detector: tipo, fila de encabezado y columnas mapeadas."""

    kind: ReportKind
    header_index: int = -1
    columns: dict[str, int] = field(default_factory=dict)
    schema: Optional[ReportSchema] = None

    @property
    def recognized(self) -> bool:
        return self.kind is not ReportKind.UNKNOWN


UNKNOWN = Detection(ReportKind.UNKNOWN)


def detect(rows: Sequence[Sequence[Any]], max_scan: int = MAX_HEADER_SCAN) -> Detection:
    """Busca la primera fila cuyo encabezado satisface alguna huella.

    Si varias huellas coinciden en la misma fila gana la que exige mas
    columnas (un reporte horario tambien contiene las de zonas); ante igual
    cantidad decide el orden fijo de ``SCHEMAS``.
    """
    for idx, row in enumerate(rows[:max_scan]):
        if not row:
            continue
        best: Optional[Detection] = None
        for schema in SCHEMAS:
            mapping = schema.map_header(row)
            if not schema.is_satisfied_by(mapping):
                continue
            if best is None or len(schema.required) > len(best.schema.required):
                best = Detection(schema.kind, idx, mapping, schema)
        if best is not None:
            logger.debug("Encabezado %s en la fila %d", best.kind.value, idx + 1)
            return best
    return UNKNOWN
