"""Estructuras de datos compartidas por el ledger de ventas."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional


class ReportKind(str, Enum):
    """Tipos de reporte que exporta el back-office del POS."""

    FULL_SETTLEMENT = "full_settlement"
    ZONES = "zones"
    ARTICLES = "articles"
    ABC_RANKING = "abc_ranking"
    HOURLY = "hourly"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class DailySettlementRecord:
    """Apuramento diario de una tienda."""

    store_id: str
    date: date
    gross_revenue: float = 0.0
    net_revenue: float = 0.0
    vat: float = 0.0
    ticket_count: int = 0
    customer_count: int = 0
    item_qty: float = 0.0
    target_revenue: float = 0.0
    is_closed: bool = False


@dataclass(slots=True)
class ZoneRecord:
    """Facturacion de una zona (sala, delivery, ...) en un dia."""

    store_id: str
    date: date
    zone: str
    revenue: float = 0.0
    net_revenue: float = 0.0


@dataclass(slots=True)
class HourlySlotRecord:
    """Ventas de una franja horaria por zona."""

    store_id: str
    date: date
    zone: str
    time_slot: str
    ticket_count: int = 0
    customer_count: int = 0
    net_revenue: float = 0.0
    gross_revenue: float = 0.0


@dataclass(slots=True)
class ArticleSaleRecord:
    """Venta acumulada de un articulo en un periodo (dia, mes o rango)."""

    store_id: str
    period_start: date
    period_end: date
    article_code: str
    article_name: str
    family: str = ""
    subfamily: str = ""
    quantity: float = 0.0
    net_value: float = 0.0
    gross_value: float = 0.0

    @property
    def period_key(self) -> str:
        return period_key(self.period_start, self.period_end)


@dataclass(slots=True)
class AbcSnapshotRow:
    """Fila del reporte ABC ya rankeado por el POS."""

    store_id: str
    date: date
    article_code: str
    article_name: str
    quantity: float = 0.0
    qty_pct: float = 0.0
    net_value: float = 0.0
    gross_value: float = 0.0
    value_pct: float = 0.0
    cumulative_value: float = 0.0
    cumulative_pct: float = 0.0
    ranking: int = 0
    abc_class: str = ""
    exclude_reason: Optional[str] = None

    @property
    def is_excluded(self) -> bool:
        return self.exclude_reason is not None


@dataclass(frozen=True, slots=True)
class ImportBatch:
    """Resumen inmutable de una ingesta (una por archivo)."""

    filename: str
    detected_kind: ReportKind
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    records_inserted: int = 0
    records_updated: int = 0
    warnings: tuple[str, ...] = ()
    imported_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    @property
    def failed(self) -> bool:
        return self.detected_kind is ReportKind.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["detected_kind"] = self.detected_kind.value
        data["warnings"] = list(self.warnings)
        return data


@dataclass(slots=True)
class ABCArticleAggregate:
    """Articulo agregado por nombre con su clase en ambos ejes."""

    article_name: str
    merged_codes: set[str] = field(default_factory=set)
    total_qty: float = 0.0
    total_value: float = 0.0
    value_pct: float = 0.0
    cumulative_value_pct: float = 0.0
    value_rank: int = 0
    value_class: str = ""
    qty_pct: float = 0.0
    cumulative_qty_pct: float = 0.0
    qty_rank: int = 0
    qty_class: str = ""
    dual_class: str = ""
    inactive: bool = False
    last_sale_date: Optional[date] = None

    @property
    def code_count(self) -> int:
        return len(self.merged_codes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["merged_codes"] = sorted(self.merged_codes)
        data["code_count"] = self.code_count
        return data


@dataclass(frozen=True, slots=True)
class ConcentrationSummary:
    """Valor y participacion de los 5, 10 y 20 primeros articulos."""

    total_articles: int = 0
    total_value: float = 0.0
    top5_value: float = 0.0
    top5_pct: float = 0.0
    top10_value: float = 0.0
    top10_pct: float = 0.0
    top20_value: float = 0.0
    top20_pct: float = 0.0


@dataclass(frozen=True, slots=True)
class EvolutionPoint:
    """Posicion de un articulo en el ranking de una semana ISO."""

    week_key: str
    week_start: date
    article_name: str
    avg_rank_in_week: float


@dataclass(frozen=True, slots=True)
class StoreArticleTotal:
    """Cantidad y valor vendidos de un articulo en una tienda."""

    store_id: str
    article_name: str
    total_qty: float
    total_value: float


@dataclass(frozen=True, slots=True)
class MatrixCell:
    """Una celda de la matriz 3x3 (o de un eje simple)."""

    label: str
    count: int
    value: float
    qty: float
    value_pct: float
    qty_pct: float


@dataclass(slots=True)
class ABCReport:
    """Resultado completo de una consulta ABC."""

    date_from: date
    date_to: date
    aggregates: list[ABCArticleAggregate] = field(default_factory=list)
    concentration: ConcentrationSummary = field(default_factory=ConcentrationSummary)
    evolution: list[EvolutionPoint] = field(default_factory=list)
    distribution: list[MatrixCell] = field(default_factory=list)
    value_summary: list[MatrixCell] = field(default_factory=list)
    qty_summary: list[MatrixCell] = field(default_factory=list)
    pareto: list[ABCArticleAggregate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date_from": self.date_from,
            "date_to": self.date_to,
            "aggregates": [item.to_dict() for item in self.aggregates],
            "concentration": asdict(self.concentration),
            "evolution": [asdict(point) for point in self.evolution],
            "distribution": [asdict(cell) for cell in self.distribution],
            "value_summary": [asdict(cell) for cell in self.value_summary],
            "qty_summary": [asdict(cell) for cell in self.qty_summary],
            "pareto": [item.to_dict() for item in self.pareto],
        }


def period_key(start: date, end: date) -> str:
    """Clave textual del periodo: dia ISO, mes `YYYY-MM` o rango `desde..hasta`."""
    if start == end:
        return start.isoformat()
    if start.day == 1 and end.year == start.year and end.month == start.month:
        following = date(end.year + (end.month == 12), end.month % 12 + 1, 1)
        if (following - end).days == 1:
            return f"{start:%Y-%m}"
    return f"{start.isoformat()}..{end.isoformat()}"


# Alias para anotar "cualquier registro del ledger".
LedgerRecord = DailySettlementRecord | ZoneRecord | HourlySlotRecord | ArticleSaleRecord
