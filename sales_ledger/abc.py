"""Clasificacion ABC bidimensional (Valor x Cantidad) y metricas derivadas.

Todas las funciones son puras: reciben filas ya filtradas y no tocan la
base. El ranking se recalcula en cada consulta.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Iterable, Optional, Sequence

from .models import (
    ABCArticleAggregate,
    ArticleSaleRecord,
    ConcentrationSummary,
    EvolutionPoint,
    MatrixCell,
    StoreArticleTotal,
)
from .normalizer import abc_class_for

CLASSES = ("A", "B", "C")
PARETO_LIMIT = 30


def article_key(name: str) -> str:
    """Clave de agrupacion: mismo nombre sin importar espacios ni mayusculas."""
    return " ".join(name.split()).casefold()


@dataclass(slots=True)
class ArticleGroup:
    key: str
    names: set[str] = field(default_factory=set)
    codes: set[str] = field(default_factory=set)
    qty: float = 0.0
    value: float = 0.0
    last_sale_date: Optional[date] = None

    @property
    def name(self) -> str:
        # Varias grafias del mismo articulo: se muestra siempre la primera.
        return min(self.names)


@dataclass(frozen=True, slots=True)
class AxisRank:
    group: ArticleGroup
    rank: int
    pct: float
    cumulative_pct: float
    abc_class: str


def record_value(record: ArticleSaleRecord, value_basis: str) -> float:
    return record.net_value if value_basis == "net" else record.gross_value


def group_articles(
    records: Iterable[ArticleSaleRecord],
    value_basis: str = "gross",
    until: Optional[date] = None,
) -> list[ArticleGroup]:
    """Agrupa por nombre normalizado sumando todos los codigos y filas."""
    groups: dict[str, ArticleGroup] = {}
    for record in records:
        key = article_key(record.article_name)
        group = groups.get(key)
        if group is None:
            group = groups[key] = ArticleGroup(key)
        group.names.add(" ".join(record.article_name.split()))
        group.codes.add(record.article_code)
        group.qty += record.quantity
        group.value += record_value(record, value_basis)
        last = min(record.period_end, until) if until else record.period_end
        if group.last_sale_date is None or last > group.last_sale_date:
            group.last_sale_date = last
    return list(groups.values())


def rank_axis(groups: Sequence[ArticleGroup], metric: Callable[[ArticleGroup], float]) -> list[AxisRank]:
    """Ranking de Pareto sobre un eje.

    Orden descendente por la metrica y, a igual metrica, por nombre
    ascendente. Los totales negativos (devoluciones) pesan cero en los
    porcentajes. Si el total es cero todos los porcentajes son cero.
    """
    ordered = sorted(groups, key=lambda g: (-metric(g), g.name, g.key))
    weights = [max(metric(g), 0.0) for g in ordered]
    total = sum(weights)
    ranked: list[AxisRank] = []
    running = 0.0
    for rank, (group, weight) in enumerate(zip(ordered, weights), start=1):
        running += weight
        pct = weight / total if total > 0 else 0.0
        cumulative = running / total if total > 0 else 0.0
        ranked.append(AxisRank(group, rank, pct, cumulative, abc_class_for(cumulative)))
    return ranked


def classify(value_class: str, qty_class: str) -> str:
    """Clase de la matriz 3x3: letra de valor seguida de letra de cantidad."""
    if value_class not in CLASSES or qty_class not in CLASSES:
        raise ValueError(f"Clases ABC invalidas: {value_class!r}, {qty_class!r}")
    return value_class + qty_class


def rank_articles(
    records: Iterable[ArticleSaleRecord],
    *,
    date_to: Optional[date] = None,
    value_basis: str = "gross",
    inactive_after_days: int = 30,
) -> list[ABCArticleAggregate]:
    """Ranking ABC completo, ordenado por ``value_rank``.

    ``inactive`` marca los articulos cuya ultima venta es anterior a
    ``date_to - inactive_after_days``.
    """
    groups = group_articles(records, value_basis, until=date_to)
    if not groups:
        return []
    by_value = rank_axis(groups, lambda g: g.value)
    by_qty = {item.group.key: item for item in rank_axis(groups, lambda g: g.qty)}
    cutoff = date_to - timedelta(days=inactive_after_days) if date_to else None

    aggregates: list[ABCArticleAggregate] = []
    for item in by_value:
        group = item.group
        qty = by_qty[group.key]
        aggregates.append(
            ABCArticleAggregate(
                article_name=group.name,
                merged_codes=set(group.codes),
                total_qty=group.qty,
                total_value=group.value,
                value_pct=item.pct,
                cumulative_value_pct=item.cumulative_pct,
                value_rank=item.rank,
                value_class=item.abc_class,
                qty_pct=qty.pct,
                cumulative_qty_pct=qty.cumulative_pct,
                qty_rank=qty.rank,
                qty_class=qty.abc_class,
                dual_class=classify(item.abc_class, qty.abc_class),
                inactive=bool(cutoff and group.last_sale_date and group.last_sale_date < cutoff),
                last_sale_date=group.last_sale_date,
            )
        )
    return aggregates


def concentration(aggregates: Sequence[ABCArticleAggregate]) -> ConcentrationSummary:
    """Peso de los 5, 10 y 20 primeros del ranking por valor.

    Usa la misma base que ``rank_axis``: los totales negativos pesan cero.
    """
    ordered = sorted(aggregates, key=lambda a: a.value_rank)
    weights = [max(a.total_value, 0.0) for a in ordered]
    total = sum(weights)

    def top(n: int) -> tuple[float, float]:
        value = sum(weights[:n])
        return value, (value / total if total > 0 else 0.0)

    top5, top5_pct = top(5)
    top10, top10_pct = top(10)
    top20, top20_pct = top(20)
    return ConcentrationSummary(
        total_articles=len(ordered),
        total_value=total,
        top5_value=top5,
        top5_pct=top5_pct,
        top10_value=top10,
        top10_pct=top10_pct,
        top20_value=top20,
        top20_pct=top20_pct,
    )


def pareto(aggregates: Sequence[ABCArticleAggregate], limit: int = PARETO_LIMIT) -> list[ABCArticleAggregate]:
    return sorted(aggregates, key=lambda a: a.value_rank)[:limit]


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_key(day: date) -> str:
    year, week, _ = day.isocalendar()
    return f"{year}-W{week:02d}"


def evolution(
    records: Iterable[ArticleSaleRecord],
    article_names: Sequence[str],
    *,
    value_basis: str = "gross",
) -> list[EvolutionPoint]:
    """Ranking por valor de cada semana ISO para un conjunto fijo de articulos.

    Cada semana se rankea con todos sus articulos; solo se reportan los
    pedidos. Una semana sin ventas del articulo no genera punto.
    """
    wanted = {article_key(name): name for name in article_names}
    if not wanted:
        return []
    buckets: dict[date, list[ArticleSaleRecord]] = defaultdict(list)
    for record in records:
        buckets[week_start(record.period_start)].append(record)

    points: list[EvolutionPoint] = []
    for monday in sorted(buckets):
        groups = group_articles(buckets[monday], value_basis)
        for item in rank_axis(groups, lambda g: g.value):
            group = item.group
            if group.key not in wanted or (group.value == 0 and group.qty == 0):
                continue
            points.append(EvolutionPoint(week_key(monday), monday, wanted[group.key], float(item.rank)))
    return points


def compare_stores(
    records: Iterable[ArticleSaleRecord],
    *,
    value_basis: str = "gross",
    top_articles: Optional[int] = None,
) -> list[StoreArticleTotal]:
    """Totales por (tienda, articulo), con la misma regla de fusion por nombre."""
    records = list(records)
    names = {group.key: group.name for group in group_articles(records, value_basis)}
    totals: dict[tuple[str, str], list[float]] = defaultdict(lambda: [0.0, 0.0])
    for record in records:
        bucket = totals[(record.store_id, article_key(record.article_name))]
        bucket[0] += record.quantity
        bucket[1] += record_value(record, value_basis)

    keep: Optional[set[str]] = None
    if top_articles is not None:
        ranked = rank_axis(group_articles(records, value_basis), lambda g: g.value)
        keep = {item.group.key for item in ranked[:top_articles]}

    rows = [
        StoreArticleTotal(store_id, names[key], qty, value)
        for (store_id, key), (qty, value) in totals.items()
        if keep is None or key in keep
    ]
    rows.sort(key=lambda row: (-row.total_value, row.article_name, row.store_id))
    return rows


def _cell(label: str, items: Sequence[ABCArticleAggregate], total_value: float, total_qty: float) -> MatrixCell:
    value = sum(a.total_value for a in items)
    qty = sum(a.total_qty for a in items)
    return MatrixCell(
        label=label,
        count=len(items),
        value=value,
        qty=qty,
        value_pct=value / total_value if total_value > 0 else 0.0,
        qty_pct=qty / total_qty if total_qty > 0 else 0.0,
    )


def distribution(aggregates: Sequence[ABCArticleAggregate]) -> list[MatrixCell]:
    """Las 9 celdas de la matriz, siempre presentes y en orden AA..CC."""
    total_value = sum(a.total_value for a in aggregates)
    total_qty = sum(a.total_qty for a in aggregates)
    cells = []
    for v in CLASSES:
        for q in CLASSES:
            label = classify(v, q)
            items = [a for a in aggregates if a.dual_class == label]
            cells.append(_cell(label, items, total_value, total_qty))
    return cells


def axis_distribution(aggregates: Sequence[ABCArticleAggregate], axis: str) -> list[MatrixCell]:
    """Resumen A/B/C de un solo eje (``value`` o ``qty``)."""
    if axis not in ("value", "qty"):
        raise ValueError(f"Eje desconocido {axis!r}")
    total_value = sum(a.total_value for a in aggregates)
    total_qty = sum(a.total_qty for a in aggregates)
    attr = "value_class" if axis == "value" else "qty_class"
    return [
        _cell(cls, [a for a in aggregates if getattr(a, attr) == cls], total_value, total_qty)
        for cls in CLASSES
    ]
