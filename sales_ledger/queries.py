"""Consultas analiticas sobre el ledger (ABC y comparacion entre tiendas)."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from . import abc
from .database import LedgerStore
from .filters import CHANNEL_ALL, ArticleFilter
from .models import ABCReport, ArticleSaleRecord, StoreArticleTotal
from .settings import Settings

logger = logging.getLogger(__name__)

STORE_COMPARISON_TOP = 15


def _load_articles(store: LedgerStore, article_filter: ArticleFilter) -> list[ArticleSaleRecord]:
    records = store.fetch_article_sales(
        article_filter.date_from,
        article_filter.date_to,
        store_id=article_filter.store_id,
    )
    return article_filter.apply(records)


def classify_abc(
    store: LedgerStore,
    date_from: date,
    date_to: date,
    store_id: Optional[str] = None,
    category: Optional[str] = None,
    channel: str = CHANNEL_ALL,
    settings: Optional[Settings] = None,
) -> ABCReport:
    """Ranking ABC de Valor x Cantidad para el rango y filtros dados.

    Se recalcula siempre desde ``article_sales``; un rango sin datos
    devuelve un reporte vacio.
    """
    settings = settings or Settings()
    article_filter = ArticleFilter(date_from, date_to, store_id=store_id, category=category, channel=channel)
    records = _load_articles(store, article_filter)
    logger.debug("ABC %s..%s: %d filas tras filtros", date_from, date_to, len(records))

    aggregates = abc.rank_articles(
        records,
        date_to=date_to,
        value_basis=settings.value_basis,
        inactive_after_days=settings.inactive_after_days,
    )
    top_names = [item.article_name for item in aggregates[: settings.evolution_top_n]]
    return ABCReport(
        date_from=date_from,
        date_to=date_to,
        aggregates=aggregates,
        concentration=abc.concentration(aggregates),
        evolution=abc.evolution(records, top_names, value_basis=settings.value_basis),
        distribution=abc.distribution(aggregates),
        value_summary=abc.axis_distribution(aggregates, "value"),
        qty_summary=abc.axis_distribution(aggregates, "qty"),
        pareto=abc.pareto(aggregates),
    )


def store_comparison(
    store: LedgerStore,
    date_from: date,
    date_to: date,
    category: Optional[str] = None,
    channel: str = CHANNEL_ALL,
    top_articles: Optional[int] = STORE_COMPARISON_TOP,
    settings: Optional[Settings] = None,
) -> list[StoreArticleTotal]:
    """Totales por tienda y articulo, limitados a los ``top_articles`` globales."""
    settings = settings or Settings()
    article_filter = ArticleFilter(date_from, date_to, category=category, channel=channel)
    records = _load_articles(store, article_filter)
    return abc.compare_stores(records, value_basis=settings.value_basis, top_articles=top_articles)
