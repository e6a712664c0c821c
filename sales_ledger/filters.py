"""Filtros de consulta sobre las ventas por articulo."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from .models import ArticleSaleRecord

# Familias que el POS usa para los articulos vendidos por delivery.
DELIVERY_FAMILIES = ("DELIVERY", "Hidden Delivery")

CHANNEL_ALL = "all"
CHANNEL_STORE = "loja"
CHANNEL_DELIVERY = "delivery"
CHANNELS = (CHANNEL_ALL, CHANNEL_STORE, CHANNEL_DELIVERY)


def channel_of(record: ArticleSaleRecord) -> str:
    return CHANNEL_DELIVERY if record.family in DELIVERY_FAMILIES else CHANNEL_STORE


def category_of(record: ArticleSaleRecord) -> str:
    """Categoria comparable entre canales.

    En delivery la familia es el canal, asi que la categoria sale de la
    subfamilia ("03 | Pizzas" -> "PIZZAS"); en tienda es la familia.
    """
    if channel_of(record) == CHANNEL_DELIVERY:
        return record.subfamily.split("|")[-1].strip().upper()
    return record.family.strip().upper()


@dataclass(frozen=True, slots=True)
class ArticleFilter:
    date_from: date
    date_to: date
    store_id: Optional[str] = None
    category: Optional[str] = None
    channel: str = CHANNEL_ALL

    def __post_init__(self) -> None:
        if self.date_from > self.date_to:
            raise ValueError(f"Rango invalido: {self.date_from} > {self.date_to}")
        if self.channel not in CHANNELS:
            raise ValueError(f"Canal desconocido {self.channel!r}; opciones: {', '.join(CHANNELS)}")

    def matches(self, record: ArticleSaleRecord) -> bool:
        if record.period_start > self.date_to or record.period_end < self.date_from:
            return False
        if self.store_id and record.store_id != self.store_id:
            return False
        if self.channel != CHANNEL_ALL and channel_of(record) != self.channel:
            return False
        if self.category and category_of(record) != self.category.strip().upper():
            return False
        return True

    def apply(self, records: Iterable[ArticleSaleRecord]) -> list[ArticleSaleRecord]:
        return [record for record in records if self.matches(record)]
