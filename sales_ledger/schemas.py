"""Esquemas de columnas de cada reporte exportado por el POS.

Cada tipo de reporte se describe como una lista ordenada de columnas con
nombre canonico, tipo y las etiquetas con que aparece en el encabezado.
Las columnas obligatorias forman la "huella" que usa el detector.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .models import ReportKind


TEXT = "text"
NUMBER = "number"
INTEGER = "integer"
DATE = "date"
TIME = "time"


def normalize_label(value: Any) -> str:
    """Normaliza un encabezado: minusculas, sin acentos ni puntos finales."""
    if value is None or not isinstance(value, str):
        return ""
    text = value.replace("º", "").replace("ª", "").replace("\n", " ")
    text = unicodedata.normalize("NFKD", text)
    text = "".join(char for char in text if not unicodedata.combining(char))
    text = " ".join(text.lower().split())
    return text.rstrip(".").strip()


@dataclass(frozen=True, slots=True)
class ColumnSpec:
    name: str
    dtype: str
    labels: tuple[str, ...]
    required: bool = False

    def matches(self, label: str) -> bool:
        return label in self.labels


def column(name: str, dtype: str, *labels: str, required: bool = False) -> ColumnSpec:
    return ColumnSpec(name, dtype, tuple(normalize_label(label) for label in labels), required)


@dataclass(frozen=True, slots=True)
class ReportSchema:
    kind: ReportKind
    columns: tuple[ColumnSpec, ...]

    @property
    def required(self) -> tuple[ColumnSpec, ...]:
        return tuple(col for col in self.columns if col.required)

    def map_header(self, header: Iterable[Any]) -> dict[str, int]:
        """Devuelve {columna canonica: indice} para las columnas encontradas."""
        labels = [normalize_label(cell) for cell in header]
        mapping: dict[str, int] = {}
        for spec in self.columns:
            index = self._find(spec, labels, taken=set(mapping.values()))
            if index is not None:
                mapping[spec.name] = index
        return mapping

    def is_satisfied_by(self, mapping: dict[str, int]) -> bool:
        return all(spec.name in mapping for spec in self.required)

    @staticmethod
    def _find(spec: ColumnSpec, labels: list[str], taken: set[int]) -> Optional[int]:
        for idx, label in enumerate(labels):
            if idx not in taken and spec.matches(label):
                return idx
        return None


STORE = column("store", TEXT, "Loja", "Store", required=True)

FULL_SETTLEMENT = ReportSchema(
    ReportKind.FULL_SETTLEMENT,
    (
        STORE,
        column("date", DATE, "Data", required=True),
        column("weekday", TEXT, "Dia"),
        column("ticket_count", INTEGER, "Nº Tickets", "Tickets", "Num. Tickets", required=True),
        column("customer_count", INTEGER, "Nº Clientes", "Clientes", "Nº Pessoas", "Pessoas"),
        column("item_qty", NUMBER, "Qtd. Artigos", "Qtd Artigos", "Qtd. Itens", "Nº Artigos"),
        column("net_revenue", NUMBER, "Total Líquido", "Total Líq.", "Total Liq"),
        column("vat", NUMBER, "IVA", "Total IVA"),
        column("gross_revenue", NUMBER, "Total Final", "Total Bruto", required=True),
        column("target_revenue", NUMBER, "Objetivo", "Objectivo", "Meta"),
    ),
)

ZONES = ReportSchema(
    ReportKind.ZONES,
    (
        STORE,
        column("date", DATE, "Data", required=True),
        column("weekday", TEXT, "Dia"),
        column("net_revenue", NUMBER, "Total Líquido", "Total Líq.", "Total Liq"),
        column("revenue", NUMBER, "Total Final", "Total Bruto", required=True),
        column("zone", TEXT, "Zona", required=True),
    ),
)

HOURLY = ReportSchema(
    ReportKind.HOURLY,
    (
        STORE,
        column("zone", TEXT, "Zona", required=True),
        column("date", DATE, "Data", required=True),
        column("time_slot", TIME, "Hora", required=True),
        column("ticket_count", INTEGER, "Nº Tickets", "Tickets"),
        column("customer_count", INTEGER, "Nº Pessoas", "Pessoas", "Nº Clientes"),
        column("net_revenue", NUMBER, "Total Líquido", "Total Líq.", "Total Liq"),
        column("gross_revenue", NUMBER, "Total Final", "Total Bruto", required=True),
    ),
)

ARTICLES = ReportSchema(
    ReportKind.ARTICLES,
    (
        STORE,
        column("date", DATE, "Data"),
        column("article_code", TEXT, "Cód. Artigo", "Cod Artigo", "Código Artigo", required=True),
        column("article_name", TEXT, "Artigo", "Descrição", required=True),
        column("barcode", TEXT, "Cód. Barras", "Código de Barras"),
        column("family", TEXT, "Família", "Familia"),
        column("subfamily", TEXT, "Sub-Família", "Subfamília", "Sub Família"),
        column("quantity", NUMBER, "Qtd.", "Quantidade", required=True),
        column("net_value", NUMBER, "Total Líquido", "Total Líq.", "Total Liq"),
        column("gross_value", NUMBER, "Total Final", "Total Bruto", required=True),
    ),
)

ABC_RANKING = ReportSchema(
    ReportKind.ABC_RANKING,
    (
        STORE,
        column("date", DATE, "Data", required=True),
        column("article_code", TEXT, "Cód. Artigo", "Cod Artigo", "Código Artigo", required=True),
        column("article_name", TEXT, "Artigo", "Descrição", required=True),
        column("barcode", TEXT, "Cód. Barras", "Código de Barras"),
        column("quantity", NUMBER, "Qtd.", "Quantidade", required=True),
        column("qty_pct", NUMBER, "% Qtd.", "%Qtd", "Qtd. %", "% Quantidade"),
        column("net_value", NUMBER, "Valor Líq.", "Valor Líquido", "Val. Líq."),
        column("gross_value", NUMBER, "Valor Final", "Valor Bruto", "Valor", required=True),
        column("value_pct", NUMBER, "% Valor", "%Valor"),
        column("cumulative_value", NUMBER, "Valor Acumulado"),
        column("cumulative_pct", NUMBER, "% Acumulado", "%Acumulado", required=True),
        column("ranking", INTEGER, "Ranking", required=True),
        column("abc_class", TEXT, "ABC", "Classe"),
    ),
)

# Orden de prioridad para desempatar huellas con el mismo numero de columnas.
SCHEMAS: tuple[ReportSchema, ...] = (ABC_RANKING, HOURLY, ARTICLES, ZONES, FULL_SETTLEMENT)

SCHEMA_BY_KIND: dict[ReportKind, ReportSchema] = {schema.kind: schema for schema in SCHEMAS}
