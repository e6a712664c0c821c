"""Conversion de celdas con formato local (pt-PT) a registros canonicos."""

from __future__ import annotations

import logging
import math
import numbers
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Optional, Sequence

import pandas as pd

from .errors import RowParseError
from .models import (
    AbcSnapshotRow,
    ArticleSaleRecord,
    DailySettlementRecord,
    HourlySlotRecord,
    ReportKind,
    ZoneRecord,
)

logger = logging.getLogger(__name__)


# Nombres de tienda tal como los escribe el POS -> identificador interno.
STORE_MAP = {
    "Lupita Pizza - Cais do Sodre (1)": "cais_do_sodre",
    "Lupita Pizza - Alvalade (2)": "alvalade",
}

ZONE_NAMES = {
    "sala": "Sala",
    "delivery": "Delivery",
    "takeaway": "Takeaway",
    "espera": "Espera",
    "eventos": "Eventos",
}
DEFAULT_ZONE = "Outros"

SUBTOTAL_PREFIXES = ("Loja -", "Zona -", "Data -", "Hora -")
COMPANY_FOOTER_PREFIXES = ("NIF", "MPDF")

EXCEL_EPOCH = date(1899, 12, 30)
ABC_THRESHOLDS = (0.70, 0.90)

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_LOCAL_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_THOUSANDS_ONLY = re.compile(r"^-?\d{1,3}(\.\d{3})+$")
_TIME_TEXT = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")


# ---------------------------------------------------------------- celdas

def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_text(value: Any) -> str:
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def format_code(value: Any) -> str:
    """Codigos numericos llegan como float desde Excel (12.0 -> "12")."""
    if is_blank(value):
        return ""
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        as_int = int(value)
        return str(as_int) if as_int == value else str(value)
    return str(value).strip()


def parse_number(value: Any) -> Optional[float]:
    """Interpreta numeros con coma decimal, separador de miles y simbolos.

    Devuelve ``None`` para celdas vacias y lanza ``ValueError`` si el texto
    no es numerico.
    """
    if is_blank(value):
        return None
    if isinstance(value, numbers.Real):
        result = float(value)
    else:
        result = _parse_number_text(str(value))
    if result is not None and not math.isfinite(result):
        raise ValueError(f"Numero no finito: {value!r}")
    return result


def _parse_number_text(text: str) -> Optional[float]:
    text = text.strip()
    for symbol in ("€", "%", "\xa0", " "):
        text = text.replace(symbol, "")
    if text in ("", "-"):
        return None
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    elif _THOUSANDS_ONLY.match(text):
        text = text.replace(".", "")
    return float(text)


def parse_date(value: Any) -> Optional[date]:
    """Acepta Timestamp, numero de serie de Excel, ISO y ``dd/mm/yyyy``."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if 20000 < value < 80000:
            return EXCEL_EPOCH + timedelta(days=int(value))
        return None
    text = str(value).strip()
    try:
        match = _ISO_DATE.match(text)
        if match:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        match = _LOCAL_DATE.match(text)
        if match:
            return date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
    except ValueError:
        return None
    return None


def parse_time_slot(value: Any) -> Optional[str]:
    """Normaliza la hora a ``HH:MM`` (fraccion de dia de Excel o texto)."""
    if is_blank(value):
        return None
    if isinstance(value, (datetime, time)):
        return f"{value.hour:02d}:{value.minute:02d}"
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if not 0 <= value < 1:
            return None
        minutes = round(float(value) * 24 * 60)
        return f"{minutes // 60:02d}:{minutes % 60:02d}"
    match = _TIME_TEXT.match(str(value).strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return f"{hours:02d}:{minutes:02d}"


def slugify(name: str) -> str:
    text = unicodedata.normalize("NFKD", name)
    text = "".join(char for char in text if not unicodedata.combining(char)).lower()
    return re.sub(r"[^a-z0-9]+", "_", text).strip("_")


def resolve_store_id(raw_name: str) -> str:
    name = raw_name.strip()
    return STORE_MAP.get(name) or slugify(name)


def normalize_zone(raw: Any) -> str:
    text = clean_text(raw)
    if text in ("", "-"):
        return DEFAULT_ZONE
    return ZONE_NAMES.get(text.casefold(), text)


def abc_class_for(cumulative_pct: float) -> str:
    """Clase ABC por porcentaje acumulado: A hasta 70%, B hasta 90%."""
    if cumulative_pct <= ABC_THRESHOLDS[0] + 1e-9:
        return "A"
    if cumulative_pct <= ABC_THRESHOLDS[1] + 1e-9:
        return "B"
    return "C"


def exclude_reason(article_name: str, article_code: str, qty: float, gross_value: float) -> Optional[str]:
    if article_name.startswith("@"):
        return "modifier"
    if article_code.startswith("-"):
        return "system_fee"
    if gross_value == 0 and qty == 0:
        return "zero_sales"
    if gross_value == 0 and qty > 0:
        return "no_price"
    return None


def as_fraction(value: float) -> float:
    """Algunos reportes traen porcentajes 0-100 en lugar de 0-1."""
    return value / 100 if value > 1 else value


# ---------------------------------------------------------------- filas

def row_marker(row: Sequence[Any], store_index: int) -> Optional[str]:
    """Clasifica filas estructurales: ``end``, ``skip`` o ``None`` si es dato."""
    first = clean_text(row[store_index]) if store_index < len(row) else ""
    if first.startswith(SUBTOTAL_PREFIXES):
        return "skip"
    if first.startswith("Total"):
        return "end"
    if any(clean_text(cell).startswith("Total Global") for cell in row[:3]):
        return "end"
    if not first:
        return "skip"
    if first.startswith(COMPANY_FOOTER_PREFIXES) or "UNIPESSOAL" in first:
        return "skip"
    return None


@dataclass(slots=True)
class RowResult:
    """Registro canonico de una fila o senal de descarte (con avisos)."""

    record: Any = None
    warnings: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.record is None


class RowNormalizer:
    """Convierte filas crudas de un tipo de reporte en registros canonicos."""

    def __init__(
        self,
        kind: ReportKind,
        columns: dict[str, int],
        *,
        today: Optional[date] = None,
        period: tuple[Optional[date], Optional[date]] = (None, None),
    ) -> None:
        self.kind = kind
        self.columns = columns
        self.today = today or date.today()
        self.period = period
        self._handlers: dict[ReportKind, Callable[[Sequence[Any], int, list[str]], Any]] = {
            ReportKind.FULL_SETTLEMENT: self._settlement,
            ReportKind.ZONES: self._zone,
            ReportKind.HOURLY: self._hourly,
            ReportKind.ARTICLES: self._article,
            ReportKind.ABC_RANKING: self._abc,
        }
        if kind not in self._handlers:
            raise ValueError(f"No hay normalizador para {kind.value}")

    def normalize(self, row: Sequence[Any], line: int) -> RowResult:
        """``line`` es el numero de fila tal como lo ve el operador en Excel."""
        warnings: list[str] = []
        try:
            record = self._handlers[self.kind](row, line, warnings)
        except RowParseError as exc:
            logger.debug("Fila descartada: %s", exc)
            warnings.append(str(exc))
            return RowResult(None, warnings)
        return RowResult(record, warnings)

    # -- helpers

    def _cell(self, row: Sequence[Any], name: str) -> Any:
        idx = self.columns.get(name)
        if idx is None or idx >= len(row):
            return None
        return row[idx]

    def _number(self, row: Sequence[Any], name: str, line: int, warnings: list[str]) -> float:
        raw = self._cell(row, name)
        try:
            value = parse_number(raw)
        except ValueError:
            warnings.append(f"Fila {line}: valor no numerico en '{name}' ({raw!r}), se usa 0")
            return 0.0
        return 0.0 if value is None else value

    def _integer(self, row: Sequence[Any], name: str, line: int, warnings: list[str]) -> int:
        return int(round(self._number(row, name, line, warnings)))

    def _store(self, row: Sequence[Any], line: int) -> str:
        raw = clean_text(self._cell(row, "store"))
        store_id = resolve_store_id(raw) if raw else ""
        if not store_id:
            raise RowParseError(line, f"tienda invalida {raw!r}")
        return store_id

    def _date(self, row: Sequence[Any], line: int) -> date:
        raw = self._cell(row, "date")
        parsed = parse_date(raw)
        if parsed is None:
            raise RowParseError(line, f"fecha invalida {raw!r}")
        return parsed

    # -- un handler por tipo; devuelven None para filas que no son datos

    def _settlement(self, row: Sequence[Any], line: int, warnings: list[str]) -> Optional[DailySettlementRecord]:
        store_id = self._store(row, line)
        day = self._date(row, line)
        if day > self.today:
            return None
        tickets = self._integer(row, "ticket_count", line, warnings)
        return DailySettlementRecord(
            store_id=store_id,
            date=day,
            gross_revenue=self._number(row, "gross_revenue", line, warnings),
            net_revenue=self._number(row, "net_revenue", line, warnings),
            vat=self._number(row, "vat", line, warnings),
            ticket_count=tickets,
            customer_count=self._integer(row, "customer_count", line, warnings),
            item_qty=self._number(row, "item_qty", line, warnings),
            target_revenue=self._number(row, "target_revenue", line, warnings),
            is_closed=tickets == 0,
        )

    def _zone(self, row: Sequence[Any], line: int, warnings: list[str]) -> Optional[ZoneRecord]:
        store_id = self._store(row, line)
        day = self._date(row, line)
        if day > self.today:
            return None
        return ZoneRecord(
            store_id=store_id,
            date=day,
            zone=normalize_zone(self._cell(row, "zone")),
            revenue=self._number(row, "revenue", line, warnings),
            net_revenue=self._number(row, "net_revenue", line, warnings),
        )

    def _hourly(self, row: Sequence[Any], line: int, warnings: list[str]) -> Optional[HourlySlotRecord]:
        raw_zone = clean_text(self._cell(row, "zone"))
        raw_hour = self._cell(row, "time_slot")
        # Sin zona u hora es un subtotal del reporte.
        if raw_zone in ("", "-") or is_blank(raw_hour):
            return None
        store_id = self._store(row, line)
        day = self._date(row, line)
        if day > self.today:
            return None
        slot = parse_time_slot(raw_hour)
        if slot is None:
            raise RowParseError(line, f"hora invalida {raw_hour!r}")
        return HourlySlotRecord(
            store_id=store_id,
            date=day,
            zone=normalize_zone(raw_zone),
            time_slot=slot,
            ticket_count=self._integer(row, "ticket_count", line, warnings),
            customer_count=self._integer(row, "customer_count", line, warnings),
            net_revenue=self._number(row, "net_revenue", line, warnings),
            gross_revenue=self._number(row, "gross_revenue", line, warnings),
        )

    def _article(self, row: Sequence[Any], line: int, warnings: list[str]) -> Optional[ArticleSaleRecord]:
        code = format_code(self._cell(row, "article_code"))
        name = clean_text(self._cell(row, "article_name"))
        if not code or not name or name.startswith("@"):
            return None
        gross = self._number(row, "gross_value", line, warnings)
        if gross == 0:
            return None
        store_id = self._store(row, line)
        if "date" in self.columns:
            start = end = self._date(row, line)
        else:
            start, end = self.period
            if start is None or end is None:
                raise RowParseError(line, "el reporte no indica el periodo")
        return ArticleSaleRecord(
            store_id=store_id,
            period_start=start,
            period_end=end,
            article_code=code,
            article_name=name,
            family=clean_text(self._cell(row, "family")),
            subfamily=clean_text(self._cell(row, "subfamily")),
            quantity=self._number(row, "quantity", line, warnings),
            net_value=self._number(row, "net_value", line, warnings),
            gross_value=gross,
        )

    def _abc(self, row: Sequence[Any], line: int, warnings: list[str]) -> Optional[AbcSnapshotRow]:
        code = format_code(self._cell(row, "article_code"))
        name = clean_text(self._cell(row, "article_name"))
        if not code or not name:
            return None
        store_id = self._store(row, line)
        day = self._date(row, line)
        qty = self._number(row, "quantity", line, warnings)
        gross = self._number(row, "gross_value", line, warnings)
        cumulative_pct = as_fraction(self._number(row, "cumulative_pct", line, warnings))
        reason = exclude_reason(name, code, qty, gross)
        file_class = clean_text(self._cell(row, "abc_class")).upper()
        if reason:
            abc_class = ""
        else:
            abc_class = file_class if file_class in ("A", "B", "C") else abc_class_for(cumulative_pct)
        return AbcSnapshotRow(
            store_id=store_id,
            date=day,
            article_code=code,
            article_name=name,
            quantity=qty,
            qty_pct=as_fraction(self._number(row, "qty_pct", line, warnings)),
            net_value=self._number(row, "net_value", line, warnings),
            gross_value=gross,
            value_pct=as_fraction(self._number(row, "value_pct", line, warnings)),
            cumulative_value=self._number(row, "cumulative_value", line, warnings),
            cumulative_pct=cumulative_pct,
            ranking=self._integer(row, "ranking", line, warnings),
            abc_class=abc_class,
            exclude_reason=reason,
        )
