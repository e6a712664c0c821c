"""Configuracion leida de variables de entorno (y de un .env opcional)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DB = BASE_DIR / "ventas_ledger.sqlite3"
DEFAULT_DATA_DIR = BASE_DIR / "data"

VALUE_BASES = ("gross", "net")


@dataclass(frozen=True, slots=True)
class Settings:
    db_path: Path = DEFAULT_DB
    inbox_dir: Path = DEFAULT_DATA_DIR / "inbox"
    processed_dir: Path = DEFAULT_DATA_DIR / "processed"
    errors_dir: Path = DEFAULT_DATA_DIR / "errors"
    # Dias sin ventas (respecto al fin de la consulta) para marcar inactivo.
    inactive_after_days: int = 30
    value_basis: str = "gross"
    evolution_top_n: int = 10
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.value_basis not in VALUE_BASES:
            raise ValueError(f"value_basis debe ser uno de {VALUE_BASES}, no {self.value_basis!r}")
        if self.inactive_after_days < 0:
            raise ValueError("inactive_after_days no puede ser negativo")


def load_settings(env_file: str | os.PathLike[str] | None = None) -> Settings:
    load_dotenv(env_file)
    defaults = Settings()
    data_dir = Path(os.getenv("SALES_LEDGER_DATA_DIR", DEFAULT_DATA_DIR))
    return Settings(
        db_path=Path(os.getenv("SALES_LEDGER_DB", defaults.db_path)),
        inbox_dir=Path(os.getenv("SALES_LEDGER_INBOX", data_dir / "inbox")),
        processed_dir=Path(os.getenv("SALES_LEDGER_PROCESSED", data_dir / "processed")),
        errors_dir=Path(os.getenv("SALES_LEDGER_ERRORS", data_dir / "errors")),
        inactive_after_days=int(os.getenv("SALES_LEDGER_INACTIVE_DAYS", defaults.inactive_after_days)),
        value_basis=os.getenv("SALES_LEDGER_VALUE_BASIS", defaults.value_basis).lower(),
        evolution_top_n=int(os.getenv("SALES_LEDGER_EVOLUTION_TOP_N", defaults.evolution_top_n)),
        log_level=os.getenv("SALES_LEDGER_LOG_LEVEL", defaults.log_level).upper(),
    )
