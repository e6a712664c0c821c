from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from sales_ledger.database import LedgerStore

CAIS = "Lupita Pizza - Cais do Sodre (1)"
ALVALADE = "Lupita Pizza - Alvalade (2)"

SETTLEMENT_HEADER = [
    "Loja", "Data", "Dia", "Nº Tickets", "Nº Clientes", "Qtd. Artigos",
    "Total Líquido", "IVA", "Total Final", "Objetivo",
]
ARTICLES_HEADER = [
    "Loja", "Cód. Artigo", "Artigo", "Família", "Sub-Família", "Qtd.", "Total Líquido", "Total Final",
]
ABC_HEADER = [
    "Loja", "Data", "Cód. Artigo", "Artigo", "Qtd.", "% Qtd.", "Valor", "% Valor",
    "% Acumulado", "Ranking", "ABC",
]


@pytest.fixture
def store():
    ledger = LedgerStore()
    yield ledger
    ledger.close()


@pytest.fixture
def write_xlsx(tmp_path: Path):
    """Escribe filas crudas (sin encabezado de pandas) en un .xlsx real."""

    def _write(name: str, rows: list[list], directory: Path | None = None) -> Path:
        path = (directory or tmp_path) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(rows).to_excel(path, header=False, index=False)
        return path

    return _write


@pytest.fixture
def settlement_rows() -> list[list]:
    return [
        ["Apuramento Completo"],
        SETTLEMENT_HEADER,
        [CAIS, "01/03/2025", "Sab", 120, 150, 300, "1.000,50", "230,12", "1.230,62", 1500],
        [CAIS, "02/03/2025", "Dom", 0, 0, 0, 0, 0, 0, 1500],
        [ALVALADE, "01/03/2025", "Sab", 80, 95, 210, "800,00", "184,00", "984,00", 1200],
        ["Loja - Lupita Pizza - Cais do Sodre (1)", None, None, 120, 150, 300, 1000.5, 230.12, 1230.62],
        ["Total", None, None, 200, 245, 510, 1800.5, 414.12, 2214.62],
    ]


@pytest.fixture
def article_rows() -> list[list]:
    return [
        ["Vendas por Artigo", None, "01-03-2025 a 31-03-2025"],
        ARTICLES_HEADER,
        [CAIS, 10, "Margherita", "PIZZAS", "", 2, "16,26", "20,00"],
        [CAIS, 10, "Margherita", "PIZZAS", "", 3, "24,39", "30,00"],
        [CAIS, 11, "@ Extra queijo", "EXTRAS", "", 4, "3,25", "4,00"],
        [CAIS, 12, "Agua", "BEBIDAS", "", 1, 0, 0],
        [CAIS, 20, "Margherita", "DELIVERY", "03 | Pizzas", 1, "9,76", "12,00"],
        [CAIS, 30, "Tiramisu", "SOBREMESAS", "", 6, "29,27", "36,00"],
        ["Total Global", None, None, None, None, 17, 82.93, 102.0],
    ]


@pytest.fixture
def abc_rows() -> list[list]:
    return [
        ["ABC de Artigos", None, "01-03-2025 a 31-03-2025"],
        ABC_HEADER,
        [CAIS, "31/03/2025", 10, "Margherita", 50, "50,0", "700,00", "70,0", "70,0", 1, "A"],
        [CAIS, "31/03/2025", 30, "Tiramisu", 30, "30,0", "200,00", "20,0", "90,0", 2, "B"],
        [CAIS, "31/03/2025", 40, "@ Sem cebola", 20, "20,0", 0, 0, "90,0", 3, ""],
    ]
