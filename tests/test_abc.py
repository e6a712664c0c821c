from __future__ import annotations

from datetime import date, timedelta
from itertools import product

import pytest

from sales_ledger import abc
from sales_ledger.models import ArticleSaleRecord

START = date(2025, 3, 1)
END = date(2025, 3, 31)


def sale(name, value, qty=1.0, code=None, store_id="alvalade", start=START, end=END, net=None):
    return ArticleSaleRecord(
        store_id=store_id,
        period_start=start,
        period_end=end,
        article_code=code or name[:3].upper(),
        article_name=name,
        quantity=qty,
        net_value=value if net is None else net,
        gross_value=value,
    )


def by_name(aggregates):
    return {item.article_name: item for item in aggregates}


def test_pizza_pasta_salad():
    ranked = abc.rank_articles(
        [sale("Pizza", 700, qty=10), sale("Pasta", 200, qty=30), sale("Salad", 100, qty=60)],
        date_to=END,
    )

    assert [a.article_name for a in ranked] == ["Pizza", "Pasta", "Salad"]
    assert [a.value_class for a in ranked] == ["A", "B", "C"]
    assert [a.cumulative_value_pct for a in ranked] == pytest.approx([0.7, 0.9, 1.0])
    items = by_name(ranked)
    assert items["Salad"].qty_rank == 1
    assert items["Salad"].qty_class == "A"
    assert items["Pizza"].qty_class == "C"
    assert [items[name].dual_class for name in ("Pizza", "Pasta", "Salad")] == ["AC", "BB", "CA"]


def test_same_name_merges_codes():
    ranked = abc.rank_articles(
        [
            sale("Pizza Margherita", 30, code="10"),
            sale("pizza  margherita", 20, code="20"),
            sale("Tiramisu", 10, code="30"),
        ]
    )

    assert len(ranked) == 2
    top = ranked[0]
    assert top.article_name == "Pizza Margherita"
    assert top.merged_codes == {"10", "20"}
    assert top.code_count == 2
    assert top.total_value == 50
    assert top.total_qty == 2


def test_shares_add_up_and_cumulative_is_monotonic():
    values = [120.5, 80.25, 80.25, 40, 13.3, 7, 0.5, 0]
    ranked = abc.rank_articles([sale(f"Artigo {i}", v, qty=i + 1) for i, v in enumerate(values)])

    assert sum(a.value_pct for a in ranked) == pytest.approx(1.0)
    cumulative = [a.cumulative_value_pct for a in ranked]
    assert cumulative == sorted(cumulative)
    assert cumulative[-1] == pytest.approx(1.0)
    assert [a.value_rank for a in ranked] == list(range(1, len(values) + 1))
    assert sorted(a.qty_rank for a in ranked) == list(range(1, len(values) + 1))


def test_ties_break_by_name():
    ranked = abc.rank_articles([sale("Calzone", 50), sale("Bruschetta", 50), sale("Agua", 10)])
    assert [a.article_name for a in ranked] == ["Bruschetta", "Calzone", "Agua"]


def test_zero_total_is_all_a():
    ranked = abc.rank_articles([sale("Pizza", 0, qty=0), sale("Pasta", 0, qty=0)])
    assert {a.dual_class for a in ranked} == {"AA"}
    assert all(a.value_pct == 0 for a in ranked)


def test_net_value_basis():
    ranked = abc.rank_articles(
        [sale("Pizza", 100, net=10), sale("Pasta", 50, net=40)],
        value_basis="net",
    )
    assert [a.article_name for a in ranked] == ["Pasta", "Pizza"]


def test_empty_input():
    assert abc.rank_articles([]) == []


@pytest.mark.parametrize("value_class, qty_class", list(product("ABC", repeat=2)))
def test_classify_all_combinations(value_class, qty_class):
    assert abc.classify(value_class, qty_class) == value_class + qty_class


@pytest.mark.parametrize("value_class, qty_class", [("D", "A"), ("A", ""), ("a", "b")])
def test_classify_rejects_unknown_letters(value_class, qty_class):
    with pytest.raises(ValueError):
        abc.classify(value_class, qty_class)


def test_inactive_and_last_sale_date():
    ranked = abc.rank_articles(
        [
            sale("Antigo", 10, start=date(2025, 2, 1), end=date(2025, 2, 20)),
            sale("Recente", 10, start=date(2025, 3, 10), end=date(2025, 3, 15)),
            sale("Mensal", 10, start=START, end=END),
        ],
        date_to=date(2025, 3, 20),
        inactive_after_days=15,
    )
    items = by_name(ranked)

    assert items["Antigo"].inactive
    assert not items["Recente"].inactive
    assert items["Mensal"].last_sale_date == date(2025, 3, 20)


def test_concentration():
    ranked = abc.rank_articles([sale("Pizza", 700), sale("Pasta", 200), sale("Salad", 100)])
    summary = abc.concentration(ranked)

    assert summary.total_articles == 3
    assert summary.total_value == 1000
    assert summary.top5_pct == pytest.approx(1.0)
    assert summary.top10_value == 1000


def test_concentration_top_five_of_many():
    ranked = abc.rank_articles([sale(f"Artigo {i:02d}", 10) for i in range(20)])
    summary = abc.concentration(ranked)

    assert summary.top5_value == 50
    assert summary.top5_pct == pytest.approx(0.25)
    assert summary.top20_pct == pytest.approx(1.0)


def test_pareto_slice():
    ranked = abc.rank_articles([sale(f"Artigo {i:02d}", 100 - i) for i in range(40)])
    top = abc.pareto(ranked)

    assert len(top) == 30
    assert top[0].article_name == "Artigo 00"


def weekly(name, value, monday):
    return sale(name, value, start=monday, end=monday + timedelta(days=6))


def test_evolution_skips_weeks_without_sales():
    weeks = [date(2025, 3, 3), date(2025, 3, 10), date(2025, 3, 17)]
    records = [
        weekly("Pizza", 100, weeks[0]),
        weekly("Pasta", 50, weeks[0]),
        weekly("Pasta", 50, weeks[1]),
        weekly("Pizza", 10, weeks[2]),
        weekly("Pasta", 50, weeks[2]),
    ]
    points = abc.evolution(records, ["Pizza", "Pasta"])

    pizza = [(p.week_key, p.avg_rank_in_week) for p in points if p.article_name == "Pizza"]
    pasta = [(p.week_key, p.avg_rank_in_week) for p in points if p.article_name == "Pasta"]
    assert pizza == [("2025-W10", 1.0), ("2025-W12", 2.0)]
    assert pasta == [("2025-W10", 2.0), ("2025-W11", 1.0), ("2025-W12", 1.0)]
    assert points[0].week_start == weeks[0]


def test_evolution_ranks_against_all_articles():
    records = [weekly("Calzone", 500, date(2025, 3, 3)), weekly("Pizza", 100, date(2025, 3, 5))]
    points = abc.evolution(records, ["Pizza"])

    assert [(p.article_name, p.avg_rank_in_week) for p in points] == [("Pizza", 2.0)]


def test_compare_stores():
    records = [
        sale("Pizza", 100, store_id="alvalade"),
        sale("Pizza", 60, store_id="cais_do_sodre"),
        sale("Pasta", 90, store_id="cais_do_sodre"),
        sale("pasta", 5, store_id="alvalade"),
    ]

    rows = abc.compare_stores(records)
    assert [(r.store_id, r.article_name, r.total_value) for r in rows] == [
        ("alvalade", "Pizza", 100),
        ("cais_do_sodre", "Pasta", 90),
        ("cais_do_sodre", "Pizza", 60),
        ("alvalade", "Pasta", 5),
    ]

    top = abc.compare_stores(records, top_articles=1)
    assert {(r.store_id, r.article_name) for r in top} == {("alvalade", "Pizza"), ("cais_do_sodre", "Pizza")}


def test_distribution_matrix():
    ranked = abc.rank_articles([sale("Pizza", 700, qty=10), sale("Pasta", 200, qty=30), sale("Salad", 100, qty=60)])
    cells = abc.distribution(ranked)

    assert [cell.label for cell in cells] == ["AA", "AB", "AC", "BA", "BB", "BC", "CA", "CB", "CC"]
    assert sum(cell.count for cell in cells) == 3
    ac = next(cell for cell in cells if cell.label == "AC")
    assert (ac.count, ac.value, ac.value_pct, ac.qty_pct) == (1, 700, pytest.approx(0.7), pytest.approx(0.1))

    value_axis = abc.axis_distribution(ranked, "value")
    assert [(cell.label, cell.count) for cell in value_axis] == [("A", 1), ("B", 1), ("C", 1)]
    with pytest.raises(ValueError):
        abc.axis_distribution(ranked, "margem")


def test_quantity_axis_shares_and_cumulative():
    quantities = [3, 40, 12.5, 12.5, 0, 7, 1]
    ranked = abc.rank_articles([sale(f"Artigo {i}", 10 + i, qty=q) for i, q in enumerate(quantities)])
    by_qty = sorted(ranked, key=lambda a: a.qty_rank)

    assert sum(a.qty_pct for a in ranked) == pytest.approx(1.0)
    cumulative = [a.cumulative_qty_pct for a in by_qty]
    assert cumulative == sorted(cumulative)
    assert cumulative[-1] == pytest.approx(1.0)
    assert [a.total_qty for a in by_qty] == sorted(quantities, reverse=True)


def test_zero_quantity_total_gives_zero_shares():
    ranked = abc.rank_articles([sale("Pizza", 70, qty=0), sale("Pasta", 30, qty=0)])

    assert all(a.qty_pct == 0 and a.cumulative_qty_pct == 0 for a in ranked)
    assert {a.qty_class for a in ranked} == {"A"}
    assert sum(a.value_pct for a in ranked) == pytest.approx(1.0)


def test_concentration_ignores_returns_like_the_ranking():
    records = [sale(f"Artigo {i}", 10) for i in range(5)] + [sale("Devolucao", -10)]
    ranked = abc.rank_articles(records)
    summary = abc.concentration(ranked)

    assert sum(a.value_pct for a in ranked) == pytest.approx(1.0)
    assert ranked[-1].article_name == "Devolucao"
    assert summary.total_value == 50
    assert summary.top5_value == 50
    assert summary.top5_pct == pytest.approx(1.0)
    assert summary.top10_pct == pytest.approx(1.0)
