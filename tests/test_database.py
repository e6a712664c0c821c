from __future__ import annotations

import threading
from datetime import date

import pytest

from sales_ledger.database import LedgerStore
from sales_ledger.models import AbcSnapshotRow, ArticleSaleRecord, DailySettlementRecord, ReportKind, ZoneRecord


def settlement(day: int, gross: float, store_id: str = "alvalade") -> DailySettlementRecord:
    return DailySettlementRecord(store_id, date(2025, 3, day), gross_revenue=gross, ticket_count=10)


def test_upsert_counts_and_overwrites(store):
    assert store.upsert(ReportKind.FULL_SETTLEMENT, [settlement(1, 100), settlement(2, 200)]) == (2, 0)
    assert store.upsert(ReportKind.FULL_SETTLEMENT, [settlement(2, 250), settlement(3, 300)]) == (1, 1)

    rows = store.fetch_records(ReportKind.FULL_SETTLEMENT)
    assert [(r.date.day, r.gross_revenue) for r in rows] == [(1, 100), (2, 250), (3, 300)]


def test_upsert_is_idempotent(store):
    records = [ZoneRecord("alvalade", date(2025, 3, 1), "Sala", 90.0, 73.2)]
    store.upsert(ReportKind.ZONES, records)
    before = store.fetch_records(ReportKind.ZONES)

    assert store.upsert(ReportKind.ZONES, records) == (0, 1)
    assert store.fetch_records(ReportKind.ZONES) == before


def test_upsert_only_touches_its_keys(store):
    store.upsert(ReportKind.FULL_SETTLEMENT, [settlement(1, 100, "cais_do_sodre"), settlement(1, 50)])
    store.upsert(ReportKind.FULL_SETTLEMENT, [settlement(1, 75)])

    rows = {r.store_id: r.gross_revenue for r in store.fetch_records(ReportKind.FULL_SETTLEMENT)}
    assert rows == {"cais_do_sodre": 100, "alvalade": 75}


def test_abc_snapshot_rows_are_not_upserted(store):
    with pytest.raises(ValueError):
        store.upsert(ReportKind.ABC_RANKING, [])


def test_article_sales_overlap_query(store):
    march = ArticleSaleRecord("alvalade", date(2025, 3, 1), date(2025, 3, 31), "10", "Margherita", gross_value=10)
    day = ArticleSaleRecord("cais_do_sodre", date(2025, 4, 2), date(2025, 4, 2), "10", "Margherita", gross_value=5)
    store.upsert(ReportKind.ARTICLES, [march, day])

    assert store.fetch_article_sales(date(2025, 3, 15), date(2025, 3, 20)) == [march]
    assert store.fetch_article_sales(date(2025, 3, 1), date(2025, 4, 30), store_id="cais_do_sodre") == [day]
    assert store.fetch_article_sales(date(2025, 5, 1), date(2025, 5, 31)) == []


def test_abc_snapshot_replaced_as_a_whole(store):
    first = [
        AbcSnapshotRow("alvalade", date(2025, 3, 31), "10", "Margherita", ranking=1, abc_class="A"),
        AbcSnapshotRow("alvalade", date(2025, 3, 31), "30", "Tiramisu", ranking=2, abc_class="B"),
    ]
    second = [
        AbcSnapshotRow("alvalade", date(2025, 3, 31), "10", "Margherita", ranking=2, abc_class="B"),
        AbcSnapshotRow("alvalade", date(2025, 3, 31), "50", "Calzone", ranking=1, abc_class="A"),
    ]
    start, end = date(2025, 3, 1), date(2025, 3, 31)

    assert store.replace_abc_snapshot(start, end, first, filename="a.xlsx") == (2, 0)
    assert store.replace_abc_snapshot(start, end, second, filename="b.xlsx") == (1, 1)

    rows = store.fetch_abc_snapshot(start, end)
    assert [(r.article_code, r.ranking) for r in rows] == [("50", 1), ("10", 2)]


def test_concurrent_writers_on_same_key(tmp_path):
    ledger = LedgerStore(tmp_path / "ledger.sqlite3")
    try:
        threads = [
            threading.Thread(target=ledger.upsert, args=(ReportKind.FULL_SETTLEMENT, [settlement(1, float(i))]))
            for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        rows = ledger.fetch_records(ReportKind.FULL_SETTLEMENT)
        assert len(rows) == 1
        assert rows[0].gross_revenue in {float(i) for i in range(8)}
    finally:
        ledger.close()
