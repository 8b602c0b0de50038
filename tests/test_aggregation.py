from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from breadcount.records import AggregationEngine, RecordStore

from fakes import IMAGE, stepping_clock


def _seed(store: RecordStore, rows) -> None:
    for employee_id, name, count, cash in rows:
        store.insert_record(
            employee_id=employee_id,
            employee_name=name,
            provider_name="",
            bread_count=count,
            cash_amount=Decimal(cash),
            image_payload=IMAGE,
        )


def test_empty_store_has_no_rows(db_path: str) -> None:
    engine = AggregationEngine(RecordStore(db_path=db_path))
    assert engine.daily_totals() == []
    assert engine.employee_totals() == []
    assert engine.statistics() == {"daily_totals": [], "employee_totals": []}


def test_daily_totals_keep_the_latest_seven_dates(db_path: str) -> None:
    days = [f"2025-03-{d:02d}" for d in range(1, 10)]
    stamps = []
    rows = []
    for i, day in enumerate(days, start=1):
        stamps += [f"{day}T08:00:00", f"{day}T17:30:00"]
        rows += [("1", "Ana", i, "0.10"), ("2", "Bruno", 1, "0.20")]
    store = RecordStore(db_path=db_path, clock=stepping_clock(*stamps))
    _seed(store, rows)

    daily = AggregationEngine(store).daily_totals()
    assert [d.date for d in daily] == list(reversed(days))[:7]
    latest = daily[0]
    assert latest.total == 9 + 1
    # Exact decimal sums, no float drift
    assert latest.total_cash == Decimal("0.30")
    assert latest.as_dict() == {"date": "2025-03-09", "total": 10, "total_cash": 0.3}


def test_dates_without_records_are_absent(db_path: str) -> None:
    store = RecordStore(
        db_path=db_path,
        clock=stepping_clock("2025-03-01T09:00:00", "2025-03-04T09:00:00"),
    )
    _seed(store, [("1", "Ana", 2, "5"), ("1", "Ana", 3, "0")])
    daily = AggregationEngine(store).daily_totals()
    assert [(d.date, d.total) for d in daily] == [("2025-03-04", 3), ("2025-03-01", 2)]


def test_employee_totals_ordered_by_bread_total(db_path: str) -> None:
    store = RecordStore(db_path=db_path)
    _seed(
        store,
        [
            ("1", "Ana", 3, "1500"),
            ("2", "Bruno", 10, "200"),
            ("1", "Ana", 4, "0"),
            ("3", "Carla", 0, "99.99"),
        ],
    )
    rows = [e.as_dict() for e in AggregationEngine(store).employee_totals()]
    assert rows == [
        {"employee_name": "Bruno", "total": 10, "total_cash": 200},
        {"employee_name": "Ana", "total": 7, "total_cash": 1500},
        {"employee_name": "Carla", "total": 0, "total_cash": 99.99},
    ]


def test_employee_totals_do_not_depend_on_insert_order(tmp_path: Path) -> None:
    rows = [
        ("1", "Ana", 3, "1.10"),
        ("2", "Bruno", 2, "2.20"),
        ("1", "Ana", 5, "3.30"),
        ("2", "Bruno", 6, "4.40"),
    ]
    forward = RecordStore(db_path=str(tmp_path / "forward.sqlite3"))
    backward = RecordStore(db_path=str(tmp_path / "backward.sqlite3"))
    _seed(forward, rows)
    _seed(backward, list(reversed(rows)))

    assert AggregationEngine(forward).employee_totals() == AggregationEngine(backward).employee_totals()


def test_sums_past_sqlite_integer_range_stay_exact(db_path: str) -> None:
    store = RecordStore(db_path=db_path)
    # Two rows whose cent total is larger than a signed 64-bit integer
    cents = 6_000_000_000_000_000_000
    with store.connect() as conn:
        conn.executemany(
            """
            INSERT INTO records (employee_id, employee_name, provider_name, bread_count,
                                 cash_amount_cents, image_payload, captured_at)
            VALUES (?, ?, '', ?, ?, ?, '2025-03-01T08:00:00');
            """,
            [("1", "Ana", 1_000_000_000, cents, IMAGE), ("1", "Ana", 1_000_000_000, cents, IMAGE)],
        )
        conn.commit()

    engine = AggregationEngine(store)
    [day] = engine.daily_totals()
    [ana] = engine.employee_totals()
    assert day.total == ana.total == 2_000_000_000
    assert day.total_cash == ana.total_cash == Decimal("120000000000000000")
    assert engine.statistics()["employee_totals"][0]["total_cash"] == 120000000000000000
