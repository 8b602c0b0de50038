from __future__ import annotations

from typing import Any, Dict, List

from ..domain.models import DailyTotal, EmployeeTotal, from_cents
from ..logging import get_logger
from .db import RecordStore


LOG = get_logger("records-stats")

DAILY_WINDOW = 7


class AggregationEngine:
    """Read-only rollups over the record store, recomputed on every call.

    SQLite picks the groups; the sums are accumulated as Python ints so a
    large history can never hit SQLite's 64-bit SUM overflow.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def daily_totals(self, limit: int = DAILY_WINDOW) -> List[DailyTotal]:
        """Bread and cash sums for the most recent `limit` dates that have records."""
        totals: Dict[str, List[int]] = {}
        with self.store.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT DISTINCT substr(captured_at, 1, 10) AS date
                FROM records
                ORDER BY date DESC
                LIMIT ?;
                """,
                (int(limit),),
            )
            dates = [row["date"] for row in cur.fetchall()]
            if not dates:
                return []
            cur.execute(
                """
                SELECT substr(captured_at, 1, 10) AS date, bread_count, cash_amount_cents
                FROM records
                WHERE captured_at >= ?;
                """,
                (dates[-1],),
            )
            for row in cur:
                bucket = totals.setdefault(row["date"], [0, 0])
                bucket[0] += int(row["bread_count"])
                bucket[1] += int(row["cash_amount_cents"])
        return [
            DailyTotal(date=date, total=totals[date][0], total_cash=from_cents(totals[date][1]))
            for date in dates
        ]

    def employee_totals(self) -> List[EmployeeTotal]:
        """All-time sums per employee name snapshot, biggest bread total first."""
        totals: Dict[str, List[int]] = {}
        with self.store.connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT employee_name, bread_count, cash_amount_cents FROM records;")
            for row in cur:
                bucket = totals.setdefault(row["employee_name"], [0, 0])
                bucket[0] += int(row["bread_count"])
                bucket[1] += int(row["cash_amount_cents"])
        ordered = sorted(totals.items(), key=lambda item: (-item[1][0], item[0]))
        return [
            EmployeeTotal(employee_name=name, total=bread, total_cash=from_cents(cents))
            for name, (bread, cents) in ordered
        ]

    def statistics(self) -> Dict[str, List[Dict[str, Any]]]:
        daily = self.daily_totals()
        employees = self.employee_totals()
        LOG.debug("Computed statistics: %d day row(s), %d employee row(s)", len(daily), len(employees))
        return {
            "daily_totals": [d.as_dict() for d in daily],
            "employee_totals": [e.as_dict() for e in employees],
        }
