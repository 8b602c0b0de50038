from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterator, List, Optional

from ..domain.models import MAX_BREAD_COUNT, MAX_CASH_AMOUNT, Record, from_cents, to_cents
from ..logging import get_logger
from ..paths import find_project_root, var_dir


LOG = get_logger("records-db")


DEFAULT_DB_FOLDER = "breadcount"
DEFAULT_DB_FILENAME = "records.sqlite3"
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS records (
  id                 INTEGER PRIMARY KEY AUTOINCREMENT,
  employee_id        TEXT NOT NULL,
  employee_name      TEXT NOT NULL DEFAULT '',   -- snapshot at submission time
  provider_name      TEXT NOT NULL DEFAULT '',
  bread_count        INTEGER NOT NULL CHECK(bread_count >= 0),
  cash_amount_cents  INTEGER NOT NULL DEFAULT 0 CHECK(cash_amount_cents >= 0),
  image_payload      TEXT NOT NULL,
  captured_at        TEXT NOT NULL              -- "YYYY-MM-DDTHH:MM:SS", server-local
);

CREATE INDEX IF NOT EXISTS idx_records_captured_at ON records(captured_at, id);
CREATE INDEX IF NOT EXISTS idx_records_employee    ON records(employee_id, captured_at);
"""

_LIST_COLUMNS = (
    "id, employee_id, employee_name, provider_name, bread_count, cash_amount_cents, captured_at"
)


def local_now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class RecordStore:
    """SQLite-backed append-only store of bread count records.

    - Places the DB under `<repo-root>/var/breadcount/records.sqlite3` unless
      `db_path` is given.
    - Ensures schema on first use.
    - Offers inserts and ordered reads only; records are never updated or deleted.
    """

    def __init__(
        self,
        root_dir: Optional[str] = None,
        *,
        db_path: Optional[str] = None,
        clock: Callable[[], str] = local_now,
    ) -> None:
        if db_path:
            self.db_path = os.path.abspath(db_path)
        else:
            root = find_project_root(root_dir)
            self.db_path = os.path.join(var_dir(root), DEFAULT_DB_FOLDER, DEFAULT_DB_FILENAME)
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        self._clock = clock
        LOG.info(f"Record DB path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.DatabaseError as exc:
                LOG.debug("Could not switch journal mode: %s", exc)
            cur.executescript(SCHEMA_SQL)
            conn.commit()
            LOG.debug("Record DB schema ensured.")

    # --------------- Insert ---------------
    def insert_record(
        self,
        *,
        employee_id: str,
        employee_name: str,
        provider_name: str,
        bread_count: int,
        cash_amount: Decimal,
        image_payload: str,
    ) -> Record:
        """Persist one record in a single statement and return it with its id and timestamp."""
        if not 0 <= bread_count <= MAX_BREAD_COUNT:
            raise ValueError(f"bread_count must be within 0..{MAX_BREAD_COUNT}, got {bread_count}")
        if not Decimal("0") <= cash_amount <= MAX_CASH_AMOUNT:
            raise ValueError(f"cash_amount must be within 0..{MAX_CASH_AMOUNT}, got {cash_amount}")
        captured_at = self._clock()
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO records (
                    employee_id, employee_name, provider_name,
                    bread_count, cash_amount_cents, image_payload, captured_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                RETURNING id;
                """,
                (
                    str(employee_id),
                    employee_name,
                    provider_name,
                    int(bread_count),
                    to_cents(cash_amount),
                    image_payload,
                    captured_at,
                ),
            )
            row = cur.fetchone()
            conn.commit()
        record_id = int(row[0])
        LOG.debug("Inserted record id=%s employee_id=%s bread_count=%s", record_id, employee_id, bread_count)
        return Record(
            record_id=record_id,
            employee_id=str(employee_id),
            employee_name=employee_name,
            provider_name=provider_name,
            bread_count=int(bread_count),
            cash_amount=from_cents(to_cents(cash_amount)),
            captured_at=captured_at,
            image_payload=image_payload,
        )

    # --------------- Query helpers ---------------
    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> Record:
        keys = row.keys()
        return Record(
            record_id=int(row["id"]),
            employee_id=row["employee_id"],
            employee_name=row["employee_name"],
            provider_name=row["provider_name"],
            bread_count=int(row["bread_count"]),
            cash_amount=from_cents(row["cash_amount_cents"]),
            captured_at=row["captured_at"],
            image_payload=row["image_payload"] if "image_payload" in keys else None,
        )

    def _select(self, where: str, params: tuple, *, include_images: bool) -> List[Record]:
        columns = _LIST_COLUMNS + (", image_payload" if include_images else "")
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {columns} FROM records {where} ORDER BY captured_at DESC, id DESC;",
                params,
            )
            return [self._row_to_record(row) for row in cur.fetchall()]

    def list_for_user(self, employee_id: str, *, include_images: bool = True) -> List[Record]:
        """Records submitted by one employee, newest first."""
        return self._select("WHERE employee_id = ?", (str(employee_id),), include_images=include_images)

    def list_all(self, *, include_images: bool = True) -> List[Record]:
        """Every record, newest first (privileged view)."""
        return self._select("", (), include_images=include_images)

    def get_record(self, record_id: int) -> Optional[Record]:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_LIST_COLUMNS}, image_payload FROM records WHERE id = ?;", (int(record_id),))
            row = cur.fetchone()
        return self._row_to_record(row) if row is not None else None

    def count_records(self) -> int:
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) AS count FROM records;")
            return int(cur.fetchone()["count"])
