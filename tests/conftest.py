from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from breadcount.records import IngestionPipeline, RecordStore

from fakes import make_estimator


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "records.sqlite3")


@pytest.fixture
def make_pipeline(db_path: str) -> Callable[..., IngestionPipeline]:
    def _build(
        *replies: Any,
        api_key: Optional[str] = "test-key",
        clock: Optional[Callable[[], str]] = None,
    ) -> IngestionPipeline:
        store = RecordStore(db_path=db_path, clock=clock) if clock else RecordStore(db_path=db_path)
        return IngestionPipeline(store, make_estimator(*replies, api_key=api_key))

    return _build
