from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..config import Settings
from ..domain.models import MAX_CASH_AMOUNT, Identity, Record, from_cents, to_cents
from ..errors import InvalidSubmissionError
from ..estimator import BreadCountEstimator
from ..logging import get_logger
from .db import RecordStore
from .stats import AggregationEngine


LOG = get_logger("records-service")


def coerce_cash_amount(value: Any) -> Decimal:
    """Return a non-negative Decimal rounded to cents.

    Anything missing, malformed or above MAX_CASH_AMOUNT becomes 0.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, float) and not math.isfinite(value):
        LOG.warning("Non-finite cash amount %r coerced to 0", value)
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip().replace(",", ".")) if isinstance(value, str) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        LOG.warning("Non-numeric cash amount %r coerced to 0", value)
        return Decimal("0")
    if not amount.is_finite():
        LOG.warning("Non-finite cash amount %r coerced to 0", value)
        return Decimal("0")
    if amount < 0:
        LOG.warning("Negative cash amount %r coerced to 0", value)
        return Decimal("0")
    if amount > MAX_CASH_AMOUNT:
        LOG.warning("Cash amount %r exceeds %s and is coerced to 0", value, MAX_CASH_AMOUNT)
        return Decimal("0")
    return from_cents(to_cents(amount))


class IngestionPipeline:
    """Turn a captured image into a persisted, attributed bread count record.

    Steps: check configuration, call the estimator once, insert one record.
    Any failure before the insert leaves the store untouched. Submissions are
    not deduplicated; the same image sent twice yields two records.
    """

    def __init__(
        self,
        store: RecordStore,
        estimator: BreadCountEstimator,
    ) -> None:
        self.store = store
        self.estimator = estimator
        self.stats = AggregationEngine(store)

    @classmethod
    def from_settings(cls, settings: Settings, *, root_dir: Optional[str] = None) -> "IngestionPipeline":
        store = RecordStore(root_dir=root_dir, db_path=settings.db_path)
        return cls(store, BreadCountEstimator(settings.estimator))

    def submit(
        self,
        identity: Identity,
        *,
        provider_name: Optional[str],
        cash_amount: Any,
        image_payload: Optional[str],
    ) -> Record:
        employee_id = str(identity.employee_id).strip() if identity.employee_id is not None else ""
        if not employee_id:
            raise InvalidSubmissionError("employee id is required")
        if not image_payload or not str(image_payload).strip():
            raise InvalidSubmissionError("image payload is required")

        amount = coerce_cash_amount(cash_amount)
        provider = (provider_name or "").strip()

        self.estimator.ensure_configured()
        bread_count = self.estimator.estimate(image_payload)

        record = self.store.insert_record(
            employee_id=employee_id,
            employee_name=identity.employee_name or "",
            provider_name=provider,
            bread_count=bread_count,
            cash_amount=amount,
            image_payload=image_payload,
        )
        LOG.info(
            "Persisted record id=%s employee=%r provider=%r bread_count=%s cash=%s",
            record.record_id,
            record.employee_name,
            record.provider_name,
            record.bread_count,
            record.cash_amount,
        )
        return record

    # --------------- Boundary helpers ---------------
    def create_record(
        self,
        identity: Identity,
        *,
        provider_name: Optional[str],
        cash_amount: Any,
        image_payload: Optional[str],
    ) -> Dict[str, int]:
        record = self.submit(
            identity,
            provider_name=provider_name,
            cash_amount=cash_amount,
            image_payload=image_payload,
        )
        return {"record_id": record.record_id, "bread_count": record.bread_count}

    def get_records(self, identity: Identity, *, include_images: bool = True) -> List[Record]:
        """All records for administrators, otherwise only the caller's own."""
        if identity.is_admin:
            return self.store.list_all(include_images=include_images)
        return self.store.list_for_user(identity.employee_id, include_images=include_images)

    def get_statistics(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.stats.statistics()
