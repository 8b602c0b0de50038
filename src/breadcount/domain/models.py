from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

_CENT = Decimal("0.01")

# Per-record ceilings; anything larger is treated as input noise.
MAX_CASH_AMOUNT = Decimal("1000000000000")
MAX_BREAD_COUNT = 1_000_000_000


def to_cents(amount: Decimal) -> int:
    """Return the amount in integer minor units (half-up to two places)."""
    return int((amount.quantize(_CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def from_cents(cents: Optional[int]) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(_CENT)


def _json_amount(amount: Decimal) -> float | int:
    # Whole amounts stay integers so 1500 serialises as 1500, not 1500.0
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


@dataclass(frozen=True)
class Identity:
    """Caller identity resolved by the session layer and trusted as-is."""

    employee_id: str
    employee_name: str
    is_admin: bool = False


@dataclass(frozen=True)
class Record:
    record_id: int
    employee_id: str
    employee_name: str
    provider_name: str
    bread_count: int
    cash_amount: Decimal
    captured_at: str  # YYYY-MM-DDTHH:MM:SS, server-local
    image_payload: Optional[str] = None

    def as_dict(self, *, include_image: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.record_id,
            "user_id": self.employee_id,
            "employee_name": self.employee_name,
            "provider_name": self.provider_name,
            "bread_count": self.bread_count,
            "cash_amount": _json_amount(self.cash_amount),
            "timestamp": self.captured_at,
        }
        if include_image:
            data["image_url"] = self.image_payload
        return data


@dataclass(frozen=True)
class DailyTotal:
    date: str  # YYYY-MM-DD
    total: int
    total_cash: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "total": self.total, "total_cash": _json_amount(self.total_cash)}


@dataclass(frozen=True)
class EmployeeTotal:
    employee_name: str
    total: int
    total_cash: Decimal

    def as_dict(self) -> Dict[str, Any]:
        return {
            "employee_name": self.employee_name,
            "total": self.total,
            "total_cash": _json_amount(self.total_cash),
        }
