from .models import DailyTotal, EmployeeTotal, Identity, Record, from_cents, to_cents

__all__ = [
    "DailyTotal",
    "EmployeeTotal",
    "Identity",
    "Record",
    "from_cents",
    "to_cents",
]
