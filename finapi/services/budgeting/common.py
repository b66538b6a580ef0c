from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
_MONTH_RE = re.compile(MONTH_PATTERN)

SAVINGS_CATEGORY = "Savings"


def js_round(value: float) -> int:
    """Half-up rounding (2.5 -> 3, -2.5 -> -2), not Python's round-half-even."""
    return int(math.floor(value + 0.5))


def is_month_key(value: str | None) -> bool:
    return bool(value) and bool(_MONTH_RE.match(value))


def month_key(d: date | datetime) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def current_month_key(today: date | None = None) -> str:
    return month_key(today or date.today())


def month_bounds(month: str) -> tuple[datetime, datetime]:
    """First-of-month inclusive, first-of-next-month exclusive (naive local datetimes)."""
    y, m = (int(p) for p in month.split("-"))
    try:
        start = datetime(y, m, 1)
        end = datetime(y + 1, 1, 1) if m == 12 else datetime(y, m + 1, 1)
    except ValueError:
        raise ValueError(f"Month out of range: {month!r}") from None
    return start, end


def check_month_key(value: str) -> str:
    """pydantic validator: the key must name a month whose bounds are representable."""
    if not is_month_key(value):
        raise ValueError("Month must be YYYY-MM")
    month_bounds(value)
    return value


def add_months(month: str, n: int) -> str:
    y, m = (int(p) for p in month.split("-"))
    y, m0 = divmod(y * 12 + (m - 1) + n, 12)
    return f"{y:04d}-{m0 + 1:02d}"


def is_amount(value: Any) -> bool:
    """Finite int or float; bools are rejected even though they are ints."""
    return not isinstance(value, bool) and isinstance(value, (int, float)) and math.isfinite(value)


def savings_amount(income: float, target_savings_pct: float) -> int:
    return js_round(income * target_savings_pct / 100)


def allocation_pct(amount: float, income: float) -> int:
    return js_round(amount / income * 100) if income > 0 else 0


@dataclass
class Allocation:
    category: str
    amount: float
    pct: float = 0

    def as_dict(self) -> dict[str, Any]:
        return {"category": self.category, "amount": self.amount, "pct": self.pct}


@dataclass
class PlanTotals:
    allocated: float
    savings: float
    remaining: float

    def as_dict(self) -> dict[str, float]:
        return {"allocated": self.allocated, "savings": self.savings, "remaining": self.remaining}


@dataclass
class AllocationResult:
    allocations: list[Allocation] = field(default_factory=list)
    totals: PlanTotals = field(default_factory=lambda: PlanTotals(0, 0, 0))
    refined: bool = False


def compute_totals(income: float, target_savings_pct: float, amounts: list[float]) -> PlanTotals:
    savings = savings_amount(income, target_savings_pct)
    allocated = sum(amounts)
    return PlanTotals(allocated=allocated, savings=savings, remaining=income - savings - allocated)
