from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from finapi.services.budgeting.common import add_months, current_month_key, month_bounds
from finapi.services.budgeting.spend import monthly_spend_totals, spend_by_category


DEFAULT_MONTHS = 6
MAX_MONTHS = 24
TOP_CATEGORIES = 5


@dataclass
class SpendingInsights:
    monthly: list[tuple[str, float]] = field(default_factory=list)
    categories: list[tuple[str, float]] = field(default_factory=list)

    @property
    def top_categories(self) -> list[tuple[str, float]]:
        return self.categories[:TOP_CATEGORIES]


def spending_insights(
    db: Session,
    user_id: uuid.UUID,
    months: int = DEFAULT_MONTHS,
    today: date | None = None,
) -> SpendingInsights:
    """
    Expense totals for the last `months` calendar months, the current one included.

    `monthly` is oldest first with zero-filled gaps; `categories` is ordered by total,
    largest first, then by name.
    """
    if not 1 <= months <= MAX_MONTHS:
        raise ValueError(f"months must be between 1 and {MAX_MONTHS}, got {months}")
    current = current_month_key(today)
    keys = [add_months(current, -i) for i in range(months - 1, -1, -1)]
    start, _ = month_bounds(keys[0])
    _, end = month_bounds(current)

    by_month = monthly_spend_totals(db, user_id, start, end)
    by_category = spend_by_category(db, user_id, start, end)
    return SpendingInsights(
        monthly=[(k, by_month.get(k, 0.0)) for k in keys],
        categories=sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0])),
    )
