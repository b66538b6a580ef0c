from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from finapi.models.budget import CategoryBudget
from finapi.services.budgeting.common import Allocation, js_round
from finapi.services.budgeting.plan_store import PlanStore, plan_allocations
from finapi.services.budgeting.spend import current_month_spend, mtd_by_category


logger = logging.getLogger("finapi.budget")

PLAN_OVERAGE_TOLERANCE = 1.15

EXCEEDED = "exceeded"
THRESHOLD = "threshold"


@dataclass
class Alert:
    id: str
    type: str
    title: str
    message: str
    severity: str
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class CategorySpendStatus:
    budget: CategoryBudget
    spent_amount: float
    remaining_amount: float
    percentage_used: float
    is_exceeded: bool
    is_near_threshold: bool


def classify_category_budget(spent: float, budget_amount: float, alert_threshold: float) -> str | None:
    """Exceeded wins over threshold; the result only ever escalates as `spent` grows."""
    if spent >= budget_amount:
        return EXCEEDED
    if spent >= budget_amount * alert_threshold / 100:
        return THRESHOLD
    return None


def category_status(budget: CategoryBudget, spent: float) -> CategorySpendStatus:
    level = classify_category_budget(spent, budget.budget_amount, budget.alert_threshold)
    used = (spent / budget.budget_amount * 100) if budget.budget_amount > 0 else 0.0
    return CategorySpendStatus(
        budget=budget,
        spent_amount=spent,
        remaining_amount=budget.budget_amount - spent,
        percentage_used=round(used, 2),
        is_exceeded=level == EXCEEDED,
        is_near_threshold=level is not None,
    )


def _money(value: float) -> str:
    return f"₹{js_round(value):,}"


def active_category_budgets(db: Session, user_id: uuid.UUID) -> list[CategoryBudget]:
    return list(
        db.execute(
            select(CategoryBudget)
            .where(CategoryBudget.user_id == user_id, CategoryBudget.is_active.is_(True))
            .order_by(CategoryBudget.created_at, CategoryBudget.category_name)
        ).scalars().all()
    )


def category_budget_alerts(budgets: list[CategoryBudget], spend: dict[str, float]) -> list[Alert]:
    alerts: list[Alert] = []
    for b in budgets:
        spent = spend.get(b.category_name, 0.0)
        level = classify_category_budget(spent, b.budget_amount, b.alert_threshold)
        meta = {"category": b.category_name, "used": spent, "budget": b.budget_amount}
        if level == EXCEEDED:
            alerts.append(
                Alert(
                    id=f"{b.category_name}-exceeded",
                    type="category_budget_exceeded",
                    title=f"{b.category_name} budget exceeded",
                    message=f"Spent {_money(spent)} of {_money(b.budget_amount)}",
                    severity="error",
                    meta=meta,
                )
            )
        elif level == THRESHOLD:
            alerts.append(
                Alert(
                    id=f"{b.category_name}-threshold",
                    type="category_budget_threshold",
                    title=f"{b.category_name} near budget limit",
                    message=f"Spent {_money(spent)} of {_money(b.budget_amount)} ({b.alert_threshold}% alert threshold)",
                    severity="warning",
                    meta=meta,
                )
            )
    return alerts


def plan_overage_alerts(allocations: list[Allocation], spend: dict[str, float]) -> list[Alert]:
    alerts: list[Alert] = []
    for a in allocations:
        used = spend.get(a.category, 0.0)
        if a.amount > 0 and used > a.amount * PLAN_OVERAGE_TOLERANCE:
            alerts.append(
                Alert(
                    id=f"{a.category}-over",
                    type="budget_over",
                    title=f"{a.category} over budget",
                    message=f"Spent {_money(used)} vs budget {_money(a.amount)}",
                    severity="warning",
                    meta={"category": a.category, "used": used, "budget": a.amount},
                )
            )
    return alerts


def reconcile(db: Session, user_id: uuid.UUID, month: str, today: date | None = None) -> list[Alert]:
    """
    Category budgets are checked against the current calendar month while the plan
    is checked against `month`; the two windows differ when `month` is not current.
    Category budget alerts come first, then plan alerts. No dedupe, no sorting.
    """
    budgets = active_category_budgets(db, user_id)
    alerts = category_budget_alerts(budgets, current_month_spend(db, user_id, today) if budgets else {})

    plan = PlanStore(db).get(user_id, month)
    if plan is not None:
        alerts.extend(plan_overage_alerts(plan_allocations(plan), mtd_by_category(db, user_id, month)))

    logger.info("alerts_reconciled user=%s month=%s count=%s", user_id, month, len(alerts))
    return alerts


def check_category_spend(
    db: Session,
    user_id: uuid.UUID,
    category_name: str,
    today: date | None = None,
) -> CategorySpendStatus | None:
    """Current-month status for the active budget on `category_name`, or None when unbudgeted."""
    budget = db.execute(
        select(CategoryBudget).where(
            CategoryBudget.user_id == user_id,
            CategoryBudget.category_name == category_name,
            CategoryBudget.is_active.is_(True),
        )
    ).scalars().first()
    if budget is None:
        return None
    spent = current_month_spend(db, user_id, today).get(category_name, 0.0)
    return category_status(budget, spent)
