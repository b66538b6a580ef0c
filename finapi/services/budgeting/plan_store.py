from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from finapi.db.upsert import dialect_insert
from finapi.models.budget import BudgetMethod, BudgetPlan
from finapi.services.budgeting.common import Allocation, PlanTotals, compute_totals


logger = logging.getLogger("finapi.budget")

HISTORY_LIMIT = 24


def build_plan_totals(income: float, target_savings_pct: float, allocations: list[Allocation]) -> PlanTotals:
    """Totals are always derived from the allocations being saved, never taken from the client."""
    return compute_totals(income, target_savings_pct, [a.amount for a in allocations])


class PlanStore:
    """One BudgetPlan per (user, month); saves are atomic upserts keyed on that pair."""

    def __init__(self, db: Session):
        self.db = db

    def save(
        self,
        user_id: uuid.UUID,
        month: str,
        *,
        method: BudgetMethod,
        income: float,
        target_savings_pct: float,
        allocations: list[Allocation],
    ) -> BudgetPlan:
        totals = build_plan_totals(income, target_savings_pct, allocations)
        values: dict[str, Any] = {
            "method": method,
            "income": income,
            "target_savings_pct": target_savings_pct,
            "allocations": [a.as_dict() for a in allocations],
            "total_allocated": totals.allocated,
            "total_savings": totals.savings,
            "total_remaining": totals.remaining,
        }
        insert = dialect_insert(self.db)
        stmt = insert(BudgetPlan).values(id=uuid.uuid4(), user_id=user_id, month=month, **values)
        stmt = stmt.on_conflict_do_update(index_elements=["user_id", "month"], set_={**values, "updated_at": func.now()})
        self.db.execute(stmt)
        self.db.commit()
        plan = self.db.execute(
            select(BudgetPlan)
            .where(BudgetPlan.user_id == user_id, BudgetPlan.month == month)
            .execution_options(populate_existing=True)
        ).scalars().one()
        logger.info(
            "plan_saved user=%s month=%s categories=%s remaining=%s",
            user_id,
            month,
            len(allocations),
            totals.remaining,
        )
        return plan

    def get(self, user_id: uuid.UUID, month: str) -> BudgetPlan | None:
        row = self.db.execute(
            select(BudgetPlan)
            .where(BudgetPlan.user_id == user_id, BudgetPlan.month == month)
            .execution_options(populate_existing=True)
        ).scalars().first()
        return row

    def history(self, user_id: uuid.UUID, limit: int = HISTORY_LIMIT) -> list[BudgetPlan]:
        return list(
            self.db.execute(
                select(BudgetPlan)
                .where(BudgetPlan.user_id == user_id)
                .order_by(BudgetPlan.month.desc())
                .limit(limit)
            ).scalars().all()
        )


def plan_allocations(plan: BudgetPlan) -> list[Allocation]:
    out: list[Allocation] = []
    for row in plan.allocations or []:
        out.append(
            Allocation(
                category=str(row.get("category", "")),
                amount=float(row.get("amount") or 0),
                pct=float(row.get("pct") or 0),
            )
        )
    return out
