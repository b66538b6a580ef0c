from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from finapi.db.base import Base


class BudgetMethod(str, enum.Enum):
    FIXED_PERCENTAGE_SPLIT = "50-30-20"
    ZERO_BASED = "Zero-based"


class BudgetPeriod(str, enum.Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    YEARLY = "yearly"


def _enum_values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]


class BudgetPlan(Base):
    """Monthly allocation plan. Exactly one row per (user, YYYY-MM)."""

    __tablename__ = "budget_plans"
    __table_args__ = (UniqueConstraint("user_id", "month", name="uq_budget_plans_user_month"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    month: Mapped[str] = mapped_column(String(7), index=True)  # YYYY-MM
    method: Mapped[BudgetMethod] = mapped_column(
        Enum(BudgetMethod, name="budget_method", values_callable=_enum_values),
        default=BudgetMethod.FIXED_PERCENTAGE_SPLIT,
    )
    income: Mapped[float] = mapped_column(Float)
    target_savings_pct: Mapped[float] = mapped_column(Float, default=0)
    # ordered list of {"category", "amount", "pct"}
    allocations: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    total_allocated: Mapped[float] = mapped_column(Float)
    total_savings: Mapped[float] = mapped_column(Float)
    total_remaining: Mapped[float] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def totals(self) -> dict[str, float]:
        return {
            "allocated": self.total_allocated,
            "savings": self.total_savings,
            "remaining": self.total_remaining,
        }


class CategoryBudget(Base):
    """
    Standing spending cap for one category, independent of any month plan.

    `is_active=False` pauses the cap: the row is kept but listing, alerts and
    check-alerts skip it. Deleting removes the row outright.
    """

    __tablename__ = "category_budgets"
    __table_args__ = (UniqueConstraint("user_id", "category_id", name="uq_category_budgets_user_category"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True)
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="CASCADE"), index=True
    )
    category_name: Mapped[str] = mapped_column(String(64))
    budget_amount: Mapped[float] = mapped_column(Float)
    period: Mapped[BudgetPeriod] = mapped_column(
        Enum(BudgetPeriod, name="budget_period", values_callable=_enum_values),
        default=BudgetPeriod.MONTHLY,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    alert_threshold: Mapped[int] = mapped_column(Integer, default=80)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
