from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from finapi.models.budget import BudgetMethod
from finapi.schemas.common import ApiModel, MonthKey


class AllocationIn(ApiModel):
    category: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    pct: float = Field(..., ge=0)


class RecommendAllocationIn(ApiModel):
    category: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)


class BudgetGenerateRequest(ApiModel):
    month: MonthKey
    income: float = Field(..., ge=0)
    target_savings_pct: float = Field(10, ge=0, le=90)
    method: BudgetMethod = BudgetMethod.FIXED_PERCENTAGE_SPLIT


class BudgetSaveRequest(ApiModel):
    month: MonthKey
    method: BudgetMethod
    income: float = Field(..., ge=0)
    target_savings_pct: float = Field(..., ge=0, le=90)
    allocations: list[AllocationIn] = Field(..., min_length=1)


class BudgetRecommendRequest(ApiModel):
    month: MonthKey
    income: float = Field(..., ge=0)
    target_savings_pct: float = Field(..., ge=0, le=90)
    allocations: list[RecommendAllocationIn]


class AllocationRead(ApiModel):
    category: str
    amount: float
    pct: float


class PlanTotalsRead(ApiModel):
    allocated: float
    savings: float
    remaining: float


class BudgetPlanDraft(ApiModel):
    month: str
    method: BudgetMethod
    income: float
    target_savings_pct: float
    allocations: list[AllocationRead]
    totals: PlanTotalsRead


class BudgetPlanRead(BudgetPlanDraft):
    id: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BudgetGenerateResponse(ApiModel):
    plan: BudgetPlanDraft
    mtd: dict[str, float]


class BudgetSaveResponse(ApiModel):
    plan: BudgetPlanRead


class BudgetCurrentResponse(ApiModel):
    plan: BudgetPlanRead | None
    mtd: dict[str, float]


class BudgetHistoryResponse(ApiModel):
    items: list[BudgetPlanRead]


class ChangeRead(ApiModel):
    category: str
    delta_amount: float
    reason: str


class BudgetRecommendResponse(ApiModel):
    changes: list[ChangeRead]
