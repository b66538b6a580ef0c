from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from finapi.models.budget import BudgetPeriod
from finapi.schemas.common import ApiModel


class CategoryBudgetUpsert(ApiModel):
    category_id: UUID
    budget_amount: float = Field(..., ge=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    alert_threshold: int = Field(80, ge=0, le=100)
    is_active: bool = True


class CategoryBudgetRead(ApiModel):
    id: UUID
    category_id: UUID
    category_name: str
    budget_amount: float
    period: BudgetPeriod
    alert_threshold: int
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryBudgetStatusRead(CategoryBudgetRead):
    spent_amount: float
    remaining_amount: float
    percentage_used: float
    is_exceeded: bool
    is_near_threshold: bool


class CategoryBudgetListResponse(ApiModel):
    budgets: list[CategoryBudgetStatusRead]


class CategoryBudgetResponse(ApiModel):
    budget: CategoryBudgetRead


class CheckAlertsRequest(ApiModel):
    category_name: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)


class CheckAlertsResponse(ApiModel):
    has_alert: bool
    alert: CategoryBudgetStatusRead | None = None


class AutoBudgetRequest(ApiModel):
    available_balance: float = Field(..., gt=0)
    preferences: str | None = Field(None, max_length=500)


class BudgetSuggestionRead(ApiModel):
    category: str
    amount: float
    reasoning: str


class AutoBudgetSummary(ApiModel):
    categories: int
    average_allocation: float


class BudgetSuggestionsResponse(ApiModel):
    suggestions: list[BudgetSuggestionRead]
    total_allocated: float
    ai_generated: bool
    summary: AutoBudgetSummary


class AutoAllocationRead(ApiModel):
    budget: CategoryBudgetRead
    reasoning: str


class AutoAllocateResponse(ApiModel):
    allocations: list[AutoAllocationRead]
    total_allocated: float
    ai_generated: bool
    summary: AutoBudgetSummary
