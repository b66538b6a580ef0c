from __future__ import annotations

from finapi.schemas.common import ApiModel


class MonthlySpendRead(ApiModel):
    month: str
    total: float


class CategorySpendRead(ApiModel):
    name: str
    total: float


class SpendingInsightsResponse(ApiModel):
    monthly: list[MonthlySpendRead]
    top_categories: list[CategorySpendRead]
    categories: list[CategorySpendRead]
