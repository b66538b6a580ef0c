"""
Standing category budgets proposed from recent spending history.

An AI split of the available balance is rescaled so the amounts add up to the
balance. When the AI result is an Err or carries nothing usable, the balance is
split by each category's share of historical spend instead, or evenly when
there is no history at all.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy.orm import Session

from finapi.models.budget import BudgetPeriod, CategoryBudget
from finapi.models.category import Category
from finapi.services.ai_client import AIResult
from finapi.services.budgeting.category_budgets import DEFAULT_ALERT_THRESHOLD, upsert_category_budget
from finapi.services.budgeting.common import add_months, current_month_key, is_amount, js_round, month_bounds
from finapi.services.budgeting.spend import SpendStats, spend_stats_by_category


HISTORY_MONTHS = 6

AI_REASON = "AI-allocated based on spending patterns"
HISTORY_REASON = "Share of spending over recent months"
EVEN_REASON = "Even split, no spending history yet"


@dataclass
class CategoryHistory:
    name: str
    stats: SpendStats

    def as_prompt_row(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "totalSpent": self.stats.total,
            "transactionCount": self.stats.count,
            "avgAmount": self.stats.average,
        }


@dataclass
class BudgetSuggestion:
    category: str
    amount: int
    reasoning: str


@dataclass
class SuggestedSplit:
    suggestions: list[BudgetSuggestion]
    ai_generated: bool

    @property
    def total(self) -> int:
        return sum(s.amount for s in self.suggestions)

    @property
    def average(self) -> int:
        return js_round(self.total / len(self.suggestions)) if self.suggestions else 0


def history_window(today: date | None = None) -> tuple[datetime, datetime]:
    """The HISTORY_MONTHS full months before the current one, plus the current month so far."""
    current = current_month_key(today)
    start, _ = month_bounds(add_months(current, -HISTORY_MONTHS))
    _, end = month_bounds(current)
    return start, end


def category_history(
    db: Session,
    user_id: uuid.UUID,
    names: list[str],
    today: date | None = None,
) -> list[CategoryHistory]:
    start, end = history_window(today)
    stats = spend_stats_by_category(db, user_id, start, end)
    return [CategoryHistory(name=n, stats=stats.get(n, SpendStats())) for n in names]


def _scaled(weights: list[tuple[str, float, str]], balance: float) -> list[BudgetSuggestion]:
    total = sum(w for _, w, _ in weights)
    if total <= 0:
        return []
    out = [BudgetSuggestion(category=c, amount=js_round(w * balance / total), reasoning=r) for c, w, r in weights]
    # a zero budget would report every purchase as exceeded
    return [s for s in out if s.amount > 0]


def _ai_weights(rows: list[Any], names: list[str]) -> list[tuple[str, float, str]]:
    allowed = set(names)
    picked: dict[str, tuple[float, str]] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        name = row.get("category")
        amount = row.get("amount")
        if not isinstance(name, str) or name not in allowed:
            continue
        if not is_amount(amount) or amount < 0:
            continue
        reasoning = row.get("reasoning")
        picked[name] = (float(amount), reasoning.strip() if isinstance(reasoning, str) and reasoning.strip() else AI_REASON)
    return [(n, *picked[n]) for n in names if n in picked]


def suggest_split(
    history: list[CategoryHistory],
    available_balance: float,
    suggestion: AIResult[list[dict[str, Any]]],
) -> SuggestedSplit:
    names = [h.name for h in history]
    if suggestion.ok and isinstance(suggestion.value, list):
        split = _scaled(_ai_weights(suggestion.value, names), available_balance)
        if split:
            return SuggestedSplit(suggestions=split, ai_generated=True)

    weights = [(h.name, h.stats.total, HISTORY_REASON) for h in history if h.stats.total > 0]
    if not weights:
        weights = [(h.name, 1.0, EVEN_REASON) for h in history]
    return SuggestedSplit(suggestions=_scaled(weights, available_balance), ai_generated=False)


def apply_split(
    db: Session,
    user_id: uuid.UUID,
    categories: list[Category],
    split: SuggestedSplit,
) -> list[tuple[CategoryBudget, str]]:
    """Upsert one monthly, active budget per suggestion. The caller owns the commit."""
    by_name = {c.name: c for c in categories}
    applied: list[tuple[CategoryBudget, str]] = []
    for s in split.suggestions:
        category = by_name.get(s.category)
        if category is None:
            continue
        row = upsert_category_budget(
            db,
            user_id,
            category,
            budget_amount=s.amount,
            period=BudgetPeriod.MONTHLY,
            alert_threshold=DEFAULT_ALERT_THRESHOLD,
            is_active=True,
        )
        applied.append((row, s.reasoning))
    return applied
