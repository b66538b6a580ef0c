from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from finapi.services.ai_client import AIResult
from finapi.services.budgeting.common import SAVINGS_CATEGORY, Allocation, js_round, savings_amount


# a single trim never exceeds a tenth of the category amount
MAX_TRIM_DIVISOR = 10
SAVINGS_FLOOR_RATIO = 0.20
SAVINGS_BOOST_RATIO = 0.05

TRIM_REASON = "Trim to fit savings target"
SAVINGS_REASON = "Accelerate savings goal"


@dataclass
class Change:
    category: str
    delta_amount: float
    reason: str


def recommend(income: float, target_savings_pct: float, allocations: list[Allocation]) -> list[Change]:
    savings = savings_amount(income, target_savings_pct)
    remaining = income - savings - sum(a.amount for a in allocations)
    changes: list[Change] = []
    if remaining < 0:
        deficit = -remaining
        # sorted() is stable: equal amounts keep their input order
        for item in sorted(allocations, key=lambda a: a.amount, reverse=True):
            if deficit <= 0:
                break
            trim = min(math.floor(item.amount / MAX_TRIM_DIVISOR), deficit)
            if trim > 0:
                changes.append(Change(category=item.category, delta_amount=-trim, reason=TRIM_REASON))
                deficit -= trim
    elif remaining > 0 and savings < js_round(income * SAVINGS_FLOOR_RATIO):
        add = min(remaining, js_round(income * SAVINGS_BOOST_RATIO))
        changes.append(Change(category=SAVINGS_CATEGORY, delta_amount=add, reason=SAVINGS_REASON))
    return changes


def merge_ai_changes(changes: list[Change], suggestion: AIResult[list[dict[str, Any]]]) -> list[Change]:
    """Append usable AI entries after the rule-based ones. Categories are not checked."""
    if not suggestion.ok or not isinstance(suggestion.value, list):
        return changes
    merged = list(changes)
    for row in suggestion.value:
        if not isinstance(row, dict):
            continue
        category = row.get("category")
        delta = row.get("deltaAmount")
        if not isinstance(category, str) or not category.strip():
            continue
        if isinstance(delta, bool) or not isinstance(delta, (int, float)) or not math.isfinite(delta):
            continue
        merged.append(Change(category=category, delta_amount=delta, reason=str(row.get("reason") or "")))
    return merged
