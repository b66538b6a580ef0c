from __future__ import annotations

import math
from typing import Any

from finapi.services.ai_client import AIResult
from finapi.services.budgeting.common import (
    Allocation,
    AllocationResult,
    allocation_pct,
    compute_totals,
    is_amount,
    js_round,
    savings_amount,
)


def spendable_envelope(income: float, target_savings_pct: float) -> float:
    return max(income - savings_amount(income, target_savings_pct), 0)


def allocate(income: float, target_savings_pct: float, categories: list[str]) -> AllocationResult:
    """
    Baseline plan: equal split of the spendable envelope, floored per category.
    The remainder of the division is left unallocated.
    """
    spendable = spendable_envelope(income, target_savings_pct)
    per = math.floor(spendable / len(categories)) if categories else 0
    allocations = [Allocation(category=name, amount=per, pct=allocation_pct(per, income)) for name in categories]
    totals = compute_totals(income, target_savings_pct, [a.amount for a in allocations])
    return AllocationResult(allocations=allocations, totals=totals)


def _accepted_suggestions(rows: list[Any], categories: list[str]) -> dict[str, int]:
    allowed = set(categories)
    accepted: dict[str, int] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        name = row.get("category")
        amount = row.get("amount")
        if not isinstance(name, str) or name not in allowed:
            continue
        if not is_amount(amount) or amount < 0:
            continue
        accepted[name] = js_round(amount)
    return accepted


def _trim_overshoot(allocations: list[Allocation], names: set[str], overshoot: float) -> None:
    for a in sorted((a for a in allocations if a.category in names), key=lambda x: x.amount, reverse=True):
        if overshoot <= 0:
            break
        cut = min(a.amount, overshoot)
        a.amount -= cut
        overshoot -= cut


def refine(
    baseline: AllocationResult,
    income: float,
    target_savings_pct: float,
    suggestion: AIResult[list[dict[str, Any]]],
) -> AllocationResult:
    """
    Overlay an AI suggestion on the baseline. Only an Ok result with at least one
    usable entry changes anything; the baseline is returned untouched otherwise.
    """
    if not suggestion.ok or not isinstance(suggestion.value, list):
        return baseline
    categories = [a.category for a in baseline.allocations]
    accepted = _accepted_suggestions(suggestion.value, categories)
    if not accepted:
        return baseline

    spendable = spendable_envelope(income, target_savings_pct)
    uncovered = sum(a.amount for a in baseline.allocations if a.category not in accepted)
    envelope = max(spendable - uncovered, 0)
    proposed = sum(accepted.values())
    clamped = min(proposed, envelope)
    scale = clamped / proposed if proposed else 1

    allocations = [
        Allocation(
            category=a.category,
            amount=js_round(accepted[a.category] * scale) if a.category in accepted else a.amount,
        )
        for a in baseline.allocations
    ]
    overshoot = sum(a.amount for a in allocations) - spendable
    if overshoot > 0:
        _trim_overshoot(allocations, set(accepted), overshoot)
    for a in allocations:
        a.pct = allocation_pct(a.amount, income)
    totals = compute_totals(income, target_savings_pct, [a.amount for a in allocations])
    return AllocationResult(allocations=allocations, totals=totals, refined=True)
