from finapi.services.budgeting.allocator import allocate, refine
from finapi.services.budgeting.auto_budget import apply_split, category_history, suggest_split
from finapi.services.budgeting.category_budgets import expense_categories, upsert_category_budget
from finapi.services.budgeting.insights import spending_insights
from finapi.services.budgeting.plan_store import PlanStore
from finapi.services.budgeting.reconciler import Alert, check_category_spend, reconcile
from finapi.services.budgeting.recommender import Change, merge_ai_changes, recommend
from finapi.services.budgeting.spend import mtd_by_category, spend_by_category

__all__ = [
    "Alert",
    "Change",
    "PlanStore",
    "allocate",
    "apply_split",
    "category_history",
    "check_category_spend",
    "expense_categories",
    "merge_ai_changes",
    "mtd_by_category",
    "recommend",
    "reconcile",
    "refine",
    "spend_by_category",
    "spending_insights",
    "suggest_split",
    "upsert_category_budget",
]
