from finapi.models.budget import BudgetMethod, BudgetPeriod, BudgetPlan, CategoryBudget
from finapi.models.category import Category, EntryType
from finapi.models.transaction import Transaction
from finapi.models.user import User

__all__ = [
    "BudgetMethod",
    "BudgetPeriod",
    "BudgetPlan",
    "Category",
    "CategoryBudget",
    "EntryType",
    "Transaction",
    "User",
]
