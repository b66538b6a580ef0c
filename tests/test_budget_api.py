from __future__ import annotations

import unittest
import uuid
from datetime import datetime

from fastapi.testclient import TestClient

from finapi.db.session import get_db, session_scope
from finapi.main import app
from finapi.models import EntryType
from finapi.services.ai_client import AIResult, get_ai_client
from finapi.services.budgeting.common import current_month_key
from tests.support import FailingSession, StubAIClient, add_category, add_expense, make_session_factory


class BudgetApiTestCase(unittest.TestCase):
    def setUp(self):
        self.SessionLocal = make_session_factory()
        self.ai = StubAIClient()

        def override_get_db():
            yield from session_scope(self.SessionLocal)

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_ai_client] = lambda: self.ai
        self.client = TestClient(app)
        self.token, self.user_id = self._register("asha@example.com")

    def tearDown(self):
        app.dependency_overrides.clear()

    def _register(self, email: str) -> tuple[str, uuid.UUID]:
        r = self.client.post("/auth/register", json={"email": email, "password": "Secret123", "name": "Asha"})
        self.assertEqual(r.status_code, 201, r.text)
        body = r.json()
        return body["token"], uuid.UUID(body["user"]["id"])

    def _auth(self, token: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {token or self.token}"}

    def _seed(self, fn, *args, **kwargs):
        db = self.SessionLocal()
        try:
            return fn(db, *args, **kwargs)
        finally:
            db.close()


class AuthApiTests(BudgetApiTestCase):
    def test_login_and_me(self):
        r = self.client.post("/auth/login", json={"email": "ASHA@example.com", "password": "Secret123"})
        self.assertEqual(r.status_code, 200)
        me = self.client.get("/auth/me", headers=self._auth(r.json()["token"]))
        self.assertEqual(me.json()["user"]["email"], "asha@example.com")

    def test_bad_credentials_and_weak_password(self):
        r = self.client.post("/auth/login", json={"email": "asha@example.com", "password": "nope"})
        self.assertEqual(r.status_code, 401)
        r = self.client.post("/auth/register", json={"email": "x@example.com", "password": "alllower1", "name": "Xy"})
        self.assertEqual(r.status_code, 400)

    def test_engine_endpoints_require_bearer_token(self):
        self.assertEqual(self.client.get("/budget/history").status_code, 401)
        self.assertEqual(self.client.get("/alerts", headers={"Authorization": "Bearer forged.token"}).status_code, 401)


class BudgetEndpointTests(BudgetApiTestCase):
    def setUp(self):
        super().setUp()
        self._seed(add_category, self.user_id, "Food")
        self._seed(add_category, self.user_id, "Transport")
        self._seed(add_category, self.user_id, "Salary", EntryType.INCOME)
        self._seed(add_expense, self.user_id, "Food", 1200, datetime(2026, 3, 4, 9, 30))

    def test_generate_baseline_when_ai_unavailable(self):
        r = self.client.post(
            "/budget/generate",
            json={"month": "2026-03", "income": 50000, "targetSavingsPct": 10},
            headers=self._auth(),
        )
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        plan = body["plan"]
        self.assertEqual(plan["method"], "50-30-20")
        self.assertEqual(
            [(a["category"], a["amount"], a["pct"]) for a in plan["allocations"]],
            [("Food", 22500, 45), ("Transport", 22500, 45)],
        )
        self.assertEqual(plan["totals"], {"allocated": 45000, "savings": 5000, "remaining": 0})
        self.assertEqual(body["mtd"], {"Food": 1200})
        self.assertEqual(self.ai.calls, ["allocations"])

    def test_generate_applies_ai_refinement(self):
        self.ai.allocations = AIResult.success([
            {"category": "Food", "amount": 30000},
            {"category": "Transport", "amount": 15000},
            {"category": "Salary", "amount": 99999},
        ])
        r = self.client.post(
            "/budget/generate",
            json={"month": "2026-03", "income": 50000, "targetSavingsPct": 10, "method": "Zero-based"},
            headers=self._auth(),
        )
        plan = r.json()["plan"]
        self.assertEqual([a["amount"] for a in plan["allocations"]], [30000, 15000])
        self.assertEqual(plan["totals"]["allocated"], 45000)

    def test_save_current_and_history(self):
        payload = {
            "month": "2026-03",
            "method": "50-30-20",
            "income": 40000,
            "targetSavingsPct": 10,
            "allocations": [
                {"category": "Food", "amount": 30000, "pct": 75},
                {"category": "Transport", "amount": 20000, "pct": 50},
            ],
            "totals": {"allocated": 1, "savings": 1, "remaining": 1},
        }
        r = self.client.post("/budget/save", json=payload, headers=self._auth())
        self.assertEqual(r.status_code, 200, r.text)
        saved = r.json()["plan"]
        self.assertEqual(saved["totals"], {"allocated": 50000, "savings": 4000, "remaining": -14000})

        again = self.client.post("/budget/save", json=payload, headers=self._auth()).json()["plan"]
        self.assertEqual(again["id"], saved["id"])

        current = self.client.get("/budget/current", params={"month": "2026-03"}, headers=self._auth()).json()
        self.assertEqual(current["plan"]["allocations"], saved["allocations"])
        self.assertEqual(current["mtd"], {"Food": 1200})

        history = self.client.get("/budget/history", headers=self._auth()).json()
        self.assertEqual([p["month"] for p in history["items"]], ["2026-03"])

    def test_current_without_plan_is_null(self):
        r = self.client.get("/budget/current", params={"month": "2026-05"}, headers=self._auth())
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"plan": None, "mtd": {}})

    def test_validation_errors_are_400(self):
        bad = [
            {"month": "2026-3", "income": 100},
            {"month": "2026-03", "income": -1},
            {"month": "2026-03", "income": 100, "targetSavingsPct": 95},
        ]
        for body in bad:
            r = self.client.post("/budget/generate", json=body, headers=self._auth())
            self.assertEqual(r.status_code, 400, body)
            self.assertEqual(r.json()["detail"], "Validation failed")
        r = self.client.post(
            "/budget/save",
            json={"month": "2026-03", "method": "50-30-20", "income": 1, "targetSavingsPct": 0, "allocations": []},
            headers=self._auth(),
        )
        self.assertEqual(r.status_code, 400)
        self.assertEqual(self.client.get("/budget/current", params={"month": "March"}, headers=self._auth()).status_code, 400)

    def test_out_of_calendar_months_are_400(self):
        for month in ("2024-13", "2024-00", "0000-01"):
            r = self.client.post("/budget/generate", json={"month": month, "income": 1000}, headers=self._auth())
            self.assertEqual(r.status_code, 400, month)
            r = self.client.post(
                "/budget/save",
                json={
                    "month": month,
                    "method": "50-30-20",
                    "income": 1000,
                    "targetSavingsPct": 0,
                    "allocations": [{"category": "Food", "amount": 500, "pct": 50}],
                },
                headers=self._auth(),
            )
            self.assertEqual(r.status_code, 400, month)
            for path in ("/budget/current", "/alerts"):
                r = self.client.get(path, params={"month": month}, headers=self._auth())
                self.assertEqual(r.status_code, 400, (path, month))
                self.assertEqual(r.json()["detail"], "Validation failed")
        self.assertEqual(self.client.get("/budget/history", headers=self._auth()).json()["items"], [])

    def test_recommend_rules_then_ai(self):
        self.ai.changes = AIResult.success([{"category": "Dining", "deltaAmount": -500, "reason": "Eat in"}])
        r = self.client.post(
            "/budget/recommend",
            json={
                "month": "2026-03",
                "income": 40000,
                "targetSavingsPct": 10,
                "allocations": [{"category": "Food", "amount": 30000}, {"category": "Transport", "amount": 20000}],
            },
            headers=self._auth(),
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(
            [(c["category"], c["deltaAmount"]) for c in r.json()["changes"]],
            [("Food", -3000), ("Transport", -2000), ("Dining", -500)],
        )

    def test_plans_are_private_to_their_owner(self):
        self.client.post(
            "/budget/save",
            json={
                "month": "2026-03",
                "method": "Zero-based",
                "income": 1000,
                "targetSavingsPct": 0,
                "allocations": [{"category": "Food", "amount": 500, "pct": 50}],
            },
            headers=self._auth(),
        )
        other_token, _ = self._register("ravi@example.com")
        r = self.client.get("/budget/current", params={"month": "2026-03"}, headers=self._auth(other_token))
        self.assertIsNone(r.json()["plan"])


class DatabaseFailureTests(BudgetApiTestCase):
    def test_persistence_failure_is_generic_500_and_rolls_back(self):
        sessions: list[FailingSession] = []

        def failing_session() -> FailingSession:
            db = FailingSession()
            sessions.append(db)
            return db

        def failing_get_db():
            yield from session_scope(failing_session)

        app.dependency_overrides[get_db] = failing_get_db
        for method, path in (("GET", "/budget/history"), ("GET", "/alerts")):
            r = self.client.request(method, path, headers=self._auth())
            self.assertEqual(r.status_code, 500, path)
            self.assertEqual(r.json(), {"detail": "Internal server error"})
            self.assertIn("x-request-id", r.headers)
        self.assertEqual(len(sessions), 2)
        self.assertEqual([db.rollbacks for db in sessions], [1, 1])


class AlertsAndCategoryBudgetTests(BudgetApiTestCase):
    def setUp(self):
        super().setUp()
        self.food = self._seed(add_category, self.user_id, "Food")
        self.now = datetime.now().replace(day=1, hour=12, minute=0, second=0, microsecond=0)
        self.month = current_month_key()

    def _upsert(self, category_id, amount, threshold=80, token=None):
        return self.client.post(
            "/category-budgets",
            json={"categoryId": str(category_id), "budgetAmount": amount, "alertThreshold": threshold},
            headers=self._auth(token),
        )

    def test_upsert_list_and_delete(self):
        first = self._upsert(self.food.id, 1000)
        self.assertEqual(first.status_code, 200, first.text)
        second = self._upsert(self.food.id, 2000, threshold=50).json()["budget"]
        self.assertEqual(second["id"], first.json()["budget"]["id"])
        self.assertEqual(second["budgetAmount"], 2000)
        self.assertEqual(second["period"], "monthly")

        self._seed(add_expense, self.user_id, "Food", 1500, self.now)
        budgets = self.client.get("/category-budgets", headers=self._auth()).json()["budgets"]
        self.assertEqual(len(budgets), 1)
        self.assertEqual(budgets[0]["spentAmount"], 1500)
        self.assertEqual(budgets[0]["remainingAmount"], 500)
        self.assertEqual(budgets[0]["percentageUsed"], 75.0)
        self.assertFalse(budgets[0]["isExceeded"])
        self.assertTrue(budgets[0]["isNearThreshold"])

        r = self.client.delete(f"/category-budgets/{second['id']}", headers=self._auth())
        self.assertEqual(r.status_code, 204)
        r = self.client.delete(f"/category-budgets/{second['id']}", headers=self._auth())
        self.assertEqual(r.status_code, 404)

    def test_upsert_rejects_foreign_category(self):
        other_token, _ = self._register("ravi@example.com")
        self.assertEqual(self._upsert(self.food.id, 100, token=other_token).status_code, 404)
        self.assertEqual(self._upsert(uuid.uuid4(), 100).status_code, 404)

    def test_inactive_budget_is_kept_but_ignored(self):
        self._upsert(self.food.id, 1000)
        self._seed(add_expense, self.user_id, "Food", 1200, self.now)
        r = self.client.post(
            "/category-budgets",
            json={"categoryId": str(self.food.id), "budgetAmount": 1000, "isActive": False},
            headers=self._auth(),
        )
        self.assertEqual(r.status_code, 200, r.text)
        self.assertFalse(r.json()["budget"]["isActive"])
        self.assertEqual(self.client.get("/category-budgets", headers=self._auth()).json()["budgets"], [])
        self.assertEqual(self.client.get("/alerts", headers=self._auth()).json()["alerts"], [])
        check = self.client.post(
            "/category-budgets/check-alerts", json={"categoryName": "Food", "amount": 10}, headers=self._auth()
        )
        self.assertFalse(check.json()["hasAlert"])

        self.assertTrue(self._upsert(self.food.id, 1000).json()["budget"]["isActive"])
        budgets = self.client.get("/category-budgets", headers=self._auth()).json()["budgets"]
        self.assertEqual([b["isExceeded"] for b in budgets], [True])

    def test_check_alerts(self):
        self._upsert(self.food.id, 1000)
        r = self.client.post("/category-budgets/check-alerts", json={"categoryName": "Food", "amount": 50}, headers=self._auth())
        self.assertEqual(r.json(), {"hasAlert": False, "alert": None})
        self._seed(add_expense, self.user_id, "Food", 1000, self.now)
        body = self.client.post(
            "/category-budgets/check-alerts", json={"categoryName": "Food", "amount": 50}, headers=self._auth()
        ).json()
        self.assertTrue(body["hasAlert"])
        self.assertTrue(body["alert"]["isExceeded"])

    def test_alerts_combine_category_budget_and_plan(self):
        self._upsert(self.food.id, 1000)
        self._seed(add_expense, self.user_id, "Food", 1200, self.now)
        self.client.post(
            "/budget/save",
            json={
                "month": self.month,
                "method": "50-30-20",
                "income": 5000,
                "targetSavingsPct": 0,
                "allocations": [{"category": "Food", "amount": 1000, "pct": 20}],
            },
            headers=self._auth(),
        )
        for params in ({"month": self.month}, {}):
            alerts = self.client.get("/alerts", params=params, headers=self._auth()).json()["alerts"]
            self.assertEqual(
                [(a["type"], a["severity"]) for a in alerts],
                [("category_budget_exceeded", "error"), ("budget_over", "warning")],
            )
        self.assertEqual(self.client.get("/alerts", params={"month": "26-1"}, headers=self._auth()).status_code, 400)


class AutoBudgetAndInsightsTests(BudgetApiTestCase):
    def setUp(self):
        super().setUp()
        self._seed(add_category, self.user_id, "Food")
        self._seed(add_category, self.user_id, "Fuel")
        self._seed(add_category, self.user_id, "Salary", EntryType.INCOME)
        now = datetime.now().replace(day=1, hour=12, minute=0, second=0, microsecond=0)
        self._seed(add_expense, self.user_id, "Food", 300, now)
        self._seed(add_expense, self.user_id, "Fuel", 100, now)

    def test_suggest_rescales_ai_split_without_saving(self):
        self.ai.category_budgets = AIResult.success([
            {"category": "Food", "amount": 3, "reasoning": "Cook at home"},
            {"category": "Fuel", "amount": 1},
        ])
        r = self.client.post(
            "/category-budgets/suggest",
            json={"availableBalance": 8000, "preferences": "fewer takeaways"},
            headers=self._auth(),
        )
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertEqual(
            [(s["category"], s["amount"], s["reasoning"]) for s in body["suggestions"]],
            [("Food", 6000, "Cook at home"), ("Fuel", 2000, "AI-allocated based on spending patterns")],
        )
        self.assertEqual(body["totalAllocated"], 8000)
        self.assertTrue(body["aiGenerated"])
        self.assertEqual(body["summary"], {"categories": 2, "averageAllocation": 4000})
        self.assertEqual(self.ai.last_kwargs["preferences"], "fewer takeaways")
        self.assertEqual(
            [(h["name"], h["totalSpent"]) for h in self.ai.last_kwargs["history"]],
            [("Food", 300), ("Fuel", 100)],
        )
        self.assertEqual(self.client.get("/category-budgets", headers=self._auth()).json()["budgets"], [])

    def test_auto_allocate_falls_back_to_history_and_upserts(self):
        first = self.client.post("/category-budgets/auto-allocate", json={"availableBalance": 1000}, headers=self._auth())
        self.assertEqual(first.status_code, 200, first.text)
        body = first.json()
        self.assertFalse(body["aiGenerated"])
        self.assertEqual(
            [
                (a["budget"]["categoryName"], a["budget"]["budgetAmount"], a["budget"]["alertThreshold"], a["budget"]["period"])
                for a in body["allocations"]
            ],
            [("Food", 750, 80, "monthly"), ("Fuel", 250, 80, "monthly")],
        )
        again = self.client.post("/category-budgets/auto-allocate", json={"availableBalance": 2000}, headers=self._auth()).json()
        self.assertEqual(
            [a["budget"]["id"] for a in again["allocations"]],
            [a["budget"]["id"] for a in body["allocations"]],
        )
        budgets = self.client.get("/category-budgets", headers=self._auth()).json()["budgets"]
        self.assertEqual([(b["categoryName"], b["budgetAmount"], b["spentAmount"]) for b in budgets], [
            ("Food", 1500, 300),
            ("Fuel", 500, 100),
        ])

    def test_auto_budget_needs_balance_and_expense_categories(self):
        r = self.client.post("/category-budgets/suggest", json={"availableBalance": 0}, headers=self._auth())
        self.assertEqual(r.status_code, 400)
        other_token, _ = self._register("ravi@example.com")
        r = self.client.post(
            "/category-budgets/auto-allocate", json={"availableBalance": 500}, headers=self._auth(other_token)
        )
        self.assertEqual(r.status_code, 400)
        self.assertIn("No expense categories", r.json()["detail"])
        self.assertEqual(self.ai.calls, [])

    def test_spending_insights(self):
        r = self.client.get("/insights/spending", params={"months": 2}, headers=self._auth())
        self.assertEqual(r.status_code, 200, r.text)
        body = r.json()
        self.assertEqual(len(body["monthly"]), 2)
        self.assertEqual(body["monthly"][-1], {"month": current_month_key(), "total": 400})
        self.assertEqual(body["topCategories"], [{"name": "Food", "total": 300}, {"name": "Fuel", "total": 100}])
        self.assertEqual(len(self.client.get("/insights/spending", headers=self._auth()).json()["monthly"]), 6)
        self.assertEqual(self.client.get("/insights/spending", params={"months": 25}, headers=self._auth()).status_code, 400)
        self.assertEqual(self.client.get("/insights/spending").status_code, 401)


if __name__ == "__main__":
    unittest.main()
