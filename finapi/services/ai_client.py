"""
Call OpenAI-compatible backends (Groq, self-hosted gateways, etc.) for budget suggestions.

Every public suggestion method returns an `AIResult` and never raises: the budget
engine consumes only successful results and falls back to its own baseline otherwise.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import httpx

from finapi.core.ai_runtime import AIBackendConfig, resolve_ai_backend


logger = logging.getLogger("finapi.ai")

T = TypeVar("T")

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class AIClientError(Exception):
    """Raised when the AI backend is unreachable or returns unusable data."""
    pass


@dataclass(frozen=True)
class AIResult(Generic[T]):
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "AIResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> "AIResult[T]":
        return cls(error=error or "AI backend failed")


def chat_completions_url(base: str) -> str:
    b = (base or "").rstrip("/")
    if b.endswith("/chat/completions"):
        return b
    if "/openai/" in b or re.search(r"/v\d+$", b):
        return f"{b}/chat/completions"
    return f"{b}/v1/chat/completions"


def extract_json_object(content: str) -> dict[str, Any]:
    """Pull the first JSON object out of model output (reasoning blocks and code fences are dropped)."""
    text = re.sub(r"<think>[\s\S]*?</think>", "", content or "", flags=re.IGNORECASE).strip()
    m = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if m:
        text = m.group(1).strip()
    if not text.startswith("{"):
        start = text.find("{")
        end = text.rfind("}")
        if start < 0 or end <= start:
            raise AIClientError("Model returned no JSON object.")
        text = text[start : end + 1]
    try:
        out = json.loads(text)
    except json.JSONDecodeError as e:
        raise AIClientError(f"Model output is not valid JSON: {e!s}. Raw (first 200 chars): {text[:200]!r}") from e
    if not isinstance(out, dict):
        raise AIClientError(f"Model output must be a JSON object. Got: {type(out).__name__}")
    return out


def _allocation_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "allocations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"category": {"type": "string"}, "amount": {"type": "number"}},
                    "required": ["category", "amount"],
                },
            }
        },
        "required": ["allocations"],
    }


def _changes_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "changes": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "category": {"type": "string"},
                        "deltaAmount": {"type": "number"},
                        "reason": {"type": "string"},
                    },
                    "required": ["category", "deltaAmount", "reason"],
                },
            }
        },
        "required": ["changes"],
    }


def _category_budget_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "allocations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "category": {"type": "string"},
                        "amount": {"type": "number"},
                        "reasoning": {"type": "string"},
                    },
                    "required": ["category", "amount"],
                },
            }
        },
        "required": ["allocations"],
    }


class BudgetAIClient:
    def __init__(self, config: AIBackendConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        POST a chat completion with retries on timeout, connection errors and 429/5xx.
        Raises AIClientError after retries are exhausted.
        """
        cfg = self.config
        url = chat_completions_url(cfg.base_url)
        last_error: Exception | None = None
        for attempt in range(cfg.max_attempts):
            last_attempt = attempt >= cfg.max_attempts - 1
            try:
                async with httpx.AsyncClient(timeout=cfg.timeout, transport=self._transport) as client:
                    r = await client.post(url, json=payload, headers=cfg.headers() or None)
                    r.raise_for_status()
                    return r.json()
            except httpx.TimeoutException as e:
                last_error = e
                if not last_attempt:
                    await asyncio.sleep(cfg.retry_delay)
                    continue
                raise AIClientError("AI backend did not respond in time.") from e
            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code in RETRYABLE_STATUS and not last_attempt:
                    await asyncio.sleep(cfg.retry_delay)
                    continue
                raise AIClientError(f"AI backend returned {e.response.status_code} at {url}.") from e
            except httpx.TransportError as e:
                # connect errors and interrupted connections
                last_error = e
                if not last_attempt:
                    await asyncio.sleep(cfg.retry_delay)
                    continue
                raise AIClientError(f"Cannot reach AI backend at {cfg.base_url}.") from e
            except (httpx.HTTPError, json.JSONDecodeError) as e:
                raise AIClientError(f"Request to AI backend failed: {e!s}") from e
        raise AIClientError("AI backend did not respond after retries.") from last_error

    async def complete_json(self, system: str, user: str, schema_name: str, schema: dict[str, Any]) -> dict[str, Any]:
        if not self.config.enabled:
            raise AIClientError("AI backend is not configured.")
        payload = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": 0.2,
            "max_tokens": 1024,
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema},
            },
        }
        data = await self._post(payload)
        choices = data.get("choices") or []
        if not choices:
            raise AIClientError("AI backend returned no choices.")
        content = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not content:
            raise AIClientError("AI backend returned an empty response.")
        return extract_json_object(content)

    async def suggest_allocations(
        self,
        *,
        income: float,
        target_savings_pct: float,
        method: str,
        categories: list[str],
    ) -> AIResult[list[dict[str, Any]]]:
        system = (
            "Return JSON only matching schema. Create monthly budget allocations "
            "across provided categories. No NSFW."
        )
        user = (
            f"Income: {income}, SavingsTargetPct: {target_savings_pct}, "
            f"Method: {method}, Categories: {', '.join(categories)}"
        )
        try:
            out = await self.complete_json(system, user, "budget", _allocation_schema())
        except AIClientError as e:
            logger.warning("ai_allocations_failed provider=%s error=%s", self.config.provider, e)
            return AIResult.failure(str(e))
        rows = out.get("allocations")
        if not isinstance(rows, list):
            return AIResult.failure("Model output has no 'allocations' array.")
        return AIResult.success(rows)

    async def suggest_changes(
        self,
        *,
        income: float,
        target_savings_pct: float,
        allocations: list[dict[str, Any]],
    ) -> AIResult[list[dict[str, Any]]]:
        system = "Provide JSON with suggested budget changes and short reasons. No NSFW."
        current = ", ".join(f"{a.get('category')}:{a.get('amount')}" for a in allocations)
        user = f"Income {income}, SavingsTarget {target_savings_pct}%, Current allocations: {current}"
        try:
            out = await self.complete_json(system, user, "reco", _changes_schema())
        except AIClientError as e:
            logger.warning("ai_changes_failed provider=%s error=%s", self.config.provider, e)
            return AIResult.failure(str(e))
        rows = out.get("changes")
        if not isinstance(rows, list):
            return AIResult.failure("Model output has no 'changes' array.")
        return AIResult.success(rows)


    async def suggest_category_budgets(
        self,
        *,
        available_balance: float,
        history: list[dict[str, Any]],
        preferences: str | None = None,
    ) -> AIResult[list[dict[str, Any]]]:
        """`history` rows carry name, totalSpent, transactionCount and avgAmount per expense category."""
        system = (
            "You are a financial advisor. Return JSON only matching schema. Split the whole available "
            "balance across the listed expense categories. Categories with higher historical spending "
            "get larger amounts, essentials get adequate funding, and a category gets 0 only when it "
            "has no spending history. Give a short reasoning per category. No NSFW."
        )
        lines = "\n".join(
            f"- {h.get('name')}: total spent {round(h.get('totalSpent') or 0)}, "
            f"{h.get('transactionCount') or 0} transactions, avg {round(h.get('avgAmount') or 0)}"
            for h in history
        )
        user = (
            f"Available balance: {available_balance}\n"
            f"Categories with 6-month spending history:\n{lines}\n"
            f"Preferences: {preferences or 'none'}"
        )
        try:
            out = await self.complete_json(system, user, "category_budgets", _category_budget_schema())
        except AIClientError as e:
            logger.warning("ai_category_budgets_failed provider=%s error=%s", self.config.provider, e)
            return AIResult.failure(str(e))
        rows = out.get("allocations")
        if not isinstance(rows, list):
            return AIResult.failure("Model output has no 'allocations' array.")
        return AIResult.success(rows)


def get_ai_client() -> BudgetAIClient:
    """FastAPI dependency; tests replace it through `app.dependency_overrides`."""
    return BudgetAIClient(resolve_ai_backend())
