"""
Pytest configuration and fixtures.

PostgREST access is replaced by an in-memory store (`fake_db`) that
understands the equality filters and the query-string operators the
services use. External HTTP goes through httpx.MockTransport.
"""
import itertools
import os
import sys
import time
from collections import defaultdict
from urllib.parse import unquote

import httpx
import pytest
from jose import jwt

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config  # noqa: E402

DB_MODULES = [
    "services.chat_service",
    "services.hint_service",
    "services.ingestion_service",
    "services.practice_service",
    "services.problem_service",
    "services.rating_service",
    "services.recommendation_service",
    "services.summarization_service",
    "services.token_usage_service",
    "services.translation_service",
    "services.user_service",
]

SB_FUNCTIONS = ["sb_select", "sb_select_all", "sb_insert", "sb_upsert", "sb_update", "sb_delete", "sb_count"]


def _coerce(raw: str, sample):
    if isinstance(sample, bool):
        return raw == "true"
    if isinstance(sample, int):
        return int(raw)
    if isinstance(sample, float):
        return float(raw)
    return raw


def _condition(expr: str):
    column, _, rest = expr.partition("=")
    op, _, raw = rest.partition(".")

    if op == "in":
        values = {unquote(v) for v in raw.strip("()").split(",")}
        return lambda row: str(row.get(column)) in values
    if op == "not" and raw == "is.null":
        return lambda row: row.get(column) is not None
    if op == "is" and raw == "null":
        return lambda row: row.get(column) is None

    value = unquote(raw)
    compare = {
        "eq": lambda a, b: a == b,
        "gt": lambda a, b: a > b,
        "gte": lambda a, b: a >= b,
        "lt": lambda a, b: a < b,
        "lte": lambda a, b: a <= b,
    }[op]

    def check(row):
        current = row.get(column)
        if current is None:
            return False
        return compare(current, _coerce(value, current))

    return check


class FakeSupabase:
    """Just enough of PostgREST for the service layer."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = defaultdict(list)
        self.failing: set[str] = set()
        self.calls: list[tuple] = []
        self._ids = itertools.count(1)

    def seed(self, table: str, rows: list):
        for row in rows:
            self.tables[table].append({"id": next(self._ids), **row})

    def _check(self, table: str, action: str):
        self.calls.append((action, table))
        if table in self.failing:
            raise RuntimeError(f"{table} unavailable")

    def _filtered(self, table, filters=None, query_string=None):
        conditions = [
            (lambda row, k=k, v=v: row.get(k) == v or str(row.get(k)) == str(v))
            for k, v in (filters or {}).items()
        ]
        if query_string:
            conditions += [_condition(part) for part in query_string.split("&") if part]
        return [row for row in self.tables[table] if all(c(row) for c in conditions)]

    @staticmethod
    def _ordered(rows, order):
        for part in reversed((order or "").split(",")):
            if not part:
                continue
            column, _, direction = part.partition(".")
            rows = sorted(
                rows,
                key=lambda r: (r.get(column) is None, r.get(column)),
                reverse=direction == "desc",
            )
        return rows

    # ── sb_* replacements ──────────────────────────────────────────
    def sb_select(self, table, filters=None, columns="*", query_string=None, order=None, limit=None, offset=None):
        self._check(table, "select")
        rows = self._ordered(self._filtered(table, filters, query_string), order)
        rows = rows[offset or 0:]
        if limit is not None:
            rows = rows[:limit]
        if columns == "*":
            return [dict(r) for r in rows]
        keys = [c.strip() for c in columns.split(",")]
        return [{k: r.get(k) for k in keys} for r in rows]

    def sb_select_all(self, table, columns="*", order="id", page_size=1000, **kwargs):
        return self.sb_select(table, columns=columns, order=order, **kwargs)

    def sb_insert(self, table, data):
        self._check(table, "insert")
        row = {"id": next(self._ids), **data}
        self.tables[table].append(row)
        return dict(row)

    def sb_upsert(self, table, rows, on_conflict, ignore_duplicates=False):
        self._check(table, "upsert")
        if isinstance(rows, dict):
            rows = [rows]
        keys = on_conflict.split(",")
        written = []
        for data in rows:
            existing = next(
                (r for r in self.tables[table] if all(r.get(k) == data.get(k) for k in keys)),
                None,
            )
            if existing is None:
                row = {"id": next(self._ids), **data} if "id" not in keys else dict(data)
                self.tables[table].append(row)
                written.append(dict(row))
            elif not ignore_duplicates:
                existing.update(data)
                written.append(dict(existing))
        return written

    def sb_update(self, table, filters, data):
        self._check(table, "update")
        matched = self._filtered(table, filters)
        for row in matched:
            row.update(data)
        return dict(matched[0]) if matched else {}

    def sb_delete(self, table, filters):
        self._check(table, "delete")
        matched = self._filtered(table, filters)
        self.tables[table] = [r for r in self.tables[table] if r not in matched]
        return len(matched)

    def sb_count(self, table, filters=None, query_string=None):
        self._check(table, "count")
        return len(self._filtered(table, filters, query_string))


@pytest.fixture
def fake_db(monkeypatch):
    import importlib

    fake = FakeSupabase()
    for module_name in DB_MODULES:
        module = importlib.import_module(module_name)
        for name in SB_FUNCTIONS:
            if hasattr(module, name):
                monkeypatch.setattr(module, name, getattr(fake, name))
    return fake


class FakeRouter:
    """Stands in for LLMRouter; replies are consumed in order."""

    def __init__(self, *replies, total_tokens=100):
        self.replies = list(replies)
        self.total_tokens = total_tokens
        self.calls: list[dict] = []

    async def route(self, messages, preferred_provider=None, model=None, cache_ttl=0):
        self.calls.append({"messages": messages, "model": model})
        if not self.replies:
            return {"text": None, "provider": None, "model": model, "status": "error",
                    "error": "All providers failed", "cached": False, "total_tokens": 0}
        text = self.replies.pop(0)
        return {
            "text": text,
            "provider": "fake",
            "model": model,
            "status": "success",
            "error": None,
            "cached": False,
            "prompt_tokens": self.total_tokens // 2,
            "completion_tokens": self.total_tokens - self.total_tokens // 2,
            "total_tokens": self.total_tokens,
        }


@pytest.fixture
def fake_router():
    return FakeRouter


def mock_client_factory(handler, **kwargs):
    """Replacement for a module's `_http_client` serving `handler`."""
    def factory():
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True, **kwargs)
    return factory


@pytest.fixture
def make_token():
    def _make(user_id: str = "user-1", expires_in: int = 3600) -> str:
        return jwt.encode(
            {"sub": user_id, "aud": config.JWT_AUDIENCE, "exp": int(time.time()) + expires_in},
            config.SUPABASE_JWT_SECRET,
            algorithm=config.JWT_ALGORITHM,
        )
    return _make


@pytest.fixture
def mock_client():
    return mock_client_factory
