"""In-memory stand-in for the hosted backend used by service flow tests."""
from __future__ import annotations

import copy
import itertools
from typing import Any, Dict, List, Mapping, Optional

import pytest

from shortreads.backend import BackendError, BackendNotFoundError, client
from shortreads.db.engine import init_engine_once, reset_for_tests


def _literal(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return str(value)


def _matches(value: Any, expr: str) -> bool:
    op, _, operand = expr.partition(".")
    if op == "eq":
        return _literal(value) == operand
    if op == "neq":
        return _literal(value) != operand
    if op == "is":
        return value is None
    if op == "in":
        return _literal(value) in operand.strip("()").split(",")
    raise AssertionError(f"unsupported filter {expr}")


class FakeBackend:
    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self._ids = itertools.count(1)
        self.failures: Dict[tuple, BackendError] = {}

    # -- helpers for tests
    def fail(self, op: str, table: str, exc: Optional[BackendError] = None) -> None:
        """Make every ``op`` on ``table`` raise until cleared."""
        self.failures[(op, table)] = exc or BackendError("http_error", 500, {"table": table})

    def _check(self, op: str, table: str) -> None:
        exc = self.failures.get((op, table))
        if exc is not None:
            raise exc

    def seed(self, table: str, **row: Any) -> Dict[str, Any]:
        row.setdefault("id", next(self._ids))
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def find(self, table: str, **match: Any) -> Optional[Dict[str, Any]]:
        for row in self.rows(table):
            if all(row.get(k) == v for k, v in match.items()):
                return row
        return None

    # -- client surface
    def _embed(self, table: str, row: Dict[str, Any], columns: str) -> Dict[str, Any]:
        out = copy.deepcopy(row)
        if "stories" in columns and "story_id" in row:
            story = self.find("stories", id=row["story_id"])
            if story is not None:
                out["stories"] = self._embed("stories", story, columns.replace("stories", "", 1))
            else:
                out["stories"] = None
        if table == "stories" and "authors(" in columns:
            out["authors"] = copy.deepcopy(self.find("authors", id=row.get("author_id")))
        return out

    def _filtered(self, table: str, filters: Optional[Mapping[str, str]], columns: str = "*") -> List[Dict[str, Any]]:
        result = []
        for row in self.rows(table):
            view = self._embed(table, row, columns)
            ok = True
            for key, expr in (filters or {}).items():
                if "." in key:
                    parent, child = key.split(".", 1)
                    value = (view.get(parent) or {}).get(child)
                else:
                    value = row.get(key)
                if not _matches(value, expr):
                    ok = False
                    break
            if ok:
                result.append((row, view))
        return result

    def select(self, table, *, columns="*", filters=None, order=None, limit=None, offset=None, service=False):
        self.calls.append(("select", table, service))
        views = [view for _, view in self._filtered(table, filters, columns)]
        return views[:limit] if limit is not None else views

    def select_one(self, table, *, columns="*", filters=None, service=False):
        rows = self.select(table, columns=columns, filters=filters, limit=1, service=service)
        if not rows:
            raise BackendNotFoundError("not_found", 404, {"table": table})
        return rows[0]

    def insert(self, table, rows, *, service=False, returning=True):
        self.calls.append(("insert", table, service))
        self._check("insert", table)
        batch = rows if isinstance(rows, list) else [rows]
        created = [self.seed(table, **dict(row)) for row in batch]
        return copy.deepcopy(created) if returning else []

    def upsert(self, table, rows, *, on_conflict, service=False):
        self.calls.append(("upsert", table, service))
        keys = on_conflict.split(",")
        batch = rows if isinstance(rows, list) else [rows]
        out = []
        for row in batch:
            existing = self.find(table, **{k: row[k] for k in keys})
            if existing is None:
                existing = self.seed(table, **dict(row))
            else:
                existing.update(row)
            out.append(copy.deepcopy(existing))
        return out

    def update(self, table, values, *, filters, service=False):
        self.calls.append(("update", table, service))
        self._check("update", table)
        changed = []
        for row, _ in self._filtered(table, filters):
            row.update(values)
            changed.append(copy.deepcopy(row))
        return changed

    def delete(self, table, *, filters, service=False):
        self.calls.append(("delete", table, service))
        self._check("delete", table)
        doomed = [row for row, _ in self._filtered(table, filters)]
        self.tables[table] = [row for row in self.rows(table) if row not in doomed]
        return len(doomed)

    def rpc(self, function, params=None, *, service=False):
        self.calls.append(("rpc", function, service))
        if function == "increment_story_views":
            story = self.find("stories", id=params["p_story_id"])
            if story is not None:
                story["views_count"] = int(story.get("views_count") or 0) + 1
        return None


@pytest.fixture
def in_memory_db(monkeypatch):
    reset_for_tests(drop=True)
    monkeypatch.setenv("SHORTREADS_CACHE_DB_PATH", ":memory:")
    init_engine_once()
    yield
    reset_for_tests(drop=True)


@pytest.fixture
def fake_backend(monkeypatch, in_memory_db) -> FakeBackend:
    backend = FakeBackend()
    for name in ("select", "select_one", "insert", "upsert", "update", "delete", "rpc"):
        monkeypatch.setattr(client, name, getattr(backend, name))
    monkeypatch.setattr(client, "is_configured", lambda service=False: True)
    return backend
