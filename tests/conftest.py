from types import SimpleNamespace

import pytest


class FakeRequest:
    """Chainable stand-in for a supabase query builder (eq/limit/execute)."""

    def __init__(self, db, table, op, payload=None):
        self.db = db
        self.table = table
        self.op = op
        self.payload = payload
        self.filters = []
        self.limit_n = None

    def eq(self, key, value):
        self.filters.append((key, value))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(row.get(k) == v for k, v in self.filters)

    def execute(self):
        rows = self.db.setdefault(self.table, [])
        if self.op == "select":
            data = [dict(r) for r in rows if self._matches(r)]
            if self.limit_n is not None:
                data = data[: self.limit_n]
        elif self.op == "insert":
            rows.append(dict(self.payload))
            data = [dict(self.payload)]
        elif self.op == "update":
            data = []
            for r in rows:
                if self._matches(r):
                    r.update(self.payload)
                    data.append(dict(r))
        else:
            data = [dict(r) for r in rows if self._matches(r)]
            self.db[self.table] = [r for r in rows if not self._matches(r)]
        return SimpleNamespace(data=data)


class FakeTable:
    def __init__(self, db, name):
        self.db = db
        self.name = name

    def select(self, _cols):
        return FakeRequest(self.db, self.name, "select")

    def insert(self, payload):
        return FakeRequest(self.db, self.name, "insert", payload)

    def update(self, payload):
        return FakeRequest(self.db, self.name, "update", payload)

    def delete(self):
        return FakeRequest(self.db, self.name, "delete")


class FakeSupabase:
    def __init__(self):
        self.db = {}

    def table(self, name):
        return FakeTable(self.db, name)


@pytest.fixture()
def fake_supabase():
    return FakeSupabase()
