from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest


class FakeQuery:
    """Chainable stand-in for a Supabase table query."""

    def __init__(self, data=None, count=None, error=None):
        self.response = SimpleNamespace(data=data, count=count)
        self.error = error
        self.calls = []

    def _record(self, name, *args, **kwargs):
        self.calls.append((name, args, kwargs))
        return self

    def __getattr__(self, name):
        if name in ("select", "eq", "order", "range", "single", "maybe_single", "limit", "insert", "update"):
            return lambda *args, **kwargs: self._record(name, *args, **kwargs)
        raise AttributeError(name)

    def execute(self):
        if self.error:
            raise self.error
        if not self.response.data:
            # PostgREST answers 406 for single() on zero rows; maybe_single() yields nothing
            if self.called("single"):
                raise RuntimeError("JSON object requested, multiple (or no) rows returned")
            if self.called("maybe_single"):
                return None
        return self.response

    def called(self, name):
        return [call for call in self.calls if call[0] == name]


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.auth = MagicMock()
        self.storage = MagicMock()

    def set_table(self, name, query):
        self.tables[name] = query
        return query

    def table(self, name):
        return self.tables.setdefault(name, FakeQuery(data=[]))


@pytest.fixture
def fake_supabase(monkeypatch):
    import shared_functions
    import payments

    client = FakeSupabase()
    monkeypatch.setattr(shared_functions, "get_supabase", lambda: client)
    monkeypatch.setattr(payments, "get_supabase", lambda: client)
    return client


@pytest.fixture
def font_file(tmp_path):
    path = tmp_path / "Test-Regular.ttf"
    path.write_bytes(b"\x00\x01\x00\x00fontdata")
    return path


RAW_ICON = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" "http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">\n'
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 1024 1024" width="1024" height="1024">'
    '<path d="M10 10 L100 100" stroke="black"/><g><circle cx="5" cy="5" r="2"/></g>'
    '</svg>'
)


@pytest.fixture
def raw_icon():
    return RAW_ICON


@pytest.fixture
def make_query():
    return FakeQuery
