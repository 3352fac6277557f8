from typing import Callable, List, Optional, Sequence, Tuple

import pytds
import pytest

CONFIG_INI = """
[portal_db]
server = db.example.com,14330
database = WoidPortal
user = portal
password = s3cret

[identity]
hostname = clerk.example.com

[portal]
timezone = America/New_York
production_marker = prod-db
log_dir = logs
"""

# A responder maps (sql, params) to (column names, rows), or None for statements without results.
Responder = Callable[[str, Optional[Sequence]], Optional[Tuple[Sequence[str], List[tuple]]]]


class FakeCursor:
    def __init__(self, connection: "FakeConnection"):
        self._connection = connection
        self.description = None
        self._rows: List[tuple] = []

    def execute(self, sql, params=None):
        self._connection.executed.append((" ".join(sql.split()), params))
        result = self._connection.responder(sql, params)
        if result is None:
            self.description, self._rows = None, []
        else:
            columns, rows = result
            self.description = [(name, None, None, None, None, None, None) for name in columns]
            self._rows = list(rows)

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None


class FakeConnection:
    def __init__(self, responder: Responder):
        self.responder = responder
        self.executed: List[tuple] = []
        self.commits = 0
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text(CONFIG_INI)
    return str(path)


@pytest.fixture
def fake_db(monkeypatch):
    """Replaces pytds.connect; call the returned function with a responder to script the database."""
    state = {"connections": [], "connect_kwargs": []}

    def install(responder: Responder):
        def connect(**kwargs):
            state["connect_kwargs"].append(kwargs)
            connection = FakeConnection(responder)
            state["connections"].append(connection)
            return connection

        monkeypatch.setattr(pytds, "connect", connect)
        return state

    return install
