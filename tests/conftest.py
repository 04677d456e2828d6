"""
Shared fixtures and fakes.

No test needs a live PostgreSQL server: the connection collaborator and the
`sqledger_scripts` table are replaced by small in-memory fakes that speak the
same methods PostgresManager exposes.
"""

from typing import Dict, List, Optional, Tuple

import pytest

from core.errors import StatementError
from core.postgres_manager import ColumnInfo, RawResult, TypeTag


def col(name: str, tag: TypeTag = TypeTag.TEXT, type_name: Optional[str] = None) -> ColumnInfo:
    return ColumnInfo(name, tag, type_name or tag.value)


class FakeConnection:
    """Stands in for PostgresManager when running statements."""

    def __init__(
        self,
        name: str = "default",
        result: Optional[RawResult] = None,
        affected: Optional[int] = None,
        error: Optional[Exception] = None,
    ):
        self.name = name
        self.result = result or RawResult([], [])
        self.affected = affected
        self.error = error
        self.queries: List[str] = []
        self.batches: List[str] = []
        self.disconnected = False

    def execute_query(self, sql: str) -> RawResult:
        self.queries.append(sql)
        if self.error:
            raise self.error
        return self.result

    def execute_batch(self, sql: str) -> Optional[int]:
        self.batches.append(sql)
        if self.error:
            raise self.error
        return self.affected

    def disconnect(self):
        self.disconnected = True


class FakeScriptTable:
    """In-memory `sqledger_scripts` behind the fetch_all/execute interface."""

    def __init__(self):
        self.rows: Dict[int, Tuple[str, str]] = {}
        self._next_id = 1
        self.fail_with: Optional[StatementError] = None

    def _check(self):
        if self.fail_with:
            raise self.fail_with

    def _duplicate(self, name: str, exclude: Optional[int] = None):
        if any(n == name and i != exclude for i, (n, _) in self.rows.items()):
            raise StatementError(
                'duplicate key value violates unique constraint "sqledger_scripts_name_key"',
                code="23505",
            )

    def fetch_all(self, sql: str, params=()):
        self._check()
        if sql.startswith("SELECT id, name, content"):
            return sorted(((i, n, c) for i, (n, c) in self.rows.items()), key=lambda r: r[1])
        if sql.startswith("INSERT"):
            (name,) = params
            self._duplicate(name)
            script_id = self._next_id
            self._next_id += 1
            self.rows[script_id] = (name, "")
            return [(script_id,)]
        if sql.startswith("SELECT content"):
            (script_id,) = params
            return [(self.rows[script_id][1],)] if script_id in self.rows else []
        raise AssertionError(f"unexpected SQL: {sql}")

    def execute(self, sql: str, params=()):
        self._check()
        if sql.startswith("UPDATE sqledger_scripts SET name"):
            new_name, script_id = params
            if script_id not in self.rows:
                return 0
            self._duplicate(new_name, exclude=script_id)
            self.rows[script_id] = (new_name, self.rows[script_id][1])
            return 1
        if sql.startswith("UPDATE sqledger_scripts SET content"):
            content, script_id = params
            if script_id not in self.rows:
                return 0
            self.rows[script_id] = (self.rows[script_id][0], content)
            return 1
        if sql.startswith("DELETE"):
            (script_id,) = params
            return 1 if self.rows.pop(script_id, None) else 0
        raise AssertionError(f"unexpected SQL: {sql}")


@pytest.fixture
def script_dir(tmp_path):
    directory = tmp_path / "scripts"
    directory.mkdir()
    return directory


@pytest.fixture
def write_script(script_dir):
    """Create `<name>.sql` in the script directory."""
    def _write(name: str, content: str = ""):
        path = script_dir / f"{name}.sql"
        path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def table():
    return FakeScriptTable()
