"""
Unit tests for core/postgres_manager.py

Coverage plan
─────────────
describe_column       → OID → (type name, tag) table, unknown OID fallback
_is_connection_failure → SQLSTATE class 08, driver-side errors without a code
to_statement_error    → code/message/detail/hint/position preserved
PostgresManager       → error mapping, not-connected guard, bootstrap wrapping

None of these open a real connection.
"""

from types import SimpleNamespace

import psycopg2
import pytest

from core.errors import DatabaseConnectionError, StatementError
from core.postgres_manager import (
    PG_TYPES,
    PostgresManager,
    TypeTag,
    _is_connection_failure,
    describe_column,
    to_statement_error,
)


def server_error(pgcode, message="boom", detail=None, hint=None, position=None):
    """Duck-typed stand-in for a psycopg2 error raised by the server."""
    diag = SimpleNamespace(
        message_primary=message,
        message_detail=detail,
        message_hint=hint,
        statement_position=position,
    )
    return SimpleNamespace(pgcode=pgcode, diag=diag)


# ─────────────────────────────────────────────────────────────────────────────
# 1. Column types
# ─────────────────────────────────────────────────────────────────────────────

class TestDescribeColumn:

    @pytest.mark.parametrize("oid,type_name,tag", [
        (16, "bool", TypeTag.BOOL),
        (21, "int2", TypeTag.SMALLINT),
        (23, "int4", TypeTag.INTEGER),
        (20, "int8", TypeTag.BIGINT),
        (701, "float8", TypeTag.FLOAT),
        (1082, "date", TypeTag.DATE),
        (1266, "timetz", TypeTag.TIME),
        (1184, "timestamptz", TypeTag.TIMESTAMP),
        (1043, "varchar", TypeTag.TEXT),
        (1700, "numeric", TypeTag.TEXT),
    ])
    def test_known_types(self, oid, type_name, tag):
        column = describe_column(SimpleNamespace(name="c", type_code=oid))
        assert (column.name, column.type_name, column.type_tag) == ("c", type_name, tag)

    def test_unknown_oid_uses_fallback(self):
        column = describe_column(SimpleNamespace(name="raw", type_code=17))
        assert column.type_tag is TypeTag.OTHER
        assert column.type_name == "oid 17"

    def test_every_mapped_type_has_a_tag_other_than_fallback(self):
        assert all(tag is not TypeTag.OTHER for _, tag in PG_TYPES.values())


# ─────────────────────────────────────────────────────────────────────────────
# 2. Error classification
# ─────────────────────────────────────────────────────────────────────────────

class TestConnectionFailure:

    @pytest.mark.parametrize("pgcode", ["08000", "08003", "08006", "08P01"])
    def test_sqlstate_class_08(self, pgcode):
        assert _is_connection_failure(server_error(pgcode)) is True

    @pytest.mark.parametrize("pgcode", ["42601", "42P01", "23505", "57014"])
    def test_other_sqlstates_are_statement_errors(self, pgcode):
        assert _is_connection_failure(server_error(pgcode)) is False

    def test_operational_error_without_code(self):
        assert _is_connection_failure(psycopg2.OperationalError("server closed the connection unexpectedly")) is True

    def test_interface_error_without_code(self):
        assert _is_connection_failure(psycopg2.InterfaceError("connection already closed")) is True

    def test_programming_error_without_code(self):
        assert _is_connection_failure(psycopg2.ProgrammingError("can't execute an empty query")) is False


class TestToStatementError:

    def test_all_diagnostics_are_kept(self):
        error = server_error(
            "42703",
            message='column "nme" does not exist',
            detail="some detail",
            hint='Perhaps you meant to reference the column "t.name".',
            position="8",
        )
        converted = to_statement_error(error, "Error executing query")
        assert converted.code == "42703"
        assert converted.message == 'column "nme" does not exist'
        assert converted.detail == "some detail"
        assert converted.hint == 'Perhaps you meant to reference the column "t.name".'
        assert converted.position == 8
        assert converted.context == "Error executing query"

    def test_missing_position(self):
        assert to_statement_error(server_error("42601"), "ctx").position is None

    def test_driver_error_falls_back_to_its_text(self):
        converted = to_statement_error(psycopg2.ProgrammingError("can't execute an empty query\n"), "ctx")
        assert converted.code is None
        assert converted.message == "can't execute an empty query"


# ─────────────────────────────────────────────────────────────────────────────
# 3. Manager
# ─────────────────────────────────────────────────────────────────────────────

class TestPostgresManager:

    def test_connection_failure_is_raised_as_connection_error(self):
        manager = PostgresManager("db")
        with pytest.raises(DatabaseConnectionError, match="Connection to 'db' failed"):
            manager._raise_for(psycopg2.OperationalError("server closed the connection unexpectedly"), "Error executing query")

    def test_statement_failure_is_raised_as_statement_error(self):
        manager = PostgresManager("db")
        with pytest.raises(StatementError) as info:
            manager._raise_for(psycopg2.ProgrammingError("can't execute an empty query"), "Error executing command")
        assert info.value.context == "Error executing command"

    @pytest.mark.parametrize("call", [
        lambda m: m.execute_query("SELECT 1"),
        lambda m: m.execute_batch("SELECT 1"),
        lambda m: m.fetch_all("SELECT 1"),
        lambda m: m.execute("SELECT 1"),
    ])
    def test_not_connected(self, call):
        manager = PostgresManager("db")
        assert manager.is_connected() is False
        with pytest.raises(DatabaseConnectionError, match="Not connected to 'db'"):
            call(manager)

    def test_invalid_url_is_a_connection_error(self):
        with pytest.raises(DatabaseConnectionError, match="Failed to connect to 'db'"):
            PostgresManager("db").connect("this is not a dsn")

    def test_table_bootstrap_failure_names_the_connection(self, monkeypatch):
        manager = PostgresManager("db")

        def refuse(sql):
            raise StatementError("permission denied for schema public", code="42501")

        monkeypatch.setattr(manager, "execute_batch", refuse)
        with pytest.raises(DatabaseConnectionError) as info:
            manager.init_script_table()
        assert str(info.value) == "Connected to 'db', but failed to init table: permission denied for schema public"

    def test_disconnect_without_connection(self):
        manager = PostgresManager("db")
        manager.disconnect()
        assert manager.is_connected() is False
