# ============================================================
# sqledger - SQL Script Ledger
# core/postgres_manager.py — PostgreSQL Connection & Operations Manager
# ============================================================

import time
from enum import Enum
from typing import Optional, List, Tuple, Any, Sequence

import psycopg2
import psycopg2.extensions
from loguru import logger

from core.errors import DatabaseConnectionError, StatementError


class TypeTag(Enum):
    """Semantic type of a result column, derived from the PostgreSQL type OID."""
    BOOL = "bool"
    SMALLINT = "smallint"
    INTEGER = "integer"
    BIGINT = "bigint"
    FLOAT = "float"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    TEXT = "text"
    OTHER = "other"


# OID -> (type name, semantic tag). Values of these types are fetched as raw
# server text and decoded by the query executor.
PG_TYPES = {
    16: ("bool", TypeTag.BOOL),
    21: ("int2", TypeTag.SMALLINT),
    23: ("int4", TypeTag.INTEGER),
    20: ("int8", TypeTag.BIGINT),
    700: ("float4", TypeTag.FLOAT),
    701: ("float8", TypeTag.FLOAT),
    1082: ("date", TypeTag.DATE),
    1083: ("time", TypeTag.TIME),
    1266: ("timetz", TypeTag.TIME),
    1114: ("timestamp", TypeTag.TIMESTAMP),
    1184: ("timestamptz", TypeTag.TIMESTAMP),
    25: ("text", TypeTag.TEXT),
    1043: ("varchar", TypeTag.TEXT),
    1042: ("bpchar", TypeTag.TEXT),
    19: ("name", TypeTag.TEXT),
    1700: ("numeric", TypeTag.TEXT),
    2950: ("uuid", TypeTag.TEXT),
    114: ("json", TypeTag.TEXT),
    3802: ("jsonb", TypeTag.TEXT),
}

RAW_TEXT = psycopg2.extensions.new_type(
    tuple(PG_TYPES), "SQLEDGER_RAW_TEXT", lambda value, cursor: value
)

SCRIPT_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS sqledger_scripts (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        content TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMP DEFAULT NOW(),
        updated_at TIMESTAMP DEFAULT NOW()
    );
"""


class ColumnInfo:
    """Name and type of a result column."""

    def __init__(self, name: str, type_tag: TypeTag, type_name: str):
        self.name = name
        self.type_tag = type_tag
        self.type_name = type_name

    def __repr__(self):
        return f"<ColumnInfo {self.name}:{self.type_name}>"


class RawResult:
    """Rows of a query as delivered by the driver, before decoding."""

    def __init__(self, columns: List[ColumnInfo], rows: List[Tuple], execution_ms: int = 0):
        self.columns = columns
        self.rows = rows
        self.execution_ms = execution_ms

    def __repr__(self):
        return f"<RawResult cols={len(self.columns)} rows={len(self.rows)} time={self.execution_ms}ms>"


def describe_column(description) -> ColumnInfo:
    """Build a ColumnInfo from one cursor.description entry."""
    type_name, tag = PG_TYPES.get(description.type_code, (f"oid {description.type_code}", TypeTag.OTHER))
    return ColumnInfo(description.name, tag, type_name)


def _is_connection_failure(error: psycopg2.Error) -> bool:
    # Server-side errors always carry a SQLSTATE; class 08 is connection exception.
    if error.pgcode is None:
        return isinstance(error, (psycopg2.OperationalError, psycopg2.InterfaceError))
    return error.pgcode.startswith("08")


def to_statement_error(error: psycopg2.Error, context: str) -> StatementError:
    """Copy the server diagnostics of a psycopg2 error into a StatementError."""
    diag = error.diag
    position = None
    if diag.statement_position:
        try:
            position = int(diag.statement_position)
        except ValueError:
            position = None
    message = diag.message_primary or str(error).strip()
    return StatementError(
        message,
        code=error.pgcode,
        detail=diag.message_detail,
        hint=diag.message_hint,
        position=position,
        context=context,
    )


class PostgresManager:
    """
    Owns a single psycopg2 connection. One statement is in flight at a time;
    the caller is single-threaded so no locking happens here.
    """

    def __init__(self, name: str = "default"):
        self.name = name
        self._connection: Optional[psycopg2.extensions.connection] = None

    # ── Connection Management ─────────────────────────────────

    def connect(self, url: str) -> "PostgresManager":
        """Open the connection. Raises DatabaseConnectionError on failure."""
        try:
            self._connection = psycopg2.connect(url)
            self._connection.autocommit = True
        except psycopg2.Error as e:
            logger.error(f"PostgreSQL connection '{self.name}' failed: {e}")
            raise DatabaseConnectionError(f"Failed to connect to '{self.name}': {str(e).strip()}") from e
        logger.info(f"Connected to PostgreSQL connection '{self.name}'")
        return self

    def disconnect(self):
        """Close the connection gracefully."""
        try:
            if self._connection is not None and not self._connection.closed:
                self._connection.close()
                logger.info(f"Disconnected from '{self.name}'")
        except psycopg2.Error as e:
            logger.warning(f"Error during disconnect: {e}")
        finally:
            self._connection = None

    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    def _require_connection(self) -> psycopg2.extensions.connection:
        if not self.is_connected():
            raise DatabaseConnectionError(f"Not connected to '{self.name}'.")
        return self._connection

    # ── Schema Bootstrap ──────────────────────────────────────

    def init_script_table(self):
        """Create the scripts table if needed. Safe to run on every connect."""
        try:
            self.execute_batch(SCRIPT_TABLE_DDL)
        except StatementError as e:
            raise DatabaseConnectionError(
                f"Connected to '{self.name}', but failed to init table: {e.message}"
            ) from e
        logger.debug(f"Script table ready on '{self.name}'")

    # ── Query Execution ───────────────────────────────────────

    def execute_query(self, sql: str) -> RawResult:
        """Run a row-producing statement, returning undecoded rows."""
        connection = self._require_connection()
        start_time = time.time()
        try:
            with connection.cursor() as cursor:
                psycopg2.extensions.register_type(RAW_TEXT, cursor)
                cursor.execute(sql)
                columns = [describe_column(desc) for desc in cursor.description or []]
                rows = cursor.fetchall() if cursor.description else []
        except psycopg2.Error as e:
            self._raise_for(e, "Error executing query")
        elapsed = int((time.time() - start_time) * 1000)
        return RawResult(columns, list(rows), execution_ms=elapsed)

    def execute_batch(self, sql: str) -> Optional[int]:
        """
        Run the text as one batch. Returns the affected row count of the last
        statement when the server reports one, else None.
        """
        connection = self._require_connection()
        try:
            with connection.cursor() as cursor:
                cursor.execute(sql)
                affected = cursor.rowcount
        except psycopg2.Error as e:
            self._raise_for(e, "Error executing command")
        return affected if affected >= 0 else None

    # ── Parameterised helpers for the script store ────────────

    def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Tuple]:
        connection = self._require_connection()
        try:
            with connection.cursor() as cursor:
                cursor.execute(sql, tuple(params))
                return cursor.fetchall()
        except psycopg2.Error as e:
            self._raise_for(e, "Error reading scripts")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        connection = self._require_connection()
        try:
            with connection.cursor() as cursor:
                cursor.execute(sql, tuple(params))
                return cursor.rowcount
        except psycopg2.Error as e:
            self._raise_for(e, "Error writing scripts")

    def _raise_for(self, error: psycopg2.Error, context: str):
        if _is_connection_failure(error):
            logger.error(f"Connection failure on '{self.name}': {error}")
            raise DatabaseConnectionError(f"Connection to '{self.name}' failed: {str(error).strip()}") from error
        logger.error(f"{context}: {error}")
        raise to_statement_error(error, context) from error
