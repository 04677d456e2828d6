# ============================================================
# sqledger - SQL Script Ledger
# core/query_executor.py — Statement Execution & Cell Decoding
# ============================================================

import re
import time
from dataclasses import dataclass
from datetime import date, datetime, time as dtime
from typing import Callable, Dict, List, Optional, Tuple, Union

from loguru import logger

from core.classifier import StatementKind, strip_leading_comments
from core.errors import CellDecodeError
from core.postgres_manager import ColumnInfo, PostgresManager, TypeTag


ZERO_ROWS_MESSAGE = "Query returned 0 rows."
COMMAND_OK_MESSAGE = "Command executed successfully."
NULL_TEXT = "NULL"

INT_RANGES = {
    TypeTag.SMALLINT: (-(2 ** 15), 2 ** 15 - 1),
    TypeTag.INTEGER: (-(2 ** 31), 2 ** 31 - 1),
    TypeTag.BIGINT: (-(2 ** 63), 2 ** 63 - 1),
}

_SHORT_OFFSET = re.compile(r"([+-]\d{2})$")
_FRACTION = re.compile(r"\.(\d{1,6})")


def _normalize_iso(value: str) -> str:
    # The server trims trailing zeros from fractions and abbreviates
    # whole-hour offsets as "+00"; older fromisoformat() rejects both.
    value = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0"), value, count=1)
    return _SHORT_OFFSET.sub(r"\1:00", value)


# ════════════════════════════════════════════════════════════
# OUTCOMES
# ════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Tabular:
    """Decoded rows. `columns` holds (name, computed width) pairs."""
    columns: Tuple[Tuple[str, int], ...]
    rows: Tuple[Tuple[str, ...], ...]
    row_count: int


@dataclass(frozen=True)
class Status:
    """A message in place of a table."""
    message: str
    row_count: Optional[int] = None


ExecutionOutcome = Union[Tabular, Status]


# ════════════════════════════════════════════════════════════
# CELL DECODING
# ════════════════════════════════════════════════════════════

def _decode_bool(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value in ("t", "true"):
        return "true"
    if value in ("f", "false"):
        return "false"
    raise CellDecodeError(f"invalid boolean {value!r}")


def _int_decoder(tag: TypeTag) -> Callable[[object], str]:
    low, high = INT_RANGES[tag]

    def decode(value) -> str:
        if isinstance(value, bool):
            raise CellDecodeError(f"expected {tag.value}, got boolean")
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise CellDecodeError(f"invalid {tag.value} {value!r}")
        if not low <= number <= high:
            raise CellDecodeError(f"{number} out of range for {tag.value}")
        return str(number)

    return decode


def _decode_float(value) -> str:
    try:
        return str(float(value))
    except (TypeError, ValueError):
        raise CellDecodeError(f"invalid float {value!r}")


def _decode_date(value) -> str:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    try:
        return date.fromisoformat(value).isoformat()
    except (TypeError, ValueError) as e:
        raise CellDecodeError(f"invalid date {value!r}: {e}")


def _decode_time(value) -> str:
    if isinstance(value, dtime):
        return value.isoformat()
    try:
        return dtime.fromisoformat(_normalize_iso(value)).isoformat()
    except (TypeError, ValueError) as e:
        raise CellDecodeError(f"invalid time {value!r}: {e}")


def _decode_timestamp(value) -> str:
    if isinstance(value, datetime):
        return str(value)
    if not isinstance(value, str):
        raise CellDecodeError(f"invalid timestamp {value!r}")
    try:
        return str(datetime.fromisoformat(_normalize_iso(value)))
    except ValueError as e:
        raise CellDecodeError(f"invalid timestamp {value!r}: {e}")


def _decode_text(value) -> str:
    if isinstance(value, str):
        return value
    raise CellDecodeError(f"cannot decode {type(value).__name__} as text")


DECODERS: Dict[TypeTag, Callable[[object], str]] = {
    TypeTag.BOOL: _decode_bool,
    TypeTag.SMALLINT: _int_decoder(TypeTag.SMALLINT),
    TypeTag.INTEGER: _int_decoder(TypeTag.INTEGER),
    TypeTag.BIGINT: _int_decoder(TypeTag.BIGINT),
    TypeTag.FLOAT: _decode_float,
    TypeTag.DATE: _decode_date,
    TypeTag.TIME: _decode_time,
    TypeTag.TIMESTAMP: _decode_timestamp,
    TypeTag.TEXT: _decode_text,
}
FALLBACK_DECODER = _decode_text


def decode_cell(column: ColumnInfo, value) -> str:
    """Decode one cell. Never raises: failures become an inline marker."""
    if value is None:
        return NULL_TEXT
    decoder = DECODERS.get(column.type_tag)
    if decoder is None:
        try:
            return FALLBACK_DECODER(value)
        except CellDecodeError as e:
            return f"<{column.type_name}: {e}>"
    try:
        return decoder(value)
    except CellDecodeError as e:
        return f"<Err: {e}>"


# ════════════════════════════════════════════════════════════
# EXECUTOR
# ════════════════════════════════════════════════════════════

class QueryExecutor:
    """
    Runs classified statements against a connection and builds outcomes.

    Connection and statement errors propagate unchanged
    (DatabaseConnectionError / StatementError) so the caller decides how to
    report them.
    """

    def __init__(self, report_affected_rows: bool = False):
        self.report_affected_rows = report_affected_rows

    def execute(self, connection: PostgresManager, sql: str, kind: StatementKind) -> ExecutionOutcome:
        start_time = time.time()
        if kind is StatementKind.QUERY:
            outcome = self._run_query(connection, sql)
        else:
            outcome = self._run_command(connection, sql)
        elapsed = int((time.time() - start_time) * 1000)
        logger.info(f"Executed {kind.value} in {elapsed}ms (rows={outcome.row_count})")
        return outcome

    def _run_query(self, connection: PostgresManager, sql: str) -> ExecutionOutcome:
        raw = connection.execute_query(sql)
        if not raw.rows:
            return Status(ZERO_ROWS_MESSAGE, row_count=0)

        widths = [len(column.name) for column in raw.columns]
        rows: List[Tuple[str, ...]] = []
        for raw_row in raw.rows:
            cells = []
            for i, column in enumerate(raw.columns):
                text = decode_cell(column, raw_row[i])
                widths[i] = max(widths[i], len(text))
                cells.append(text)
            rows.append(tuple(cells))

        columns = tuple((column.name, widths[i]) for i, column in enumerate(raw.columns))
        return Tabular(columns=columns, rows=tuple(rows), row_count=len(rows))

    def _run_command(self, connection: PostgresManager, sql: str) -> ExecutionOutcome:
        # The driver rejects a batch with no statements in it.
        if not strip_leading_comments(sql).strip():
            logger.debug("Empty command batch, nothing sent to the server")
            return Status(COMMAND_OK_MESSAGE)
        affected = connection.execute_batch(sql)
        if self.report_affected_rows and affected is not None:
            row_word = "row" if affected == 1 else "rows"
            return Status(f"{COMMAND_OK_MESSAGE} {affected} {row_word} affected.", row_count=affected)
        return Status(COMMAND_OK_MESSAGE)
