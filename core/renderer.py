# ============================================================
# sqledger - SQL Script Ledger
# core/renderer.py — Plain-Text Result Formatter
# ============================================================

from typing import Optional, Sequence, Tuple

from core.errors import StatementError
from core.query_executor import ExecutionOutcome, Status, Tabular

COLUMN_SEPARATOR = " | "


def _format_line(values: Sequence[str], widths: Sequence[int]) -> str:
    return "".join(f"{value:<{width}}{COLUMN_SEPARATOR}" for value, width in zip(values, widths)) + "\n"


def render(outcome: ExecutionOutcome) -> Tuple[str, Optional[int]]:
    """
    Turn an outcome into display text and its row count.

    Example:
        id | name  |
        ----------------
        1  | Alice |
    """
    if isinstance(outcome, Status):
        return outcome.message, outcome.row_count

    names = [name for name, _ in outcome.columns]
    widths = [
        max([width, len(name)] + [len(row[i]) for row in outcome.rows])
        for i, (name, width) in enumerate(outcome.columns)
    ]

    lines = [_format_line(names, widths)]
    lines.append("".join("-" * (width + len(COLUMN_SEPARATOR)) for width in widths) + "\n")
    for row in outcome.rows:
        lines.append(_format_line(row, widths))
    return "".join(lines), outcome.row_count


def render_error(error: StatementError) -> str:
    """Format server diagnostics the way psql users expect to read them."""
    if not error.code:
        return f"{error.context}: {error.message}"

    parts = [f"{error.context} ({error.code})\n\nMessage: {error.message}\n"]
    if error.detail:
        parts.append(f"Detail: {error.detail}\n")
    if error.hint:
        parts.append(f"Hint: {error.hint}\n")
    if error.position is not None:
        parts.append(f"Position: at character {error.position}\n")
    return "".join(parts).rstrip()
