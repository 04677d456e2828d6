# ============================================================
# sqledger - SQL Script Ledger
# core/classifier.py — Statement Classification
# ============================================================

from enum import Enum


class StatementKind(Enum):
    """Whether a statement produces rows or is run as a command batch."""
    QUERY = "query"
    COMMAND = "command"


ROW_PRODUCING_KEYWORDS = ("SELECT", "WITH")


def strip_leading_comments(sql: str) -> str:
    """
    Drop whitespace and leading `--` / `/* */` comments until the first real token.
    An unterminated comment swallows the rest of the text.
    """
    remaining = sql
    while True:
        remaining = remaining.lstrip()
        if remaining.startswith("--"):
            newline = remaining.find("\n")
            if newline == -1:
                return ""
            remaining = remaining[newline:]
        elif remaining.startswith("/*"):
            end = remaining.find("*/", 2)
            if end == -1:
                return ""
            remaining = remaining[end + 2:]
        else:
            return remaining


def classify(sql: str) -> StatementKind:
    """Classify SQL text. Only the comment-stripped leading token matters."""
    relevant = strip_leading_comments(sql).upper()
    if relevant.startswith(ROW_PRODUCING_KEYWORDS):
        return StatementKind.QUERY
    return StatementKind.COMMAND
