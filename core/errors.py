# ============================================================
# sqledger - SQL Script Ledger
# core/errors.py — Error Taxonomy
# ============================================================

from enum import Enum
from typing import Optional


class SqledgerError(Exception):
    """Base class for every error sqledger raises on purpose."""


class ConfigError(SqledgerError):
    """Configuration could not be loaded or saved."""


class DatabaseConnectionError(SqledgerError):
    """Network/auth level failure: the action is aborted, nothing else changes."""


class StatementError(SqledgerError):
    """A statement was rejected by the server."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        detail: Optional[str] = None,
        hint: Optional[str] = None,
        position: Optional[int] = None,
        context: str = "Error executing statement",
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.detail = detail
        self.hint = hint
        self.position = position
        self.context = context

    def __repr__(self):
        return f"<StatementError code={self.code} message={self.message!r}>"


class CellDecodeError(SqledgerError):
    """A single cell could not be decoded. Never escapes the row it belongs to."""


class CatalogErrorKind(Enum):
    NAME_CONFLICT = "name_conflict"
    NOT_FOUND = "not_found"
    IO_FAILURE = "io_failure"


class CatalogError(SqledgerError):
    kind: CatalogErrorKind = CatalogErrorKind.IO_FAILURE


class NameConflictError(CatalogError):
    kind = CatalogErrorKind.NAME_CONFLICT


class ScriptNotFoundError(CatalogError):
    kind = CatalogErrorKind.NOT_FOUND


class CatalogIOError(CatalogError):
    kind = CatalogErrorKind.IO_FAILURE


class EditorError(SqledgerError):
    """The external editor exited unsuccessfully."""
