# ============================================================
# sqledger - SQL Script Ledger
# core/persistence.py — Script Storage (PostgreSQL table or .sql files)
# ============================================================

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from loguru import logger

from core.errors import (
    CatalogIOError,
    DatabaseConnectionError,
    NameConflictError,
    ScriptNotFoundError,
    StatementError,
)
from core.postgres_manager import PostgresManager

UNIQUE_VIOLATION = "23505"

ScriptId = Union[int, str]


@dataclass
class Script:
    """A named SQL script. `content` is None until it has been read."""
    id: ScriptId
    name: str
    content: Optional[str] = None


class ScriptStore:
    """Interface shared by the storage variants."""

    def list(self) -> List[Script]:
        raise NotImplementedError

    def create(self, name: str) -> Script:
        raise NotImplementedError

    def rename(self, script_id: ScriptId, new_name: str):
        raise NotImplementedError

    def delete(self, script_id: ScriptId):
        raise NotImplementedError

    def read(self, script_id: ScriptId) -> str:
        raise NotImplementedError

    def write(self, script_id: ScriptId, content: str):
        raise NotImplementedError

    def edit_path(self, script: Script) -> Tuple[Path, bool]:
        """
        Return a file the editor can open, and whether it is a temporary copy
        whose content must be written back with `write()`.
        """
        raise NotImplementedError


# ════════════════════════════════════════════════════════════
# DATABASE STORE
# ════════════════════════════════════════════════════════════

class DatabaseScriptStore(ScriptStore):
    """Scripts kept in the `sqledger_scripts` table of the active connection."""

    def __init__(self, manager: PostgresManager):
        self.manager = manager

    def _call(self, method, sql: str, params=()):
        try:
            return method(sql, params)
        except (StatementError, DatabaseConnectionError) as e:
            if isinstance(e, StatementError) and e.code == UNIQUE_VIOLATION:
                raise NameConflictError("A script with that name already exists.") from e
            message = e.message if isinstance(e, StatementError) else str(e)
            raise CatalogIOError(message) from e

    def list(self) -> List[Script]:
        rows = self._call(
            self.manager.fetch_all,
            "SELECT id, name, content FROM sqledger_scripts ORDER BY name ASC",
        )
        return [Script(id=row[0], name=row[1], content=row[2]) for row in rows]

    def create(self, name: str) -> Script:
        rows = self._call(
            self.manager.fetch_all,
            "INSERT INTO sqledger_scripts (name, content) VALUES (%s, '') RETURNING id",
            (name,),
        )
        logger.info(f"Created script '{name}' (id={rows[0][0]})")
        return Script(id=rows[0][0], name=name, content="")

    def rename(self, script_id: ScriptId, new_name: str):
        updated = self._call(
            self.manager.execute,
            "UPDATE sqledger_scripts SET name = %s, updated_at = NOW() WHERE id = %s",
            (new_name, script_id),
        )
        if updated == 0:
            raise ScriptNotFoundError(f"Script {script_id} not found.")

    def delete(self, script_id: ScriptId):
        deleted = self._call(
            self.manager.execute,
            "DELETE FROM sqledger_scripts WHERE id = %s",
            (script_id,),
        )
        if deleted == 0:
            raise ScriptNotFoundError(f"Script {script_id} not found.")

    def read(self, script_id: ScriptId) -> str:
        rows = self._call(
            self.manager.fetch_all,
            "SELECT content FROM sqledger_scripts WHERE id = %s",
            (script_id,),
        )
        if not rows:
            raise ScriptNotFoundError(f"Script {script_id} not found.")
        return rows[0][0]

    def write(self, script_id: ScriptId, content: str):
        updated = self._call(
            self.manager.execute,
            "UPDATE sqledger_scripts SET content = %s, updated_at = NOW() WHERE id = %s",
            (content, script_id),
        )
        if updated == 0:
            raise ScriptNotFoundError(f"Script {script_id} not found.")

    def edit_path(self, script: Script) -> Tuple[Path, bool]:
        path = Path(tempfile.gettempdir()) / f"sqledger_{script.name}.sql"
        content = script.content if script.content is not None else self.read(script.id)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise CatalogIOError(f"Error creating temp file: {e}") from e
        return path, True


# ════════════════════════════════════════════════════════════
# FILESYSTEM STORE
# ════════════════════════════════════════════════════════════

class FileScriptStore(ScriptStore):
    """One `<name>.sql` file per script inside a directory."""

    EXTENSION = ".sql"

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path_for(self, name: str) -> Path:
        separators = [os.sep] + ([os.altsep] if os.altsep else [])
        if any(sep in name for sep in separators) or name in (".", ".."):
            raise CatalogIOError(f"Invalid script name '{name}': names cannot contain path separators.")
        return self.directory / f"{name}{self.EXTENSION}"

    def list(self) -> List[Script]:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            paths = sorted(
                str(p) for p in self.directory.iterdir()
                if p.is_file() and p.suffix == self.EXTENSION
            )
        except OSError as e:
            raise CatalogIOError(f"Error scanning {self.directory}: {e}") from e
        return [Script(id=p, name=Path(p).stem) for p in paths]

    def create(self, name: str) -> Script:
        path = self._path_for(name)
        try:
            with open(path, "x", encoding="utf-8"):
                pass
        except FileExistsError as e:
            raise NameConflictError(f"File {path} already exists.") from e
        except OSError as e:
            raise CatalogIOError(f"Error creating {path}: {e}") from e
        logger.info(f"Created script file {path}")
        return Script(id=str(path), name=name, content="")

    def rename(self, script_id: ScriptId, new_name: str):
        old_path = Path(script_id)
        new_path = old_path.parent / self._path_for(new_name).name
        if not old_path.exists():
            raise ScriptNotFoundError(f"File {old_path} not found.")
        if new_path == old_path:
            return
        if new_path.exists():
            raise NameConflictError(f"File {new_path} already exists.")
        try:
            os.rename(old_path, new_path)
        except OSError as e:
            raise CatalogIOError(f"Error renaming file: {e}") from e

    def delete(self, script_id: ScriptId):
        try:
            os.remove(script_id)
        except FileNotFoundError as e:
            raise ScriptNotFoundError(f"File {script_id} not found.") from e
        except OSError as e:
            raise CatalogIOError(f"Error deleting file {script_id}: {e}") from e

    def read(self, script_id: ScriptId) -> str:
        try:
            return Path(script_id).read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ScriptNotFoundError(f"File {script_id} not found.") from e
        except (OSError, UnicodeDecodeError) as e:
            raise CatalogIOError(f"Error reading file {script_id}: {e}") from e

    def write(self, script_id: ScriptId, content: str):
        path = Path(script_id)
        if not path.exists():
            raise ScriptNotFoundError(f"File {path} not found.")
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise CatalogIOError(f"Error writing file {path}: {e}") from e

    def edit_path(self, script: Script) -> Tuple[Path, bool]:
        return Path(script.id), False
