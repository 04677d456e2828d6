# ============================================================
# sqledger - SQL Script Ledger
# core/catalog.py — Ordered Script Catalog with Selection Cursor
# ============================================================

import os
from typing import Callable, List, Optional

from loguru import logger

from core.errors import (
    CatalogError,
    CatalogIOError,
    EditorError,
    NameConflictError,
    ScriptNotFoundError,
)
from core.persistence import Script, ScriptId, ScriptStore


class ScriptCatalog:
    """
    The scripts of one store, in the store's order, plus the selected index
    and a preview of the selected script.

    Every mutation refreshes the listing. The selection survives a refresh
    only while it is still in bounds; otherwise it falls back to the first
    script, or to nothing when the catalog is empty.
    """

    def __init__(self, store: ScriptStore):
        self.store = store
        self.scripts: List[Script] = []
        self.selected_index: Optional[int] = None
        self.preview: str = ""

    # ── Listing & Selection ───────────────────────────────────

    def list(self) -> List[Script]:
        return list(self.scripts)

    def names(self) -> List[str]:
        return [script.name for script in self.scripts]

    def refresh(self):
        self.scripts = self.store.list()
        if self.selected_index is None or self.selected_index >= len(self.scripts):
            self.selected_index = 0 if self.scripts else None
        self.update_preview()

    def use_store(self, store: ScriptStore):
        """Point the catalog at another store (e.g. after a connection switch)."""
        self.store = store
        self.scripts = []
        self.selected_index = None
        self.preview = ""
        self.refresh()

    def selected(self) -> Optional[Script]:
        if self.selected_index is None:
            return None
        return self.scripts[self.selected_index]

    def find(self, name: str) -> Optional[Script]:
        for script in self.scripts:
            if script.name == name:
                return script
        return None

    def select_name(self, name: str) -> bool:
        for index, script in enumerate(self.scripts):
            if script.name == name:
                self.selected_index = index
                self.update_preview()
                return True
        return False

    def next(self):
        if not self.scripts:
            return
        if self.selected_index is None or self.selected_index >= len(self.scripts) - 1:
            self.selected_index = 0
        else:
            self.selected_index += 1
        self.update_preview()

    def previous(self):
        if not self.scripts:
            return
        if self.selected_index is None:
            self.selected_index = 0
        elif self.selected_index == 0:
            self.selected_index = len(self.scripts) - 1
        else:
            self.selected_index -= 1
        self.update_preview()

    def update_preview(self):
        script = self.selected()
        if script is None:
            self.preview = ""
            return
        try:
            self.preview = self.content_of(script)
        except CatalogError as e:
            logger.warning(f"Preview of '{script.name}' failed: {e}")
            self.preview = f"Error reading script: {e}"

    def content_of(self, script: Script) -> str:
        if script.content is None:
            script.content = self.store.read(script.id)
        return script.content

    # ── Mutations ─────────────────────────────────────────────

    def create(self, name: str) -> Script:
        if self.find(name) is not None:
            raise NameConflictError(f"A script named '{name}' already exists.")
        script = self.store.create(name)
        self.refresh()
        return script

    def rename(self, script_id: ScriptId, new_name: str):
        current = self._by_id(script_id)
        if current.name == new_name:
            return
        if self.find(new_name) is not None:
            raise NameConflictError(f"A script named '{new_name}' already exists.")
        self.store.rename(script_id, new_name)
        logger.info(f"Renamed script '{current.name}' -> '{new_name}'")
        self.refresh()

    def delete(self, script_id: ScriptId):
        current = self._by_id(script_id)
        self.store.delete(script_id)
        logger.info(f"Deleted script '{current.name}'")
        self.refresh()

    def read(self, script_id: ScriptId) -> str:
        return self.store.read(script_id)

    def write(self, script_id: ScriptId, content: str):
        self.store.write(script_id, content)
        self.refresh()

    def edit(self, script: Script, editor: Callable[[str], bool]):
        """
        Open `script` in the external editor and block until it exits.
        The catalog is rescanned afterwards whatever the editor's outcome.
        """
        path, is_copy = self.store.edit_path(script)
        try:
            success = editor(str(path))
            if success and is_copy:
                try:
                    with open(path, encoding="utf-8") as f:
                        content = f.read()
                except OSError as e:
                    raise CatalogIOError(f"Error reading temp file: {e}") from e
                self.store.write(script.id, content)
        finally:
            if is_copy:
                try:
                    os.remove(path)
                except OSError as e:
                    logger.warning(f"Could not remove temp file {path}: {e}")
            self.refresh()
        if not success:
            raise EditorError("Editor exited with an error.")

    def _by_id(self, script_id: ScriptId) -> Script:
        for script in self.scripts:
            if script.id == script_id:
                return script
        raise ScriptNotFoundError(f"Script {script_id} not found.")
