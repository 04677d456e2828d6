# ============================================================
# sqledger - SQL Script Ledger
# core/session.py — Interaction State Machine
# ============================================================
#
# One key event is processed completely (including any database round trip
# or editor session) before the next frame is drawn. The machine owns the
# active connection and swaps it explicitly; it never draws anything itself.
# Front ends call handle(), apply the returned effects and draw frame().
# ============================================================

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from core.catalog import ScriptCatalog
from core.classifier import classify
from core.errors import (
    CatalogError,
    ConfigError,
    DatabaseConnectionError,
    EditorError,
    NameConflictError,
    StatementError,
)
from core.persistence import ScriptStore
from core.postgres_manager import PostgresManager
from core.query_executor import QueryExecutor
from core.renderer import render, render_error


# ════════════════════════════════════════════════════════════
# STATE, EVENTS & EFFECTS
# ════════════════════════════════════════════════════════════

class Mode(Enum):
    NORMAL = "normal"
    EDITING_NAME = "editing_name"
    CONFIRMING_DELETE = "confirming_delete"
    SELECTING_CONNECTION = "selecting_connection"
    ADDING_CONNECTION_NAME = "adding_connection_name"
    ADDING_CONNECTION_URL = "adding_connection_url"
    SHOW_HELP = "show_help"


class NamePurpose(Enum):
    CREATE = "create"
    RENAME = "rename"


@dataclass(frozen=True)
class SessionState:
    mode: Mode = Mode.NORMAL
    purpose: Optional[NamePurpose] = None
    buffer: str = ""
    pending_connection_name: str = ""


@dataclass(frozen=True)
class KeyEvent:
    """A key press: a single printable character, or a name such as 'enter'."""
    key: str

    @property
    def is_printable(self) -> bool:
        return len(self.key) == 1


class Effect:
    """Something only the front end can do."""


@dataclass(frozen=True)
class Quit(Effect):
    pass


@dataclass(frozen=True)
class CopyToClipboard(Effect):
    text: str


@dataclass(frozen=True)
class DisplayState:
    """Everything a front end needs to draw one frame."""
    script_names: Tuple[str, ...]
    selected_index: Optional[int]
    preview: str
    result_text: str
    row_count: Optional[int]
    scroll_x: int
    scroll_y: int
    mode: Mode
    purpose: Optional[NamePurpose]
    buffer: str
    connection_names: Tuple[str, ...]
    connection_index: Optional[int]
    active_connection: str
    help_text: str


Transition = Tuple[SessionState, List[Effect]]

TEXT_INPUT_MODES = (Mode.EDITING_NAME, Mode.ADDING_CONNECTION_NAME, Mode.ADDING_CONNECTION_URL)
CANCEL_KEYS = ("escape", "ctrl+c")
SCROLL_STEP_X = 4
SCROLL_STEP_Y = 1

WELCOME_MESSAGE = "Welcome! Press '?' for help."
NAME_PROMPT = "Enter new script name. Press [Enter] to confirm, [Esc] to cancel."
HELP_TEXT = (
    "Welcome to sqledger!\n\n"
    "--- Keybinds ---\n"
    "'j'/'k'        : Navigate scripts\n"
    "'Enter'        : Run selected script\n"
    "'e'            : Edit selected script\n"
    "'a'            : Add a new script\n"
    "'d'            : Delete selected script\n"
    "'r'            : Rename selected script\n"
    "'D' (Shift+d)  : Switch database\n"
    "'c'            : Copy results to clipboard\n"
    "'h'/'l'        : Scroll results horizontally\n"
    "Down/Up        : Scroll results vertically\n"
    "'?'            : Toggle help\n"
    "'q'            : Quit"
)

Connector = Callable[[str, str], PostgresManager]


# ════════════════════════════════════════════════════════════
# STATE MACHINE
# ════════════════════════════════════════════════════════════

class SessionStateMachine:
    """
    Maps (state, key event) to (next state, effects).

    Collaborators are injected so the machine runs without a terminal:
      connector       : opens and bootstraps a connection, raises on failure
      store_factory   : builds the script store for a new connection, or None
                         when scripts do not live in the database
      save_connections: persists the connection list after an add
      editor          : blocks on the external editor, returns success
    """

    def __init__(
        self,
        catalog: ScriptCatalog,
        executor: QueryExecutor,
        connection: PostgresManager,
        connections: Optional[Dict[str, str]] = None,
        active_connection: str = "default",
        connector: Optional[Connector] = None,
        store_factory: Optional[Callable[[PostgresManager], ScriptStore]] = None,
        save_connections: Optional[Callable[[Dict[str, str]], None]] = None,
        editor: Optional[Callable[[str], bool]] = None,
        edit_on_create: bool = False,
    ):
        self.catalog = catalog
        self.executor = executor
        self.connection = connection
        self.connections: Dict[str, str] = dict(connections or {})
        self.active_connection = active_connection
        self.connector = connector
        self.store_factory = store_factory
        self.save_connections = save_connections
        self.editor = editor
        self.edit_on_create = edit_on_create

        self.state = SessionState()
        self.result_text = WELCOME_MESSAGE
        self.row_count: Optional[int] = None
        self.scroll_x = 0
        self.scroll_y = 0
        self.connection_index: Optional[int] = None

        self._handlers = {
            Mode.NORMAL: self._on_normal,
            Mode.EDITING_NAME: self._on_editing_name,
            Mode.CONFIRMING_DELETE: self._on_confirming_delete,
            Mode.SELECTING_CONNECTION: self._on_selecting_connection,
            Mode.ADDING_CONNECTION_NAME: self._on_adding_connection_name,
            Mode.ADDING_CONNECTION_URL: self._on_adding_connection_url,
            Mode.SHOW_HELP: self._on_show_help,
        }

    # ── Public API ────────────────────────────────────────────

    def start(self):
        """Load the catalog. Failures are shown, not raised."""
        try:
            self.catalog.refresh()
        except CatalogError as e:
            logger.error(f"Initial catalog load failed: {e}")
            self.set_result(f"Error loading scripts: {e}")

    def handle(self, event: KeyEvent) -> List[Effect]:
        state, effects = self._handlers[self.state.mode](self.state, event)
        if state.mode is not self.state.mode:
            logger.debug(f"Mode {self.state.mode.value} -> {state.mode.value}")
        self.state = state
        return effects

    def set_result(self, text: str, row_count: Optional[int] = None):
        """Replace the result pane and reset its scroll position."""
        self.result_text = text
        self.row_count = row_count
        self.scroll_x = 0
        self.scroll_y = 0

    def notify(self, message: str):
        self.set_result(message)

    def frame(self) -> DisplayState:
        return DisplayState(
            script_names=tuple(self.catalog.names()),
            selected_index=self.catalog.selected_index,
            preview=self.catalog.preview,
            result_text=self.result_text,
            row_count=self.row_count,
            scroll_x=self.scroll_x,
            scroll_y=self.scroll_y,
            mode=self.state.mode,
            purpose=self.state.purpose,
            buffer=self.state.buffer,
            connection_names=tuple(self.connections),
            connection_index=self.connection_index,
            active_connection=self.active_connection,
            help_text=HELP_TEXT,
        )

    # ── Normal Mode ───────────────────────────────────────────

    def _on_normal(self, state: SessionState, event: KeyEvent) -> Transition:
        key = event.key
        if key == "q":
            return state, [Quit()]
        if key == "j":
            self.catalog.next()
        elif key == "k":
            self.catalog.previous()
        elif key == "enter":
            self._run_selected()
        elif key in ("h", "left"):
            self.scroll_x = max(0, self.scroll_x - SCROLL_STEP_X)
        elif key in ("l", "right"):
            self.scroll_x += SCROLL_STEP_X
        elif key == "up":
            self.scroll_y = max(0, self.scroll_y - SCROLL_STEP_Y)
        elif key == "down":
            last_line = max(0, len(self.result_text.splitlines()) - 1)
            self.scroll_y = min(last_line, self.scroll_y + SCROLL_STEP_Y)
        elif key == "c":
            return state, [CopyToClipboard(self.result_text)]
        elif key == "e":
            self._edit_selected()
        elif key == "a":
            self.set_result(NAME_PROMPT)
            return SessionState(Mode.EDITING_NAME, purpose=NamePurpose.CREATE), []
        elif key == "r":
            script = self.catalog.selected()
            if script is None:
                self.set_result("No script selected to rename.")
                return state, []
            self.set_result(NAME_PROMPT)
            return SessionState(Mode.EDITING_NAME, purpose=NamePurpose.RENAME, buffer=script.name), []
        elif key == "d":
            script = self.catalog.selected()
            if script is None:
                self.set_result("No script selected to delete.")
                return state, []
            self.set_result(f"Delete script '{script.name}'? (y/n)")
            return SessionState(Mode.CONFIRMING_DELETE), []
        elif key == "D":
            names = list(self.connections)
            if self.active_connection in names:
                self.connection_index = names.index(self.active_connection)
            else:
                self.connection_index = 0 if names else None
            return SessionState(Mode.SELECTING_CONNECTION), []
        elif key == "?":
            return SessionState(Mode.SHOW_HELP), []
        return state, []

    def _run_selected(self):
        script = self.catalog.selected()
        if script is None:
            self.set_result("No script selected to run.")
            return
        try:
            sql = self.catalog.content_of(script)
            outcome = self.executor.execute(self.connection, sql, classify(sql))
        except StatementError as e:
            self.set_result(render_error(e))
            return
        except DatabaseConnectionError as e:
            logger.error(f"Run of '{script.name}' aborted: {e}")
            self.set_result(f"Connection error: {e}")
            return
        except CatalogError as e:
            self.set_result(f"Error reading script: {e}")
            return
        text, row_count = render(outcome)
        self.set_result(text, row_count)

    def _edit_selected(self):
        script = self.catalog.selected()
        if script is None:
            return
        if self.editor is None:
            self.set_result("No editor available.")
            return
        name = script.name
        try:
            self.catalog.edit(script, self.editor)
        except EditorError as e:
            self.set_result(str(e))
            return
        except CatalogError as e:
            logger.error(f"Saving '{name}' failed: {e}")
            self.set_result(f"Error saving script: {e}")
            return
        self.catalog.select_name(name)
        self.set_result(f"Saved changes to '{name}'.")

    # ── Script Name Input ─────────────────────────────────────

    def _cancel_message(self, state: SessionState) -> str:
        if state.mode is Mode.EDITING_NAME:
            return "New script cancelled." if state.purpose is NamePurpose.CREATE else "Rename cancelled."
        return "Add connection cancelled."

    def _edit_buffer(self, state: SessionState, event: KeyEvent) -> Optional[Transition]:
        """Shared keys of every text-input mode. None when the key is not one of them."""
        if event.key in CANCEL_KEYS:
            self.set_result(self._cancel_message(state))
            return SessionState(), []
        if event.key == "backspace":
            return replace(state, buffer=state.buffer[:-1]), []
        if event.is_printable:
            return replace(state, buffer=state.buffer + event.key), []
        return None

    def _on_editing_name(self, state: SessionState, event: KeyEvent) -> Transition:
        if event.key != "enter":
            return self._edit_buffer(state, event) or (state, [])

        name = state.buffer.strip()
        if not name:
            self.set_result(self._cancel_message(state))
            return SessionState(), []
        if state.purpose is NamePurpose.CREATE:
            return self._commit_create(state, name)
        return self._commit_rename(state, name)

    def _commit_create(self, state: SessionState, name: str) -> Transition:
        try:
            self.catalog.create(name)
        except NameConflictError as e:
            self.set_result(f"Error creating script: {e}")
            return state, []
        except CatalogError as e:
            logger.error(f"Create '{name}' failed: {e}")
            self.set_result(f"Error creating script: {e}")
            return SessionState(), []
        self.catalog.select_name(name)
        self.set_result(f"Script '{name}' created.")
        if self.edit_on_create:
            self._edit_selected()
        return SessionState(), []

    def _commit_rename(self, state: SessionState, name: str) -> Transition:
        script = self.catalog.selected()
        if script is None:
            return SessionState(), []
        try:
            self.catalog.rename(script.id, name)
        except NameConflictError as e:
            self.set_result(f"Error renaming: {e}")
            return state, []
        except CatalogError as e:
            logger.error(f"Rename '{script.name}' failed: {e}")
            self.set_result(f"Error renaming: {e}")
            return SessionState(), []
        self.catalog.select_name(name)
        self.set_result("Script renamed.")
        return SessionState(), []

    # ── Delete Confirmation ───────────────────────────────────

    def _on_confirming_delete(self, state: SessionState, event: KeyEvent) -> Transition:
        if event.key == "y":
            script = self.catalog.selected()
            if script is not None:
                try:
                    self.catalog.delete(script.id)
                    self.set_result(f"Script '{script.name}' deleted.")
                except CatalogError as e:
                    logger.error(f"Delete '{script.name}' failed: {e}")
                    self.set_result(f"Error deleting script: {e}")
            return SessionState(), []
        if event.key in ("n", "escape"):
            self.set_result("Deletion cancelled.")
            return SessionState(), []
        return state, []

    # ── Connections ───────────────────────────────────────────

    def _on_selecting_connection(self, state: SessionState, event: KeyEvent) -> Transition:
        key = event.key
        count = len(self.connections)
        if key in ("j", "down") and count:
            self.connection_index = 0 if self.connection_index is None else (self.connection_index + 1) % count
        elif key in ("k", "up") and count:
            self.connection_index = 0 if self.connection_index is None else (self.connection_index - 1) % count
        elif key == "a":
            return SessionState(Mode.ADDING_CONNECTION_NAME), []
        elif key in ("escape", "q"):
            return SessionState(), []
        elif key == "enter" and self.connection_index is not None and count:
            name = list(self.connections)[self.connection_index]
            if self.switch_connection(name):
                return SessionState(), []
        return state, []

    def switch_connection(self, name: str) -> bool:
        """
        Connect and bootstrap `name`, then swap it in. On any failure the
        current connection stays active and untouched.
        """
        url = self.connections.get(name)
        if url is None:
            self.set_result("Error: Connection name not found.")
            return False
        if self.connector is None:
            self.set_result("Error: Switching connections is not available.")
            return False
        try:
            new_connection = self.connector(name, url)
        except (DatabaseConnectionError, StatementError) as e:
            logger.error(f"Switch to '{name}' failed: {e}")
            self.set_result(f"Error: {e}")
            return False

        previous = self.connection
        self.connection = new_connection
        self.active_connection = name
        previous.disconnect()
        logger.info(f"Active connection is now '{name}'")

        self.set_result(f"Switched to database: {name}")
        if self.store_factory is not None:
            try:
                self.catalog.use_store(self.store_factory(new_connection))
            except CatalogError as e:
                self.set_result(f"Switched to database: {name}, but loading scripts failed: {e}")
        return True

    def _on_adding_connection_name(self, state: SessionState, event: KeyEvent) -> Transition:
        if event.key != "enter":
            return self._edit_buffer(state, event) or (state, [])
        name = state.buffer.strip()
        if not name:
            self.set_result("Name cannot be empty.")
            return state, []
        if name in self.connections:
            self.set_result("Connection name already exists.")
            return state, []
        return SessionState(Mode.ADDING_CONNECTION_URL, pending_connection_name=name), []

    def _on_adding_connection_url(self, state: SessionState, event: KeyEvent) -> Transition:
        if event.key != "enter":
            return self._edit_buffer(state, event) or (state, [])
        url = state.buffer.strip()
        if not url:
            self.set_result("URL cannot be empty.")
            return state, []

        name = state.pending_connection_name
        self.connections[name] = url
        self.connection_index = list(self.connections).index(name)
        message = f"Added new connection: {name}"
        if self.save_connections is not None:
            try:
                self.save_connections(dict(self.connections))
            except ConfigError as e:
                logger.error(f"Saving connections failed: {e}")
                message = f"Connection added, but failed to save config: {e}"
        self.set_result(message)
        return SessionState(Mode.SELECTING_CONNECTION), []

    # ── Help Overlay ──────────────────────────────────────────

    def _on_show_help(self, state: SessionState, event: KeyEvent) -> Transition:
        if event.key in ("?", "q", "escape"):
            return SessionState(), []
        return state, []
