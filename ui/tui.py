# ============================================================
# sqledger - SQL Script Ledger
# ui/tui.py — Main Textual TUI Application
# ============================================================
#
# The app owns no interaction logic. Every key goes to the session state
# machine; the app applies the returned effects and redraws from frame().
# Work runs on the event loop on purpose: a query or an editor session
# blocks input until it finishes.
# ============================================================

from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.syntax import Syntax
from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Label, Static
from loguru import logger

from core.session import (
    CopyToClipboard,
    DisplayState,
    KeyEvent,
    Mode,
    NamePurpose,
    Quit,
    SessionStateMachine,
)
from utils.helpers import crop_text, open_in_editor, truncate_string

NAMED_KEYS = ("enter", "escape", "backspace", "up", "down", "left", "right", "ctrl+c")
OVERLAY_MODES = (
    Mode.SHOW_HELP,
    Mode.SELECTING_CONNECTION,
    Mode.ADDING_CONNECTION_NAME,
    Mode.ADDING_CONNECTION_URL,
)


def translate_key(event: events.Key) -> str:
    """Map a Textual key event to the machine's key names."""
    if event.key in NAMED_KEYS:
        return event.key
    if event.character and len(event.character) == 1 and event.character.isprintable():
        return event.character
    return event.key


def input_prompt(frame: DisplayState) -> Optional[str]:
    if frame.mode is Mode.EDITING_NAME:
        label = "New script name" if frame.purpose is NamePurpose.CREATE else "Rename to"
        return f"{label}: {frame.buffer}▏"
    if frame.mode is Mode.ADDING_CONNECTION_NAME:
        return f"Connection name: {frame.buffer}▏"
    if frame.mode is Mode.ADDING_CONNECTION_URL:
        return f"Connection URL: {frame.buffer}▏"
    return None


def connection_overlay(frame: DisplayState) -> Text:
    text = Text()
    text.append("Select database  ", style="bold #58a6ff")
    text.append("[j/k] move  [Enter] switch  [a] add  [Esc] back\n\n", style="dim")
    for index, name in enumerate(frame.connection_names):
        marker = "● " if name == frame.active_connection else "  "
        style = "reverse" if index == frame.connection_index else ""
        text.append(f"{marker}{name}\n", style=style)
    prompt = input_prompt(frame)
    if prompt:
        text.append(f"\n{prompt}", style="bold")
    return text


class SqledgerApp(App):
    """
    Main Textual application for sqledger.
    Scripts (left) + Preview and Results (right), overlay for help/connections.
    """

    CSS_PATH = str(Path(__file__).parent / "sqledger.tcss")
    TITLE = "sqledger"
    ENABLE_COMMAND_PALETTE = False

    # Ctrl+C cancels text input instead of quitting; 'q' quits from Normal.
    BINDINGS = [
        Binding("ctrl+c", "forward_ctrl_c", "Cancel", show=False, priority=True),
    ]

    def __init__(self, machine: SessionStateMachine, editor_command: Optional[str] = None):
        super().__init__()
        self.machine = machine
        self.editor_command = editor_command
        self.machine.editor = self._run_editor

    def compose(self) -> ComposeResult:
        yield Container(
            Horizontal(
                Label("◆ sqledger", id="header-title"),
                Label("", id="header-db-badge"),
                id="header",
            ),
            Horizontal(
                Vertical(
                    Label(" Scripts", id="scripts-panel-header"),
                    Static("", id="script-list"),
                    id="scripts-panel",
                ),
                Vertical(
                    Label(" Preview", id="preview-panel-header"),
                    Static("", id="preview"),
                    Label(" Results", id="results-panel-header"),
                    Static("", id="results"),
                    id="main-panel",
                ),
                id="main-container",
            ),
            Static("", id="overlay"),
            Horizontal(
                Label("", id="status-left"),
                Label("", id="status-right"),
                id="status-bar",
            ),
        )

    def on_mount(self) -> None:
        self._draw()

    # ── Input Handling ────────────────────────────────────────

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._dispatch(translate_key(event))

    def action_forward_ctrl_c(self) -> None:
        self._dispatch("ctrl+c")

    def _dispatch(self, key: str) -> None:
        effects = self.machine.handle(KeyEvent(key))
        for effect in effects:
            if isinstance(effect, Quit):
                self.action_quit()
                return
            if isinstance(effect, CopyToClipboard):
                self._copy(effect.text)
        self._draw()

    # ── Collaborators ─────────────────────────────────────────

    def _run_editor(self, path: str) -> bool:
        """Hand the terminal to the external editor until it exits."""
        with self.suspend():
            success = open_in_editor(path, self.editor_command)
        self.refresh(layout=True)
        return success

    def _copy(self, text: str) -> None:
        try:
            self.copy_to_clipboard(text)
        except Exception as e:
            logger.error(f"Clipboard copy failed: {e}")
            self.machine.notify(f"Error: Failed to copy to clipboard: {e}")
            return
        self.machine.notify("Results copied to clipboard!")

    # ── Drawing ───────────────────────────────────────────────

    def _draw(self) -> None:
        frame = self.machine.frame()

        self.query_one("#header-db-badge", Label).update(f" ◆ {frame.active_connection} ")

        scripts = Text()
        if not frame.script_names:
            scripts.append("No scripts found.", style="dim")
        for index, name in enumerate(frame.script_names):
            style = "reverse bold" if index == frame.selected_index else ""
            scripts.append(f" {truncate_string(name, 40)}\n", style=style)
        self.query_one("#script-list", Static).update(scripts)

        preview = self.query_one("#preview", Static)
        if frame.preview:
            preview.update(Syntax(frame.preview, "sql", theme="monokai", word_wrap=True))
        else:
            preview.update(Text("" if frame.script_names else "No scripts found.", style="dim"))

        header = " Results"
        if frame.row_count is not None:
            row_word = "row" if frame.row_count == 1 else "rows"
            header += f" ({frame.row_count} {row_word})"
        self.query_one("#results-panel-header", Label).update(header)
        cropped = crop_text(frame.result_text, frame.scroll_x, frame.scroll_y)
        self.query_one("#results", Static).update(Text(cropped, no_wrap=True, overflow="crop"))

        overlay = self.query_one("#overlay", Static)
        overlay.display = frame.mode in OVERLAY_MODES
        if frame.mode is Mode.SHOW_HELP:
            overlay.update(Text(frame.help_text))
        elif overlay.display:
            overlay.update(connection_overlay(frame))

        prompt = input_prompt(frame) if frame.mode is Mode.EDITING_NAME else None
        if prompt:
            status = Text(prompt, style="bold")
        else:
            status = Text.from_markup(f"[dim]{frame.mode.value}[/dim]  │  Scripts: {len(frame.script_names)}")
        self.query_one("#status-left", Label).update(status)
        ts = datetime.now().strftime("%H:%M:%S")
        self.query_one("#status-right", Label).update(f"{frame.active_connection}  │  {ts}")
