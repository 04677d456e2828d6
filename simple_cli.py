# ============================================================
# sqledger - SQL Script Ledger
# simple_cli.py — Fallback Simple CLI (no Textual TUI)
# ============================================================
#
# A line-based front end over the same session state machine, for
# terminals where the full-screen TUI does not work. Each line is turned
# into key events:
#   - in text-input modes the line replaces the edit buffer, then Enter
#   - otherwise each character is one key; an empty line is Enter
#   - :up :down :left :right :esc :enter name the special keys
# ============================================================

import os
from html import escape
from typing import List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from core.session import (
    TEXT_INPUT_MODES,
    CopyToClipboard,
    DisplayState,
    KeyEvent,
    Mode,
    Quit,
    SessionStateMachine,
)
from utils.helpers import crop_text, open_in_editor

WORD_KEYS = {
    ":up": "up",
    ":down": "down",
    ":left": "left",
    ":right": "right",
    ":esc": "escape",
    ":enter": "enter",
}


def line_to_keys(line: str, mode: Mode, buffer: str = "") -> List[str]:
    """Translate one input line into the key names the machine understands."""
    stripped = line.strip()
    if stripped in WORD_KEYS:
        return [WORD_KEYS[stripped]]
    if mode in TEXT_INPUT_MODES:
        return ["backspace"] * len(buffer) + list(line) + ["enter"]
    if not stripped:
        return ["enter"]
    return list(stripped)


class SimpleCLI:
    """Single-window CLI: draws the frame with rich, reads lines with prompt_toolkit."""

    def __init__(self, machine: SessionStateMachine, editor_command: Optional[str] = None):
        self.console = Console()
        self.machine = machine
        self.machine.editor = lambda path: open_in_editor(path, editor_command)
        self._running: bool = True

        history_file = os.path.expanduser("~/.sqledger_history")
        self.session = PromptSession(
            history=FileHistory(history_file),
            auto_suggest=AutoSuggestFromHistory(),
        )

    def run(self):
        """Main loop."""
        self._print_banner()
        while self._running:
            frame = self.machine.frame()
            self._draw(frame)
            try:
                line = self.session.prompt(self._prompt(frame), default=self._default(frame))
            except KeyboardInterrupt:
                self._feed(["ctrl+c"])
                continue
            except EOFError:
                break
            # The prompt prefills the buffer, so the line already contains it.
            self._feed(line_to_keys(line, frame.mode, frame.buffer))
        self._shutdown()

    def _feed(self, keys: List[str]):
        for key in keys:
            for effect in self.machine.handle(KeyEvent(key)):
                if isinstance(effect, Quit):
                    self._running = False
                    return
                if isinstance(effect, CopyToClipboard):
                    self.machine.notify("Clipboard is not available in simple mode.")

    # ── Drawing ───────────────────────────────────────────────

    def _prompt(self, frame: DisplayState) -> HTML:
        labels = {
            Mode.EDITING_NAME: "name",
            Mode.ADDING_CONNECTION_NAME: "connection name",
            Mode.ADDING_CONNECTION_URL: "connection url",
            Mode.CONFIRMING_DELETE: "y/n",
        }
        label = labels.get(frame.mode, "keys")
        return HTML(f"<ansigreen><b>sqledger</b></ansigreen> <ansicyan>[{escape(frame.active_connection)}]</ansicyan> {label}> ")

    def _default(self, frame: DisplayState) -> str:
        return frame.buffer if frame.mode in TEXT_INPUT_MODES else ""

    def _draw(self, frame: DisplayState):
        if frame.mode is Mode.SHOW_HELP:
            self.console.print(Panel(Text(frame.help_text), title="Help", border_style="cyan"))
            return

        if frame.mode in (Mode.SELECTING_CONNECTION, Mode.ADDING_CONNECTION_NAME, Mode.ADDING_CONNECTION_URL):
            table = Table(box=box.SIMPLE_HEAVY, show_header=False)
            table.add_column("connection")
            for index, name in enumerate(frame.connection_names):
                marker = "●" if name == frame.active_connection else " "
                style = "reverse" if index == frame.connection_index else None
                table.add_row(f"{marker} {name}", style=style)
            self.console.print(Panel(table, title="Select database (j/k, Enter, a, :esc)", border_style="cyan"))
            self.console.print(Text(frame.result_text, style="dim"))
            return

        scripts = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold cyan")
        scripts.add_column("#", style="dim", no_wrap=True)
        scripts.add_column("Script")
        for index, name in enumerate(frame.script_names):
            style = "reverse" if index == frame.selected_index else None
            scripts.add_row(str(index + 1), name, style=style)
        if not frame.script_names:
            scripts.add_row("", Text("No scripts found.", style="dim"))
        self.console.print(scripts)

        if frame.preview:
            self.console.print(Panel(
                Syntax(frame.preview, "sql", theme="monokai", word_wrap=True),
                title="Preview",
                border_style="dim white",
            ))

        title = "Results"
        if frame.row_count is not None:
            title += f" ({frame.row_count} rows)"
        cropped = crop_text(frame.result_text, frame.scroll_x, frame.scroll_y)
        self.console.print(Panel(Text(cropped, no_wrap=True, overflow="crop"), title=title, border_style="green"))

    def _print_banner(self):
        self.console.print(Panel(
            "[bold #58a6ff]sqledger[/bold #58a6ff] — simple mode\n"
            "[dim]Type keys and press Enter. '?' for help, 'q' to quit.[/dim]",
            border_style="#58a6ff",
        ))

    def _shutdown(self):
        self.machine.connection.disconnect()
        self.console.print("[dim]Goodbye![/dim]")
