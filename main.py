#!/usr/bin/env python3
# ============================================================
# sqledger - SQL Script Ledger
# main.py — Application Entry Point
# ============================================================
#
# Usage:
#   sqledger                  → Launch full TUI
#   sqledger simple           → Launch simple line-based CLI (no TUI)
#   sqledger setup            → Create the scripts table on the first connection
#   sqledger connections      → List configured connections
#   sqledger run NAME         → Run one script and print the result
#   sqledger version          → Show version info
#
# Configuration comes from SQLEDGER_* environment variables or a .env file
# (see .env.example); saved connections live in connections.json inside
# SQLEDGER_CONFIG_DIR.
# ============================================================

import sys
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich import box

from utils.logger import setup_logger
from config import app_config, load_connections
from core.errors import SqledgerError, StatementError
from core.renderer import render, render_error

console = Console()


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx):
    """sqledger — run and manage a catalog of SQL scripts."""
    if ctx.invoked_subcommand is None:
        launch_tui()


@cli.command()
def tui():
    """Launch the full TUI interface (default)."""
    launch_tui()


@cli.command()
def simple():
    """Launch the simple line-based CLI."""
    launch_simple_cli()


@cli.command()
def setup():
    """Create the scripts table on the first configured connection."""
    run_setup()


@cli.command()
def connections():
    """List configured connections."""
    show_connections()


@cli.command()
@click.argument("name")
def run(name: str):
    """Run the script NAME from the catalog and print its result."""
    run_script(name)


@cli.command()
def version():
    """Display sqledger version information."""
    show_version()


# ── Launch Functions ──────────────────────────────────────────

def _setup_logging(level: Optional[str] = None):
    setup_logger(
        str(app_config.log_path),
        level or app_config.log_level,
        rotation=app_config.log_rotation,
        retention=app_config.log_retention,
    )


def _start_session():
    """Build the session or exit: startup failures are fatal."""
    from core.bootstrap import build_session

    try:
        return build_session(app_config)
    except SqledgerError as e:
        logger.critical(f"Startup failed: {e}")
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)


def launch_tui():
    """Start the full Textual TUI application."""
    _setup_logging()
    logger.info(f"Starting sqledger v{app_config.version} (TUI mode)")

    machine = _start_session()

    from ui.tui import SqledgerApp
    app = SqledgerApp(machine, editor_command=app_config.editor)
    try:
        app.run()
    finally:
        machine.connection.disconnect()


def launch_simple_cli():
    """
    Simple CLI mode: no Textual TUI, just a prompt_toolkit shell.
    Useful for terminals where the TUI doesn't work or for debugging.
    """
    _setup_logging()
    logger.info(f"Starting sqledger v{app_config.version} (simple mode)")

    machine = _start_session()

    from simple_cli import SimpleCLI
    cli_app = SimpleCLI(machine, editor_command=app_config.editor)
    cli_app.run()


def run_setup():
    """Connect to the first configured connection and bootstrap the table."""
    _setup_logging()
    from core.bootstrap import open_connection

    try:
        conns = load_connections(app_config)
        name, url = next(iter(conns.items()))
        console.print(f"sqledger setup — connection [bold]{name}[/bold]")
        manager = open_connection(name, url, bootstrap=True)
    except StopIteration:
        console.print("[red]❌ No connections defined in config[/red]")
        sys.exit(1)
    except SqledgerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    console.print("[green]✅ Table sqledger_scripts is ready.[/green]")
    manager.disconnect()


def show_connections():
    """Print the configured connections, passwords masked."""
    try:
        conns = load_connections(app_config)
    except SqledgerError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    table = Table(box=box.SIMPLE_HEAVY, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("URL")
    for index, (name, url) in enumerate(conns.items()):
        label = f"{name} [dim](startup)[/dim]" if index == 0 else name
        table.add_row(label, _mask_password(url))
    console.print(table)


def run_script(name: str):
    """Run one catalog script through the same pipeline the TUI uses."""
    _setup_logging("WARNING")

    from core.classifier import classify

    machine = _start_session()
    script = machine.catalog.find(name)
    if script is None:
        console.print(f"[red]❌ Script '{name}' not found.[/red]")
        machine.connection.disconnect()
        sys.exit(1)

    try:
        sql = machine.catalog.content_of(script)
        outcome = machine.executor.execute(machine.connection, sql, classify(sql))
    except StatementError as e:
        console.print(render_error(e), style="red", markup=False, highlight=False)
        sys.exit(1)
    except SqledgerError as e:
        console.print(f"ERROR: {e}", style="red", markup=False, highlight=False)
        sys.exit(1)
    finally:
        machine.connection.disconnect()

    text, row_count = render(outcome)
    console.print(text, markup=False, highlight=False)
    if row_count is not None:
        row_word = "row" if row_count == 1 else "rows"
        console.print(f"{row_count} {row_word}", style="dim")


def show_version():
    """Display version and configuration info."""
    console.print(f"""
╔══════════════════════════════════════════════════════╗
║              sqledger — SQL Script Ledger            ║
╠══════════════════════════════════════════════════════╣
║  Version    : {app_config.version:<39}║
║  Storage    : {app_config.storage:<39}║
║  Config dir : {str(app_config.config_dir)[:39]:<39}║
║  Editor     : {app_config.editor[:39]:<39}║
╚══════════════════════════════════════════════════════╝
""", markup=False, highlight=False)


def _mask_password(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    credentials, _, host = rest.rpartition("@")
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}" if ":" in credentials else url


# ── Entry Point ───────────────────────────────────────────────

if __name__ == "__main__":
    cli()
