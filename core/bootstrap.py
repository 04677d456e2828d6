# ============================================================
# sqledger - SQL Script Ledger
# core/bootstrap.py — Startup Wiring (connection, store, session)
# ============================================================
#
# Everything here runs before the interactive loop. Errors raised from
# build_session() are fatal: no configured connection, the initial connection
# failing, or the initial schema bootstrap failing.
# ============================================================

from functools import partial
from typing import Callable, Optional

from loguru import logger

from config import AppConfig, load_connections, save_connections
from core.catalog import ScriptCatalog
from core.errors import ConfigError, DatabaseConnectionError
from core.persistence import DatabaseScriptStore, FileScriptStore
from core.postgres_manager import PostgresManager
from core.query_executor import QueryExecutor
from core.session import SessionStateMachine


def open_connection(name: str, url: str, bootstrap: bool = True) -> PostgresManager:
    """Connect and, when scripts live in the database, create their table."""
    manager = PostgresManager(name).connect(url)
    if bootstrap:
        try:
            manager.init_script_table()
        except DatabaseConnectionError:
            manager.disconnect()
            raise
    return manager


def build_session(
    config: AppConfig,
    editor: Optional[Callable[[str], bool]] = None,
) -> SessionStateMachine:
    connections = load_connections(config)
    if not connections:
        raise ConfigError("No connections defined in config")

    in_database = config.storage == "database"
    name, url = next(iter(connections.items()))
    logger.info(f"Starting with connection '{name}' (storage={config.storage})")
    connection = open_connection(name, url, bootstrap=in_database)

    if in_database:
        store = DatabaseScriptStore(connection)
    else:
        store = FileScriptStore(config.script_path)

    machine = SessionStateMachine(
        catalog=ScriptCatalog(store),
        executor=QueryExecutor(report_affected_rows=config.report_affected_rows),
        connection=connection,
        connections=connections,
        active_connection=name,
        connector=partial(open_connection, bootstrap=in_database),
        store_factory=DatabaseScriptStore if in_database else None,
        save_connections=partial(save_connections, config),
        editor=editor,
        edit_on_create=config.edit_on_create,
    )
    machine.start()
    return machine
