"""
Database manager for Knowledge Hub.

This module persists the workspace state between sessions and keeps an audit
log of sync cycles, using DuckDB.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import duckdb

from ..models import Workspace, parse_item
from ..store import WorkspaceStore


def _naive_utc(value: datetime) -> datetime:
    """DuckDB TIMESTAMP columns hold naive UTC values."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class StateDatabase:
    """
    Manages the DuckDB database holding workspaces, items and sync runs.
    """

    def __init__(self, db_path: str = "knowledge_hub.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS workspaces (
                workspace_id VARCHAR PRIMARY KEY,
                position INTEGER NOT NULL,
                payload TEXT NOT NULL
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS items (
                item_id VARCHAR PRIMARY KEY,
                block_id VARCHAR NOT NULL,
                kind VARCHAR NOT NULL,
                position INTEGER NOT NULL,
                payload TEXT NOT NULL
            )
        """)

        connection.execute("CREATE SEQUENCE IF NOT EXISTS run_id_seq;")
        connection.execute("""
            CREATE TABLE IF NOT EXISTS sync_runs (
                run_id BIGINT PRIMARY KEY DEFAULT nextval('run_id_seq'),
                started_at TIMESTAMP NOT NULL,
                finished_at TIMESTAMP NOT NULL,
                file_count INTEGER NOT NULL,
                success BOOLEAN NOT NULL,
                commit_sha VARCHAR,
                error_message TEXT
            )
        """)

    def save_state(self, store: WorkspaceStore) -> None:
        """
        Replace the stored snapshot with the store's current state.

        Args:
            store: Store to persist
        """
        connection = self._require_connection()
        connection.execute("BEGIN TRANSACTION")
        try:
            connection.execute("DELETE FROM workspaces")
            connection.execute("DELETE FROM items")
            for position, workspace in enumerate(store.workspaces):
                connection.execute(
                    "INSERT INTO workspaces (workspace_id, position, payload) VALUES (?, ?, ?)",
                    [workspace.id, position, workspace.model_dump_json()],
                )
            for position, item in enumerate(store.items):
                connection.execute(
                    "INSERT INTO items (item_id, block_id, kind, position, payload) "
                    "VALUES (?, ?, ?, ?, ?)",
                    [item.id, item.block_id, item.kind, position, item.model_dump_json()],
                )
            connection.execute("COMMIT")
        except Exception:
            connection.execute("ROLLBACK")
            raise
        logging.info(
            f"Saved {len(store.workspaces)} workspaces and {len(store.items)} items"
        )

    def load_state(self, store: Optional[WorkspaceStore] = None) -> WorkspaceStore:
        """
        Populate a store from the stored snapshot without notifying listeners.

        Args:
            store: Store to fill (a new one is created when omitted)

        Returns:
            The populated store
        """
        connection = self._require_connection()
        store = store or WorkspaceStore()

        rows = connection.execute(
            "SELECT payload FROM workspaces ORDER BY position"
        ).fetchall()
        store.workspaces = [Workspace.model_validate_json(row[0]) for row in rows]

        rows = connection.execute(
            "SELECT payload FROM items ORDER BY position"
        ).fetchall()
        store.add_items([parse_item(row[0]) for row in rows])
        return store

    def has_state(self) -> bool:
        """True when at least one workspace has been saved."""
        connection = self._require_connection()
        result = connection.execute("SELECT COUNT(*) FROM workspaces").fetchone()
        return bool(result and result[0])

    def log_sync_run(
        self,
        started_at: datetime,
        finished_at: datetime,
        file_count: int,
        success: bool,
        commit_sha: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Optional[int]:
        """
        Record one sync cycle.

        Returns:
            The run id
        """
        connection = self._require_connection()
        result = connection.execute("""
            INSERT INTO sync_runs (started_at, finished_at, file_count, success,
                                   commit_sha, error_message)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING run_id
        """, [
            _naive_utc(started_at),
            _naive_utc(finished_at),
            file_count,
            success,
            commit_sha,
            error_message,
        ]).fetchone()
        return result[0] if result else None

    def get_sync_runs(self, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Most recent sync cycles, newest first.
        """
        connection = self._require_connection()
        rows = connection.execute("""
            SELECT run_id, started_at, finished_at, file_count, success,
                   commit_sha, error_message
            FROM sync_runs
            ORDER BY run_id DESC
            LIMIT ?
        """, [limit]).fetchall()
        return [
            {
                "run_id": row[0],
                "started_at": row[1],
                "finished_at": row[2],
                "file_count": row[3],
                "success": row[4],
                "commit_sha": row[5],
                "error_message": row[6],
            }
            for row in rows
        ]

