"""SQLite database connection and initialization."""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from vaultmirror.core.config import DATABASE_PATH

logger = logging.getLogger(__name__)

# Migrations directory
MIGRATIONS_DIR = Path(__file__).parent / "migrations"


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string for storage."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp; None stays None."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def _run_migrations(conn: sqlite3.Connection) -> None:
    """Run pending database migrations."""
    # Create migrations tracking table if not exists
    conn.execute("""
        CREATE TABLE IF NOT EXISTS _migrations (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT UNIQUE NOT NULL,
            applied_at TEXT DEFAULT CURRENT_TIMESTAMP
        )
    """)

    applied = {
        row[0] for row in conn.execute("SELECT name FROM _migrations").fetchall()
    }

    for migration_file in sorted(MIGRATIONS_DIR.glob("*.sql")):
        if migration_file.name in applied:
            continue

        logger.info("Applying migration: %s", migration_file.name)
        conn.executescript(migration_file.read_text())
        conn.execute(
            "INSERT INTO _migrations (name) VALUES (?)",
            (migration_file.name,),
        )
        conn.commit()
        logger.info("Migration applied: %s", migration_file.name)


def init_db(db_path: Path | str | None = None) -> Path:
    """
    Initialize database with schema and migrations.

    Args:
        db_path: Path to SQLite database (defaults to DATABASE_PATH)

    Returns:
        Path of the initialized database
    """
    path = Path(db_path) if db_path else DATABASE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path)
    try:
        # Enable WAL mode for better concurrent access
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA synchronous=NORMAL")

        _run_migrations(conn)
    finally:
        conn.close()
    return path


@contextmanager
def get_connection(
    db_path: Path | str | None = None,
) -> Generator[sqlite3.Connection, None, None]:
    """
    Get a short-lived database connection with row factory.

    Commits when the block exits normally and rolls back on error, so one
    `with` block is one transaction.

    Args:
        db_path: Path to SQLite database (defaults to DATABASE_PATH)

    Yields:
        SQLite connection with row factory enabled
    """
    path = Path(db_path) if db_path else DATABASE_PATH
    conn = sqlite3.connect(path, timeout=30)
    conn.row_factory = sqlite3.Row

    # Enable foreign keys for this connection
    conn.execute("PRAGMA foreign_keys=ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
