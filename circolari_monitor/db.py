"""SQLite persistence layer for the fingerprint store.

The state file holds three tables, written in this order by every release:

1. ``first_seen``      identity -> first seen timestamp
2. ``content_digests`` identity -> payload digest
3. ``update_counts``   identity -> number of announced updates

Each table is read on its own.  A file written before a table existed, or
one where a table is unreadable, still yields the sections that can be read.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Callable, Dict, TypeVar

from .models import FingerprintStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA = (
    """
    CREATE TABLE first_seen (
      identity TEXT PRIMARY KEY,
      first_seen_at REAL NOT NULL
    )
    """,
    """
    CREATE TABLE content_digests (
      identity TEXT PRIMARY KEY,
      digest BLOB NOT NULL
    )
    """,
    """
    CREATE TABLE update_counts (
      identity TEXT PRIMARY KEY,
      update_count INTEGER NOT NULL
    )
    """,
)


def _get_connection(db_path: str | os.PathLike) -> sqlite3.Connection:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(db_path))


def _read_section(
    conn: sqlite3.Connection,
    name: str,
    query: str,
    convert: Callable[[object], T],
) -> Dict[str, T]:
    try:
        rows = conn.execute(query).fetchall()
        return {str(identity): convert(value) for identity, value in rows}
    except (sqlite3.Error, TypeError, ValueError):
        logger.warning(
            "State section %r is missing or unreadable; starting it empty "
            "(previously announced items may be announced again)",
            name, exc_info=True,
        )
        return {}


def load_store(db_path: str | os.PathLike) -> FingerprintStore:
    """Load the fingerprint store, defaulting unreadable sections to empty."""
    if not Path(db_path).exists():
        logger.info("No saved state at %s; starting from scratch", db_path)
        return FingerprintStore()

    try:
        conn = sqlite3.connect(str(db_path))
    except sqlite3.Error:
        logger.warning("Saved state at %s cannot be opened; starting from scratch", db_path, exc_info=True)
        return FingerprintStore()

    try:
        store = FingerprintStore(
            first_seen=_read_section(
                conn, "first_seen", "SELECT identity, first_seen_at FROM first_seen", float
            ),
            digests=_read_section(
                conn, "content_digests", "SELECT identity, digest FROM content_digests", bytes
            ),
            update_counts=_read_section(
                conn, "update_counts", "SELECT identity, update_count FROM update_counts", int
            ),
        )
    finally:
        conn.close()

    logger.info("Loaded %d links and %d digests from %s", len(store.first_seen), len(store.digests), db_path)
    return store


def save_store(store: FingerprintStore, db_path: str | os.PathLike) -> None:
    """Write a complete snapshot of ``store``.

    The snapshot is built in a temporary file next to ``db_path`` and moved
    over it with ``os.replace``, so a failed save leaves the previous
    snapshot intact.  Errors propagate to the caller.
    """
    target = Path(db_path)
    tmp = target.with_name(target.name + ".tmp")
    if tmp.exists():
        tmp.unlink()

    conn = _get_connection(tmp)
    try:
        with conn:
            for ddl in SCHEMA:
                conn.execute(ddl)
            conn.executemany(
                "INSERT INTO first_seen (identity, first_seen_at) VALUES (?, ?)",
                [(k, float(v)) for k, v in store.first_seen.items()],
            )
            conn.executemany(
                "INSERT INTO content_digests (identity, digest) VALUES (?, ?)",
                [(k, sqlite3.Binary(v)) for k, v in store.digests.items()],
            )
            conn.executemany(
                "INSERT INTO update_counts (identity, update_count) VALUES (?, ?)",
                [(k, int(v)) for k, v in store.update_counts.items()],
            )
    except BaseException:
        conn.close()
        tmp.unlink(missing_ok=True)
        raise
    conn.close()
    os.replace(tmp, target)
    logger.debug("Saved %d tracked items to %s", len(store), target)


__all__ = ["load_store", "save_store", "SCHEMA"]
