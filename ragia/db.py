"""SQLite persistence helpers for indexed chunks.

SQLite database for storing:
- Text chunks with their raw float32 embeddings
- Store-level metadata (embedding dimension the table was built with)

The chunk table is the source of truth; the FAISS index is derived from it.
"""
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Tuple

import structlog

from ragia.errors import StorageError

logger = structlog.get_logger()


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row
    """
    conn = sqlite3.connect(db_path, timeout=5.0)
    conn.row_factory = sqlite3.Row
    return conn


def init_database(db_path: Path) -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - chunks: text chunks with embeddings
    - store_metadata: key/value facts about the store

    Safe to call on every process start.
    """
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chunks (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                source_id TEXT NOT NULL,
                text TEXT NOT NULL,
                embedding BLOB NOT NULL,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_chunks_source_id
            ON chunks(source_id)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS store_metadata (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

        conn.commit()
        logger.info("database_initialized", db_path=str(db_path))

    except sqlite3.Error as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e))
        raise StorageError(f"Failed to initialize database: {e}") from e
    finally:
        conn.close()


def set_metadata_if_absent(db_path: Path, key: str, value: str) -> str:
    """Record a metadata value unless one exists.

    Returns:
        The value now stored (the existing one if another writer won)
    """
    conn = get_connection(db_path)
    try:
        conn.execute(
            "INSERT OR IGNORE INTO store_metadata (key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()
        row = conn.execute(
            "SELECT value FROM store_metadata WHERE key = ?", (key,)
        ).fetchone()
        return row["value"]
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("metadata_write_failed", key=key, error=str(e))
        raise StorageError(f"Failed to write store metadata: {e}") from e
    finally:
        conn.close()


def insert_chunk(
    db_path: Path,
    source_id: str,
    text: str,
    embedding: bytes,
) -> int:
    """Append a chunk row. No upsert: duplicates are kept.

    Args:
        db_path: SQLite database path
        source_id: "<path>#<index>" identifier
        text: Chunk text
        embedding: float32 vector bytes

    Returns:
        Assigned row id
    """
    created_at = datetime.now(timezone.utc).isoformat()
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            INSERT INTO chunks (source_id, text, embedding, created_at)
            VALUES (?, ?, ?, ?)
        """, (source_id, text, sqlite3.Binary(embedding), created_at))

        conn.commit()
        return cursor.lastrowid

    except sqlite3.Error as e:
        conn.rollback()
        logger.error("chunk_insert_failed", error=str(e), source_id=source_id)
        raise StorageError(f"Failed to insert chunk {source_id}: {e}") from e
    finally:
        conn.close()


def get_chunks_by_ids(db_path: Path, ids: List[int]) -> Dict[int, Dict[str, Any]]:
    """Retrieve chunk rows (without embeddings) by id.

    Returns:
        Mapping of row id to {id, source_id, text, created_at}
    """
    if not ids:
        return {}

    conn = get_connection(db_path)

    try:
        placeholders = ",".join("?" * len(ids))
        rows = conn.execute(f"""
            SELECT id, source_id, text, created_at
            FROM chunks
            WHERE id IN ({placeholders})
        """, ids).fetchall()

        return {row["id"]: dict(row) for row in rows}

    except sqlite3.Error as e:
        logger.error("chunks_retrieval_failed", error=str(e))
        raise StorageError(f"Failed to read chunks: {e}") from e
    finally:
        conn.close()


def get_embeddings_after(db_path: Path, last_id: int) -> List[Tuple[int, bytes]]:
    """Get (id, embedding) pairs for rows with id > last_id, in id order."""
    conn = get_connection(db_path)

    try:
        rows = conn.execute(
            "SELECT id, embedding FROM chunks WHERE id > ? ORDER BY id",
            (last_id,),
        ).fetchall()
        return [(row["id"], bytes(row["embedding"])) for row in rows]

    except sqlite3.Error as e:
        logger.error("embeddings_retrieval_failed", error=str(e))
        raise StorageError(f"Failed to read embeddings: {e}") from e
    finally:
        conn.close()


def get_max_chunk_id(db_path: Path) -> int:
    """Highest assigned chunk id, 0 for an empty table."""
    conn = get_connection(db_path)

    try:
        row = conn.execute("SELECT MAX(id) FROM chunks").fetchone()
        return row[0] or 0

    except sqlite3.Error as e:
        logger.error("max_chunk_id_failed", error=str(e))
        raise StorageError(f"Failed to read chunk ids: {e}") from e
    finally:
        conn.close()


def get_chunk_count(db_path: Path) -> int:
    """Get the total number of chunks in the database."""
    conn = get_connection(db_path)

    try:
        return conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0]

    except sqlite3.Error as e:
        logger.error("chunk_count_failed", error=str(e))
        raise StorageError(f"Failed to count chunks: {e}") from e
    finally:
        conn.close()
