"""
SQLite dictionary store.

Tables:
- dictionaries: one row per stored language (so an empty dictionary still exists)
- entries: (language, key) -> value

A save replaces the language's entries inside one transaction.
"""

import asyncio
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from locsync.exceptions import CorruptDictionaryError, DictionaryNotFoundError, StoreError
from locsync.logger import get_logger
from locsync.storage.base import DictionaryStore, StoreCapabilities

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS dictionaries (
    language TEXT PRIMARY KEY,
    updated_at TIMESTAMP
);
CREATE TABLE IF NOT EXISTS entries (
    language TEXT NOT NULL,
    key TEXT NOT NULL,
    value TEXT NOT NULL,
    PRIMARY KEY (language, key)
);
"""


class SqliteDictionaryStore(DictionaryStore):
    """Dictionary store backed by a SQLite database file."""

    def __init__(self, db_file: Path, name: Optional[str] = None):
        self.db_file = Path(db_file)
        self.name = name or f"sqlite:{self.db_file}"
        self._schema_ready = False

    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(
            can_read=True,
            can_write=True,
            can_delete=True,
            can_list_languages=True,
            can_check_existence=True,
            is_read_only=False,
            backend_type="sqlite",
            description=f"SQLite database {self.db_file}",
        )

    def get_connection(self) -> sqlite3.Connection:
        """Get a database connection, creating the schema on first use."""
        self.db_file.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_file)
        if not self._schema_ready:
            conn.executescript(SCHEMA)
            self._schema_ready = True
        return conn

    def _load(self, language: str) -> Dict[str, str]:
        try:
            with closing(self.get_connection()) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT 1 FROM dictionaries WHERE language = ?", (language,))
                if cursor.fetchone() is None:
                    raise DictionaryNotFoundError(
                        f"No dictionary for '{language}' in {self.db_file}",
                        code="dictionary_not_found",
                        details={"language": language},
                    )
                cursor.execute(
                    "SELECT key, value FROM entries WHERE language = ? ORDER BY rowid",
                    (language,),
                )
                return {key: value for key, value in cursor.fetchall()}
        except sqlite3.DatabaseError as e:
            logger.error(f"Failed to read '{language}' from {self.db_file}: {e}")
            raise CorruptDictionaryError(
                f"Database {self.db_file} could not be read: {e}",
                code="dictionary_corrupt",
                details={"language": language, "path": str(self.db_file)},
            ) from e

    def _save(self, language: str, dictionary: Dict[str, str]) -> None:
        try:
            with closing(self.get_connection()) as conn:
                # Commits on success, rolls back on error
                with conn:
                    conn.execute("DELETE FROM entries WHERE language = ?", (language,))
                    conn.executemany(
                        "INSERT INTO entries (language, key, value) VALUES (?, ?, ?)",
                        [(language, key, value) for key, value in dictionary.items()],
                    )
                    conn.execute(
                        "INSERT OR REPLACE INTO dictionaries (language, updated_at) VALUES (?, ?)",
                        (language, datetime.now().isoformat()),
                    )
        except sqlite3.Error as e:
            raise StoreError(
                f"Failed to save '{language}' to {self.db_file}: {e}",
                code="store_write_failed",
                details={"language": language},
            ) from e
        logger.debug(f"Saved {len(dictionary)} entries for {language} to {self.db_file}")

    def _list(self) -> List[str]:
        with closing(self.get_connection()) as conn:
            cursor = conn.execute("SELECT language FROM dictionaries ORDER BY language")
            return [row[0] for row in cursor.fetchall()]

    def _exists(self, language: str) -> bool:
        with closing(self.get_connection()) as conn:
            cursor = conn.execute("SELECT 1 FROM dictionaries WHERE language = ?", (language,))
            return cursor.fetchone() is not None

    def _delete(self, language: str) -> None:
        with closing(self.get_connection()) as conn:
            with conn:
                conn.execute("DELETE FROM entries WHERE language = ?", (language,))
                conn.execute("DELETE FROM dictionaries WHERE language = ?", (language,))

    def _get_translation(self, key: str, language: str) -> Optional[str]:
        with closing(self.get_connection()) as conn:
            cursor = conn.execute(
                "SELECT value FROM entries WHERE language = ? AND key = ?",
                (language, key),
            )
            row = cursor.fetchone()
            return row[0] if row else None

    async def load_dictionary(self, language: str) -> Dict[str, str]:
        return await asyncio.to_thread(self._load, language)

    async def save_dictionary(self, language: str, dictionary: Dict[str, str]) -> None:
        self._require("can_write", "save_dictionary")
        await asyncio.to_thread(self._save, language, dictionary)

    async def list_available_languages(self) -> List[str]:
        return await asyncio.to_thread(self._list)

    async def dictionary_exists(self, language: str) -> bool:
        return await asyncio.to_thread(self._exists, language)

    async def delete_dictionary(self, language: str) -> None:
        self._require("can_delete", "delete_dictionary")
        await asyncio.to_thread(self._delete, language)

    async def get_translation(self, key: str, language: str) -> Optional[str]:
        return await asyncio.to_thread(self._get_translation, key, language)
