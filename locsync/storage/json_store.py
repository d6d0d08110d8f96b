"""
JSON file dictionary store.

One `<language>.json` file per language inside a directory. Files may be flat
(`{"home.title": "Hello"}`) or nested (`{"home": {"title": "Hello"}}`); with
`nested=True` dictionaries are flattened on load and rebuilt on save.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from locsync.exceptions import CorruptDictionaryError, DictionaryNotFoundError, StoreError
from locsync.language_codes import is_valid_language_code
from locsync.logger import get_logger
from locsync.storage.base import DictionaryStore, StoreCapabilities
from locsync.storage.files import atomic_write_json, backup_file
from locsync.storage.flatten import build_nested, flatten_json

logger = get_logger(__name__)


class FlatJsonStore(DictionaryStore):
    """Dictionary store backed by `<directory>/<language>.json` files."""

    def __init__(
        self,
        directory: Path,
        nested: bool = False,
        read_only: bool = False,
        create_if_not_exists: bool = True,
        backup_dir: Optional[Path] = None,
        name: Optional[str] = None,
    ):
        self.directory = Path(directory)
        self.nested = nested
        self.read_only = read_only
        self.create_if_not_exists = create_if_not_exists
        self.backup_dir = Path(backup_dir) if backup_dir else None
        self.name = name or f"json:{self.directory}"

    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(
            can_read=True,
            can_write=not self.read_only,
            can_delete=not self.read_only,
            can_list_languages=True,
            can_check_existence=True,
            is_read_only=self.read_only,
            backend_type="json",
            description=f"JSON files in {self.directory}" + (" (nested)" if self.nested else ""),
        )

    def path_for(self, language: str) -> Path:
        if not is_valid_language_code(language):
            raise StoreError(
                f"Invalid language code: {language!r}",
                code="invalid_language",
                details={"language": language},
            )
        return self.directory / f"{language}.json"

    # ------------------------------------------------------------------
    # Blocking implementations (run in a worker thread)
    # ------------------------------------------------------------------

    def _load(self, language: str) -> Dict[str, str]:
        path = self.path_for(language)
        if not path.exists():
            raise DictionaryNotFoundError(
                f"No dictionary for '{language}' in {self.directory}",
                code="dictionary_not_found",
                details={"language": language, "path": str(path)},
            )

        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            if self.nested:
                return flatten_json(data)
            for key, value in data.items():
                if not isinstance(value, str):
                    raise ValueError(f"value of '{key}' is not a string")
            return data
        except (ValueError, UnicodeDecodeError, CorruptDictionaryError) as e:
            backup = backup_file(path, self.backup_dir, language) if self.backup_dir else None
            logger.error(f"Corrupt dictionary {path}: {e}")
            raise CorruptDictionaryError(
                f"Dictionary for '{language}' could not be parsed: {e}",
                code="dictionary_corrupt",
                details={"language": language, "path": str(path), "backup": str(backup) if backup else None},
            ) from e
        except OSError as e:
            raise StoreError(
                f"Dictionary for '{language}' could not be read: {e}",
                code="store_read_failed",
                details={"language": language, "path": str(path)},
            ) from e

    def _save(self, language: str, dictionary: Dict[str, str]) -> None:
        path = self.path_for(language)
        if not self.directory.exists() and not self.create_if_not_exists:
            raise StoreError(
                f"Directory {self.directory} does not exist",
                code="directory_missing",
                details={"path": str(self.directory)},
            )
        payload = build_nested(dictionary) if self.nested else dict(dictionary)
        try:
            atomic_write_json(path, payload)
        except OSError as e:
            raise StoreError(
                f"Dictionary for '{language}' could not be written: {e}",
                code="store_write_failed",
                details={"language": language, "path": str(path)},
            ) from e
        logger.debug(f"Saved {len(dictionary)} entries to {path}")

    def _list(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            p.stem for p in self.directory.glob("*.json")
            if p.is_file() and is_valid_language_code(p.stem)
        )

    def _delete(self, language: str) -> None:
        path = self.path_for(language)
        if not path.exists():
            return
        try:
            os.remove(path)
        except OSError as e:
            raise StoreError(
                f"Dictionary for '{language}' could not be deleted: {e}",
                code="store_delete_failed",
                details={"language": language, "path": str(path)},
            ) from e
        logger.info(f"Deleted {path}")

    # ------------------------------------------------------------------
    # Async contract
    # ------------------------------------------------------------------

    async def load_dictionary(self, language: str) -> Dict[str, str]:
        return await asyncio.to_thread(self._load, language)

    async def save_dictionary(self, language: str, dictionary: Dict[str, str]) -> None:
        self._require("can_write", "save_dictionary")
        await asyncio.to_thread(self._save, language, dictionary)

    async def list_available_languages(self) -> List[str]:
        return await asyncio.to_thread(self._list)

    async def dictionary_exists(self, language: str) -> bool:
        return await asyncio.to_thread(self.path_for(language).exists)

    async def delete_dictionary(self, language: str) -> None:
        self._require("can_delete", "delete_dictionary")
        await asyncio.to_thread(self._delete, language)
