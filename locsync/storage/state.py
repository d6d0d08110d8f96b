"""
Worker state files under StatePath:

    fingerprints/<lang>.json   key -> source fingerprint per translated value
    documents/<lang>.json      node key -> {fingerprint, last_modified}
    language_names.json        code -> native name found by translation
    backups/                   copies of corrupt dictionaries
"""

import asyncio
from pathlib import Path
from typing import Dict

from locsync.core.models import DocumentSnapshot
from locsync.language_codes import is_valid_language_code
from locsync.logger import get_logger
from locsync.exceptions import StoreError
from locsync.storage.files import atomic_write_json, read_json

logger = get_logger(__name__)


class StateStore:
    """Bookkeeping records the worker keeps next to the dictionaries."""

    def __init__(self, state_path: Path):
        self.state_path = Path(state_path)

    @property
    def backups_dir(self) -> Path:
        return self.state_path / "backups"

    @property
    def language_names_file(self) -> Path:
        return self.state_path / "language_names.json"

    def _language_file(self, kind: str, language: str) -> Path:
        if not is_valid_language_code(language):
            raise StoreError(f"Invalid language code: {language!r}", code="invalid_language")
        return self.state_path / kind / f"{language}.json"

    def _read_mapping(self, path: Path) -> Dict:
        # An unreadable record only costs a re-check, so it is reset
        try:
            data = read_json(path, default={})
        except (ValueError, OSError) as e:
            logger.warning(f"Ignoring unreadable state file {path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring state file {path}: not a JSON object")
            return {}
        return data

    def _write_mapping(self, path: Path, data: Dict) -> None:
        try:
            atomic_write_json(path, data)
        except OSError as e:
            raise StoreError(
                f"Could not write state file {path}: {e}",
                code="state_write_failed",
                details={"path": str(path)},
            ) from e

    # Fingerprints

    def load_fingerprints(self, language: str) -> Dict[str, str]:
        data = self._read_mapping(self._language_file("fingerprints", language))
        return {str(key): str(value) for key, value in data.items()}

    def save_fingerprints(self, language: str, fingerprints: Dict[str, str]) -> None:
        self._write_mapping(self._language_file("fingerprints", language), fingerprints)

    # Document snapshots

    def load_snapshots(self, language: str) -> Dict[str, DocumentSnapshot]:
        data = self._read_mapping(self._language_file("documents", language))
        return {key: DocumentSnapshot.from_dict(value) for key, value in data.items() if isinstance(value, dict)}

    def save_snapshots(self, language: str, snapshots: Dict[str, DocumentSnapshot]) -> None:
        self._write_mapping(
            self._language_file("documents", language),
            {key: snapshot.to_dict() for key, snapshot in sorted(snapshots.items())},
        )

    # Localized language names

    def load_language_names(self) -> Dict[str, str]:
        data = self._read_mapping(self.language_names_file)
        return {str(code): str(name) for code, name in data.items() if name}

    def save_language_names(self, names: Dict[str, str]) -> None:
        """Merge newly translated names into the record."""
        merged = self.load_language_names()
        merged.update({code: name for code, name in names.items() if name})
        self._write_mapping(self.language_names_file, dict(sorted(merged.items())))
        logger.info(f"Recorded {len(names)} localized language name(s)")

    # Async wrappers

    async def load_fingerprints_async(self, language: str) -> Dict[str, str]:
        return await asyncio.to_thread(self.load_fingerprints, language)

    async def save_fingerprints_async(self, language: str, fingerprints: Dict[str, str]) -> None:
        await asyncio.to_thread(self.save_fingerprints, language, fingerprints)

    async def load_snapshots_async(self, language: str) -> Dict[str, DocumentSnapshot]:
        return await asyncio.to_thread(self.load_snapshots, language)

    async def save_snapshots_async(self, language: str, snapshots: Dict[str, DocumentSnapshot]) -> None:
        await asyncio.to_thread(self.save_snapshots, language, snapshots)

    async def save_language_names_async(self, names: Dict[str, str]) -> None:
        await asyncio.to_thread(self.save_language_names, names)
