"""
Backend chain.

An ordered list of dictionary stores consulted in turn:
- load: first readable store holding the language wins
- save: first writable, non read-only store wins
- lookups fall back through the chain, then to the key itself
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from locsync.config import BACKEND_TYPES, load_config, resolve_path
from locsync.exceptions import (
    CapabilityError,
    ConfigurationError,
    CorruptDictionaryError,
    DictionaryNotFoundError,
    StoreError,
)
from locsync.logger import get_logger
from locsync.storage.base import DictionaryStore, StoreCapabilities
from locsync.storage.http_store import HttpJsonStore
from locsync.storage.json_store import FlatJsonStore
from locsync.storage.sqlite_store import SqliteDictionaryStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class ChainEntry:
    tag: str
    store: DictionaryStore


class BackendChain:
    """Ordered, tagged list of dictionary stores."""

    def __init__(self, entries: Sequence[Tuple[str, DictionaryStore]] = ()):
        self._entries: List[ChainEntry] = [ChainEntry(tag, store) for tag, store in entries]

    def add(self, tag: str, store: DictionaryStore) -> "BackendChain":
        self._entries.append(ChainEntry(tag, store))
        return self

    @property
    def entries(self) -> List[ChainEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def capabilities(self) -> StoreCapabilities:
        """Aggregate capabilities: the chain can do what any of its stores can."""
        caps = [entry.store.capabilities() for entry in self._entries]
        return StoreCapabilities(
            can_read=any(c.can_read for c in caps),
            can_write=any(c.can_write and not c.is_read_only for c in caps),
            can_delete=any(c.can_delete and not c.is_read_only for c in caps),
            can_list_languages=any(c.can_list_languages for c in caps),
            can_check_existence=any(c.can_check_existence for c in caps),
            is_read_only=all(c.is_read_only for c in caps) if caps else True,
            backend_type="chain",
            description=" -> ".join(entry.tag for entry in self._entries),
        )

    def _with(self, capability: str) -> List[ChainEntry]:
        return [entry for entry in self._entries if getattr(entry.store.capabilities(), capability)]

    async def load_dictionary(self, language: str) -> Dict[str, str]:
        """
        Load a language from the first readable store that has it.

        Raises:
            CorruptDictionaryError / StoreError: Every store failed and at least
                one failure was something other than "not found"
            DictionaryNotFoundError: No store holds the language
        """
        failure: Optional[StoreError] = None
        not_found: Optional[DictionaryNotFoundError] = None

        for entry in self._with("can_read"):
            try:
                dictionary = await entry.store.load_dictionary(language)
                logger.debug(f"Loaded '{language}' from {entry.tag} ({len(dictionary)} entries)")
                return dictionary
            except DictionaryNotFoundError as e:
                not_found = not_found or e
            except StoreError as e:
                logger.warning(f"Store {entry.tag} failed to load '{language}': {e}")
                failure = failure or e

        if failure is not None:
            raise failure
        raise not_found or DictionaryNotFoundError(
            f"No readable store holds '{language}'",
            code="dictionary_not_found",
            details={"language": language},
        )

    async def save_dictionary(self, language: str, dictionary: Dict[str, str]) -> str:
        """
        Write a language to the first writable store.

        Returns:
            The tag of the store that received the dictionary

        Raises:
            CapabilityError: No store accepts writes
        """
        for entry in self._entries:
            caps = entry.store.capabilities()
            if not caps.can_write:
                continue
            if caps.is_read_only:
                logger.warning(f"Skipping read-only store {entry.tag} for '{language}'")
                continue
            await entry.store.save_dictionary(language, dictionary)
            logger.info(f"Saved '{language}' ({len(dictionary)} entries) to {entry.tag}")
            return entry.tag

        raise CapabilityError(
            f"No writable store for '{language}'",
            code="no_writable_store",
            details={"language": language},
        )

    async def get_translation(self, key: str, language: str) -> str:
        """First non-empty value found along the chain, else the key itself."""
        for entry in self._with("can_read"):
            try:
                value = await entry.store.get_translation(key, language)
            except StoreError as e:
                logger.debug(f"Lookup of '{key}' in {entry.tag} failed: {e}")
                continue
            if value:
                return value
        return key

    async def list_available_languages(self) -> List[str]:
        languages = set()
        for entry in self._with("can_list_languages"):
            languages.update(await entry.store.list_available_languages())
        return sorted(languages)

    async def dictionary_exists(self, language: str) -> bool:
        for entry in self._with("can_check_existence"):
            if await entry.store.dictionary_exists(language):
                return True
        return False

    async def delete_dictionary(self, language: str) -> List[str]:
        """Delete a language from every store that allows it; returns their tags."""
        deleted = []
        for entry in self._entries:
            caps = entry.store.capabilities()
            if caps.can_delete and not caps.is_read_only:
                await entry.store.delete_dictionary(language)
                deleted.append(entry.tag)
        return deleted

    def describe(self) -> List[Dict[str, Any]]:
        return [{"tag": entry.tag, **entry.store.capabilities().to_dict()} for entry in self._entries]


def _create_store(index: int, options: Dict[str, Any], backup_dir) -> DictionaryStore:
    store_type = str(options.get("Type", "")).lower()
    tag = options.get("Tag") or f"{store_type}-{index}"

    if store_type == "json":
        if not options.get("Path"):
            raise ConfigurationError(f"Backend {tag} needs a Path", code="config_invalid", details={"backend": tag})
        return FlatJsonStore(
            resolve_path(options["Path"]),
            nested=bool(options.get("Nested", False)),
            read_only=bool(options.get("ReadOnly", False)),
            create_if_not_exists=bool(options.get("CreateIfNotExists", True)),
            backup_dir=backup_dir,
            name=tag,
        )
    if store_type == "sqlite":
        if not options.get("Path"):
            raise ConfigurationError(f"Backend {tag} needs a Path", code="config_invalid", details={"backend": tag})
        return SqliteDictionaryStore(resolve_path(options["Path"]), name=tag)
    if store_type == "http":
        if not options.get("BaseUrl"):
            raise ConfigurationError(f"Backend {tag} needs a BaseUrl", code="config_invalid", details={"backend": tag})
        return HttpJsonStore(options["BaseUrl"], timeout=float(options.get("TimeoutSeconds", 30)), name=tag)

    raise ConfigurationError(
        f"Unknown backend type {options.get('Type')!r} (expected one of {', '.join(BACKEND_TYPES)})",
        code="config_invalid",
        details={"backend": tag},
    )


def build_chain(config: Dict[str, Any] = None) -> BackendChain:
    """Build the backend chain from the Storage section of the configuration."""
    config = config if config is not None else load_config()
    storage = config.get("Storage") or {}
    backends = storage.get("Backends") or []
    if not isinstance(backends, list):
        raise ConfigurationError("Storage.Backends must be a list", code="config_invalid")

    backup_dir = resolve_path(storage.get("StatePath", "state")) / "backups"
    chain = BackendChain()
    for index, options in enumerate(backends):
        if not isinstance(options, dict):
            raise ConfigurationError("Each backend must be an object", code="config_invalid")
        store = _create_store(index, options, backup_dir)
        chain.add(store.name, store)

    logger.info(f"Backend chain: {chain.capabilities().description or '(empty)'}")
    return chain
