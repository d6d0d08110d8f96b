"""In-memory stand-ins for stores and translation providers."""

from typing import Dict, Iterable, List, Optional, Tuple

from locsync.exceptions import CorruptDictionaryError, DictionaryNotFoundError, TranslationError
from locsync.storage.base import DictionaryStore, StoreCapabilities
from locsync.translation.providers import TranslationProvider


class MemoryDictionaryStore(DictionaryStore):
    def __init__(self, data: Optional[Dict[str, Dict[str, str]]] = None, read_only: bool = False,
                 corrupt: Iterable[str] = (), name: str = "memory"):
        self.data = {language: dict(values) for language, values in (data or {}).items()}
        self.read_only = read_only
        self.corrupt = set(corrupt)
        self.name = name
        self.saves: List[Tuple[str, Dict[str, str]]] = []

    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(
            can_read=True,
            can_write=True,
            can_delete=True,
            can_list_languages=True,
            can_check_existence=True,
            is_read_only=self.read_only,
            backend_type="memory",
        )

    async def load_dictionary(self, language):
        if language in self.corrupt:
            raise CorruptDictionaryError(f"{language} is corrupt", code="dictionary_corrupt")
        if language not in self.data:
            raise DictionaryNotFoundError(f"{language} not stored", code="dictionary_not_found")
        return dict(self.data[language])

    async def save_dictionary(self, language, dictionary):
        self._require("can_write", "save_dictionary")
        self.data[language] = dict(dictionary)
        self.corrupt.discard(language)
        self.saves.append((language, dict(dictionary)))

    async def list_available_languages(self):
        return sorted(self.data)

    async def dictionary_exists(self, language):
        return language in self.data or language in self.corrupt

    async def delete_dictionary(self, language):
        self._require("can_delete", "delete_dictionary")
        self.data.pop(language, None)


class FakeProvider(TranslationProvider):
    """Prefixes texts with the target code; failures are scripted."""

    name = "Fake"

    def __init__(self, supported: Optional[Iterable[str]] = None, fail_targets: Iterable[str] = (),
                 fail_texts: Iterable[str] = (), negotiation_fails: bool = False,
                 transient_failures: int = 0, status_code: int = 500):
        self.supported = list(supported) if supported is not None else None
        self.fail_targets = set(fail_targets)
        self.fail_texts = set(fail_texts)
        self.negotiation_fails = negotiation_fails
        self.transient_failures = transient_failures
        self.status_code = status_code
        self.calls: List[Tuple[str, str, str]] = []
        self.negotiations = 0

    async def get_supported_languages(self):
        self.negotiations += 1
        if self.negotiation_fails or self.supported is None:
            raise TranslationError("languages endpoint down", code="http_error", details={"status_code": 503})
        return list(self.supported)

    async def translate(self, text, source, target):
        self.calls.append((text, source, target))
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise TranslationError("temporarily unavailable", code="http_error", details={"status_code": 503})
        if target in self.fail_targets or text in self.fail_texts:
            raise TranslationError(
                f"cannot translate into {target}", code="http_error", details={"status_code": self.status_code}
            )
        return f"[{target}] {text}"

    async def detect_language(self, text):
        return "en", 92.0


async def no_sleep(seconds):
    return None
