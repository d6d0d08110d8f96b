"""
Dictionary store contract.

A store persists one flat `key -> value` dictionary per language code and
declares what it can do through StoreCapabilities. Callers (the backend chain)
consult the capabilities before calling an operation; calling an undeclared
operation raises CapabilityError.
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from locsync.exceptions import CapabilityError


@dataclass(frozen=True)
class StoreCapabilities:
    can_read: bool = True
    can_write: bool = False
    can_delete: bool = False
    can_list_languages: bool = False
    can_check_existence: bool = False
    is_read_only: bool = True
    backend_type: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DictionaryStore(ABC):
    """Abstract async dictionary store."""

    name: str = "store"

    @abstractmethod
    def capabilities(self) -> StoreCapabilities:
        """Return the store's declared capabilities."""

    @abstractmethod
    async def load_dictionary(self, language: str) -> Dict[str, str]:
        """
        Load the dictionary of one language.

        Raises:
            DictionaryNotFoundError: Nothing stored for the language
            CorruptDictionaryError: Stored data could not be parsed
        """

    async def save_dictionary(self, language: str, dictionary: Dict[str, str]) -> None:
        """Replace the dictionary of one language."""
        self._unsupported("can_write", "save_dictionary")

    async def list_available_languages(self) -> List[str]:
        self._unsupported("can_list_languages", "list_available_languages")

    async def dictionary_exists(self, language: str) -> bool:
        self._unsupported("can_check_existence", "dictionary_exists")

    async def delete_dictionary(self, language: str) -> None:
        self._unsupported("can_delete", "delete_dictionary")

    async def is_read_only(self) -> bool:
        return self.capabilities().is_read_only

    async def get_translation(self, key: str, language: str) -> Optional[str]:
        """Look up one value; None when the key or language is unknown."""
        dictionary = await self.load_dictionary(language)
        return dictionary.get(key)

    def _require(self, capability: str, operation: str) -> None:
        """Raise CapabilityError unless the capability is declared."""
        caps = self.capabilities()
        if not getattr(caps, capability):
            raise CapabilityError(
                f"{self.name} does not support {operation}",
                code="capability_missing",
                details={"store": self.name, "capability": capability},
            )
        if capability in ("can_write", "can_delete") and caps.is_read_only:
            raise CapabilityError(
                f"{self.name} is read-only",
                code="store_read_only",
                details={"store": self.name, "operation": operation},
            )

    def _unsupported(self, capability: str, operation: str) -> None:
        """Reject an optional operation the store does not override."""
        self._require(capability, operation)
        raise CapabilityError(
            f"{self.name} declares {capability} but does not implement {operation}",
            code="capability_not_implemented",
            details={"store": self.name, "capability": capability},
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
