"""
Read-only HTTP dictionary store.

Fetches `<base_url>/<language>.json` (flat or nested JSON) over HTTP, e.g. a
CDN copy of the locale files used as a fallback source.
"""

from typing import Dict, Optional

import httpx

from locsync.exceptions import CorruptDictionaryError, DictionaryNotFoundError, StoreError
from locsync.language_codes import is_valid_language_code
from locsync.logger import get_logger
from locsync.storage.base import DictionaryStore, StoreCapabilities
from locsync.storage.flatten import flatten_json

logger = get_logger(__name__)


class HttpJsonStore(DictionaryStore):
    """Dictionary store reading JSON files from a web server."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        name: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport
        self.name = name or f"http:{self.base_url}"

    def capabilities(self) -> StoreCapabilities:
        return StoreCapabilities(
            can_read=True,
            is_read_only=True,
            backend_type="http",
            description=f"JSON files served from {self.base_url}",
        )

    def url_for(self, language: str) -> str:
        if not is_valid_language_code(language):
            raise StoreError(
                f"Invalid language code: {language!r}",
                code="invalid_language",
                details={"language": language},
            )
        return f"{self.base_url}/{language}.json"

    async def load_dictionary(self, language: str) -> Dict[str, str]:
        url = self.url_for(language)
        logger.debug(f"Fetching {url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise DictionaryNotFoundError(
                    f"No dictionary for '{language}' at {url}",
                    code="dictionary_not_found",
                    details={"language": language, "url": url},
                ) from e
            raise StoreError(
                f"GET {url} failed ({e.response.status_code})",
                code="http_error",
                details={"language": language, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise StoreError(
                f"GET {url} failed: {e}",
                code="http_error",
                details={"language": language},
            ) from e

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return flatten_json(data)
        except (ValueError, CorruptDictionaryError) as e:
            raise CorruptDictionaryError(
                f"Dictionary for '{language}' at {url} could not be parsed: {e}",
                code="dictionary_corrupt",
                details={"language": language, "url": url},
            ) from e
