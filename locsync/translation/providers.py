"""
Translation Provider Implementations

This module contains the provider contract and the LibreTranslate adapter.
Providers make exactly one remote call per method and raise TranslationError
on failure; retries and fallbacks live in TranslationClient.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple

import httpx

from locsync.config import ProviderOptions
from locsync.exceptions import TranslationError
from locsync.logger import get_logger

logger = get_logger(__name__)


def get_httpx_timeout(timeout_config: Any) -> httpx.Timeout:
    """
    Convert timeout configuration to httpx.Timeout object.

    Args:
        timeout_config: Either a number (read timeout) or a dict with
            connect, write, read, pool keys
    """
    if isinstance(timeout_config, dict):
        return httpx.Timeout(
            connect=timeout_config.get('connect', 10.0),
            write=timeout_config.get('write', 30.0),
            read=timeout_config.get('read', 30.0),
            pool=timeout_config.get('pool', 10.0),
        )
    timeout_value = float(timeout_config) if timeout_config else 30.0
    return httpx.Timeout(connect=10.0, write=30.0, read=timeout_value, pool=10.0)


def handle_http_error(e: httpx.HTTPStatusError, provider: str):
    """Convert an HTTP error response into TranslationError."""
    status_code = e.response.status_code
    error_text = "Unknown error"

    try:
        error_json = e.response.json()
        if isinstance(error_json, dict) and "error" in error_json:
            error_text = str(error_json["error"])
    except ValueError:
        error_text = e.response.text[:500] or "No details"

    raise TranslationError(
        f"{provider} API error ({status_code}): {error_text}",
        code="http_error",
        details={"status_code": status_code},
    )


class TranslationProvider(ABC):
    """Remote machine translation service."""

    name = "provider"

    @abstractmethod
    async def get_supported_languages(self) -> List[str]:
        """Language codes the provider can translate into."""

    @abstractmethod
    async def translate(self, text: str, source: str, target: str) -> str:
        """Translate one text."""

    @abstractmethod
    async def detect_language(self, text: str) -> Tuple[str, float]:
        """Return (language code, confidence)."""

    async def aclose(self) -> None:
        return None


class LibreTranslateProvider(TranslationProvider):
    """Adapter for a LibreTranslate server."""

    name = "LibreTranslate"

    def __init__(self, options: ProviderOptions, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.options = options
        self._client = httpx.AsyncClient(
            timeout=get_httpx_timeout(options.timeout_seconds),
            transport=transport,
        )

    def _form(self, **fields: str) -> dict:
        if self.options.needs_key:
            fields["api_key"] = self.options.api_key
        return fields

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.debug(f"{self.name} HTTP error: {e.response.status_code} - {e.response.text[:200]}")
            handle_http_error(e, self.name)
        except httpx.TimeoutException:
            raise TranslationError(f"{self.name} API request timeout", code="timeout")
        except httpx.HTTPError as e:
            raise TranslationError(f"{self.name} API call failed: {e}", code="connection_error")
        except ValueError as e:
            raise TranslationError(f"Unexpected {self.name} response: {e}", code="bad_response")

    async def get_supported_languages(self) -> List[str]:
        url = self.options.url(self.options.languages_endpoint)
        params = {"api_key": self.options.api_key} if self.options.needs_key else None
        result = await self._request("GET", url, params=params)
        if not isinstance(result, list):
            raise TranslationError(f"Unexpected {self.name} languages response", code="bad_response")

        codes = set()
        for language in result:
            if isinstance(language, dict) and language.get("code"):
                codes.add(language["code"])
                codes.update(language.get("targets") or [])
        logger.debug(f"{self.name} supports {len(codes)} languages")
        return sorted(codes)

    async def translate(self, text: str, source: str, target: str) -> str:
        url = self.options.url(self.options.translate_endpoint)
        result = await self._request(
            "POST", url, data=self._form(q=text, source=source, target=target, format="text")
        )
        if isinstance(result, dict) and isinstance(result.get("translatedText"), str):
            return result["translatedText"]
        raise TranslationError(f"No translatedText in {self.name} response", code="bad_response")

    async def detect_language(self, text: str) -> Tuple[str, float]:
        url = self.options.url(self.options.detect_language_endpoint)
        result = await self._request("POST", url, data=self._form(q=text))
        if isinstance(result, list) and result and isinstance(result[0], dict):
            best = max(result, key=lambda d: d.get("confidence", 0))
            return str(best.get("language", "")), float(best.get("confidence", 0))
        raise TranslationError(f"No detections in {self.name} response", code="bad_response")

    async def aclose(self) -> None:
        await self._client.aclose()
