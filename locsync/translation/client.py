"""
Translation Client

Wraps a TranslationProvider with:
- Capability negotiation (supported target languages, once per cycle)
- Bounded retries with backoff between attempts
- A per-call timeout
- Graceful fallback: failures return the original text, never raise
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, FrozenSet, Optional, Tuple, TypeVar

from locsync.exceptions import TranslationError
from locsync.language_codes import extract_base_language
from locsync.logger import get_logger
from locsync.translation.providers import TranslationProvider
from locsync.translation.retry import BackoffPolicy, is_retryable

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TranslationResult:
    """Outcome of one translation unit."""
    text: str
    translated: bool
    failed: bool = False
    attempts: int = 0
    error: Optional[str] = None


class TranslationClient:
    """Retrying, capability-aware front of a translation provider."""

    def __init__(
        self,
        provider: TranslationProvider,
        max_retries: int = 10,
        policy: Optional[BackoffPolicy] = None,
        call_timeout: Optional[float] = 30,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.max_retries = max(0, max_retries)
        self.policy = policy or BackoffPolicy()
        self.call_timeout = call_timeout
        self.sleep = sleep
        self._supported: Optional[FrozenSet[str]] = None
        self._negotiated = False

    @property
    def supported_languages(self) -> Optional[FrozenSet[str]]:
        """Negotiated target languages; None while unknown."""
        return self._supported

    def reset(self) -> None:
        """Forget the negotiated capability (called at every cycle start)."""
        self._supported = None
        self._negotiated = False

    async def negotiate(self) -> Optional[FrozenSet[str]]:
        """
        Ask the provider which languages it supports.

        Returns:
            The supported codes, or None when negotiation failed (every
            target will then be attempted)
        """
        if self._negotiated:
            return self._supported
        try:
            languages, attempts = await self._call_with_retry(
                self.provider.get_supported_languages, "get_supported_languages"
            )
            self._supported = frozenset(languages)
            logger.info(f"Provider supports {len(self._supported)} languages")
        except TranslationError as e:
            logger.warning(f"Language negotiation failed, attempting every target: {e}")
            self._supported = None
        self._negotiated = True
        return self._supported

    def supports(self, language: str) -> bool:
        if self._supported is None:
            return True
        return language in self._supported or extract_base_language(language) in self._supported

    async def translate(self, text: str, source: str, target: str) -> TranslationResult:
        """
        Translate one text.

        Never raises TranslationError: an unsupported target returns the text
        untranslated, exhausted retries return it with failed=True.
        """
        if not text or not text.strip():
            return TranslationResult(text=text, translated=True)

        if not self.supports(target):
            logger.debug(f"Target {target} not supported, keeping source text")
            return TranslationResult(text=text, translated=False)

        try:
            translated, attempts = await self._call_with_retry(
                lambda: self.provider.translate(text, source, target),
                f"translate {source}->{target}",
            )
        except TranslationError as e:
            return TranslationResult(
                text=text,
                translated=False,
                failed=True,
                attempts=e.details.get("attempts", self.max_retries + 1),
                error=str(e),
            )
        return TranslationResult(text=translated, translated=True, attempts=attempts)

    async def detect_language(self, text: str) -> Tuple[str, float]:
        """
        Detect the language of a text.

        Raises:
            TranslationError: After the retries are exhausted
        """
        result, _ = await self._call_with_retry(
            lambda: self.provider.detect_language(text), "detect_language"
        )
        return result

    async def _call_with_retry(self, call: Callable[[], Awaitable[T]], description: str) -> Tuple[T, int]:
        """Run `call` up to max_retries + 1 times; returns (result, attempts)."""
        total_attempts = self.max_retries + 1
        last_error: Optional[TranslationError] = None

        for attempt in range(1, total_attempts + 1):
            try:
                if self.call_timeout:
                    result = await asyncio.wait_for(call(), timeout=self.call_timeout)
                else:
                    result = await call()
                return result, attempt
            except asyncio.TimeoutError:
                last_error = TranslationError(
                    f"{description} timed out after {self.call_timeout}s", code="timeout"
                )
            except TranslationError as e:
                last_error = e

            if not is_retryable(last_error):
                logger.error(f"{description}: non-recoverable error: {last_error}")
                break
            if attempt < total_attempts:
                wait_time = self.policy.delay(attempt)
                logger.warning(
                    f"{description}: attempt {attempt}/{total_attempts} failed: {last_error}. "
                    f"Waiting {wait_time:.1f}s before retry..."
                )
                await self.sleep(wait_time)

        logger.warning(f"{description} failed after {attempt} attempt(s)")
        raise TranslationError(
            str(last_error),
            code=last_error.code,
            details={**last_error.details, "attempts": attempt},
        )
