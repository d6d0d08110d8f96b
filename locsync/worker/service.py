"""
Background translation worker.

Owns a daemon thread running one asyncio event loop. The loop sleeps until a
trigger arrives or MinutesBetweenCycles elapse, then runs one cycle. Only one
cycle runs at a time; a trigger received during a cycle starts the next cycle
as soon as the current one ends.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable, Dict, Optional

from locsync.config import load_translation_settings
from locsync.exceptions import LocsyncError
from locsync.logger import get_logger
from locsync.worker.orchestrator import CycleOrchestrator, build_orchestrator
from locsync.worker.publisher import ProgressPublisher
from locsync.worker.state import CancellationToken

logger = get_logger(__name__)

DEFAULT_INTERVAL_MINUTES = 20


class TranslationWorker:
    """Runs reconciliation cycles in the background."""

    def __init__(
        self,
        orchestrator_factory: Callable[..., CycleOrchestrator] = build_orchestrator,
        publisher: Optional[ProgressPublisher] = None,
        interval_minutes: Optional[float] = None,
        run_on_start: bool = True,
    ):
        self.publisher = publisher or ProgressPublisher()
        self._orchestrator_factory = orchestrator_factory
        self._interval_minutes = interval_minutes
        self._run_on_start = run_on_start

        self.orchestrator: Optional[CycleOrchestrator] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wake: Optional[asyncio.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()
        self._lock = threading.Lock()
        self._token: Optional[CancellationToken] = None
        self._stopping = False
        self.cycle_running = False
        self.cycles_completed = 0

    # ------------------------------------------------------------------
    # Thread-side API
    # ------------------------------------------------------------------

    def start(self) -> "TranslationWorker":
        """Launch the worker thread (no-op when already running)."""
        if self._thread and self._thread.is_alive():
            return self
        self._stopping = False
        self._ready.clear()
        self._thread = threading.Thread(target=self._run, name="translation-worker", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=10)
        logger.info("Translation worker started")
        return self

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def trigger(self) -> bool:
        """
        Request a cycle. Safe to call from any thread.

        Returns:
            False when the worker is not running
        """
        if not self.is_alive or self._loop is None:
            return False
        if self.cycle_running:
            logger.info("Cycle in progress, trigger deferred until it ends")
        self._loop.call_soon_threadsafe(self._wake.set)
        return True

    def cancel(self) -> bool:
        """Cancel the running cycle; returns False when no cycle runs."""
        with self._lock:
            token = self._token
        if token is None:
            return False
        token.cancel()
        logger.info("Cancellation requested")
        return True

    def stop(self, timeout: float = 10) -> None:
        """Cancel any running cycle and stop the thread."""
        self._stopping = True
        self.cancel()
        if self._loop is not None and self.is_alive:
            self._loop.call_soon_threadsafe(self._wake.set)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        logger.info("Translation worker stopped")

    def status(self) -> Dict[str, Any]:
        orchestrator = self.orchestrator
        report = orchestrator.last_report if orchestrator else None
        return {
            "running": self.is_alive,
            "cycle_running": self.cycle_running,
            "cycles_completed": self.cycles_completed,
            "state": orchestrator.state.snapshot() if orchestrator else None,
            "last_report": report.to_dict() if report else None,
            "subscribers": self.publisher.subscriber_count,
            "last_sequence": self.publisher.last_sequence,
        }

    # ------------------------------------------------------------------
    # Loop-side
    # ------------------------------------------------------------------

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            loop.run_until_complete(self._main())
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()
            self._loop = None

    async def _main(self) -> None:
        self._wake = asyncio.Event()
        if self._run_on_start:
            self._wake.set()
        self._ready.set()

        while not self._stopping:
            await self._wait_for_trigger()
            if self._stopping:
                break
            await self._run_one_cycle()

        if self.orchestrator is not None:
            await self.orchestrator.client.provider.aclose()

    def _interval_seconds(self) -> float:
        if self._interval_minutes is not None:
            return self._interval_minutes * 60
        try:
            return load_translation_settings().minutes_between_cycles * 60
        except LocsyncError as e:
            logger.warning(f"Using default cycle interval: {e}")
            return DEFAULT_INTERVAL_MINUTES * 60

    async def _wait_for_trigger(self) -> None:
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self._interval_seconds())
        except asyncio.TimeoutError:
            logger.debug("Cycle interval elapsed")
        self._wake.clear()

    async def _run_one_cycle(self) -> None:
        if self.orchestrator is None:
            try:
                self.orchestrator = self._orchestrator_factory(publisher=self.publisher)
            except LocsyncError as e:
                logger.error(f"Worker is not configured: {e}")
                return

        token = CancellationToken()
        with self._lock:
            self._token = token
        self.cycle_running = True
        try:
            await self.orchestrator.run_cycle(token)
            self.cycles_completed += 1
        except Exception:
            # The loop must survive anything a cycle throws
            logger.exception("Worker cycle crashed")
        finally:
            self.cycle_running = False
            with self._lock:
                self._token = None
