"""
Progress Publisher

Fans cycle events out to any number of observers (the web event stream,
tests, log tails). Publishing never blocks the worker: each subscription owns
a bounded queue and drops its oldest event when full.
"""

import itertools
import json
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from locsync.logger import get_logger

logger = get_logger(__name__)

# Event names
NEW_CYCLE = "NewCycle"
STATUS_CHANGED = "StatusChanged"
RECEIVE_LANGUAGES = "ReceiveLanguages"
RECEIVE_TRANSLATION_SETTINGS = "ReceiveTranslationSettings"
LANGUAGE_NAME_TRANSLATION_CHANGED = "LanguageNameTranslationChanged"
LANGUAGE_NAME_TRANSLATION_ERROR = "LanguageNameTranslationError"
LANGUAGE_NAMES_TRANSLATION_FINISHED = "LanguageNamesTranslationFinished"
LANGUAGE_STATUS_CHANGED = "LanguageStatusChanged"
CYCLE_PROGRESS = "CycleProgress"
CYCLE_FINISHED = "CycleFinished"
CYCLE_FAILED = "CycleFailed"


@dataclass(frozen=True)
class ProgressEvent:
    sequence: int
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "name": self.name,
            "payload": self.payload,
            "timestamp": self.timestamp,
        }

    def to_sse(self) -> str:
        """Server-sent event frame."""
        data = json.dumps(self.to_dict(), ensure_ascii=False, default=str)
        return f"id: {self.sequence}\nevent: {self.name}\ndata: {data}\n\n"


class Subscription:
    """Bounded event queue for one observer."""

    def __init__(self, maxsize: int = 256):
        self._queue: queue.Queue = queue.Queue(maxsize=max(1, maxsize))
        self._lock = threading.Lock()
        self.dropped = 0
        self.closed = False

    def put(self, event: ProgressEvent) -> None:
        with self._lock:
            while True:
                try:
                    self._queue.put_nowait(event)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def get(self, timeout: Optional[float] = None) -> Optional[ProgressEvent]:
        """Next event, or None when nothing arrived within `timeout`."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[ProgressEvent]:
        """Every queued event, without waiting."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def __iter__(self) -> Iterator[ProgressEvent]:
        while not self.closed:
            event = self.get(timeout=1.0)
            if event is not None:
                yield event


class ProgressPublisher:
    """Sequenced, non-blocking event fan-out."""

    def __init__(self, counters_provider: Optional[Callable[[], Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)
        self._subscriptions: List[Subscription] = []
        self._counters_provider = counters_provider
        self.last_sequence = 0

    def set_counters_provider(self, provider: Callable[[], Dict[str, Any]]) -> None:
        self._counters_provider = provider

    def subscribe(self, maxsize: int = 256) -> Subscription:
        subscription = Subscription(maxsize)
        with self._lock:
            self._subscriptions.append(subscription)
        logger.debug(f"Subscriber added ({len(self._subscriptions)} active)")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)
        logger.debug(f"Subscriber removed ({len(self._subscriptions)} active)")

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, name: str, **payload: Any) -> ProgressEvent:
        # Sequence assignment and fan-out under one lock keep per-subscriber order
        with self._lock:
            event = ProgressEvent(sequence=next(self._sequence), name=name, payload=payload)
            self.last_sequence = event.sequence
            for subscription in self._subscriptions:
                subscription.put(event)
        logger.debug(f"Event {event.sequence} {name}")
        return event

    def current_counters(self) -> Dict[str, Any]:
        """Latest cycle state snapshot, empty before the first cycle."""
        if self._counters_provider is None:
            return {}
        return self._counters_provider()
