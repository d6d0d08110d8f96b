"""
Cycle State

Live counters of the running cycle. The orchestrator mutates it from the
event loop while web requests read snapshots from other threads, so every
access goes through one lock.
"""

import threading
import time
from typing import Any, Dict, Iterable, Optional, Tuple

from locsync.core.models import LanguageDescriptor, LanguageStatus, WorkerStatus
from locsync.exceptions import CycleCancelled


class CancellationToken:
    """Cooperative cancellation flag checked at phase and unit boundaries."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            raise CycleCancelled(f"Cycle cancelled{f' during {where}' if where else ''}", code="cancelled")


class CycleState:
    """Counters and per-language rows for one cycle."""

    def __init__(self):
        self._lock = threading.Lock()
        self.phase = WorkerStatus.IDLE
        self.started_at = time.time()
        self.descriptors: Tuple[LanguageDescriptor, ...] = ()
        self.default_language = ""
        self.success_count = 0
        self.error_count = 0
        self.total_languages = 0
        self.name_total = 0
        self.name_translated = 0
        self.name_errors = 0
        self.documents_translated = 0
        self.documents_failed = 0
        self.rows: Dict[str, LanguageStatus] = {}
        self._outcomes: Dict[str, bool] = {}

    def set_phase(self, phase: WorkerStatus) -> None:
        with self._lock:
            self.phase = phase

    def freeze_languages(self, descriptors: Iterable[LanguageDescriptor], default_language: str,
                         ignored: Iterable[str] = ()) -> None:
        """Fix the descriptor set of this cycle and create one row per language."""
        ignored = set(ignored)
        with self._lock:
            self.descriptors = tuple(descriptors)
            self.default_language = default_language
            self.total_languages = len(self.descriptors)
            self.rows = {
                d.code: LanguageStatus(
                    language_code=d.code,
                    is_default=d.code == default_language,
                    is_ignored=d.code in ignored,
                )
                for d in self.descriptors
            }

    def update_row(self, language: str, **changes: Any) -> Optional[Dict[str, Any]]:
        """Apply changes to a row; returns its dict form."""
        with self._lock:
            row = self.rows.get(language)
            if row is None:
                return None
            for key, value in changes.items():
                setattr(row, key, value)
            return row.to_dict()

    def increment_row(self, language: str, **deltas: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.rows.get(language)
            if row is None:
                return None
            for key, delta in deltas.items():
                setattr(row, key, getattr(row, key) + delta)
            return row.to_dict()

    def row(self, language: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.rows.get(language)
            return row.to_dict() if row else None

    def record_language(self, language: str, success: bool) -> bool:
        """
        Count a language as success or error; each language counts once.

        A later failure turns an earlier success into an error (e.g. its
        documents failed after its dictionary was saved).

        Returns:
            False when the language was already counted with the same outcome
        """
        with self._lock:
            previous = self._outcomes.get(language)
            if previous is None:
                self._outcomes[language] = success
                if success:
                    self.success_count += 1
                else:
                    self.error_count += 1
                return True
            if previous and not success:
                self._outcomes[language] = False
                self.success_count -= 1
                self.error_count += 1
                return True
            return False

    def is_counted(self, language: str) -> bool:
        with self._lock:
            return language in self._outcomes

    def start_name_translation(self, total: int) -> None:
        with self._lock:
            self.name_total = total
            self.name_translated = 0
            self.name_errors = 0

    def record_name(self, translated: bool) -> Tuple[int, int, int]:
        """Returns (total, translated, errors) after recording one name unit."""
        with self._lock:
            if translated:
                self.name_translated += 1
            else:
                self.name_errors += 1
            return self.name_total, self.name_translated, self.name_errors

    def record_document(self, success: bool) -> None:
        with self._lock:
            if success:
                self.documents_translated += 1
            else:
                self.documents_failed += 1

    def counters(self) -> Dict[str, int]:
        with self._lock:
            return {
                "successCount": self.success_count,
                "errorCount": self.error_count,
                "totalLanguageCount": self.total_languages,
            }

    def snapshot(self) -> Dict[str, Any]:
        """Consistent copy of the whole state for observers."""
        with self._lock:
            return {
                "phase": self.phase.value,
                "started_at": self.started_at,
                "default_language": self.default_language,
                "languages": [d.to_dict() for d in self.descriptors],
                "success_count": self.success_count,
                "error_count": self.error_count,
                "total_languages": self.total_languages,
                "language_names": {
                    "total": self.name_total,
                    "translated": self.name_translated,
                    "errors": self.name_errors,
                },
                "documents_translated": self.documents_translated,
                "documents_failed": self.documents_failed,
                "rows": [row.to_dict() for row in self.rows.values()],
            }
