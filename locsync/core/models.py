"""
Core data model

Plain dataclasses shared by the diff planner, the stores and the worker:
- LanguageDescriptor / TranslationSettings: per-cycle configuration
- DocumentNode / DocumentSnapshot: markdown tree units
- DiffResult: per-language reconciliation plan
- LanguageStatus: live per-language dashboard row
- WorkerStatus: orchestrator phases
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class WorkerStatus(str, Enum):
    """Orchestrator phases in the order one cycle walks through them."""
    IDLE = "Idle"
    CHECKS = "Checks"
    JSON_BACKEND_DATA_LOADING = "JsonBackendDataLoading"
    CHECK_LANGUAGE_NAMES = "CheckLanguageNames"
    OLD_DICTIONARY_LOADING = "OldDictionaryLoading"
    GENERATE_TRANSLATION_REQUEST = "GenerateTranslationRequest"
    TRANSLATE = "Translate"
    SAVE_TRANSLATION = "SaveTranslation"
    MD_FOLDERS_CHECKS = "MdFoldersChecks"
    TRANSLATE_MD = "TranslateMd"
    SAVE_MD = "SaveMd"


# Phases after Idle, in execution order
CYCLE_PHASES: Tuple[WorkerStatus, ...] = tuple(s for s in WorkerStatus if s is not WorkerStatus.IDLE)


class RowStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclass(frozen=True)
class LanguageDescriptor:
    """One language taking part in a cycle."""
    code: str
    name: str
    native_name: str = ""
    rtl: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TranslationSettings:
    default_language: str
    ignored_for_json: Tuple[str, ...] = ()
    ignored_for_md: Tuple[str, ...] = ()
    md_folders: Tuple[str, ...] = ()
    minutes_between_cycles: float = 20
    languages: Tuple[str, ...] = ()  # explicit language list; empty = provider's list


@dataclass(frozen=True)
class DocumentNode:
    """A markdown document under one of the configured document roots."""
    root: str
    path: str  # posix path relative to <root>/<language>/
    name: str
    last_text: str
    last_modified: float

    @property
    def key(self) -> str:
        return f"{self.root}::{self.path}"


@dataclass(frozen=True)
class DocumentSnapshot:
    """State of a canonical document when its translation was produced."""
    fingerprint: str
    last_modified: float

    def to_dict(self) -> Dict[str, Any]:
        return {"fingerprint": self.fingerprint, "last_modified": self.last_modified}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentSnapshot":
        return cls(
            fingerprint=str(data.get("fingerprint", "")),
            last_modified=float(data.get("last_modified", 0.0)),
        )


@dataclass(frozen=True)
class DiffResult:
    """Keys (or document keys) to add, remove and update for one language."""
    language: str
    to_add: FrozenSet[str] = frozenset()
    to_remove: FrozenSet[str] = frozenset()
    to_update: FrozenSet[str] = frozenset()
    existing_phrases: int = 0
    canonical_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not (self.to_add or self.to_remove or self.to_update)

    @property
    def pending(self) -> FrozenSet[str]:
        """Keys that need a translation call."""
        return self.to_add | self.to_update

    def to_dict(self) -> Dict[str, Any]:
        return {
            "language": self.language,
            "to_add": sorted(self.to_add),
            "to_remove": sorted(self.to_remove),
            "to_update": sorted(self.to_update),
            "existing_phrases": self.existing_phrases,
            "canonical_count": self.canonical_count,
        }


@dataclass
class LanguageStatus:
    """Live progress row for one language."""
    language_code: str
    is_default: bool = False
    is_ignored: bool = False
    status: RowStatus = RowStatus.PENDING
    existing_phrases: int = 0
    to_add: int = 0
    to_update: int = 0
    to_remove: int = 0
    translated: int = 0
    failed: int = 0
    # Markdown documents
    documents_to_translate: int = 0
    documents_translated: int = 0
    documents_failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


@dataclass
class CycleReport:
    """Summary of a finished (or aborted) cycle."""
    completed: bool
    cancelled: bool = False
    error: Optional[str] = None
    phase_reached: str = WorkerStatus.IDLE.value
    success_count: int = 0
    error_count: int = 0
    total_languages: int = 0
    documents_translated: int = 0
    documents_failed: int = 0
    started_at: float = 0.0
    finished_at: float = 0.0
    rows: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def elapsed_time(self) -> float:
        return max(0.0, self.finished_at - self.started_at)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["elapsed_time"] = self.elapsed_time
        return payload
