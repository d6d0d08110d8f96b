"""
Core module - Data model and diff planning

This module provides:
- models: language, document, diff and progress dataclasses
- diff: flat dictionary and document tree reconciliation plans
"""

from locsync.core.models import (
    CYCLE_PHASES,
    CycleReport,
    DiffResult,
    DocumentNode,
    DocumentSnapshot,
    LanguageDescriptor,
    LanguageStatus,
    RowStatus,
    TranslationSettings,
    WorkerStatus,
)

from locsync.core.diff import (
    UNTRANSLATED_FINGERPRINT,
    build_fingerprints,
    build_reconciled_dictionary,
    calculate_hash,
    compute_flat_diff,
    compute_tree_diff,
)
