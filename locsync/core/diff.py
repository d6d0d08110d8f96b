"""
Diff planning module.

Compares the canonical (default-language) content with what a target
language has stored:
- Flat dictionaries: key sets plus per-key source fingerprints
- Document trees: document keys plus last-modified/fingerprint snapshots

Target values are in another language, so drift is detected from the SHA-256
fingerprint of the source value recorded when the translation was produced,
never from comparing the values themselves.
"""

import hashlib
from typing import Any, Dict, Mapping, Optional

from locsync.core.models import DiffResult, DocumentNode, DocumentSnapshot
from locsync.exceptions import ConfigurationError
from locsync.logger import get_logger

logger = get_logger(__name__)

# Recorded for values stored in the source language because the provider
# does not support the target; never equal to a real hash, so they are retried.
UNTRANSLATED_FINGERPRINT = ""


def calculate_hash(text: str) -> str:
    """Calculate SHA-256 hash of a text string."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def compute_flat_diff(
    canonical: Optional[Mapping[str, str]],
    existing: Optional[Mapping[str, str]],
    fingerprints: Optional[Mapping[str, str]] = None,
    language: str = "",
) -> DiffResult:
    """
    Compute the reconciliation plan for one language's flat dictionary.

    Args:
        canonical: Default-language dictionary (source of truth)
        existing: The target language's stored dictionary (None = never synced)
        fingerprints: key -> source fingerprint recorded at translation time
        language: Target language code (for the result and logs)

    Returns:
        DiffResult with pairwise disjoint to_add / to_remove / to_update

    Raises:
        ConfigurationError: If the canonical dictionary is missing
    """
    if canonical is None:
        raise ConfigurationError(
            "Canonical dictionary is missing",
            code="canonical_missing",
            details={"language": language},
        )
    existing = existing or {}
    fingerprints = fingerprints or {}

    canonical_keys = set(canonical.keys())
    existing_keys = set(existing.keys())

    to_add = canonical_keys - existing_keys
    to_remove = existing_keys - canonical_keys
    to_update = set()

    for key in canonical_keys & existing_keys:
        recorded = fingerprints.get(key)
        # No record: trust the stored translation, its fingerprint gets bootstrapped
        if recorded is None:
            continue
        if recorded != calculate_hash(canonical[key]):
            to_update.add(key)

    result = DiffResult(
        language=language,
        to_add=frozenset(to_add),
        to_remove=frozenset(to_remove),
        to_update=frozenset(to_update),
        existing_phrases=len(existing_keys) - len(to_remove),
        canonical_count=len(canonical_keys),
    )
    logger.debug(
        f"Diff for {language or '?'}: add={len(to_add)}, update={len(to_update)}, "
        f"remove={len(to_remove)}, existing={result.existing_phrases}"
    )
    return result


def compute_tree_diff(
    canonical_nodes: Optional[Mapping[str, DocumentNode]],
    existing_nodes: Optional[Mapping[str, DocumentNode]],
    snapshots: Optional[Mapping[str, DocumentSnapshot]] = None,
    language: str = "",
) -> DiffResult:
    """
    Compute the reconciliation plan for one language's document tree.

    A document present on both sides needs an update when its canonical
    last-modified time moved away from the recorded snapshot and its content
    fingerprint changed too (touching a file without editing it is ignored).
    """
    if canonical_nodes is None:
        raise ConfigurationError(
            "Canonical document tree is missing",
            code="canonical_missing",
            details={"language": language},
        )
    existing_nodes = existing_nodes or {}
    snapshots = snapshots or {}

    canonical_keys = set(canonical_nodes.keys())
    existing_keys = set(existing_nodes.keys())

    to_add = canonical_keys - existing_keys
    to_remove = existing_keys - canonical_keys
    to_update = set()

    for key in canonical_keys & existing_keys:
        snapshot = snapshots.get(key)
        if snapshot is None:
            continue
        node = canonical_nodes[key]
        if node.last_modified == snapshot.last_modified:
            continue
        if calculate_hash(node.last_text) != snapshot.fingerprint:
            to_update.add(key)

    return DiffResult(
        language=language,
        to_add=frozenset(to_add),
        to_remove=frozenset(to_remove),
        to_update=frozenset(to_update),
        existing_phrases=len(existing_keys) - len(to_remove),
        canonical_count=len(canonical_keys),
    )


def build_reconciled_dictionary(
    canonical: Mapping[str, str],
    existing: Optional[Mapping[str, str]],
    diff: DiffResult,
    results: Mapping[str, Any],
) -> Dict[str, str]:
    """
    Build the dictionary to persist after the translation units finished.

    Removed keys are dropped, successful units overwrite, failed units keep the
    previous value (updates) or stay absent (additions) so the next cycle
    retries them. Keys follow the canonical order.
    """
    existing = existing or {}
    merged = {key: value for key, value in existing.items() if key not in diff.to_remove}

    for key, result in results.items():
        if key not in canonical or result.failed:
            continue
        merged[key] = result.text

    return {key: merged[key] for key in canonical if key in merged}


def build_fingerprints(
    canonical: Mapping[str, str],
    existing: Optional[Mapping[str, str]],
    diff: DiffResult,
    recorded: Optional[Mapping[str, str]],
    results: Mapping[str, Any],
) -> Dict[str, str]:
    """Build the fingerprint record matching build_reconciled_dictionary()."""
    existing = existing or {}
    recorded = recorded or {}
    fingerprints: Dict[str, str] = {}

    for key in canonical:
        if key in results:
            result = results[key]
            if result.failed:
                # Keep whatever was there so the key stays pending
                if key in recorded and key in existing:
                    fingerprints[key] = recorded[key]
                continue
            fingerprints[key] = calculate_hash(canonical[key]) if result.translated else UNTRANSLATED_FINGERPRINT
        elif key in existing and key not in diff.to_remove:
            # Untouched key: keep the record, bootstrap it when missing
            fingerprints[key] = recorded.get(key, calculate_hash(canonical[key]))

    return fingerprints
