from types import SimpleNamespace

import pytest

from locsync.core.diff import (
    UNTRANSLATED_FINGERPRINT,
    build_fingerprints,
    build_reconciled_dictionary,
    calculate_hash,
    compute_flat_diff,
    compute_tree_diff,
)
from locsync.core.models import DocumentNode, DocumentSnapshot
from locsync.exceptions import ConfigurationError


def result(text, translated=True, failed=False):
    return SimpleNamespace(text=text, translated=translated, failed=failed)


def test_first_sync_adds_every_key():
    canonical = {"a": "A", "b": "B"}

    diff = compute_flat_diff(canonical, None, language="de")

    assert diff.to_add == {"a", "b"}
    assert not diff.to_remove
    assert not diff.to_update
    assert diff.existing_phrases == 0


def test_added_removed_and_changed_keys():
    canonical = {"a": "A", "b": "B changed", "c": "C"}
    existing = {"a": "A-de", "b": "B-de", "old": "Old-de"}
    fingerprints = {"a": calculate_hash("A"), "b": calculate_hash("B")}

    diff = compute_flat_diff(canonical, existing, fingerprints, language="de")

    assert diff.to_add == {"c"}
    assert diff.to_remove == {"old"}
    assert diff.to_update == {"b"}
    assert diff.existing_phrases + len(diff.to_add) == len(canonical)


def test_sets_are_pairwise_disjoint():
    canonical = {"a": "1", "b": "2", "c": "3", "d": "4"}
    existing = {"b": "x", "c": "y", "e": "z"}
    fingerprints = {"b": "stale", "c": calculate_hash("3"), "e": "whatever"}

    diff = compute_flat_diff(canonical, existing, fingerprints)

    assert not (diff.to_add & diff.to_remove)
    assert not (diff.to_add & diff.to_update)
    assert not (diff.to_remove & diff.to_update)


def test_keys_without_fingerprint_are_trusted():
    diff = compute_flat_diff({"a": "A"}, {"a": "A-de"}, {})

    assert diff.is_empty


def test_untranslated_fingerprint_is_retried():
    diff = compute_flat_diff({"a": "A"}, {"a": "A"}, {"a": UNTRANSLATED_FINGERPRINT})

    assert diff.to_update == {"a"}


def test_diff_is_deterministic():
    canonical = {"a": "A", "b": "B"}
    existing = {"a": "x", "z": "y"}

    assert compute_flat_diff(canonical, existing) == compute_flat_diff(canonical, existing)


def test_missing_canonical_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        compute_flat_diff(None, {"a": "A"})


def test_reconciled_dictionary_keeps_old_value_on_failure():
    canonical = {"a": "A2", "b": "B", "c": "C"}
    existing = {"a": "A1-de", "gone": "x"}
    diff = compute_flat_diff(canonical, existing, {"a": calculate_hash("A1")})
    results = {
        "a": result("A2", translated=False, failed=True),
        "b": result("B-de"),
        "c": result("C", translated=False, failed=True),
    }

    merged = build_reconciled_dictionary(canonical, existing, diff, results)

    assert merged == {"a": "A1-de", "b": "B-de"}
    assert list(merged) == ["a", "b"]


def test_fingerprints_follow_unit_outcomes():
    canonical = {"a": "A", "b": "B", "c": "C", "d": "D"}
    existing = {"a": "A-de", "d": "D-de"}
    recorded = {"a": calculate_hash("old A")}
    diff = compute_flat_diff(canonical, existing, recorded)
    results = {
        "a": result("A", translated=False, failed=True),
        "b": result("B-de"),
        "c": result("C", translated=False),
    }

    fingerprints = build_fingerprints(canonical, existing, diff, recorded, results)

    assert fingerprints["a"] == calculate_hash("old A")
    assert fingerprints["b"] == calculate_hash("B")
    assert fingerprints["c"] == UNTRANSLATED_FINGERPRINT
    assert fingerprints["d"] == calculate_hash("D")


def _node(path, text, mtime):
    return DocumentNode(root="docs", path=path, name=path.rsplit("/", 1)[-1], last_text=text, last_modified=mtime)


def test_tree_diff_needs_new_mtime_and_new_content():
    intro = _node("intro.md", "# Intro v2", 200.0)
    touched = _node("touched.md", "# Same", 300.0)
    fresh = _node("new.md", "# New", 100.0)
    canonical = {n.key: n for n in (intro, touched, fresh)}
    existing = {
        intro.key: _node("intro.md", "# Einführung", 50.0),
        touched.key: _node("touched.md", "# Gleich", 50.0),
        "docs::old.md": _node("old.md", "# Alt", 50.0),
    }
    snapshots = {
        intro.key: DocumentSnapshot(calculate_hash("# Intro v1"), 100.0),
        touched.key: DocumentSnapshot(calculate_hash("# Same"), 100.0),
    }

    diff = compute_tree_diff(canonical, existing, snapshots, language="de")

    assert diff.to_add == {fresh.key}
    assert diff.to_remove == {"docs::old.md"}
    assert diff.to_update == {intro.key}
    assert diff.existing_phrases == 2
