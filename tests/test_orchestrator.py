import asyncio
import errno
import json
import os
import shutil

from locsync.core.diff import UNTRANSLATED_FINGERPRINT, calculate_hash
from locsync.core.models import CYCLE_PHASES, TranslationSettings
from locsync.exceptions import StoreError
from locsync.storage.chain import BackendChain
from locsync.storage import json_store
from locsync.storage.json_store import FlatJsonStore
from locsync.worker.state import CancellationToken

from tests.conftest import CANONICAL
from tests.fakes import FakeProvider, MemoryDictionaryStore


def run(orchestrator, token=None):
    return asyncio.run(orchestrator.run_cycle(token))


def read_json(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_first_sync_translates_every_language(make_orchestrator, locales_dir, tmp_path):
    orchestrator, provider = make_orchestrator()

    report = run(orchestrator)

    assert report.completed and report.error is None
    assert read_json(locales_dir / "de.json") == {key: f"[de] {value}" for key, value in CANONICAL.items()}
    assert read_json(locales_dir / "fr.json")["nav.back"] == "[fr] Back"
    assert (report.success_count, report.error_count, report.total_languages) == (3, 0, 3)
    fingerprints = read_json(tmp_path / "state" / "fingerprints" / "de.json")
    assert fingerprints["home.title"] == calculate_hash("Welcome")
    assert orchestrator.status.value == "Idle"


def test_unchanged_source_makes_no_provider_calls(make_orchestrator, locales_dir):
    orchestrator, provider = make_orchestrator()
    run(orchestrator)
    provider.calls.clear()
    before = (locales_dir / "de.json").stat().st_mtime_ns

    report = run(orchestrator)

    assert report.completed
    assert provider.calls == []
    assert (locales_dir / "de.json").stat().st_mtime_ns == before
    assert report.success_count == 3


def test_changed_and_removed_keys(make_orchestrator, locales_dir):
    orchestrator, provider = make_orchestrator()
    run(orchestrator)
    provider.calls.clear()

    canonical = dict(CANONICAL, **{"home.title": "Hello there"})
    del canonical["nav.back"]
    (locales_dir / "en.json").write_text(json.dumps(canonical), encoding="utf-8")

    run(orchestrator)

    assert sorted(provider.calls) == [("Hello there", "en", "de"), ("Hello there", "en", "fr")]
    assert read_json(locales_dir / "de.json") == {
        "home.title": "[de] Hello there",
        "home.subtitle": "[de] Pick a language",
    }


def test_failed_units_are_retried_next_cycle(make_orchestrator, locales_dir):
    orchestrator, provider = make_orchestrator(provider=FakeProvider(supported=["en", "de", "fr"], fail_texts={"Back"}))

    report = run(orchestrator)

    assert report.completed
    assert "nav.back" not in read_json(locales_dir / "de.json")
    assert (report.success_count, report.error_count) == (1, 2)
    row = next(r for r in report.rows if r["language_code"] == "de")
    assert row["translated"] == 2 and row["failed"] == 1

    provider.fail_texts.clear()
    provider.calls.clear()
    report = run(orchestrator)

    assert sorted(provider.calls) == [("Back", "en", "de"), ("Back", "en", "fr")]
    assert read_json(locales_dir / "de.json")["nav.back"] == "[de] Back"
    assert report.error_count == 0


def test_unsupported_target_keeps_source_text(make_orchestrator, locales_dir, tmp_path):
    provider = FakeProvider(supported=["en", "de"])
    orchestrator, _ = make_orchestrator(provider=provider, languages=("en", "de", "sw"))

    report = run(orchestrator)

    assert report.completed
    assert read_json(locales_dir / "sw.json") == CANONICAL
    assert all(target != "sw" for _, _, target in provider.calls)
    fingerprints = read_json(tmp_path / "state" / "fingerprints" / "sw.json")
    assert set(fingerprints.values()) == {UNTRANSLATED_FINGERPRINT}

    # Once the provider supports it, the language gets translated
    provider.supported.append("sw")
    run(orchestrator)
    assert read_json(locales_dir / "sw.json")["nav.back"] == "[sw] Back"


def test_ignored_languages_are_not_touched(make_orchestrator, locales_dir):
    orchestrator, provider = make_orchestrator(ignored_for_json=("fr",))

    report = run(orchestrator)

    assert not (locales_dir / "fr.json").exists()
    assert all(target != "fr" for _, _, target in provider.calls)
    assert report.total_languages == 3


def test_default_language_in_ignore_list_aborts(make_orchestrator, locales_dir):
    orchestrator, provider = make_orchestrator(ignored_for_json=("en",))
    subscription = orchestrator.publisher.subscribe()

    report = run(orchestrator)

    assert not report.completed
    assert report.phase_reached == "Checks"
    assert "IgnoredForJson" in report.error
    assert provider.calls == []
    assert sorted(p.name for p in locales_dir.iterdir()) == ["en.json"]
    events = subscription.drain()
    failed = [e for e in events if e.name == "CycleFailed"]
    assert failed and failed[0].payload["phase"] == "Checks"
    assert events[-1].name == "StatusChanged" and events[-1].payload["status"] == "Idle"
    assert orchestrator.last_report is report


def test_no_writable_store_aborts(make_orchestrator, locales_dir):
    chain = BackendChain([("ro", FlatJsonStore(locales_dir, read_only=True))])
    orchestrator, provider = make_orchestrator(chain=chain)

    report = run(orchestrator)

    assert not report.completed
    assert "writable" in report.error
    assert provider.calls == []


def test_missing_canonical_dictionary_aborts(make_orchestrator, locales_dir):
    (locales_dir / "en.json").unlink()
    orchestrator, _ = make_orchestrator()

    report = run(orchestrator)

    assert not report.completed
    assert report.phase_reached == "Checks"


def test_corrupt_target_is_backed_up_and_resynced(make_orchestrator, locales_dir, tmp_path):
    (locales_dir / "de.json").write_text("{oops", encoding="utf-8")
    orchestrator, _ = make_orchestrator()

    report = run(orchestrator)

    assert report.completed
    backups = list((tmp_path / "state" / "backups").iterdir())
    assert len(backups) == 1 and backups[0].read_text(encoding="utf-8") == "{oops"
    assert read_json(locales_dir / "de.json")["home.title"] == "[de] Welcome"


def test_cancellation_during_translation_writes_nothing(make_orchestrator, locales_dir):
    token = CancellationToken()

    class CancellingProvider(FakeProvider):
        async def translate(self, text, source, target):
            token.cancel()
            return await super().translate(text, source, target)

    orchestrator, _ = make_orchestrator(provider=CancellingProvider(supported=["en", "de", "fr"]))

    report = run(orchestrator, token)

    assert report.cancelled and not report.completed
    assert report.phase_reached == "Translate"
    assert sorted(p.name for p in locales_dir.iterdir()) == ["en.json"]
    assert orchestrator.status.value == "Idle"


def test_phases_are_published_in_order(make_orchestrator):
    orchestrator, _ = make_orchestrator()
    subscription = orchestrator.publisher.subscribe(maxsize=1000)

    run(orchestrator)

    events = subscription.drain()
    assert events[0].name == "NewCycle"
    statuses = [e.payload["status"] for e in events if e.name == "StatusChanged"]
    assert statuses == ["Idle"] + [phase.value for phase in CYCLE_PHASES] + ["Idle"]
    assert events[-1].name == "CycleFinished"
    progress = [e.payload for e in events if e.name == "CycleProgress"]
    assert progress[-1] == {"successCount": 3, "errorCount": 0, "totalLanguageCount": 3}
    assert [e.sequence for e in events] == sorted(e.sequence for e in events)


def test_state_is_reset_for_each_cycle(make_orchestrator):
    orchestrator, _ = make_orchestrator()
    run(orchestrator)
    first_state = orchestrator.state

    run(orchestrator)

    assert orchestrator.state is not first_state
    assert orchestrator.state.success_count == 3


def test_missing_native_names_are_translated_for_next_cycle(make_orchestrator, tmp_path):
    orchestrator, _ = make_orchestrator(languages=("en", "de", "ha"))
    subscription = orchestrator.publisher.subscribe(maxsize=1000)

    run(orchestrator)

    events = subscription.drain()
    changed = [e.payload for e in events if e.name == "LanguageNameTranslationChanged"]
    assert changed == [{"totalCount": 1, "translatedCount": 1}]
    assert any(e.name == "LanguageNamesTranslationFinished" for e in events)
    received = next(e for e in events if e.name == "ReceiveLanguages")
    hausa = next(d for d in received.payload["languages"] if d["code"] == "ha")
    assert hausa["native_name"] == ""
    assert read_json(tmp_path / "state" / "language_names.json") == {"ha": "[ha] Hausa"}

    run(orchestrator)

    hausa = next(d for d in orchestrator.state.descriptors if d.code == "ha")
    assert hausa.native_name == "[ha] Hausa"


def test_language_name_errors_are_counted(make_orchestrator):
    provider = FakeProvider(supported=["en", "de", "ha"], fail_targets={"ha"})
    orchestrator, _ = make_orchestrator(provider=provider, languages=("en", "de", "ha"))
    subscription = orchestrator.publisher.subscribe(maxsize=1000)

    run(orchestrator)

    events = subscription.drain()
    assert [e.payload for e in events if e.name == "LanguageNameTranslationError"] == [{"errorCount": 1}]
    assert orchestrator.state.snapshot()["language_names"] == {"total": 1, "translated": 0, "errors": 1}


def test_unit_concurrency_is_bounded(make_orchestrator):
    active = {"now": 0, "max": 0}

    class SlowProvider(FakeProvider):
        async def translate(self, text, source, target):
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            await asyncio.sleep(0.01)
            active["now"] -= 1
            return await super().translate(text, source, target)

    orchestrator, _ = make_orchestrator(provider=SlowProvider(supported=["en", "de", "fr"]), max_workers=2)

    run(orchestrator)

    assert active["max"] == 2


def test_store_failure_counts_against_one_language(make_orchestrator):
    class FailingForFrench(MemoryDictionaryStore):
        async def save_dictionary(self, language, dictionary):
            if language == "fr":
                raise StoreError("disk full", code="store_write_failed")
            await super().save_dictionary(language, dictionary)

    store = FailingForFrench({"en": dict(CANONICAL)})
    orchestrator, _ = make_orchestrator(chain=BackendChain([("memory", store)]))

    report = run(orchestrator)

    assert report.completed
    assert "de" in store.data and "fr" not in store.data
    assert (report.success_count, report.error_count) == (2, 1)


def _write_doc(path, text, mtime):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    os.utime(path, (mtime, mtime))


def test_markdown_trees_are_reconciled(make_orchestrator, tmp_path):
    docs = tmp_path / "docs"
    _write_doc(docs / "en" / "guide" / "intro.md", "# Intro", 1000)
    _write_doc(docs / "en" / "faq.md", "# FAQ", 1000)
    _write_doc(docs / "de" / "old.md", "# Alt", 1000)
    orchestrator, provider = make_orchestrator(md_folders=(docs,), ignored_for_md=("fr",))

    report = run(orchestrator)

    assert report.completed
    assert (docs / "de" / "guide" / "intro.md").read_text(encoding="utf-8") == "[de] # Intro"
    assert (docs / "de" / "faq.md").read_text(encoding="utf-8") == "[de] # FAQ"
    assert not (docs / "de" / "old.md").exists()
    assert not (docs / "fr").exists()
    assert report.documents_translated == 2

    # Touching without editing changes nothing; editing retranslates
    _write_doc(docs / "en" / "faq.md", "# FAQ", 2000)
    _write_doc(docs / "en" / "guide" / "intro.md", "# Introduction", 2000)
    provider.calls.clear()

    report = run(orchestrator)

    assert [call[0] for call in provider.calls] == ["# Introduction"]
    assert (docs / "de" / "guide" / "intro.md").read_text(encoding="utf-8") == "[de] # Introduction"
    assert report.documents_translated == 1


def test_settings_reload_every_cycle(make_orchestrator, locales_dir):
    orchestrator, provider = make_orchestrator()
    run(orchestrator)

    orchestrator.settings_loader = lambda: TranslationSettings(default_language="en", languages=("en", "de", "fr", "es"))
    provider.supported.append("es")
    report = run(orchestrator)

    assert report.total_languages == 4
    assert read_json(locales_dir / "es.json")["home.title"] == "[es] Welcome"


def test_transient_provider_failures_are_not_errors(make_orchestrator, locales_dir):
    provider = FakeProvider(supported=["en", "de", "fr"], transient_failures=2)
    orchestrator, _ = make_orchestrator(provider=provider)

    report = run(orchestrator)

    assert report.completed
    assert (report.success_count, report.error_count) == (3, 0)
    rows = {row["language_code"]: row for row in report.rows}
    assert rows["de"]["failed"] == 0 and rows["fr"]["failed"] == 0
    assert read_json(locales_dir / "de.json") == {key: f"[de] {value}" for key, value in CANONICAL.items()}
    assert len(provider.calls) == 8


def test_cancellation_keeps_previous_dictionaries(make_orchestrator, locales_dir, tmp_path):
    token = CancellationToken()

    class CancellingProvider(FakeProvider):
        cancel_on_translate = False

        async def translate(self, text, source, target):
            if self.cancel_on_translate:
                token.cancel()
            return await super().translate(text, source, target)

    provider = CancellingProvider(supported=["en", "de", "fr"])
    orchestrator, _ = make_orchestrator(provider=provider)
    run(orchestrator)
    targets = ("de.json", "fr.json")
    before = {name: (locales_dir / name).read_bytes() for name in targets}
    fingerprints = tmp_path / "state" / "fingerprints" / "de.json"
    fingerprints_before = fingerprints.read_bytes()

    canonical = dict(CANONICAL, **{"home.title": "Hello there", "nav.back": "Go back"})
    (locales_dir / "en.json").write_text(json.dumps(canonical), encoding="utf-8")
    provider.cancel_on_translate = True

    report = run(orchestrator, token)

    assert report.cancelled and not report.completed
    assert report.phase_reached == "Translate"
    assert {name: (locales_dir / name).read_bytes() for name in targets} == before
    assert fingerprints.read_bytes() == fingerprints_before


def test_disk_error_on_one_dictionary_spares_the_others(make_orchestrator, locales_dir, tmp_path, monkeypatch):
    real_write = json_store.atomic_write_json

    def full_disk_for_german(path, data):
        if path.name == "de.json":
            raise OSError(errno.ENOSPC, "No space left on device")
        real_write(path, data)

    monkeypatch.setattr(json_store, "atomic_write_json", full_disk_for_german)
    orchestrator, _ = make_orchestrator()

    report = run(orchestrator)

    assert report.completed and report.error is None
    assert not (locales_dir / "de.json").exists()
    assert not (tmp_path / "state" / "fingerprints" / "de.json").exists()
    assert read_json(locales_dir / "fr.json")["nav.back"] == "[fr] Back"
    assert (report.success_count, report.error_count) == (2, 1)


def test_missing_canonical_document_folder_aborts_without_deleting(make_orchestrator, tmp_path):
    docs = tmp_path / "docs"
    _write_doc(docs / "en" / "faq.md", "# FAQ", 1000)
    orchestrator, _ = make_orchestrator(md_folders=(docs,), ignored_for_md=("fr",))
    run(orchestrator)
    assert (docs / "de" / "faq.md").read_text(encoding="utf-8") == "[de] # FAQ"

    shutil.rmtree(docs / "en")
    report = run(orchestrator)

    assert not report.completed
    assert report.phase_reached == "MdFoldersChecks"
    assert (docs / "de" / "faq.md").read_text(encoding="utf-8") == "[de] # FAQ"

    # An empty canonical folder does mean the translations go away
    (docs / "en").mkdir()
    report = run(orchestrator)

    assert report.completed
    assert not (docs / "de" / "faq.md").exists()


def test_unreadable_translated_document_is_translated_again(make_orchestrator, tmp_path):
    docs = tmp_path / "docs"
    _write_doc(docs / "en" / "faq.md", "# FAQ", 1000)
    (docs / "de").mkdir()
    (docs / "de" / "faq.md").write_bytes(b"\xff\xfe broken")
    orchestrator, _ = make_orchestrator(md_folders=(docs,))

    report = run(orchestrator)

    assert report.completed and report.error is None
    assert (docs / "de" / "faq.md").read_text(encoding="utf-8") == "[de] # FAQ"
    assert (docs / "fr" / "faq.md").read_text(encoding="utf-8") == "[fr] # FAQ"


def test_unreadable_canonical_document_aborts(make_orchestrator, tmp_path):
    docs = tmp_path / "docs"
    (docs / "en").mkdir(parents=True)
    (docs / "en" / "faq.md").write_bytes(b"\xff\xfe broken")
    orchestrator, _ = make_orchestrator(md_folders=(docs,))

    report = run(orchestrator)

    assert not report.completed
    assert report.phase_reached == "MdFoldersChecks"
    assert not (docs / "de").exists()
