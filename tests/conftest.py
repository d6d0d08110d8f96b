import json

import pytest

from locsync.core.models import TranslationSettings
from locsync.storage.chain import BackendChain
from locsync.storage.json_store import FlatJsonStore
from locsync.storage.state import StateStore
from locsync.translation.client import TranslationClient
from locsync.translation.retry import BackoffPolicy
from locsync.worker.orchestrator import CycleOrchestrator
from locsync.worker.publisher import ProgressPublisher

from tests.fakes import FakeProvider, no_sleep

CANONICAL = {
    "home.title": "Welcome",
    "home.subtitle": "Pick a language",
    "nav.back": "Back",
}


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temporary location."""
    monkeypatch.setenv("LOCSYNC_CONFIG", str(tmp_path / "config" / "config.json"))


@pytest.fixture
def locales_dir(tmp_path):
    directory = tmp_path / "locales"
    directory.mkdir()
    (directory / "en.json").write_text(json.dumps(CANONICAL), encoding="utf-8")
    return directory


@pytest.fixture
def make_orchestrator(tmp_path, locales_dir):
    """Build an orchestrator over a JSON store in tmp_path and a fake provider."""

    def factory(provider=None, languages=("en", "de", "fr"), ignored_for_json=(), md_folders=(),
                ignored_for_md=(), chain=None, max_workers=2, progress_batch_size=1, settings=None):
        provider = provider or FakeProvider(supported=languages)
        client = TranslationClient(
            provider,
            max_retries=2,
            policy=BackoffPolicy(base_delay=0, jitter=0),
            call_timeout=5,
            sleep=no_sleep,
        )
        if chain is None:
            chain = BackendChain([
                ("json", FlatJsonStore(locales_dir, backup_dir=tmp_path / "state" / "backups")),
            ])
        settings = settings or TranslationSettings(
            default_language="en",
            ignored_for_json=tuple(ignored_for_json),
            ignored_for_md=tuple(ignored_for_md),
            md_folders=tuple(str(folder) for folder in md_folders),
            languages=tuple(languages),
        )
        orchestrator = CycleOrchestrator(
            chain=chain,
            client=client,
            state_store=StateStore(tmp_path / "state"),
            publisher=ProgressPublisher(),
            settings_loader=lambda: settings,
            max_workers=max_workers,
            progress_batch_size=progress_batch_size,
        )
        return orchestrator, provider

    return factory
