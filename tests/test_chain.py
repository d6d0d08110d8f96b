import asyncio

import pytest

from locsync.exceptions import CapabilityError, ConfigurationError, CorruptDictionaryError, DictionaryNotFoundError
from locsync.storage.chain import BackendChain, build_chain
from locsync.storage.http_store import HttpJsonStore
from locsync.storage.json_store import FlatJsonStore
from locsync.storage.sqlite_store import SqliteDictionaryStore

from tests.fakes import MemoryDictionaryStore


def test_load_uses_first_store_holding_the_language():
    first = MemoryDictionaryStore({"fr": {"a": "fr"}}, name="first")
    second = MemoryDictionaryStore({"de": {"a": "second"}}, name="second")
    third = MemoryDictionaryStore({"de": {"a": "third"}}, name="third")
    chain = BackendChain([("first", first), ("second", second), ("third", third)])

    assert asyncio.run(chain.load_dictionary("de")) == {"a": "second"}


def test_load_skips_corrupt_store():
    chain = BackendChain([
        ("broken", MemoryDictionaryStore(corrupt={"de"})),
        ("good", MemoryDictionaryStore({"de": {"a": "A"}})),
    ])

    assert asyncio.run(chain.load_dictionary("de")) == {"a": "A"}


def test_load_prefers_corruption_over_not_found():
    chain = BackendChain([
        ("empty", MemoryDictionaryStore()),
        ("broken", MemoryDictionaryStore(corrupt={"de"})),
    ])

    with pytest.raises(CorruptDictionaryError):
        asyncio.run(chain.load_dictionary("de"))

    with pytest.raises(DictionaryNotFoundError):
        asyncio.run(BackendChain([("empty", MemoryDictionaryStore())]).load_dictionary("de"))


def test_save_skips_read_only_stores(caplog):
    read_only = MemoryDictionaryStore(read_only=True)
    writable = MemoryDictionaryStore()
    chain = BackendChain([("ro", read_only), ("rw", writable)])

    tag = asyncio.run(chain.save_dictionary("de", {"a": "A"}))

    assert tag == "rw"
    assert writable.data["de"] == {"a": "A"}
    assert "de" not in read_only.data
    assert "Skipping read-only store ro" in caplog.text


def test_save_without_writable_store():
    chain = BackendChain([("ro", MemoryDictionaryStore(read_only=True))])

    with pytest.raises(CapabilityError):
        asyncio.run(chain.save_dictionary("de", {"a": "A"}))
    assert not chain.capabilities().can_write


def test_get_translation_falls_back_along_the_chain():
    chain = BackendChain([
        ("first", MemoryDictionaryStore({"de": {"a": "", "b": "B1"}})),
        ("second", MemoryDictionaryStore({"de": {"a": "A2"}})),
    ])

    assert asyncio.run(chain.get_translation("a", "de")) == "A2"
    assert asyncio.run(chain.get_translation("b", "de")) == "B1"
    assert asyncio.run(chain.get_translation("missing", "de")) == "missing"
    assert asyncio.run(chain.get_translation("a", "ja")) == "a"


def test_list_and_exists_cover_all_stores():
    chain = BackendChain([
        ("one", MemoryDictionaryStore({"de": {}})),
        ("two", MemoryDictionaryStore({"fr": {}, "de": {}})),
    ])

    assert asyncio.run(chain.list_available_languages()) == ["de", "fr"]
    assert asyncio.run(chain.dictionary_exists("fr"))
    assert not asyncio.run(chain.dictionary_exists("ja"))


def test_aggregated_capabilities():
    chain = BackendChain([
        ("cdn", HttpJsonStore("https://cdn.example.com")),
        ("db", MemoryDictionaryStore()),
    ])

    caps = chain.capabilities()

    assert caps.can_read and caps.can_write and caps.can_list_languages
    assert not caps.is_read_only
    assert caps.description == "cdn -> db"


def test_build_chain_from_config(tmp_path):
    config = {
        "Storage": {
            "StatePath": str(tmp_path / "state"),
            "Backends": [
                {"Type": "http", "BaseUrl": "https://cdn.example.com/locales"},
                {"Type": "json", "Path": str(tmp_path / "locales"), "Nested": True},
                {"Type": "sqlite", "Path": str(tmp_path / "db.sqlite"), "Tag": "db"},
            ],
        }
    }

    chain = build_chain(config)

    stores = [entry.store for entry in chain.entries]
    assert [type(s) for s in stores] == [HttpJsonStore, FlatJsonStore, SqliteDictionaryStore]
    assert stores[1].nested
    assert stores[1].backup_dir == tmp_path / "state" / "backups"
    assert chain.entries[2].tag == "db"


def test_build_chain_rejects_unknown_backend():
    with pytest.raises(ConfigurationError):
        build_chain({"Storage": {"Backends": [{"Type": "ftp"}]}})
