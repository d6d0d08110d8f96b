"""
Storage module - Dictionary stores, backend chain and state files

This module provides:
- base: store contract and capability model
- json_store / sqlite_store / http_store: concrete stores
- chain: ordered backend chain built from configuration
- documents: markdown document trees
- state: fingerprints, document snapshots and localized language names
"""

from locsync.storage.base import DictionaryStore, StoreCapabilities
from locsync.storage.chain import BackendChain, build_chain
from locsync.storage.documents import DocumentTreeStore
from locsync.storage.http_store import HttpJsonStore
from locsync.storage.json_store import FlatJsonStore
from locsync.storage.sqlite_store import SqliteDictionaryStore
from locsync.storage.state import StateStore
