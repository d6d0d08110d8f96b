"""
locsync Exceptions

This module contains the exception classes shared by the stores, the
translation client and the cycle orchestrator.
Separated to avoid circular imports between storage, translation and worker.
"""


class LocsyncError(Exception):
    """Base error with optional code and details."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConfigurationError(LocsyncError):
    """Invalid or inconsistent configuration; fatal for the current cycle."""


class ResourceExhaustedError(LocsyncError):
    """No usable resource is left (e.g. no writable dictionary store)."""


class StoreError(LocsyncError):
    """A dictionary store operation failed."""


class DictionaryNotFoundError(StoreError):
    """The requested language has no stored dictionary."""


class CorruptDictionaryError(StoreError):
    """A stored dictionary exists but could not be parsed."""


class CapabilityError(StoreError):
    """The store does not declare the capability the operation needs."""


class TranslationError(LocsyncError):
    """Translation provider error."""


class CycleCancelled(LocsyncError):
    """The running reconciliation cycle was cancelled."""
