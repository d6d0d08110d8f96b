"""
Translation Module

This module provides the translation client and its provider adapters.
"""

from locsync.exceptions import TranslationError
from locsync.translation.client import TranslationClient, TranslationResult
from locsync.translation.providers import LibreTranslateProvider, TranslationProvider
from locsync.translation.retry import BackoffPolicy

__all__ = [
    'TranslationError',
    'TranslationClient',
    'TranslationResult',
    'TranslationProvider',
    'LibreTranslateProvider',
    'BackoffPolicy',
]
