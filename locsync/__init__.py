"""
locsync - keeps per-language copies of phrase dictionaries and markdown
documentation in sync with the default language through machine translation.
"""

__version__ = "0.1.0"
