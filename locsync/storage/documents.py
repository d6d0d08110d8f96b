"""
Markdown document trees.

Each configured document root holds one sub-directory per language:

    docs/
      en/guide/intro.md      <- canonical
      de/guide/intro.md      <- translation

A document is identified across languages by `"<root>::<relative path>"`.
"""

import asyncio
import os
from pathlib import Path
from typing import Dict, Sequence

from locsync.core.models import DocumentNode
from locsync.exceptions import CorruptDictionaryError, DictionaryNotFoundError, StoreError
from locsync.language_codes import is_valid_language_code
from locsync.logger import get_logger
from locsync.storage.files import atomic_write_text

logger = get_logger(__name__)

DOCUMENT_PATTERN = "*.md"


class DocumentTreeStore:
    """Reads and writes the per-language markdown trees under a set of roots."""

    def __init__(self, roots: Sequence[Path]):
        self.roots = [Path(root) for root in roots]

    def _language_dir(self, root: Path, language: str) -> Path:
        if not is_valid_language_code(language):
            raise StoreError(
                f"Invalid language code: {language!r}",
                code="invalid_language",
                details={"language": language},
            )
        return root / language

    def _resolve(self, node_key: str, language: str) -> Path:
        root, _, relative = node_key.partition("::")
        if not relative or Path(relative).is_absolute() or ".." in Path(relative).parts:
            raise StoreError(f"Invalid document key: {node_key!r}", code="invalid_document")
        return self._language_dir(Path(root), language) / relative

    def scan(self, language: str, canonical: bool = False) -> Dict[str, DocumentNode]:
        """
        Collect every markdown document of one language, keyed by node key.

        With `canonical=True` the tree is source material: a root without the
        language folder raises DictionaryNotFoundError and an unreadable file
        raises CorruptDictionaryError. Otherwise a missing folder means nothing
        translated yet and unreadable files are left out, so they are rewritten.
        """
        nodes: Dict[str, DocumentNode] = {}
        for root in self.roots:
            language_dir = self._language_dir(root, language)
            if not language_dir.is_dir():
                if canonical:
                    raise DictionaryNotFoundError(
                        f"No '{language}' folder under {root}",
                        code="documents_missing",
                        details={"root": root.as_posix(), "language": language},
                    )
                logger.debug(f"No documents for {language} under {root}")
                continue
            for path in sorted(language_dir.rglob(DOCUMENT_PATTERN)):
                if not path.is_file():
                    continue
                try:
                    text = path.read_text(encoding='utf-8')
                    last_modified = path.stat().st_mtime
                except (UnicodeDecodeError, OSError) as e:
                    if canonical:
                        raise CorruptDictionaryError(
                            f"Unreadable document {path}: {e}",
                            code="document_corrupt",
                            details={"path": str(path), "language": language},
                        ) from e
                    logger.warning(f"Unreadable document {path}, it will be translated again: {e}")
                    continue
                node = DocumentNode(
                    root=root.as_posix(),
                    path=path.relative_to(language_dir).as_posix(),
                    name=path.name,
                    last_text=text,
                    last_modified=last_modified,
                )
                nodes[node.key] = node
        return nodes

    def write(self, node_key: str, language: str, text: str) -> Path:
        path = self._resolve(node_key, language)
        try:
            atomic_write_text(path, text)
        except OSError as e:
            raise StoreError(
                f"Could not write {path}: {e}",
                code="document_write_failed",
                details={"path": str(path), "language": language},
            ) from e
        logger.debug(f"Wrote {path}")
        return path

    def delete(self, node_key: str, language: str) -> None:
        path = self._resolve(node_key, language)
        if not path.exists():
            return
        try:
            os.remove(path)
        except OSError as e:
            raise StoreError(
                f"Could not delete {path}: {e}",
                code="document_delete_failed",
                details={"path": str(path), "language": language},
            ) from e
        logger.info(f"Deleted {path}")

    async def scan_async(self, language: str, canonical: bool = False) -> Dict[str, DocumentNode]:
        return await asyncio.to_thread(self.scan, language, canonical)

    async def write_async(self, node_key: str, language: str, text: str) -> Path:
        return await asyncio.to_thread(self.write, node_key, language, text)

    async def delete_async(self, node_key: str, language: str) -> None:
        await asyncio.to_thread(self.delete, node_key, language)
