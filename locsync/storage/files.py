"""
Atomic file helpers.

Every file the worker persists (dictionaries, documents, state records) goes
through a temp file in the target directory followed by os.replace, so a
reader never observes a partially written file.
"""

import json
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from locsync.logger import get_logger

logger = get_logger(__name__)


def atomic_write_text(file_path: Path, text: str) -> None:
    """
    Write text to file atomically.

    Writes to a temporary file first, then renames it to the target path.
    If the write fails, the original file is unchanged.
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in the same directory so the rename stays on one filesystem
    temp_fd, temp_path = tempfile.mkstemp(
        dir=file_path.parent,
        prefix=f".{file_path.stem}_",
        suffix=f"{file_path.suffix}.tmp",
    )
    temp_path = Path(temp_path)

    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8', newline='') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, file_path)
    except BaseException:
        # Also covers task cancellation while writing
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_json(file_path: Path, data: Any) -> None:
    """Write JSON to file atomically (UTF-8, indented, non-ASCII kept)."""
    atomic_write_text(file_path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def read_json(file_path: Path, default: Any = None) -> Any:
    """Read a JSON file, returning `default` when it does not exist."""
    file_path = Path(file_path)
    if not file_path.exists():
        return default
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def backup_file(file_path: Path, backup_dir: Path, label: str) -> Optional[Path]:
    """
    Copy a (corrupt) file aside before it gets replaced.

    Returns:
        The backup path, or None when the copy failed
    """
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    target = Path(backup_dir) / f"{label}-{timestamp}-backup{Path(file_path).suffix}"
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(file_path, target)
        logger.warning(f"Backed up {file_path} to {target}")
        return target
    except OSError as e:
        logger.error(f"Could not back up {file_path}: {e}")
        return None
