"""Atomic file writes for snapshot and manifest files."""

import os
from pathlib import Path

from redraft.utils.logging import get_logger

logger = get_logger(__name__)


def atomic_write(path: Path, content: str) -> None:
    """
    Atomically write content to file with temp-file-rename pattern.

    1. Write to a temporary file in the same directory
    2. fsync to ensure data is on disk
    3. Atomic rename to replace the target

    Readers see either the old file or the new one, never a partial write.

    Args:
        path: Target file path
        content: Content to write

    Raises:
        OSError: On file I/O errors
        PermissionError: On permission errors
    """
    # Same directory keeps the rename on one filesystem
    temp_path = path.parent / f".{path.name}.tmp.{os.getpid()}"

    try:
        with open(temp_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        temp_path.replace(path)

        logger.debug(
            "atomic_write_success",
            path=str(path),
            size=len(content)
        )

    except Exception as e:
        if temp_path.exists():
            temp_path.unlink()
        logger.error(
            "atomic_write_failed",
            path=str(path),
            error=str(e)
        )
        raise
