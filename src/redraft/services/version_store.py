"""Content-addressed snapshot history backed by flat files.

Layout inside the versions directory:

    manifest.json          ordered list of VersionEntry records
    v1-1a2b3c4d.md         one snapshot file per version
    v2-9f8e7d6c.md

The manifest is the source of truth for which versions exist. Snapshot files
are written before the manifest entry that references them, and clear()
empties the manifest before deleting files, so a reader never sees a manifest
entry whose file has already been removed by this store.

All operations on one VersionStore instance are serialized by a lock covering
the whole manifest read-modify-write cycle.
"""

import json
import threading
import time
import uuid
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from redraft.models.version import VersionEntry, VersionMeta
from redraft.services.exceptions import VersionCorruptedError
from redraft.services.file_operations import atomic_write
from redraft.utils.hashing import content_hash
from redraft.utils.logging import get_logger

logger = get_logger(__name__)

MANIFEST_NAME = "manifest.json"

_manifest_adapter = TypeAdapter(List[VersionEntry])


def _read_snapshot(path: Path) -> str:
    """Read a snapshot without newline translation."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


class VersionStore:
    """Snapshot store with dedup-against-latest on save.

    Example:
        >>> store = VersionStore(Path("versions"))
        >>> meta = store.save("# Draft\\n")
        >>> store.save("# Draft\\n") is None
        True
        >>> store.get_content(meta.id)
        '# Draft\\n'
    """

    def __init__(self, versions_dir: Path):
        """Initialize store.

        Args:
            versions_dir: Directory for the manifest and snapshot files
                (created lazily on first write)
        """
        self.versions_dir = Path(versions_dir)
        self.manifest_path = self.versions_dir / MANIFEST_NAME
        self._lock = threading.RLock()

    def list(self) -> List[VersionMeta]:
        """Return version metadata in save order (no content)."""
        with self._lock:
            return [entry.to_meta() for entry in self._read_manifest()]

    def save(self, content: str) -> Optional[VersionMeta]:
        """Snapshot content as a new version.

        Only the most recent version is compared: if its stored content equals
        `content` exactly, nothing is written and None is returned. Identical
        content in older, non-adjacent versions does not count as a duplicate.

        Args:
            content: Document text to snapshot

        Returns:
            Metadata of the new version, or None for a duplicate
        """
        with self._lock:
            manifest = self._read_manifest()

            if manifest:
                latest = manifest[-1]
                latest_path = self.versions_dir / latest.filename
                if latest_path.exists():
                    if _read_snapshot(latest_path) == content:
                        logger.info("version_save_duplicate", latest_id=latest.id)
                        return None
                else:
                    logger.warning(
                        "version_content_missing",
                        version_id=latest.id,
                        path=str(latest_path),
                    )

            version_id = str(uuid.uuid4())
            number = len(manifest) + 1
            entry = VersionEntry(
                id=version_id,
                label=f"Version {number}",
                timestamp=int(time.time() * 1000),
                hash=content_hash(content),
                filename=f"v{number}-{version_id[:8]}.md",
            )

            self.versions_dir.mkdir(parents=True, exist_ok=True)
            atomic_write(self.versions_dir / entry.filename, content)
            manifest.append(entry)
            self._write_manifest(manifest)

            logger.info(
                "version_saved",
                version_id=entry.id,
                label=entry.label,
                hash=entry.hash,
                size=len(content),
            )
            return entry.to_meta()

    def get_content(self, version_id: str) -> Optional[str]:
        """Return a version's content.

        Returns:
            Snapshot text, or None if no manifest entry has this id

        Raises:
            VersionCorruptedError: If the entry exists but its file is missing
        """
        with self._lock:
            entry = next((e for e in self._read_manifest() if e.id == version_id), None)
            if entry is None:
                return None

            path = self.versions_dir / entry.filename
            if not path.exists():
                logger.error("version_corrupted", version_id=version_id, path=str(path))
                raise VersionCorruptedError(version_id, str(path))

            return _read_snapshot(path)

    def clear(self) -> None:
        """Delete every version.

        The empty manifest is written first, then the snapshot files it used
        to reference are removed. A crash in between leaves unreferenced files
        behind but never a manifest pointing at missing content.
        """
        with self._lock:
            manifest = self._read_manifest()
            if not manifest and not self.manifest_path.exists():
                return

            self._write_manifest([])

            removed = 0
            for entry in manifest:
                path = self.versions_dir / entry.filename
                if path.exists():
                    path.unlink()
                    removed += 1

            logger.info("versions_cleared", count=len(manifest), files_removed=removed)

    def _read_manifest(self) -> List[VersionEntry]:
        """Load the manifest, treating a missing file as empty.

        Raises:
            ValueError: If the manifest file is malformed
        """
        if not self.manifest_path.exists():
            return []
        try:
            raw = self.manifest_path.read_text(encoding="utf-8")
            return _manifest_adapter.validate_json(raw)
        except ValidationError as e:
            raise ValueError(f"Malformed manifest file: {e}") from e

    def _write_manifest(self, manifest: List[VersionEntry]) -> None:
        self.versions_dir.mkdir(parents=True, exist_ok=True)
        payload = [entry.model_dump() for entry in manifest]
        atomic_write(self.manifest_path, json.dumps(payload, indent=2))
