"""
Source State Manager

Tracks the content hash of every indexed file and decides which files an
indexing pass has to touch.

State file format (<root>/.ai_index/file_hashes.json):
{
    "src/foo.js": "9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08",
    "docs/README.md": "..."
}

The file is only rewritten at the end of a successful run, so a crashed
run leaves the previous state in place.
"""

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping

from ..index_exceptions import IndexCorruptError
from ..logging_config import configure_logger
from .utils import atomic_write_json

logger = configure_logger(__name__)


def content_hash(data: bytes) -> str:
    """
    SHA-256 hex digest of raw file bytes.

    Args:
        data: File content

    Returns:
        64-character lowercase hex string
    """
    return hashlib.sha256(data).hexdigest()


class HashStore:
    """
    Persistent mapping of relative path -> content hash.

    Loaded once at the start of a run and replaced wholesale at the end.
    """

    def __init__(self, path: Path):
        """
        Args:
            path: Location of file_hashes.json
        """
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Dict[str, str]:
        """
        Read the stored hashes.

        Returns:
            Mapping of path -> digest, empty when no file exists yet

        Raises:
            IndexCorruptError: If the file is not a JSON object of strings
        """
        if not self._path.exists():
            return {}
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise IndexCorruptError(f"Hash store {self._path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise IndexCorruptError(f"Hash store {self._path} must map paths to hex digests")
        return data

    def save(self, hashes: Mapping[str, str]) -> None:
        """Replace the stored hashes atomically."""
        atomic_write_json(self._path, dict(sorted(hashes.items())))
        logger.debug(f"Saved {len(hashes)} file hashes to {self._path}")


@dataclass
class SyncChanges:
    """
    Partition of the current file set against the previous hash store.

    ``added`` and ``modified`` are both contained in ``to_process``; under
    force every current file is in ``to_process`` and ``unchanged`` is empty.
    """
    unchanged: List[str] = field(default_factory=list)
    to_process: List[str] = field(default_factory=list)
    added: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.to_process or self.deleted)

    @property
    def total_count(self) -> int:
        return len(self.to_process) + len(self.deleted)


class ChangeTracker:
    """Partitions files into unchanged, to-process and deleted sets."""

    @staticmethod
    def partition(
        previous: Mapping[str, str],
        current: Mapping[str, str],
        force: bool = False,
    ) -> SyncChanges:
        """
        Compare current hashes with the previous run.

        Args:
            previous: path -> digest recorded by the last successful run
            current: path -> digest of files present now
            force: Reprocess every current file regardless of hash

        Returns:
            SyncChanges with sorted, disjoint path lists
        """
        changes = SyncChanges()

        for path in sorted(current):
            old = previous.get(path)
            if old is None:
                changes.added.append(path)
                changes.to_process.append(path)
            elif old != current[path]:
                changes.modified.append(path)
                changes.to_process.append(path)
            elif force:
                changes.to_process.append(path)
            else:
                changes.unchanged.append(path)

        changes.deleted = sorted(p for p in previous if p not in current)
        return changes
