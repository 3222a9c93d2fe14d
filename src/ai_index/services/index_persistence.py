"""
Index persistence: on-disk layout, chunk map and manifest.

Per-root state lives in ``<root>/.ai_index/``:

    file_hashes.json        path -> sha256 (see source_state_manager)
    search/chunkmap.jsonl   one {chunk_id, file, start, end, parent_id, area} per line
    manifest.json           summary of the last run

Vector data lives under ``<data_dir>/<index_key>/``. The index key is the
sanitised root basename plus the first 8 hex chars of SHA-256 of the
resolved absolute root path.
"""

import hashlib
import json
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from ..index_exceptions import IndexCorruptError
from ..logging_config import configure_logger
from .config_loader import IndexConfig
from .rag_types import ChunkMapEntry, Manifest
from .utils import atomic_write_json, atomic_write_text, sanitize_name

logger = configure_logger(__name__)


def index_key_for(root: Path) -> str:
    """Stable, collision-resistant key for a project root."""
    resolved = Path(root).resolve()
    digest = hashlib.sha256(str(resolved).encode('utf-8')).hexdigest()[:8]
    return f"{sanitize_name(resolved.name)}-{digest}"


@dataclass(frozen=True)
class IndexLayout:
    """All paths belonging to one index."""
    root: Path
    index_key: str
    state_dir: Path
    vector_dir: Path

    @classmethod
    def for_root(cls, root: Path, config: IndexConfig) -> "IndexLayout":
        resolved = Path(root).resolve()
        key = index_key_for(resolved)
        return cls(
            root=resolved,
            index_key=key,
            state_dir=resolved / config.state_dir_name,
            vector_dir=config.resolved_data_dir / key,
        )

    @property
    def hash_store_path(self) -> Path:
        return self.state_dir / "file_hashes.json"

    @property
    def chunk_map_path(self) -> Path:
        return self.state_dir / "search" / "chunkmap.jsonl"

    @property
    def manifest_path(self) -> Path:
        return self.state_dir / "manifest.json"


class ChunkMapStore:
    """Reads and rewrites the JSONL chunk map."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> List[ChunkMapEntry]:
        """
        Read all entries.

        Raises:
            IndexCorruptError: If a line is not a valid entry
        """
        if not self._path.exists():
            return []

        entries = []
        with open(self._path, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(ChunkMapEntry.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                    raise IndexCorruptError(
                        f"Chunk map {self._path} line {line_no} is malformed: {e}"
                    ) from e
        return entries

    def save(self, entries: Iterable[ChunkMapEntry]) -> int:
        """Rewrite the chunk map atomically. Returns the number of entries."""
        lines = [json.dumps(e.to_dict()) for e in entries]
        atomic_write_text(self._path, "".join(line + "\n" for line in lines))
        logger.debug(f"Wrote {len(lines)} chunk map entries to {self._path}")
        return len(lines)


class ChunkMapIndex:
    """
    Lookup structure over chunk map entries.

    Resolution order for a chunk's line range: exact chunk id, then exact
    (file, start), then a suffix path match when exactly one file qualifies.
    """

    def __init__(self, entries: Iterable[ChunkMapEntry]):
        self._by_id: Dict[str, ChunkMapEntry] = {}
        self._by_file_start: Dict[tuple, ChunkMapEntry] = {}
        self._by_file: Dict[str, List[ChunkMapEntry]] = {}
        for entry in entries:
            self._by_id[entry.chunk_id] = entry
            self._by_file_start[(entry.file, entry.start)] = entry
            self._by_file.setdefault(entry.file, []).append(entry)

    def __len__(self) -> int:
        return len(self._by_id)

    def resolve(self, chunk_id: str, file: Optional[str] = None, start: Optional[int] = None) -> Optional[ChunkMapEntry]:
        entry = self._by_id.get(chunk_id)
        if entry is not None:
            return entry
        if file is None:
            return None
        if start is not None:
            entry = self._by_file_start.get((file, start))
            if entry is not None:
                return entry

        candidates = [
            f for f in self._by_file
            if f.endswith("/" + file) or file.endswith("/" + f)
        ]
        if len(candidates) != 1:
            return None
        entries = self._by_file[candidates[0]]
        if start is not None:
            for e in entries:
                if e.start == start:
                    return e
            return None
        return entries[0] if len(entries) == 1 else None


class ManifestStore:
    """Reads and writes manifest.json."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load(self) -> Optional[Manifest]:
        """
        Returns:
            The manifest, or None if it has never been written

        Raises:
            IndexCorruptError: If the file cannot be parsed
        """
        if not self._path.exists():
            return None
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                return Manifest.from_dict(json.load(f))
        except (json.JSONDecodeError, TypeError) as e:
            raise IndexCorruptError(f"Manifest {self._path} is unreadable: {e}") from e

    def save(self, manifest: Manifest) -> None:
        atomic_write_json(self._path, manifest.to_dict())


def revision_marker(root: Path, hashes: Mapping[str, str]) -> str:
    """
    Revision of the indexed tree.

    Uses ``git rev-parse HEAD`` when the root is a git checkout; otherwise a
    content-addressed ``local-<12 hex>`` digest over the sorted hash store.
    """
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
        sha = completed.stdout.strip()
        if completed.returncode == 0 and sha:
            return sha
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git rev-parse failed in {root}: {e}")

    digest = hashlib.sha256()
    for path in sorted(hashes):
        digest.update(f"{path}\0{hashes[path]}\n".encode('utf-8'))
    return f"local-{digest.hexdigest()[:12]}"
