"""
RAG Types - Data classes for index and search operations.

Contains value objects used by the indexing pipeline, the hybrid retriever
and the persistence layer.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FileRecord:
    """
    One indexed file.

    ``path`` is relative to the project root with forward slashes and is the
    unique key. ``content_hash`` is the SHA-256 hex digest of the full bytes.
    """
    path: str
    content_hash: str
    indexed_at: str


@dataclass
class Chunk:
    """
    A contiguous line range of one file.

    Line numbers are 1-based and inclusive. The id is derived from
    (path, 0-based start offset) so re-indexing the same content yields
    the same id.
    """
    id: str
    file: str
    content: str
    language: str
    area: str
    start_line: int
    end_line: int

    @property
    def parent_id(self) -> str:
        return self.file

    def to_metadata(self) -> Dict[str, Any]:
        """Metadata stored alongside the vector."""
        return {
            "file": self.file,
            "content": self.content,
            "language": self.language,
            "area": self.area,
            "start_line": self.start_line,
            "end_line": self.end_line,
            "parent_id": self.parent_id,
        }


@dataclass
class ChunkMapEntry:
    """Denormalised projection of a Chunk written to the chunk map."""
    chunk_id: str
    file: str
    start: int
    end: int
    parent_id: str
    area: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChunkMapEntry":
        return cls(
            chunk_id=data["chunk_id"],
            file=data["file"],
            start=int(data["start"]),
            end=int(data["end"]),
            parent_id=data.get("parent_id") or data["file"],
            area=data.get("area", "other"),
        )


@dataclass
class Manifest:
    """
    Summary of the last indexing run.

    One per index, overwritten on every run.
    """
    mode: str
    index_key: str
    root: str
    embed_model: str
    dim: int
    last_built_at: str
    total_files: int = 0
    processed_files: int = 0
    skipped_files: int = 0
    failed_files: int = 0
    deleted_files: int = 0
    chunks_indexed: int = 0
    total_chunks: int = 0
    sha: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        known = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class Snippet:
    """Line range of a matching chunk within a file result."""
    start: int
    end: int
    score: float

    def to_compact(self) -> str:
        return f"{self.start}-{self.end}"

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "score": round(self.score, 4)}


@dataclass
class FileResult:
    """
    File-level search result.

    ``score`` is the best chunk score of the file; ``snippets`` holds the
    top-scoring chunks in descending score order.
    """
    path: str
    area: str
    score: float
    language: str = "unknown"
    snippets: List[Snippet] = field(default_factory=list)

    @property
    def display_score(self) -> float:
        """Score as reported and as compared against min_score."""
        return round(self.score, 4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "area": self.area,
            "language": self.language,
            "score": self.display_score,
            "snippets": [s.to_dict() for s in self.snippets],
        }

    def to_compact(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "snippets": [s.to_compact() for s in self.snippets],
        }


@dataclass
class IndexRunResult:
    """Outcome of one indexing pass."""
    index_key: str
    total_files: int = 0
    unchanged_files: int = 0
    chunks_indexed: int = 0
    total_chunks: int = 0
    processed: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    files: List[FileRecord] = field(default_factory=list)
    time_ms: int = 0
    manifest: Optional[Manifest] = None

    @property
    def processed_files(self) -> int:
        return len(self.processed)

    @property
    def failed_files(self) -> int:
        return len(self.failed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index_key": self.index_key,
            "total_files": self.total_files,
            "processed_files": len(self.processed),
            "unchanged_files": self.unchanged_files,
            "deleted_files": len(self.deleted),
            "failed_files": len(self.failed),
            "skipped_files": len(self.skipped),
            "chunks_indexed": self.chunks_indexed,
            "total_chunks": self.total_chunks,
            "processed": list(self.processed),
            "deleted": list(self.deleted),
            "failed": list(self.failed),
            "skipped": list(self.skipped),
            "time_ms": self.time_ms,
        }
