"""
Vector Store

Async record store used by the indexing pipeline and the hybrid retriever.
``FaissVectorStore`` keeps vectors in a FAISS IndexIDMap2 and the record
metadata in a JSON sidecar:

<data_dir>/<index_key>/
    vectors.faiss     FAISS index (int64 ids)
    records.json      {"version", "dimension", "records": {chunk_id: {...}}}

Chunk ids are MD5 hex strings; FAISS ids are the first 15 hex digits of the
chunk id as an int64. Records without a vector (embedder unavailable) are
kept in the sidecar only so lexical search still sees them.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from ..index_exceptions import IndexCorruptError, VectorStoreError
from ..logging_config import configure_logger
from .config_loader import IndexConfig
from .faiss_wrapper import FAISSWrapper
from .utils import atomic_write_json

logger = configure_logger(__name__)


@dataclass
class VectorRecord:
    """A chunk as stored: id, optional vector and metadata."""
    id: str
    vector: Optional[np.ndarray] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorHit:
    """Nearest-neighbour hit; ``score`` is cosine similarity clamped to [0, 1]."""
    id: str
    score: float
    metadata: Dict[str, Any]


def faiss_id(chunk_id: str) -> int:
    """Map a hex chunk id to a non-negative int64."""
    return int(chunk_id[:15], 16)


def _matches(metadata: Dict[str, Any], where: Optional[Dict[str, Any]]) -> bool:
    if not where:
        return True
    return all(metadata.get(key) == value for key, value in where.items())


class VectorStore(ABC):
    """Interface the pipeline and retriever depend on."""

    @abstractmethod
    async def open(self, dimension: Optional[int] = None, reset: bool = False) -> None:
        """Load persisted data, or start empty when none exists or reset is set."""

    @abstractmethod
    async def upsert(self, record: VectorRecord) -> None:
        """Insert or replace one record."""

    @abstractmethod
    async def upsert_many(self, records: List[VectorRecord]) -> None:
        """Insert or replace a batch of records."""

    @abstractmethod
    async def query(
        self,
        vector: np.ndarray,
        k: int,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[VectorHit]:
        """Top-k records by cosine similarity, optionally filtered by metadata equality."""

    @abstractmethod
    async def delete_by_file(self, path: str) -> int:
        """Delete every record whose metadata ``file`` equals path."""

    @abstractmethod
    async def list_all(self, include_vectors: bool = False) -> List[VectorRecord]:
        """All records, in insertion order."""

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Record count, dimension, location and stored vector count."""

    @abstractmethod
    async def persist(self) -> None:
        """Write the current state to durable storage."""

    @abstractmethod
    def exists(self) -> bool:
        """Whether persisted data exists for this store."""


class FaissVectorStore(VectorStore):
    """
    VectorStore backed by FAISS plus a JSON metadata sidecar.

    All mutations happen in memory; nothing touches disk until persist().
    """

    INDEX_FILE = "vectors.faiss"
    RECORDS_FILE = "records.json"
    VERSION = 1

    def __init__(self, location: Path):
        """
        Args:
            location: Directory holding vectors.faiss and records.json
        """
        self._location = Path(location)
        self._faiss: Optional[FAISSWrapper] = None
        self._dimension: Optional[int] = None
        # chunk_id -> {"vector_id": int | None, "metadata": {...}}
        self._records: Dict[str, Dict[str, Any]] = {}
        self._chunk_by_vector_id: Dict[int, str] = {}

    @property
    def location(self) -> Path:
        return self._location

    @property
    def index_path(self) -> Path:
        return self._location / self.INDEX_FILE

    @property
    def records_path(self) -> Path:
        return self._location / self.RECORDS_FILE

    def exists(self) -> bool:
        return self.records_path.exists() and self.index_path.exists()

    def _require_open(self) -> None:
        if self._faiss is None:
            raise VectorStoreError(f"Vector store at {self._location} is not open")

    async def open(self, dimension: Optional[int] = None, reset: bool = False) -> None:
        """
        Open the store.

        Args:
            dimension: Expected vector dimension; None accepts the stored one
            reset: Discard persisted data and start empty

        Raises:
            VectorStoreError: Stored dimension differs from ``dimension``
                (without reset), or no data exists and no dimension is given
            IndexCorruptError: The records sidecar cannot be parsed
        """
        self._records = {}
        self._chunk_by_vector_id = {}

        if reset or not self.exists():
            if dimension is None:
                raise VectorStoreError(f"No vector data at {self._location} and no dimension given")
            self._dimension = dimension
            self._faiss = FAISSWrapper(dimension=dimension)
            self._faiss.create_index()
            logger.debug(f"Opened empty vector store at {self._location} (dim={dimension})")
            return

        try:
            with open(self.records_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            records = data["records"]
            stored_dim = int(data["dimension"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise IndexCorruptError(f"Vector records {self.records_path} are unreadable: {e}") from e

        if dimension is not None and stored_dim != dimension:
            raise VectorStoreError(
                f"Vector dimension mismatch at {self._location}: stored {stored_dim}, "
                f"embedder produces {dimension}. Re-run indexing with force to rebuild."
            )

        self._faiss = FAISSWrapper(dimension=stored_dim)
        try:
            self._faiss.load(str(self.index_path))
        except RuntimeError as e:
            raise VectorStoreError(f"Cannot read FAISS index {self.index_path}: {e}") from e

        self._dimension = stored_dim
        self._records = records
        for chunk_id, entry in records.items():
            if entry.get("vector_id") is not None:
                self._chunk_by_vector_id[int(entry["vector_id"])] = chunk_id

        logger.info(
            f"Opened vector store at {self._location}: "
            f"{len(self._records)} records, {self._faiss.total_vectors} vectors"
        )

    def _check_vector(self, record: VectorRecord) -> Optional[np.ndarray]:
        if record.vector is None:
            return None
        vector = np.asarray(record.vector, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self._dimension:
            raise VectorStoreError(
                f"Record {record.id} has dimension {vector.shape[0]}, store expects {self._dimension}"
            )
        return vector

    def _remove_ids(self, chunk_ids: Iterable[str]) -> int:
        vector_ids = []
        removed = 0
        for chunk_id in chunk_ids:
            entry = self._records.pop(chunk_id, None)
            if entry is None:
                continue
            removed += 1
            if entry.get("vector_id") is not None:
                vector_ids.append(int(entry["vector_id"]))
                self._chunk_by_vector_id.pop(int(entry["vector_id"]), None)
        if vector_ids:
            self._faiss.remove(np.array(vector_ids, dtype=np.int64))
        return removed

    async def upsert(self, record: VectorRecord) -> None:
        await self.upsert_many([record])

    async def upsert_many(self, records: List[VectorRecord]) -> None:
        """
        Insert or replace records in one FAISS call.

        Raises:
            VectorStoreError: On dimension mismatch or an id collision
        """
        self._require_open()
        if not records:
            return

        # Last occurrence of a repeated id wins
        records = list({r.id: r for r in records}.values())
        vectors = [self._check_vector(r) for r in records]
        self._remove_ids(r.id for r in records)

        new_vectors = []
        new_ids = []
        for record, vector in zip(records, vectors):
            vector_id = None
            if vector is not None:
                vector_id = faiss_id(record.id)
                owner = self._chunk_by_vector_id.get(vector_id)
                if owner is not None and owner != record.id:
                    raise VectorStoreError(f"Vector id collision between {owner} and {record.id}")
                self._chunk_by_vector_id[vector_id] = record.id
                new_vectors.append(vector)
                new_ids.append(vector_id)
            self._records[record.id] = {"vector_id": vector_id, "metadata": dict(record.metadata)}

        if new_vectors:
            self._faiss.add(np.vstack(new_vectors), np.array(new_ids, dtype=np.int64))

        logger.debug(f"Upserted {len(records)} records ({len(new_vectors)} with vectors)")

    async def query(
        self,
        vector: np.ndarray,
        k: int,
        where: Optional[Dict[str, Any]] = None,
    ) -> List[VectorHit]:
        """
        Nearest records by cosine similarity.

        The metadata filter is applied before truncating to k, so a filtered
        query still returns up to k matching records.
        """
        self._require_open()
        if k < 1 or self._faiss.total_vectors == 0:
            return []

        query_vector = np.asarray(vector, dtype=np.float32).reshape(-1)
        top_k = self._faiss.total_vectors if where else k
        hits = []
        for result in self._faiss.search(query_vector, top_k):
            chunk_id = self._chunk_by_vector_id.get(result.vector_id)
            if chunk_id is None:
                continue
            metadata = self._records[chunk_id]["metadata"]
            if not _matches(metadata, where):
                continue
            hits.append(VectorHit(id=chunk_id, score=result.score, metadata=metadata))
            if len(hits) >= k:
                break
        return hits

    async def delete_by_file(self, path: str) -> int:
        self._require_open()
        doomed = [cid for cid, entry in self._records.items() if entry["metadata"].get("file") == path]
        removed = self._remove_ids(doomed)
        if removed:
            logger.debug(f"Deleted {removed} records for {path}")
        return removed

    async def list_all(self, include_vectors: bool = False) -> List[VectorRecord]:
        self._require_open()
        records = []
        for chunk_id, entry in self._records.items():
            vector = None
            if include_vectors and entry.get("vector_id") is not None:
                vector = self._faiss.reconstruct(int(entry["vector_id"]))
            records.append(VectorRecord(id=chunk_id, vector=vector, metadata=entry["metadata"]))
        return records

    def stats(self) -> Dict[str, Any]:
        return {
            "count": len(self._records),
            "dimension": self._dimension,
            "location": str(self._location),
            "vectors": self._faiss.total_vectors if self._faiss else 0,
        }

    async def persist(self) -> None:
        """Write vectors.faiss, then records.json, each atomically."""
        self._require_open()
        self._faiss.save(str(self.index_path))
        atomic_write_json(self.records_path, {
            "version": self.VERSION,
            "dimension": self._dimension,
            "records": self._records,
        })
        logger.info(f"Persisted {len(self._records)} records to {self._location}")


def create_vector_store(config: IndexConfig, index_key: str) -> VectorStore:
    """Build the vector store for an index key under the configured data dir."""
    return FaissVectorStore(config.resolved_data_dir / index_key)
