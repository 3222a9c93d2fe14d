"""
FAISS Wrapper

Thin layer over a flat inner-product FAISS index wrapped in IndexIDMap2.
Vectors are L2-normalised on the way in, so inner product is cosine
similarity. Callers choose the int64 ids; removal by id is what makes
incremental re-indexing possible.
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np

# SWIG emits DeprecationWarnings while faiss is imported on Python 3.12+
warnings.filterwarnings("ignore", message="builtin type Swig", category=DeprecationWarning)
warnings.filterwarnings("ignore", message="builtin type swig", category=DeprecationWarning)

try:
    import faiss
    FAISS_AVAILABLE = True
except ImportError:
    FAISS_AVAILABLE = False
    faiss = None

from ..logging_config import configure_logger

logger = configure_logger(__name__)


@dataclass
class SearchResult:
    """One neighbour: caller-assigned id, raw inner product and clamped score."""
    vector_id: int
    similarity: float
    score: float


def _unit_rows(vectors: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return np.ascontiguousarray(vectors / norms, dtype=np.float32)


class FAISSWrapper:
    """
    Cosine-similarity index with caller-assigned int64 ids.

    Attributes:
        dimension: Vector dimension
    """

    def __init__(self, dimension: int):
        if not FAISS_AVAILABLE:
            raise ImportError(
                "faiss is required for vector storage. "
                "Install with: pip install faiss-cpu"
            )
        self._dimension = dimension
        self._index: Optional["faiss.IndexIDMap2"] = None

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_initialized(self) -> bool:
        return self._index is not None

    @property
    def total_vectors(self) -> int:
        return 0 if self._index is None else self._index.ntotal

    def create_index(self) -> None:
        """Start a new, empty index of the configured dimension."""
        self._index = faiss.IndexIDMap2(faiss.IndexFlatIP(self._dimension))
        logger.debug(f"Created cosine index (dim={self._dimension})")

    def _as_matrix(self, vectors: np.ndarray, what: str) -> np.ndarray:
        matrix = np.asarray(vectors, dtype=np.float32)
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.ndim != 2 or matrix.shape[1] != self._dimension:
            raise ValueError(
                f"{what} dimension mismatch: index has {self._dimension}, got shape {matrix.shape}"
            )
        return _unit_rows(matrix)

    def add(self, vectors: np.ndarray, ids: np.ndarray) -> None:
        """
        Add vectors under the given ids.

        Args:
            vectors: Array of shape (n, dimension)
            ids: n int64 ids, unique within the index

        Raises:
            ValueError: On a dimension mismatch or when ids and vectors differ in count
        """
        if self._index is None:
            self.create_index()

        matrix = self._as_matrix(vectors, "Vector")
        ids = np.asarray(ids, dtype=np.int64)
        if ids.shape != (matrix.shape[0],):
            raise ValueError(f"Got {len(ids)} ids for {matrix.shape[0]} vectors")

        self._index.add_with_ids(matrix, ids)
        logger.debug(f"Added {matrix.shape[0]} vectors (total {self._index.ntotal})")

    def remove(self, ids: np.ndarray) -> int:
        """Remove vectors by id; returns how many were present."""
        ids = np.asarray(ids, dtype=np.int64)
        if self._index is None or ids.size == 0:
            return 0
        selector = faiss.IDSelectorBatch(ids.size, faiss.swig_ptr(ids))
        removed = int(self._index.remove_ids(selector))
        logger.debug(f"Removed {removed} of {ids.size} requested vectors")
        return removed

    def reconstruct(self, vector_id: int) -> Optional[np.ndarray]:
        """Stored (normalised) vector for an id, or None when absent."""
        if self._index is None or self._index.ntotal == 0:
            return None
        try:
            return self._index.reconstruct(int(vector_id))
        except RuntimeError:
            return None

    def search(self, query: np.ndarray, top_k: int) -> List[SearchResult]:
        """
        Nearest neighbours of a single query vector.

        Scores are cosine similarities clamped to [0, 1]; anti-correlated
        vectors score 0 rather than negative.

        Returns:
            Up to top_k results, best first
        """
        if self._index is None or self._index.ntotal == 0 or top_k < 1:
            return []

        matrix = self._as_matrix(query, "Query")
        k = min(top_k, self._index.ntotal)
        similarities, ids = self._index.search(matrix, k)

        results = []
        for similarity, vector_id in zip(similarities[0], ids[0]):
            if vector_id == -1:
                continue
            similarity = float(similarity)
            results.append(SearchResult(
                vector_id=int(vector_id),
                similarity=similarity,
                score=min(1.0, max(0.0, similarity)),
            ))
        return results

    def save(self, path: str) -> None:
        """Write the index to ``path`` via a temp file and rename."""
        if self._index is None:
            raise ValueError("Nothing to save: index was never created or loaded")
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        tmp_path = f"{path}.tmp"
        faiss.write_index(self._index, tmp_path)
        os.replace(tmp_path, path)
        logger.debug(f"Saved {self._index.ntotal} vectors to {path}")

    def load(self, path: str) -> None:
        """
        Read an index written by save().

        Raises:
            FileNotFoundError: If ``path`` does not exist
        """
        if not Path(path).exists():
            raise FileNotFoundError(f"Index file not found: {path}")
        self._index = faiss.read_index(path)
        self._dimension = self._index.d
        logger.debug(f"Loaded {self._index.ntotal} vectors (dim={self._dimension}) from {path}")
