"""
Hybrid Retriever

Answers a natural-language query against one project index by combining
two candidate buckets:

- vector: top 2k chunks by cosine similarity of the query embedding
- lexical: top 2k chunks by LexicalScorer over every stored record

Scores are merged additively per chunk (vector 0.7, lexical 0.3 by
default). When the query cannot be embedded the lexical bucket alone is
used with ``lexical_only_weight``. Chunks are then grouped by file; a
file scores as its best chunk and carries its top snippets.
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..index_exceptions import IndexNotBuiltError, QueryRequiredError
from ..logging_config import configure_logger
from .config_loader import IndexConfig
from .embedding_service import EmbeddingService, Unavailable
from .index_persistence import ChunkMapIndex, ChunkMapStore, IndexLayout, ManifestStore
from .lexical_scorer import LexicalScorer
from .rag_types import FileResult, Snippet
from .vector_store import VectorStore

logger = configure_logger(__name__)


class HybridRetriever:
    """
    Query engine over one project index.

    Attributes:
        root: Resolved project root
        config: Effective configuration (weights, snippets per file)
        layout: Paths of the state directory and vector data
    """

    def __init__(
        self,
        root: Path,
        config: IndexConfig,
        embedder: EmbeddingService,
        store: VectorStore,
    ):
        self.root = Path(root).resolve()
        self.config = config
        self.layout = IndexLayout.for_root(self.root, config)
        self.embedder = embedder
        self.store = store
        self._chunk_map: Optional[ChunkMapIndex] = None

    async def _load(self) -> None:
        manifest = ManifestStore(self.layout.manifest_path).load()
        if manifest is None or not self.store.exists():
            raise IndexNotBuiltError(
                f"No index found for {self.root} (key {self.layout.index_key}). "
                f"Run index_codebase first."
            )
        await self.store.open()
        self._chunk_map = ChunkMapIndex(ChunkMapStore(self.layout.chunk_map_path).load())

    async def search(
        self,
        query: str,
        k: Optional[int] = None,
        area: Optional[str] = None,
        min_score: Optional[float] = None,
        compact: bool = False,
    ) -> Dict[str, Any]:
        """
        Run a hybrid search.

        Args:
            query: Natural-language query
            k: Maximum number of files to return (config default_k when None)
            area: Restrict to one area (backend, frontend, infra, docs, other)
            min_score: Drop files scoring below this value (equal is kept)
            compact: Return only paths and "start-end" snippet ranges

        Returns:
            Compact or full result dictionary

        Raises:
            QueryRequiredError: Query is empty or whitespace
            ValueError: k < 1
            IndexNotBuiltError: The root has never been indexed
        """
        if query is None or not query.strip():
            raise QueryRequiredError("A non-empty query is required")
        if k is None:
            k = self.config.default_k
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")

        start_time = time.time()
        await self._load()
        load_ms = (time.time() - start_time) * 1000

        embed_start = time.time()
        embedding = await self.embedder.embed(query)
        embed_ms = (time.time() - embed_start) * 1000

        degraded_reason = None
        if isinstance(embedding, Unavailable):
            degraded_reason = embedding.reason
        elif embedding.dimension != self.store.stats()["dimension"]:
            degraded_reason = (
                f"query embedding has dimension {embedding.dimension}, "
                f"index has {self.store.stats()['dimension']}"
            )
        if degraded_reason:
            logger.warning(f"Vector search unavailable, using lexical only: {degraded_reason}")

        search_start = time.time()
        where = {"area": area} if area else None
        bucket_size = 2 * k

        vector_hits = []
        if degraded_reason is None:
            vector_hits = await self.store.query(embedding.values, bucket_size, where=where)

        lexical_hits = await self._lexical_bucket(query, bucket_size, area)

        # Merge additively per chunk id
        merged: Dict[str, Dict[str, Any]] = {}
        if degraded_reason is None:
            for hit in vector_hits:
                merged[hit.id] = {"score": self.config.vector_weight * hit.score, "metadata": hit.metadata}
            lexical_weight = self.config.lexical_weight
        else:
            lexical_weight = self.config.lexical_only_weight

        for chunk_id, score, metadata in lexical_hits:
            entry = merged.setdefault(chunk_id, {"score": 0.0, "metadata": metadata})
            entry["score"] += lexical_weight * score

        files = self._aggregate(merged)
        if min_score is not None:
            files = [f for f in files if f.display_score >= min_score]
        files = files[:k]
        search_ms = (time.time() - search_start) * 1000

        search_mode = "hybrid" if degraded_reason is None else "lexical"
        logger.debug(
            f"Query '{query[:50]}' ({search_mode}): {len(vector_hits)} vector, "
            f"{len(lexical_hits)} lexical candidates -> {len(files)} files"
        )

        if compact:
            return {
                "query": query,
                "results": [f.to_compact() for f in files],
            }

        response = {
            "query": query,
            "area": area,
            "search_mode": search_mode,
            "total_results": len(files),
            "files": [f.to_dict() for f in files],
            "stats": {
                "index_key": self.layout.index_key,
                "vector_candidates": len(vector_hits),
                "lexical_candidates": len(lexical_hits),
                "load_ms": round(load_ms, 2),
                "embed_ms": round(embed_ms, 2),
                "search_ms": round(search_ms, 2),
                "total_ms": round((time.time() - start_time) * 1000, 2),
            },
        }
        if degraded_reason:
            response["degraded_reason"] = degraded_reason
        return response

    async def _lexical_bucket(
        self,
        query: str,
        bucket_size: int,
        area: Optional[str],
    ) -> List[Tuple[str, float, Dict[str, Any]]]:
        """Top records by lexical score; zero scores are dropped."""
        scorer = LexicalScorer(query)
        scored = []
        for record in await self.store.list_all():
            if area and record.metadata.get("area") != area:
                continue
            score = scorer.score(record.metadata.get("content", ""))
            if score > 0:
                scored.append((record.id, score, record.metadata))
        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[:bucket_size]

    def _line_range(self, chunk_id: str, metadata: Dict[str, Any]) -> Optional[Tuple[int, int]]:
        start = metadata.get("start_line")
        end = metadata.get("end_line")
        if start is not None and end is not None:
            return int(start), int(end)

        entry = self._chunk_map.resolve(chunk_id, file=metadata.get("file"), start=start)
        if entry is None:
            return None
        return entry.start, entry.end

    def _aggregate(self, merged: Dict[str, Dict[str, Any]]) -> List[FileResult]:
        """
        Group chunk scores by parent file.

        Returns:
            FileResults sorted by score descending, then path ascending
        """
        by_file: Dict[str, List[Tuple[str, float, Dict[str, Any]]]] = {}
        for chunk_id, entry in merged.items():
            if entry["score"] <= 0:
                continue
            metadata = entry["metadata"]
            parent = metadata.get("parent_id") or metadata.get("file")
            if not parent:
                continue
            by_file.setdefault(parent, []).append((chunk_id, entry["score"], metadata))

        results = []
        for path, chunks in by_file.items():
            chunks.sort(key=lambda c: (-c[1], c[0]))
            first_meta = chunks[0][2]
            file_result = FileResult(
                path=path,
                area=first_meta.get("area", "other"),
                score=chunks[0][1],
                language=first_meta.get("language", "unknown"),
            )
            for chunk_id, score, metadata in chunks:
                if len(file_result.snippets) >= self.config.snippets_per_file:
                    break
                line_range = self._line_range(chunk_id, metadata)
                if line_range is None:
                    logger.debug(f"No line range for chunk {chunk_id} in {path}")
                    continue
                file_result.snippets.append(Snippet(start=line_range[0], end=line_range[1], score=score))
            results.append(file_result)

        results.sort(key=lambda f: (-f.score, f.path))
        return results
