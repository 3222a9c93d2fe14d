"""
Operations facade

Entry points used by the MCP tools and by embedding hosts:

- index_directory: bring the index of a directory up to date
- query_index: hybrid search over an indexed directory
- index_status: manifest, store statistics and pending changes

Each async operation has a synchronous ``run_*`` wrapper.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .index_exceptions import TargetNotFoundError
from .logging_config import configure_logger
from .services.config_loader import IndexConfig, load_config
from .services.console_progress import IndexProgress
from .services.embedding_service import create_embedding_service
from .services.file_discovery import FileDiscovery
from .services.hybrid_retriever import HybridRetriever
from .services.index_persistence import ChunkMapStore, IndexLayout, ManifestStore
from .services.indexing_pipeline import IndexingPipeline
from .services.rag_types import IndexRunResult
from .services.source_state_manager import ChangeTracker, HashStore, content_hash
from .services.vector_store import create_vector_store

logger = configure_logger(__name__)

PathLike = Union[str, Path]


def resolve_target(target_path: PathLike) -> Path:
    """
    Resolve and validate the directory to operate on.

    Raises:
        TargetNotFoundError: If the path does not exist or is not a directory
    """
    if target_path is None or str(target_path).strip() == "":
        raise TargetNotFoundError("A target directory is required")
    root = Path(target_path).expanduser()
    if not root.is_dir():
        raise TargetNotFoundError(f"Target directory not found: {target_path}")
    return root.resolve()


async def index_directory(
    target_path: PathLike,
    force: bool = False,
    config: Optional[IndexConfig] = None,
    progress: Optional[IndexProgress] = None,
) -> IndexRunResult:
    """
    Index a directory incrementally.

    Args:
        target_path: Project root to index
        force: Reprocess every file and rebuild the vector store
        config: Explicit configuration (loaded from files/env when None)
        progress: Optional progress display

    Returns:
        IndexRunResult of the run
    """
    root = resolve_target(target_path)
    config = config or load_config(root)
    layout = IndexLayout.for_root(root, config)

    pipeline = IndexingPipeline(
        root,
        config,
        embedder=create_embedding_service(config),
        store=create_vector_store(config, layout.index_key),
        progress=progress,
    )
    return await pipeline.run(force=force)


async def query_index(
    target_path: PathLike,
    text: str,
    k: Optional[int] = None,
    area: Optional[str] = None,
    min_score: Optional[float] = None,
    compact: bool = False,
    config: Optional[IndexConfig] = None,
) -> Dict[str, Any]:
    """
    Search an indexed directory.

    Args:
        target_path: Project root that was indexed
        text: Natural-language query
        k: Maximum number of files (config default_k when None)
        area: Optional area filter
        min_score: Optional inclusive score threshold
        compact: Return paths and "start-end" ranges only
        config: Explicit configuration (loaded from files/env when None)

    Returns:
        Result dictionary (see HybridRetriever.search)
    """
    root = resolve_target(target_path)
    config = config or load_config(root)
    layout = IndexLayout.for_root(root, config)

    retriever = HybridRetriever(
        root,
        config,
        embedder=create_embedding_service(config),
        store=create_vector_store(config, layout.index_key),
    )
    return await retriever.search(text, k=k, area=area, min_score=min_score, compact=compact)


async def index_status(target_path: PathLike, config: Optional[IndexConfig] = None) -> Dict[str, Any]:
    """
    Report the state of a directory's index.

    Includes the manifest, vector store statistics, chunk map size, files
    changed since the last run, and whether the persisted artefacts agree
    with each other.
    """
    root = resolve_target(target_path)
    config = config or load_config(root)
    layout = IndexLayout.for_root(root, config)

    manifest = ManifestStore(layout.manifest_path).load()
    store = create_vector_store(config, layout.index_key)
    status: Dict[str, Any] = {
        "root": str(root),
        "index_key": layout.index_key,
        "indexed": manifest is not None and store.exists(),
        "state_dir": str(layout.state_dir),
        "vector_dir": str(layout.vector_dir),
        "manifest": manifest.to_dict() if manifest else None,
    }
    if not status["indexed"]:
        return status

    await store.open()
    stats = store.stats()
    chunk_map_entries = len(ChunkMapStore(layout.chunk_map_path).load())
    previous = HashStore(layout.hash_store_path).load()

    discovery = FileDiscovery(
        root, config.include_patterns, config.exclude_patterns, state_dir_name=config.state_dir_name
    )
    current = {}
    for path in discovery.discover():
        try:
            current[path] = content_hash((root / path).read_bytes())
        except OSError as e:
            logger.warning(f"Cannot read {path}: {e}")
    changes = ChangeTracker.partition(previous, current)

    status.update({
        "store": stats,
        "chunk_map_entries": chunk_map_entries,
        "tracked_files": len(previous),
        "pending_changes": {
            "added": len(changes.added),
            "modified": len(changes.modified),
            "deleted": len(changes.deleted),
        },
        "up_to_date": not changes.has_changes,
        "consistent": stats["count"] == chunk_map_entries == manifest.total_chunks,
    })
    return status


def run_index(target_path: PathLike, **kwargs) -> IndexRunResult:
    """Synchronous wrapper for index_directory."""
    return asyncio.run(index_directory(target_path, **kwargs))


def run_query(target_path: PathLike, text: str, **kwargs) -> Dict[str, Any]:
    """Synchronous wrapper for query_index."""
    return asyncio.run(query_index(target_path, text, **kwargs))


def run_status(target_path: PathLike, **kwargs) -> Dict[str, Any]:
    """Synchronous wrapper for index_status."""
    return asyncio.run(index_status(target_path, **kwargs))
