"""
Indexing Pipeline

Brings the vector store, chunk map, hash store and manifest of one project
root up to date with the files on disk.

Sequence of a run:
1. Discover files and hash their bytes
2. Partition against the previous hash store (unchanged / to process / deleted)
3. For each file to process: delete its old chunks, chunk, embed, stage
4. Flush staged records to the store in bounded batches
5. Delete the chunks of files that disappeared
6. Persist the store, chunk map, hash store and manifest

Nothing on disk changes before step 6, so an aborted run leaves the
previous index intact.
"""

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..index_exceptions import AiIndexError, EmbeddingUnavailableError
from ..logging_config import configure_logger
from .chunker import Chunker
from .config_loader import IndexConfig
from .console_progress import IndexProgress
from .embedding_service import EmbeddingService, Unavailable
from .file_discovery import FileDiscovery
from .index_persistence import ChunkMapStore, IndexLayout, ManifestStore, revision_marker
from .rag_types import ChunkMapEntry, FileRecord, IndexRunResult, Manifest
from .source_state_manager import ChangeTracker, HashStore, content_hash
from .vector_store import VectorRecord, VectorStore

logger = configure_logger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class IndexingPipeline:
    """
    Incremental indexer for one project root.

    Attributes:
        root: Resolved project root
        config: Effective configuration
        layout: Paths of the state directory and vector data
    """

    def __init__(
        self,
        root: Path,
        config: IndexConfig,
        embedder: EmbeddingService,
        store: VectorStore,
        progress: Optional[IndexProgress] = None,
        chunker: Optional[Chunker] = None,
        discovery: Optional[FileDiscovery] = None,
    ):
        self.root = Path(root).resolve()
        self.config = config
        self.layout = IndexLayout.for_root(self.root, config)
        self.embedder = embedder
        self.store = store
        self.progress = progress or IndexProgress()
        self.chunker = chunker or Chunker.from_config(config)
        self.discovery = discovery or FileDiscovery(
            self.root,
            config.include_patterns,
            config.exclude_patterns,
            state_dir_name=config.state_dir_name,
        )
        self.hash_store = HashStore(self.layout.hash_store_path)
        self.chunk_map_store = ChunkMapStore(self.layout.chunk_map_path)
        self.manifest_store = ManifestStore(self.layout.manifest_path)
        self._warned_unavailable = False

    async def run(self, force: bool = False) -> IndexRunResult:
        """
        Execute one indexing pass.

        Args:
            force: Reprocess every file and rebuild the vector store from scratch

        Returns:
            IndexRunResult with counts, touched paths and the new manifest

        Raises:
            EmbeddingUnavailableError: Embeddings are required but unavailable
            VectorStoreError: The store cannot be opened or written
            IndexCorruptError: The previous hash store cannot be parsed
        """
        self.progress.start()
        result = None
        try:
            result = await self._run(force)
            return result
        finally:
            self.progress.stop(success=result is not None, result=result)

    async def _run(self, force: bool) -> IndexRunResult:
        start_time = time.time()
        result = IndexRunResult(index_key=self.layout.index_key)

        # Discover and hash
        self.progress.start_scan(str(self.root))
        paths = self.discovery.discover()
        current, unreadable, skipped = self._hash_files(paths)
        self.progress.end_scan(len(paths))

        previous = self.hash_store.load()
        changes = ChangeTracker.partition(previous, current, force=force)
        # Files that exist but could not be read are not treated as deleted
        deleted = [p for p in changes.deleted if p not in unreadable]

        result.total_files = len(paths)
        result.unchanged_files = len(changes.unchanged)
        result.skipped = skipped
        result.failed = list(unreadable)

        logger.info(
            f"Index {self.layout.index_key}: {len(paths)} files, "
            f"{len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.unchanged)} unchanged, {len(deleted)} deleted"
            + (" (force)" if force else "")
        )

        # Embedder and store
        self.progress.start_embedding_loading(self.embedder.model_name)
        await self.embedder.initialize()
        self.progress.end_embedding_loading()
        await self.store.open(dimension=self.embedder.dimension, reset=force)

        new_hashes: Dict[str, str] = {p: previous[p] for p in changes.unchanged}

        # Chunk, embed, stage
        staged: List[VectorRecord] = []
        total = len(changes.to_process)
        self.progress.start_file_processing(total)
        for i, path in enumerate(changes.to_process, 1):
            self.progress.update_file_progress(i, total, path)
            await self.store.delete_by_file(path)
            try:
                records, digest = await self._prepare_file(path)
            except AiIndexError:
                raise
            except Exception as e:
                logger.warning(f"Failed to index {path}: {e}")
                result.failed.append(path)
                continue

            staged.extend(records)
            new_hashes[path] = digest
            result.processed.append(path)
            result.files.append(FileRecord(path=path, content_hash=digest, indexed_at=_utc_now()))
            result.chunks_indexed += len(records)

            if len(staged) >= self.config.batch_size:
                staged = await self._flush(staged)
        self.progress.end_file_processing()

        await self._flush(staged, final=True)

        # Sweep files that disappeared
        for path in deleted:
            removed = await self.store.delete_by_file(path)
            logger.debug(f"Removed {removed} chunks of deleted file {path}")
        result.deleted = deleted

        # Persist: store, chunk map, hash store, manifest
        if force or changes.has_changes or not self.store.exists():
            await self.store.persist()

        all_records = await self.store.list_all()
        entries = [self._entry_for(record) for record in all_records]
        entries.sort(key=lambda e: (e.file, e.start))
        self.chunk_map_store.save(entries)

        self.hash_store.save(new_hashes)

        result.total_chunks = self.store.stats()["count"]
        manifest = Manifest(
            mode="full" if force or not previous else "incremental",
            index_key=self.layout.index_key,
            root=str(self.root),
            embed_model=self.embedder.model_name,
            dim=self.embedder.dimension,
            last_built_at=_utc_now(),
            total_files=result.total_files,
            processed_files=len(result.processed),
            skipped_files=len(changes.unchanged) + len(result.skipped),
            failed_files=len(result.failed),
            deleted_files=len(result.deleted),
            chunks_indexed=result.chunks_indexed,
            total_chunks=result.total_chunks,
            sha=revision_marker(self.root, new_hashes),
        )
        self.manifest_store.save(manifest)
        result.manifest = manifest
        result.time_ms = int((time.time() - start_time) * 1000)

        logger.info(
            f"Indexed {len(result.processed)} files ({result.chunks_indexed} chunks) "
            f"in {result.time_ms}ms; total chunks {result.total_chunks}"
            + (f"; {len(result.failed)} failed" if result.failed else "")
        )
        return result

    def _hash_files(self, paths: List[str]) -> Tuple[Dict[str, str], List[str], List[str]]:
        """
        Hash every discovered file.

        Returns:
            (path -> digest, unreadable paths, paths skipped for size)
        """
        current: Dict[str, str] = {}
        unreadable: List[str] = []
        skipped: List[str] = []
        for path in paths:
            abs_path = self.root / path
            try:
                size = abs_path.stat().st_size
                if size > self.config.max_file_bytes:
                    logger.warning(
                        f"Skipping {path}: {size} bytes exceeds limit of {self.config.max_file_bytes}"
                    )
                    skipped.append(path)
                    continue
                current[path] = content_hash(abs_path.read_bytes())
            except OSError as e:
                logger.warning(f"Cannot read {path}: {e}")
                unreadable.append(path)
        return current, unreadable, skipped

    async def _prepare_file(self, path: str) -> Tuple[List[VectorRecord], str]:
        """
        Chunk and embed one file.

        Returns:
            (records ready to upsert, content hash of the bytes that were chunked)
        """
        data = (self.root / path).read_bytes()
        digest = content_hash(data)
        text = data.decode("utf-8", errors="replace")

        records = []
        for chunk in self.chunker.chunk(path, text):
            embedding = await self.embedder.embed(chunk.content)
            vector = None
            if isinstance(embedding, Unavailable):
                if self.config.require_embeddings:
                    raise EmbeddingUnavailableError(
                        f"Embedder '{self.embedder.model_name}' unavailable: {embedding.reason}. "
                        f"Set require_embeddings=false to index without vectors."
                    )
                if not self._warned_unavailable:
                    logger.warning(
                        f"Embedder unavailable ({embedding.reason}); storing chunks without vectors"
                    )
                    self._warned_unavailable = True
            else:
                vector = embedding.values
            records.append(VectorRecord(id=chunk.id, vector=vector, metadata=chunk.to_metadata()))
        return records, digest

    async def _flush(self, staged: List[VectorRecord], final: bool = False) -> List[VectorRecord]:
        """
        Write staged records in batches of ``batch_size``.

        Returns:
            Records left staged (a partial batch unless ``final``)
        """
        batch_size = max(1, self.config.batch_size)
        while len(staged) >= batch_size or (final and staged):
            batch, staged = staged[:batch_size], staged[batch_size:]
            await self.store.upsert_many(batch)
            logger.debug(f"Flushed batch of {len(batch)} records")
        return staged

    @staticmethod
    def _entry_for(record: VectorRecord) -> ChunkMapEntry:
        meta = record.metadata
        return ChunkMapEntry(
            chunk_id=record.id,
            file=meta["file"],
            start=int(meta["start_line"]),
            end=int(meta["end_line"]),
            parent_id=meta.get("parent_id") or meta["file"],
            area=meta.get("area", "other"),
        )
