"""
Service classes for ai-index

Each module covers one concern of the indexing and retrieval pipeline:
hashing and change tracking, chunking, embedding, vector storage,
persistence of the chunk map and manifest, and hybrid retrieval.
"""

from .config_loader import ConfigLoader, IndexConfig, load_config
from .chunker import Chunker, ChunkingPreset, CODE_PRESET, DOCS_PRESET
from .source_state_manager import ChangeTracker, HashStore, SyncChanges, content_hash
from .embedding_service import (
    EmbeddingResult,
    EmbeddingService,
    Unavailable,
    Vector,
    create_embedding_service,
)
from .vector_store import FaissVectorStore, VectorHit, VectorRecord, VectorStore, create_vector_store
from .indexing_pipeline import IndexingPipeline
from .hybrid_retriever import HybridRetriever
from .lexical_scorer import LexicalScorer

__all__ = [
    "ConfigLoader",
    "IndexConfig",
    "load_config",
    "Chunker",
    "ChunkingPreset",
    "CODE_PRESET",
    "DOCS_PRESET",
    "ChangeTracker",
    "HashStore",
    "SyncChanges",
    "content_hash",
    "EmbeddingResult",
    "EmbeddingService",
    "Unavailable",
    "Vector",
    "create_embedding_service",
    "FaissVectorStore",
    "VectorHit",
    "VectorRecord",
    "VectorStore",
    "create_vector_store",
    "IndexingPipeline",
    "HybridRetriever",
    "LexicalScorer",
]
