"""
ai-index - incremental code indexing and hybrid retrieval

Indexes a source tree into line-window chunks with vector embeddings and
answers natural-language queries with file-level results that blend vector
similarity and lexical matching.
"""

# Suppress SWIG deprecation warnings from FAISS before any imports
# (FAISS uses SWIG bindings that trigger Python 3.12+ deprecation warnings)
import warnings
warnings.filterwarnings("ignore", message="builtin type Swig", category=DeprecationWarning)
warnings.filterwarnings("ignore", message="builtin type swig", category=DeprecationWarning)

__version__ = "0.1.0"

from .index_exceptions import (
    AiIndexError,
    EmbeddingUnavailableError,
    IndexCorruptError,
    IndexNotBuiltError,
    QueryRequiredError,
    TargetNotFoundError,
    VectorStoreError,
)
from .operations import (
    index_directory,
    index_status,
    query_index,
    run_index,
    run_query,
    run_status,
)
from .services.config_loader import IndexConfig, load_config

__all__ = [
    "__version__",
    "index_directory",
    "query_index",
    "index_status",
    "run_index",
    "run_query",
    "run_status",
    "IndexConfig",
    "load_config",
    "AiIndexError",
    "TargetNotFoundError",
    "QueryRequiredError",
    "IndexNotBuiltError",
    "IndexCorruptError",
    "VectorStoreError",
    "EmbeddingUnavailableError",
]
