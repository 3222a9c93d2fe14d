"""
ai-index Exception Hierarchy

Contains all exception classes raised by the indexing and retrieval layer.
Each fatal condition carries a stable ``code`` and a non-zero ``exit_code``
so hosts can report a diagnosable failure.
"""


class AiIndexError(Exception):
    """Base exception for all ai-index operations."""

    code = "ai_index_error"
    exit_code = 1

    def to_response(self, **extra) -> dict:
        """Build an error payload for tool responses."""
        response = {
            "success": False,
            "error": str(self),
            "error_type": self.code,
        }
        response.update(extra)
        return response


class TargetNotFoundError(AiIndexError):
    """Raised when the directory to index or query does not exist."""

    code = "target_not_found"
    exit_code = 2


class QueryRequiredError(AiIndexError, ValueError):
    """Raised when a query is empty or whitespace only."""

    code = "query_required"
    exit_code = 2


class IndexNotBuiltError(AiIndexError):
    """
    Raised when querying a directory that has never been indexed.

    Distinct from an empty result: the manifest or vector data is missing,
    so the caller should run an index pass first.
    """

    code = "index_not_built"
    exit_code = 3


class IndexCorruptError(AiIndexError):
    """Raised when a persisted hash store, chunk map or record file cannot be parsed."""

    code = "index_corrupt"
    exit_code = 4


class VectorStoreError(AiIndexError):
    """Raised when the vector store cannot be opened, read or written."""

    code = "vector_store_error"
    exit_code = 5


class EmbeddingUnavailableError(AiIndexError):
    """Raised when embeddings are mandatory but the embedder is unavailable."""

    code = "embedding_unavailable"
    exit_code = 6


__all__ = [
    "AiIndexError",
    "TargetNotFoundError",
    "QueryRequiredError",
    "IndexNotBuiltError",
    "IndexCorruptError",
    "VectorStoreError",
    "EmbeddingUnavailableError",
]
