"""
Embedding generation service.

Manages embedding generation using various providers:
- local: sentence-transformers (default, no API key needed)
- openai: text-embedding-3-small/large or ada-002 (remote)
- lightweight: deterministic hash-based vectors for offline runs and tests
- none: embeddings disabled, every call reports Unavailable

Every embed call returns either a ``Vector`` or an ``Unavailable`` value.
Missing credentials, an unreachable service or a model that cannot be
loaded surface as ``Unavailable`` so that callers decide between aborting
and degrading to lexical-only search.

The provider is selected once from ``IndexConfig.embedding_provider``.
"""

import asyncio
import hashlib
import os
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import numpy as np

from ..logging_config import configure_logger
from .config_loader import IndexConfig

logger = configure_logger(__name__)


@dataclass(frozen=True, eq=False)
class Vector:
    """A unit-normalised float32 embedding."""
    values: np.ndarray

    @property
    def dimension(self) -> int:
        return int(self.values.shape[0])

    def tolist(self) -> List[float]:
        return [float(v) for v in self.values]


@dataclass(frozen=True)
class Unavailable:
    """The embedder could not produce a vector; ``reason`` says why."""
    reason: str


EmbeddingResult = Union[Vector, Unavailable]


def normalize(values: Any) -> np.ndarray:
    """Convert to float32 and scale to unit length (zero vectors stay zero)."""
    embedding = np.asarray(values, dtype=np.float32).reshape(-1)
    norm = np.linalg.norm(embedding)
    if norm > 0:
        embedding = embedding / norm
    return embedding.astype(np.float32)


class EmbeddingService(ABC):
    """
    Base class for embedders with an LRU cache keyed by SHA-256 of the text.

    Attributes:
        model_name: Name of the embedding model
        provider: Provider type ("local", "openai", "lightweight", "none")
        embedding_dim: Dimension of embeddings produced
    """

    provider = "base"

    # Model configurations
    MODEL_CONFIGS: Dict[str, Dict[str, Any]] = {
        # Local models (sentence-transformers)
        "sentence-transformers/all-mpnet-base-v2": {"dim": 768, "provider": "local"},
        "sentence-transformers/all-MiniLM-L6-v2": {"dim": 384, "provider": "local"},
        "all-mpnet-base-v2": {"dim": 768, "provider": "local"},  # Short alias
        "all-MiniLM-L6-v2": {"dim": 384, "provider": "local"},   # Short alias

        # OpenAI models
        "text-embedding-3-small": {"dim": 1536, "provider": "openai"},
        "text-embedding-3-large": {"dim": 3072, "provider": "openai"},
        "text-embedding-ada-002": {"dim": 1536, "provider": "openai"},
    }

    def __init__(self, model_name: str, embedding_dim: int, cache_size: int = 1000):
        """
        Args:
            model_name: Model identifier
            embedding_dim: Expected dimension (providers may correct it on initialize)
            cache_size: Maximum number of embeddings to cache
        """
        self.model_name = model_name
        self.embedding_dim = self.MODEL_CONFIGS.get(model_name, {}).get("dim", embedding_dim)
        self.cache_size = cache_size
        self._embedding_cache: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._initialized = False
        self._unavailable_reason: Optional[str] = None

    @property
    def dimension(self) -> int:
        return self.embedding_dim

    @property
    def is_available(self) -> bool:
        """False once initialization has determined the embedder cannot work."""
        return self._unavailable_reason is None

    async def initialize(self) -> None:
        """Load the model or client once; failures are recorded, not raised."""
        if self._initialized:
            return
        logger.info(f"Initializing embedding service: {self.model_name} ({self.provider})")
        self._unavailable_reason = await self._setup()
        self._initialized = True
        if self._unavailable_reason:
            logger.warning(f"Embedding service unavailable: {self._unavailable_reason}")
        else:
            logger.info(f"Embedding service ready. Dimension: {self.embedding_dim}")

    async def embed(self, text: str) -> EmbeddingResult:
        """
        Embed one text.

        Args:
            text: Text to embed

        Returns:
            Vector on success, Unavailable when the provider cannot serve
            requests. Other provider errors propagate to the caller.
        """
        await self.initialize()
        if self._unavailable_reason:
            return Unavailable(self._unavailable_reason)

        cache_key = self._get_cache_key(text)
        cached = self._cache_get(cache_key)
        if cached is not None:
            return Vector(cached)

        result = await self._embed_uncached(text)
        if isinstance(result, Unavailable):
            return result

        embedding = normalize(result)
        self._cache_put(cache_key, embedding)
        return Vector(embedding.copy())

    @abstractmethod
    async def _setup(self) -> Optional[str]:
        """Prepare the provider. Returns an unavailability reason or None."""

    @abstractmethod
    async def _embed_uncached(self, text: str) -> Union[np.ndarray, Unavailable]:
        """Compute the raw embedding of one text."""

    def _get_cache_key(self, text: str) -> str:
        """SHA-256 of the text; equal texts share one cache slot."""
        return hashlib.sha256(text.encode('utf-8')).hexdigest()

    def _cache_get(self, key: str) -> Optional[np.ndarray]:
        """Copy of a cached vector, marking it most recently used."""
        if key in self._embedding_cache:
            self._embedding_cache.move_to_end(key)
            return self._embedding_cache[key].copy()
        return None

    def _cache_put(self, key: str, embedding: np.ndarray) -> None:
        """Store a copy, evicting the least recently used entry when full."""
        if self.cache_size <= 0:
            return
        if key in self._embedding_cache:
            self._embedding_cache.move_to_end(key)
        else:
            if len(self._embedding_cache) >= self.cache_size:
                self._embedding_cache.popitem(last=False)
            self._embedding_cache[key] = embedding.copy()

    def clear_cache(self) -> None:
        """Clear the embedding cache."""
        self._embedding_cache.clear()
        logger.info("Embedding cache cleared")

    def get_info(self) -> Dict[str, Any]:
        """
        Get service information.

        Returns:
            Dictionary with service statistics
        """
        return {
            'model': self.model_name,
            'provider': self.provider,
            'dimension': self.embedding_dim,
            'initialized': self._initialized,
            'available': self.is_available,
            'unavailable_reason': self._unavailable_reason,
            'cache_size': len(self._embedding_cache),
            'max_cache_size': self.cache_size,
        }


class LocalEmbeddingService(EmbeddingService):
    """sentence-transformers model run in a worker thread."""

    provider = "local"

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        embedding_dim: int = 384,
        cache_size: int = 1000,
        cache_dir: Optional[str] = None,
    ):
        super().__init__(model_name, embedding_dim, cache_size)
        self._cache_dir = cache_dir or os.environ.get('TRANSFORMERS_CACHE')
        self._model = None

    def set_preloaded_model(self, model) -> None:
        """Use an already loaded SentenceTransformer instead of loading one."""
        self._model = model

    def _load_model(self):
        from sentence_transformers import SentenceTransformer

        if self._cache_dir:
            os.makedirs(self._cache_dir, exist_ok=True)

        model_start = time.time()
        model = SentenceTransformer(self.model_name, cache_folder=self._cache_dir)
        logger.info(f"[Embedding] Model '{self.model_name}' loaded in {time.time() - model_start:.2f}s")
        return model

    async def _setup(self) -> Optional[str]:
        if self._model is None:
            try:
                self._model = await asyncio.to_thread(self._load_model)
            except (OSError, RuntimeError, ValueError) as e:
                return f"could not load model '{self.model_name}': {e}"

        # Get actual dimension from model
        test_emb = await asyncio.to_thread(self._model.encode, "test", convert_to_numpy=True)
        self.embedding_dim = len(test_emb)
        return None

    async def _embed_uncached(self, text: str) -> np.ndarray:
        return await asyncio.to_thread(
            self._model.encode, text, convert_to_numpy=True, normalize_embeddings=True
        )


class OpenAIEmbeddingService(EmbeddingService):
    """Remote embeddings through the OpenAI SDK (imported lazily)."""

    provider = "openai"

    def __init__(
        self,
        model_name: str = "text-embedding-3-small",
        embedding_dim: int = 1536,
        cache_size: int = 1000,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        super().__init__(model_name, embedding_dim, cache_size)
        self._api_key = api_key
        self._base_url = base_url
        self._client = None
        self._openai = None

    async def _setup(self) -> Optional[str]:
        try:
            # Import lazily
            import openai
        except ImportError:
            return "openai package is not installed (pip install 'ai-index[remote]')"

        api_key = self._api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            return "OPENAI_API_KEY required for OpenAI embeddings"

        self._openai = openai
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=self._base_url)
        return None

    async def _embed_uncached(self, text: str) -> Union[np.ndarray, Unavailable]:
        openai = self._openai
        try:
            response = await self._client.embeddings.create(model=self.model_name, input=text)
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            # Credentials will not start working mid-run
            self._unavailable_reason = f"OpenAI rejected credentials: {e}"
            return Unavailable(self._unavailable_reason)
        except openai.APIConnectionError as e:
            return Unavailable(f"OpenAI unreachable: {e}")

        return np.array(response.data[0].embedding, dtype=np.float32)


class LightweightEmbeddingService(EmbeddingService):
    """
    Deterministic SHA-256 derived vectors.

    Identical text always maps to the same vector and unrelated texts land
    close to orthogonal. There is no semantic signal; use it for offline
    runs and tests, never for real retrieval quality.
    """

    provider = "lightweight"

    def __init__(self, embedding_dim: int = 384, cache_size: int = 1000):
        super().__init__("lightweight-test", embedding_dim, cache_size)

    async def _setup(self) -> Optional[str]:
        return None

    async def _embed_uncached(self, text: str) -> np.ndarray:
        seed = hashlib.sha256(text.encode('utf-8')).digest()
        stream = bytearray(seed)
        counter = 0
        while len(stream) < self.embedding_dim:
            counter += 1
            stream.extend(hashlib.sha256(seed + counter.to_bytes(4, 'little')).digest())

        # Byte values centred on zero
        raw = np.frombuffer(bytes(stream[:self.embedding_dim]), dtype=np.uint8)
        return raw.astype(np.float32) / 255.0 - 0.5


class DisabledEmbeddingService(EmbeddingService):
    """Embedder for lexical-only deployments: always Unavailable."""

    provider = "none"

    def __init__(self, embedding_dim: int = 384):
        super().__init__("none", embedding_dim, cache_size=0)

    async def _setup(self) -> Optional[str]:
        return "embeddings disabled (embedding_provider = none)"

    async def _embed_uncached(self, text: str) -> Unavailable:
        return Unavailable("embeddings disabled")


def create_embedding_service(config: IndexConfig) -> EmbeddingService:
    """
    Factory function to build the embedding service for a configuration.

    Args:
        config: Effective configuration

    Returns:
        EmbeddingService for ``config.embedding_provider``

    Raises:
        ValueError: If the provider name is unknown
    """
    provider = config.embedding_provider.lower()

    if provider == "local":
        return LocalEmbeddingService(
            model_name=config.embedding_model,
            embedding_dim=config.embedding_dim,
            cache_size=config.embedding_cache_size,
            cache_dir=config.embedding_cache_dir,
        )
    if provider == "openai":
        model_name = config.embedding_model
        if EmbeddingService.MODEL_CONFIGS.get(model_name, {}).get("provider") != "openai":
            model_name = "text-embedding-3-small"
        return OpenAIEmbeddingService(
            model_name=model_name,
            embedding_dim=config.embedding_dim,
            cache_size=config.embedding_cache_size,
            api_key=config.api_key,
            base_url=config.api_base_url,
        )
    if provider == "lightweight":
        logger.warning("Using lightweight embedding service (testing only)")
        return LightweightEmbeddingService(
            embedding_dim=config.embedding_dim,
            cache_size=config.embedding_cache_size,
        )
    if provider == "none":
        return DisabledEmbeddingService(embedding_dim=config.embedding_dim)

    raise ValueError(f"Unknown embedding provider: {config.embedding_provider}")
