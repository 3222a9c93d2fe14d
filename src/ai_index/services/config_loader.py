"""
Configuration Loader Service

Builds an ``IndexConfig`` from defaults, config files and environment
variables. Environment variables always take precedence over config file
values. The resulting object is passed explicitly into the embedder, vector
store and pipeline constructors; nothing is written back to os.environ.

Config file locations (later wins):
1. ~/.ai-index/config.json (user-wide)
2. <project root>/ai_index.json (per project)

Supported settings (JSON key -> environment variable):
{
    "embedding_provider": "local",            // -> AI_INDEX_EMBEDDING_PROVIDER
    "embedding_model": "sentence-transformers/all-MiniLM-L6-v2",  // -> AI_INDEX_EMBEDDING_MODEL
    "embedding_dim": 384,                     // -> AI_INDEX_EMBEDDING_DIM
    "require_embeddings": true,               // -> AI_INDEX_REQUIRE_EMBEDDINGS
    "data_dir": "~/.ai-index/data",           // -> AI_INDEX_DATA_DIR
    "batch_size": 50,                         // -> AI_INDEX_BATCH_SIZE
    "code_chunk_lines": 30,                   // -> AI_INDEX_CODE_CHUNK_LINES
    "docs_chunk_lines": 50,                   // -> AI_INDEX_DOCS_CHUNK_LINES
    "chunk_overlap": 5,                       // -> AI_INDEX_CHUNK_OVERLAP
    "vector_weight": 0.7,                     // -> AI_INDEX_VECTOR_WEIGHT
    "lexical_weight": 0.3                     // -> AI_INDEX_LEXICAL_WEIGHT
}
"""

import json
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..logging_config import configure_logger

logger = configure_logger(__name__)


DEFAULT_INCLUDE_PATTERNS: Tuple[str, ...] = (
    "**/*.js", "**/*.mjs", "**/*.jsx", "**/*.ts", "**/*.tsx",
    "**/*.json", "**/*.yml", "**/*.yaml",
    "**/*.md",
    "**/*.py", "**/*.go", "**/*.java", "**/*.scala", "**/*.rs",
    "**/*.cpp", "**/*.c", "**/*.h",
    "**/*.tf", "**/Dockerfile",
    "**/*.sql", "**/*.sh", "**/*.bash",
)

DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    "**/node_modules/**",
    "**/dist/**",
    "**/build/**",
    "**/.git/**",
    "**/.ai_index/**",
    "**/__pycache__/**",
    "**/.venv/**",
    "**/venv/**",
    "**/*.min.js",
    "**/package-lock.json",
    "**/yarn.lock",
    "**/pnpm-lock.yaml",
    "**/public/fonts/**",
    "**/public/icons/**",
    "**/public/flags/**",
)

# Ordered (area, substrings) rules; first match wins
DEFAULT_AREA_RULES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("backend", ("/app/api/", "/app/models/", "/app/helpers/", "/app/jobs/",
                 "/app/worker", "/app/server")),
    ("frontend", ("/app/components/", "/app/pages/", "/app/data/", "/app/public/")),
    ("infra", ("/terraform/", "/k8s/", "/docker", "Dockerfile")),
    ("docs", ("/docs/", "README", "DOCUMENTATION")),
)


@dataclass(frozen=True)
class IndexConfig:
    """
    Explicit configuration for one indexing or query invocation.

    Attributes:
        embedding_provider: "local", "openai", "lightweight" or "none"
        embedding_model: Model identifier for the selected provider
        embedding_dim: Vector dimension (used when the provider cannot report one)
        require_embeddings: Abort indexing when the embedder is unavailable
        data_dir: Root directory for per-project vector data
        state_dir_name: Per-root directory holding hash store, chunk map and manifest
    """
    # Embedder
    embedding_provider: str = "local"
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_dim: int = 384
    embedding_cache_size: int = 1000
    embedding_cache_dir: Optional[str] = None
    api_key: Optional[str] = None
    api_base_url: Optional[str] = None
    require_embeddings: bool = True

    # Storage
    data_dir: str = "~/.ai-index/data"
    state_dir_name: str = ".ai_index"

    # Discovery
    include_patterns: Tuple[str, ...] = DEFAULT_INCLUDE_PATTERNS
    exclude_patterns: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    max_file_bytes: int = 1_000_000

    # Chunking
    code_chunk_lines: int = 30
    docs_chunk_lines: int = 50
    chunk_overlap: int = 5
    min_chunk_chars: int = 50
    area_rules: Tuple[Tuple[str, Tuple[str, ...]], ...] = DEFAULT_AREA_RULES

    # Indexing
    batch_size: int = 50

    # Retrieval
    vector_weight: float = 0.7
    lexical_weight: float = 0.3
    lexical_only_weight: float = 1.0
    snippets_per_file: int = 3
    default_k: int = 10

    @property
    def resolved_data_dir(self) -> Path:
        """Data directory with ``~`` expanded."""
        return Path(self.data_dir).expanduser()

    def with_overrides(self, **overrides: Any) -> "IndexConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict (api_key is redacted)."""
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "api_key" and value:
                value = "***"
            elif isinstance(value, tuple):
                value = [list(v) if isinstance(v, tuple) else v for v in value]
            result[f.name] = value
        return result


class ConfigLoader:
    """
    Loads configuration from JSON files and environment variables.

    Priority: Environment variables > project file > user file > defaults
    """

    PROJECT_CONFIG_NAME = "ai_index.json"

    # Mapping from config keys to environment variable names
    CONFIG_KEY_TO_ENV = {
        "embedding_provider": "AI_INDEX_EMBEDDING_PROVIDER",
        "embedding_model": "AI_INDEX_EMBEDDING_MODEL",
        "embedding_dim": "AI_INDEX_EMBEDDING_DIM",
        "embedding_cache_size": "AI_INDEX_EMBEDDING_CACHE_SIZE",
        "embedding_cache_dir": "AI_INDEX_MODEL_CACHE_DIR",
        "api_key": "OPENAI_API_KEY",
        "api_base_url": "AI_INDEX_API_BASE_URL",
        "require_embeddings": "AI_INDEX_REQUIRE_EMBEDDINGS",
        "data_dir": "AI_INDEX_DATA_DIR",
        "include_patterns": "AI_INDEX_INCLUDE",
        "exclude_patterns": "AI_INDEX_EXCLUDE",
        "max_file_bytes": "AI_INDEX_MAX_FILE_BYTES",
        "code_chunk_lines": "AI_INDEX_CODE_CHUNK_LINES",
        "docs_chunk_lines": "AI_INDEX_DOCS_CHUNK_LINES",
        "chunk_overlap": "AI_INDEX_CHUNK_OVERLAP",
        "min_chunk_chars": "AI_INDEX_MIN_CHUNK_CHARS",
        "batch_size": "AI_INDEX_BATCH_SIZE",
        "vector_weight": "AI_INDEX_VECTOR_WEIGHT",
        "lexical_weight": "AI_INDEX_LEXICAL_WEIGHT",
        "snippets_per_file": "AI_INDEX_SNIPPETS_PER_FILE",
    }

    def __init__(self, user_config_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None):
        """
        Initialize the loader.

        Args:
            user_config_path: Override for the user-wide config file
            environ: Environment mapping to read (defaults to os.environ)
        """
        self._user_config_path = user_config_path or (Path.home() / ".ai-index" / "config.json")
        self._environ = os.environ if environ is None else environ
        self._loaded_paths: List[Path] = []

    @property
    def loaded_paths(self) -> List[Path]:
        """Config files that were found and parsed by the last load()."""
        return list(self._loaded_paths)

    def load(self, project_root: Optional[Path] = None) -> IndexConfig:
        """
        Build the effective configuration.

        Args:
            project_root: Project root directory; its ai_index.json is applied
                on top of the user config when present.

        Returns:
            Effective IndexConfig
        """
        self._loaded_paths = []
        values: Dict[str, Any] = {}

        values.update(self._read_json(self._user_config_path))
        if project_root is not None:
            values.update(self._read_json(Path(project_root) / self.PROJECT_CONFIG_NAME))

        known = {f.name: f for f in fields(IndexConfig)}
        defaults = IndexConfig()
        overrides: Dict[str, Any] = {}

        for key, raw in values.items():
            if key not in known:
                logger.debug(f"Ignoring unknown config key: {key}")
                continue
            try:
                overrides[key] = self._coerce(raw, getattr(defaults, key))
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring invalid value for {key}: {raw!r} ({e})")

        for key, env_var in self.CONFIG_KEY_TO_ENV.items():
            env_value = self._environ.get(env_var)
            if env_value is None or env_value == "":
                continue
            overrides[key] = self._coerce_env(env_value, getattr(defaults, key))

        return replace(defaults, **overrides)

    def _read_json(self, path: Path) -> Dict[str, Any]:
        """Read a JSON config file, returning {} when missing or invalid."""
        if not path.exists():
            return {}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in {path}: {e}")
            return {}
        except OSError as e:
            logger.warning(f"Error loading {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {path}: top-level value must be an object")
            return {}

        self._loaded_paths.append(path)
        logger.info(f"Loaded config from: {path}")
        return data

    @staticmethod
    def _coerce(value: Any, default: Any) -> Any:
        """
        Coerce a JSON value to the type of the default.

        Raises:
            ValueError, TypeError: If the value cannot be converted
        """
        if isinstance(default, tuple):
            if isinstance(value, str):
                return tuple(v.strip() for v in value.split(",") if v.strip())
            return tuple(
                (item[0], tuple(item[1])) if isinstance(item, list) and len(item) == 2 and isinstance(item[1], list)
                else item
                for item in value
            )
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.lower() in ('true', '1', 'yes')
            return bool(value)
        if isinstance(default, int) and not isinstance(value, bool):
            return int(value)
        if isinstance(default, float):
            return float(value)
        return value

    @staticmethod
    def _coerce_env(value: str, default: Any) -> Any:
        """Convert an environment string to the type of the default."""
        if isinstance(default, bool):
            return value.lower() in ('true', '1', 'yes')
        if isinstance(default, int):
            try:
                return int(value)
            except ValueError:
                return default
        if isinstance(default, float):
            try:
                return float(value)
            except ValueError:
                return default
        if isinstance(default, tuple):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        return value


def load_config(project_root: Optional[Path] = None) -> IndexConfig:
    """
    Load the effective configuration for a project.

    Args:
        project_root: Project root directory, or None for user/env settings only

    Returns:
        Effective IndexConfig
    """
    return ConfigLoader().load(project_root)
