"""
Shared pytest fixtures for ai-index tests.

Provides temporary projects and explicit configurations that never touch
the user's home directory or download embedding models.
"""

import os

# Disable the debug trace log file before ai_index is imported
os.environ["AI_INDEX_DEBUG_LOG"] = ""

import pytest

from ai_index.services.config_loader import IndexConfig


try:
    import faiss  # noqa: F401
    FAISS_AVAILABLE = True
except ImportError:
    FAISS_AVAILABLE = False


def code_lines(count: int, prefix: str = "value") -> str:
    """Source text with ``count`` distinct, non-trivial lines."""
    return "".join(
        f"const {prefix}_{i} = computeSomething('{prefix}', {i});\n" for i in range(count)
    )


def doc_lines(count: int, topic: str = "project") -> str:
    """Markdown text with ``count`` distinct lines."""
    return "".join(
        f"Line {i} of the notes describing the {topic} in some detail.\n" for i in range(count)
    )


@pytest.fixture(autouse=True)
def isolated_home(tmp_path_factory, monkeypatch):
    """Point HOME at a temp dir and clear AI_INDEX_* overrides."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setenv("HOME", str(home))
    for key in list(os.environ):
        if key.startswith("AI_INDEX_") and key != "AI_INDEX_DEBUG_LOG":
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    yield home


@pytest.fixture
def data_dir(tmp_path):
    """Directory for vector data."""
    path = tmp_path / "vector-data"
    path.mkdir()
    return path


@pytest.fixture
def config(data_dir):
    """Config with deterministic hash-based embeddings."""
    return IndexConfig(
        embedding_provider="lightweight",
        embedding_dim=64,
        data_dir=str(data_dir),
    )


@pytest.fixture
def lexical_config(data_dir):
    """Config for a lexical-only deployment (no embedder)."""
    return IndexConfig(
        embedding_provider="none",
        embedding_dim=64,
        require_embeddings=False,
        data_dir=str(data_dir),
    )


@pytest.fixture
def project(tmp_path):
    """
    Project for the basic incremental scenario.

    a.js has 40 lines (two code chunks), b.md has 10 lines (one docs chunk).
    """
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.js").write_text(code_lines(40))
    (root / "b.md").write_text(doc_lines(10))
    return root


@pytest.fixture
def search_project(tmp_path):
    """Project with backend, frontend and docs files for retrieval tests."""
    root = tmp_path / "search-project"
    (root / "app" / "api").mkdir(parents=True)
    (root / "app" / "components").mkdir(parents=True)
    (root / "docs").mkdir()

    (root / "app" / "api" / "auth.js").write_text(
        "// This module contains the authentication logic for user sessions.\n"
        "export function login(user, password) {\n"
        "  return verifyPassword(user, password);\n"
        "}\n"
    )
    (root / "app" / "api" / "billing.js").write_text(
        "// Billing logic lives here, separate from the authentication checks.\n"
        "export function charge(account, amount) {\n"
        "  return gateway.charge(account, amount);\n"
        "}\n"
    )
    (root / "app" / "components" / "Header.jsx").write_text(
        "export function Header() {\n"
        "  return <header className='site-header'>Welcome back</header>;\n"
        "}\n"
    )
    (root / "docs" / "security.md").write_text(
        "# Security\n"
        "\n"
        "Users sign in through the authentication service described below.\n"
        "Tokens expire after one hour.\n"
    )
    return root
