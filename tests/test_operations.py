"""
Tests for the operations facade and the MCP tool handlers.
"""

import asyncio

import pytest

from ai_index.index_exceptions import (
    AiIndexError,
    IndexNotBuiltError,
    QueryRequiredError,
    TargetNotFoundError,
)
from ai_index.operations import (
    index_directory,
    index_status,
    resolve_target,
    run_index,
    run_query,
    run_status,
)

from conftest import FAISS_AVAILABLE, code_lines

needs_faiss = pytest.mark.skipif(not FAISS_AVAILABLE, reason="faiss-cpu not installed")


class TestResolveTarget:

    def test_existing_directory(self, tmp_path):
        assert resolve_target(str(tmp_path)) == tmp_path.resolve()

    @pytest.mark.parametrize("target", ["", "   ", None])
    def test_blank(self, target):
        with pytest.raises(TargetNotFoundError):
            resolve_target(target)

    def test_missing(self, tmp_path):
        with pytest.raises(TargetNotFoundError):
            resolve_target(tmp_path / "nope")

    def test_file_is_not_a_target(self, tmp_path):
        path = tmp_path / "a.js"
        path.write_text("x")
        with pytest.raises(TargetNotFoundError):
            resolve_target(path)


class TestExceptions:

    @pytest.mark.parametrize("exc,code,exit_code", [
        (TargetNotFoundError, "target_not_found", 2),
        (QueryRequiredError, "query_required", 2),
        (IndexNotBuiltError, "index_not_built", 3),
    ])
    def test_codes(self, exc, code, exit_code):
        error = exc("boom")
        assert isinstance(error, AiIndexError)
        assert error.code == code
        assert error.exit_code == exit_code

    def test_to_response(self):
        response = TargetNotFoundError("missing dir").to_response(results=[])
        assert response == {
            "success": False,
            "error": "missing dir",
            "error_type": "target_not_found",
            "results": [],
        }

    def test_query_required_is_value_error(self):
        assert isinstance(QueryRequiredError("x"), ValueError)


@needs_faiss
class TestOperations:
    """End-to-end through the facade with an explicit config."""

    def test_index_then_query(self, search_project, config):
        result = run_index(search_project, config=config)
        response = run_query(search_project, "authentication logic", config=config)

        assert result.total_chunks == 4
        assert response["search_mode"] == "hybrid"
        assert "app/api/auth.js" in [f["path"] for f in response["files"]]

    def test_async_entry_points(self, project, config):
        result = asyncio.run(index_directory(str(project), config=config))
        status = asyncio.run(index_status(str(project), config=config))

        assert result.total_chunks == 3
        assert status["indexed"] is True

    def test_index_missing_target(self, tmp_path, config):
        with pytest.raises(TargetNotFoundError):
            run_index(tmp_path / "missing", config=config)

    def test_query_before_index(self, project, config):
        with pytest.raises(IndexNotBuiltError):
            run_query(project, "anything", config=config)

    def test_config_loaded_from_environment(self, project, data_dir, monkeypatch):
        monkeypatch.setenv("AI_INDEX_EMBEDDING_PROVIDER", "lightweight")
        monkeypatch.setenv("AI_INDEX_EMBEDDING_DIM", "32")
        monkeypatch.setenv("AI_INDEX_DATA_DIR", str(data_dir))

        result = run_index(project)

        assert result.manifest.dim == 32
        assert result.manifest.embed_model == "lightweight-test"


@needs_faiss
class TestIndexStatus:

    def test_not_indexed(self, project, config):
        status = run_status(project, config=config)

        assert status["indexed"] is False
        assert status["manifest"] is None
        assert status["state_dir"].endswith(".ai_index")

    def test_up_to_date_and_consistent(self, project, config):
        run_index(project, config=config)
        status = run_status(project, config=config)

        assert status["indexed"] is True
        assert status["up_to_date"] is True
        assert status["consistent"] is True
        assert status["tracked_files"] == 2
        assert status["chunk_map_entries"] == 3
        assert status["store"]["count"] == 3
        assert status["manifest"]["total_chunks"] == 3

    def test_pending_changes(self, project, config):
        run_index(project, config=config)
        (project / "b.md").unlink()
        (project / "a.js").write_text(code_lines(12, prefix="edited"))
        (project / "c.py").write_text(code_lines(6, prefix="added"))

        status = run_status(project, config=config)

        assert status["up_to_date"] is False
        assert status["pending_changes"] == {"added": 1, "modified": 1, "deleted": 1}


@needs_faiss
class TestMcpHandlers:
    """Tool handlers return success payloads or structured errors."""

    @pytest.fixture(autouse=True)
    def lightweight_env(self, data_dir, monkeypatch):
        monkeypatch.setenv("AI_INDEX_EMBEDDING_PROVIDER", "lightweight")
        monkeypatch.setenv("AI_INDEX_EMBEDDING_DIM", "64")
        monkeypatch.setenv("AI_INDEX_DATA_DIR", str(data_dir))

    def test_index_codebase(self, project):
        from ai_index.mcp_server import handle_index_codebase

        response = asyncio.run(handle_index_codebase(str(project)))

        assert response["success"] is True
        assert response["processed_files"] == 2
        assert response["total_chunks"] == 3
        assert response["sha"].startswith("local-")

    def test_index_codebase_missing_target(self, tmp_path):
        from ai_index.mcp_server import handle_index_codebase

        response = asyncio.run(handle_index_codebase(str(tmp_path / "missing")))

        assert response["success"] is False
        assert response["error_type"] == "target_not_found"

    def test_search_code(self, search_project):
        from ai_index.mcp_server import handle_index_codebase, handle_search_code

        asyncio.run(handle_index_codebase(str(search_project)))
        response = asyncio.run(handle_search_code(str(search_project), "authentication logic", compact=True))

        assert response["success"] is True
        assert "app/api/auth.js" in [r["path"] for r in response["results"]]

    def test_search_code_empty_query(self, search_project):
        from ai_index.mcp_server import handle_search_code

        response = asyncio.run(handle_search_code(str(search_project), "  "))

        assert response["success"] is False
        assert response["error_type"] == "query_required"
        assert response["results"] == []

    def test_search_code_not_indexed(self, search_project):
        from ai_index.mcp_server import handle_search_code

        response = asyncio.run(handle_search_code(str(search_project), "login"))

        assert response["error_type"] == "index_not_built"

    def test_search_code_invalid_k(self, search_project):
        from ai_index.mcp_server import handle_search_code

        response = asyncio.run(handle_search_code(str(search_project), "login", k=0))

        assert response["success"] is False
        assert response["error_type"] == "invalid_argument"

    def test_index_status(self, project):
        from ai_index.mcp_server import handle_index_codebase, handle_index_status

        asyncio.run(handle_index_codebase(str(project)))
        response = asyncio.run(handle_index_status(str(project)))

        assert response["success"] is True
        assert response["up_to_date"] is True

    def test_create_app(self):
        from ai_index.mcp_server import create_app

        assert create_app().name == "ai-index"
