"""
ai-index MCP Server

Exposes incremental indexing and hybrid code search as MCP tools:

- index_codebase: index or re-index a directory
- search_code: natural-language search over an indexed directory
- index_status: manifest, statistics and pending changes of an index
"""

import sys
from typing import Any, Dict, Optional

from fastmcp import FastMCP

from .index_exceptions import AiIndexError
from .logging_config import configure_logger
from .operations import index_directory, index_status, query_index

logger = configure_logger(__name__)


async def handle_index_codebase(path: str, force: bool = False) -> Dict[str, Any]:
    """
    Index a codebase for search. Only files whose content changed since
    the last run are chunked and embedded again.

    Args:
        path: Directory to index
        force: Re-embed every file and rebuild the vector store

    Returns:
        {
            "success": True,
            "index_key": "my-app-1a2b3c4d",
            "processed_files": 3,
            "unchanged_files": 120,
            "deleted_files": 0,
            "failed_files": 0,
            "chunks_indexed": 14,
            "total_chunks": 812,
            "sha": "local-9f86d081884c",
            ...
        }
    """
    try:
        result = await index_directory(path, force=force)
    except AiIndexError as e:
        logger.error(f"index_codebase failed for {path}: {e}")
        return e.to_response()

    response = {"success": True}
    response.update(result.to_dict())
    if result.manifest is not None:
        response["sha"] = result.manifest.sha
    return response


async def handle_search_code(
    path: str,
    query: str,
    k: Optional[int] = None,
    area: Optional[str] = None,
    min_score: Optional[float] = None,
    compact: bool = False,
) -> Dict[str, Any]:
    """
    Search an indexed codebase with natural language.

    Combines vector similarity with lexical matching and returns files
    ranked by their best matching chunk, each with up to three line ranges.

    Args:
        path: Directory that was indexed with index_codebase
        query: What to look for (e.g., "authentication logic")
        k: Maximum number of files (default: default_k from config)
        area: Restrict to "backend", "frontend", "infra", "docs" or "other"
        min_score: Drop files scoring below this value
        compact: Return only paths and "start-end" ranges

    Returns:
        {"success": True, "query": ..., "files": [{"path", "score", "snippets": [...]}], ...}

    Examples:
        - search_code("/work/app", "authentication logic")
        - search_code("/work/app", "terraform state bucket", area="infra", compact=True)
    """
    try:
        result = await query_index(
            path, query, k=k, area=area, min_score=min_score, compact=compact
        )
    except AiIndexError as e:
        return e.to_response(results=[])
    except ValueError as e:
        return {"success": False, "error": str(e), "error_type": "invalid_argument", "results": []}

    response = {"success": True}
    response.update(result)
    return response


async def handle_index_status(path: str) -> Dict[str, Any]:
    """
    Show the state of a directory's index: manifest, vector count, chunk
    map size and how many files changed since the last run.

    Args:
        path: Directory to inspect
    """
    try:
        status = await index_status(path)
    except AiIndexError as e:
        return e.to_response()

    response = {"success": True}
    response.update(status)
    return response


def create_app() -> FastMCP:
    """Create the FastMCP app with all tools registered."""
    app = FastMCP("ai-index")
    app.tool(name="index_codebase")(handle_index_codebase)
    app.tool(name="search_code")(handle_search_code)
    app.tool(name="index_status")(handle_index_status)
    return app


def _print_setup_instructions():
    """Print setup instructions when run directly from terminal."""
    print("""
ai-index - incremental code indexing and hybrid search MCP server

  Start the server (used by MCP hosts):
    ai-index-mcp --stdio

  Add to an MCP host config:
    {
      "mcpServers": {
        "ai-index": {"command": "ai-index-mcp", "args": ["--stdio"]}
      }
    }

  Configuration:
    ~/.ai-index/config.json      user-wide settings
    <project>/ai_index.json      per-project settings
    AI_INDEX_* env variables     override both
""")


def main():
    """Main entry point.

    When run from a terminal, prints setup instructions.
    When run with --stdio (by an MCP host), starts the MCP server.
    """
    if "--stdio" in sys.argv:
        logger.info("Starting ai-index MCP server (stdio)")
        app = create_app()
        app.run()
    else:
        _print_setup_instructions()


if __name__ == "__main__":
    main()
