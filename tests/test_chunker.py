"""
Tests for the line-window chunker.

Tests cover:
- Window ranges, overlap and the end-of-file stop
- Minimum content filter
- Preset selection, area and language detection
- Determinism of ids and ranges
"""

import hashlib

import pytest

from ai_index.services.chunker import (
    CODE_PRESET,
    DOCS_PRESET,
    Chunker,
    ChunkingPreset,
    chunk_id,
    detect_area,
    detect_language,
    split_lines,
)
from ai_index.services.config_loader import IndexConfig

from conftest import code_lines, doc_lines


class TestChunkingPreset:
    """Test preset validation."""

    def test_default_presets(self):
        assert (CODE_PRESET.window_lines, CODE_PRESET.overlap_lines) == (30, 5)
        assert (DOCS_PRESET.window_lines, DOCS_PRESET.overlap_lines) == (50, 5)
        assert CODE_PRESET.step == 25

    @pytest.mark.parametrize("window,overlap", [(10, 10), (10, 12), (0, 0), (5, -1)])
    def test_invalid_overlap_rejected(self, window, overlap):
        with pytest.raises(ValueError):
            ChunkingPreset("bad", window, overlap)

    def test_from_config_uses_configured_sizes(self):
        chunker = Chunker.from_config(IndexConfig(code_chunk_lines=12, docs_chunk_lines=20, chunk_overlap=2))
        assert chunker.code_preset.window_lines == 12
        assert chunker.docs_preset.window_lines == 20
        assert chunker.code_preset.overlap_lines == 2


class TestChunker:
    """Test chunk generation."""

    def test_forty_line_file_yields_two_overlapping_chunks(self):
        chunks = Chunker().chunk("a.js", code_lines(40))

        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 30), (26, 40)]
        assert chunks[0].id == chunk_id("a.js", 0)
        assert chunks[1].id == chunk_id("a.js", 25)

    def test_short_file_yields_single_chunk(self):
        chunks = Chunker().chunk("small.py", code_lines(10))

        assert len(chunks) == 1
        assert (chunks[0].start_line, chunks[0].end_line) == (1, 10)

    def test_window_stops_at_end_of_file(self):
        # 55 lines: windows start at 0 and 25; the second reaches line 55
        chunks = Chunker().chunk("a.js", code_lines(55))
        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 30), (26, 55)]

    def test_exact_window_length_yields_one_chunk(self):
        chunks = Chunker().chunk("a.js", code_lines(30))
        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 30)]

    def test_content_below_minimum_is_discarded(self):
        assert Chunker().chunk("tiny.js", "let x = 1;\n") == []

    def test_whitespace_does_not_count_toward_minimum(self):
        text = "   \n" * 20 + "ok\n"
        assert Chunker().chunk("blank.js", text) == []

    def test_empty_file(self):
        assert Chunker().chunk("empty.js", "") == []

    def test_chunk_content_matches_line_range(self):
        text = code_lines(40)
        lines = text.splitlines()
        chunks = Chunker().chunk("a.js", text)

        for chunk in chunks:
            assert chunk.content == "\n".join(lines[chunk.start_line - 1:chunk.end_line])

    def test_markdown_uses_docs_preset(self):
        chunks = Chunker().chunk("notes.md", doc_lines(60))
        assert [(c.start_line, c.end_line) for c in chunks] == [(1, 50), (46, 60)]
        assert all(c.language == "markdown" for c in chunks)

    def test_docs_area_uses_docs_preset(self):
        chunks = Chunker().chunk("docs/setup.js", code_lines(45))
        assert len(chunks) == 1
        assert chunks[0].area == "docs"

    def test_deterministic(self):
        text = code_lines(70)
        first = Chunker().chunk("src/app.js", text)
        second = Chunker().chunk("src/app.js", text)

        assert [(c.id, c.start_line, c.end_line) for c in first] == \
               [(c.id, c.start_line, c.end_line) for c in second]

    def test_parent_id_is_file(self):
        chunk = Chunker().chunk("app/api/users.js", code_lines(5))[0]
        assert chunk.parent_id == "app/api/users.js"
        assert chunk.area == "backend"
        assert chunk.language == "javascript"

    def test_metadata_carries_line_range(self):
        chunk = Chunker().chunk("a.js", code_lines(5))[0]
        meta = chunk.to_metadata()
        assert meta["start_line"] == 1
        assert meta["end_line"] == 5
        assert meta["file"] == "a.js"


class TestChunkIds:
    """Test chunk id derivation."""

    def test_id_is_md5_of_path_and_offset(self):
        assert chunk_id("src/a.js", 25) == hashlib.md5(b"src/a.js:25").hexdigest()

    def test_different_offsets_differ(self):
        assert chunk_id("a.js", 0) != chunk_id("a.js", 25)


class TestDetection:
    """Test area and language detection."""

    @pytest.mark.parametrize("path,area", [
        ("app/api/users.js", "backend"),
        ("app/models/user.js", "backend"),
        ("app/worker.js", "backend"),
        ("app/components/Button.jsx", "frontend"),
        ("app/pages/index.tsx", "frontend"),
        ("terraform/main.tf", "infra"),
        ("k8s/deploy.yaml", "infra"),
        ("Dockerfile", "infra"),
        ("services/api/Dockerfile", "infra"),
        ("docs/guide.md", "docs"),
        ("README.md", "docs"),
        ("lib/util.py", "other"),
    ])
    def test_detect_area(self, path, area):
        assert detect_area(path) == area

    def test_first_matching_rule_wins(self):
        # Matches both backend (/app/api/) and docs (README)
        assert detect_area("app/api/README.md") == "backend"

    def test_custom_rules(self):
        rules = (("tests", ("/tests/",)),)
        assert detect_area("tests/test_a.py", rules) == "tests"
        assert detect_area("src/a.py", rules) == "other"

    @pytest.mark.parametrize("path,language", [
        ("a.js", "javascript"),
        ("a.mjs", "javascript"),
        ("a.tsx", "typescript"),
        ("a.py", "python"),
        ("a.rs", "rust"),
        ("main.tf", "terraform"),
        ("c.yml", "yaml"),
        ("README.md", "markdown"),
        ("run.sh", "bash"),
        ("infra/Dockerfile", "dockerfile"),
        ("notes.txt", "unknown"),
    ])
    def test_detect_language(self, path, language):
        assert detect_language(path) == language


class TestSplitLines:
    """Test line splitting."""

    def test_trailing_newline_adds_no_line(self):
        assert split_lines("a\nb\n") == ["a", "b"]

    def test_no_trailing_newline(self):
        assert split_lines("a\nb") == ["a", "b"]

    def test_empty(self):
        assert split_lines("") == []
