"""
Line-window chunker.

Splits a file into overlapping line windows and tags each chunk with its
language and area. Two presets exist: one for code and a larger one for
documentation. Chunk ids are derived from (path, 0-based start offset) so
the same input always yields the same ids and ranges.
"""

import hashlib
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Sequence, Tuple

from .config_loader import DEFAULT_AREA_RULES, IndexConfig
from .rag_types import Chunk


@dataclass(frozen=True)
class ChunkingPreset:
    """Window size and overlap, both in lines."""
    name: str
    window_lines: int
    overlap_lines: int

    def __post_init__(self):
        if self.window_lines < 1:
            raise ValueError(f"{self.name}: window_lines must be >= 1, got {self.window_lines}")
        if self.overlap_lines < 0 or self.overlap_lines >= self.window_lines:
            raise ValueError(
                f"{self.name}: overlap_lines must be in [0, {self.window_lines}), "
                f"got {self.overlap_lines}"
            )

    @property
    def step(self) -> int:
        return self.window_lines - self.overlap_lines


CODE_PRESET = ChunkingPreset("code", window_lines=30, overlap_lines=5)
DOCS_PRESET = ChunkingPreset("docs", window_lines=50, overlap_lines=5)

MIN_CHUNK_CHARS = 50

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".go": "go",
    ".java": "java",
    ".scala": "scala",
    ".rs": "rust",
    ".c": "c",
    ".cpp": "cpp",
    ".h": "c",
    ".tf": "terraform",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".md": "markdown",
    ".scss": "scss",
    ".css": "css",
    ".sql": "sql",
    ".sh": "bash",
    ".bash": "bash",
}

LANGUAGE_BY_FILENAME: Dict[str, str] = {
    "Dockerfile": "dockerfile",
}


def chunk_id(path: str, offset: int) -> str:
    """MD5 hex id of a chunk starting at 0-based line ``offset`` of ``path``."""
    return hashlib.md5(f"{path}:{offset}".encode('utf-8')).hexdigest()


def detect_language(path: str) -> str:
    """Map a relative path to a language name, or "unknown"."""
    name = PurePosixPath(path).name
    if name in LANGUAGE_BY_FILENAME:
        return LANGUAGE_BY_FILENAME[name]
    return LANGUAGE_BY_EXTENSION.get(PurePosixPath(path).suffix.lower(), "unknown")


def detect_area(path: str, rules: Sequence[Tuple[str, Sequence[str]]] = DEFAULT_AREA_RULES) -> str:
    """
    Classify a relative path into an area.

    Rules are checked in order against "/" + path; the first rule with a
    matching substring wins.

    Args:
        path: Relative POSIX path
        rules: Ordered (area, substrings) pairs

    Returns:
        Area name, or "other" when no rule matches
    """
    slashed = "/" + path
    for area, needles in rules:
        if any(needle in slashed for needle in needles):
            return area
    return "other"


def split_lines(text: str) -> List[str]:
    """Split text into lines; a trailing newline does not add an empty line."""
    if not text:
        return []
    lines = text.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    return lines


class Chunker:
    """
    Produces Chunks from file text using a sliding line window.

    Attributes:
        code_preset: Preset used for code files
        docs_preset: Preset used for area "docs" or markdown files
        min_chunk_chars: Windows whose stripped text is shorter are dropped
    """

    def __init__(
        self,
        code_preset: ChunkingPreset = CODE_PRESET,
        docs_preset: ChunkingPreset = DOCS_PRESET,
        min_chunk_chars: int = MIN_CHUNK_CHARS,
        area_rules: Sequence[Tuple[str, Sequence[str]]] = DEFAULT_AREA_RULES,
    ):
        self.code_preset = code_preset
        self.docs_preset = docs_preset
        self.min_chunk_chars = min_chunk_chars
        self.area_rules = area_rules

    @classmethod
    def from_config(cls, config: IndexConfig) -> "Chunker":
        """Build a chunker from the chunking settings of a config."""
        return cls(
            code_preset=ChunkingPreset("code", config.code_chunk_lines, config.chunk_overlap),
            docs_preset=ChunkingPreset("docs", config.docs_chunk_lines, config.chunk_overlap),
            min_chunk_chars=config.min_chunk_chars,
            area_rules=config.area_rules,
        )

    def preset_for(self, area: str, language: str) -> ChunkingPreset:
        if area == "docs" or language == "markdown":
            return self.docs_preset
        return self.code_preset

    def chunk(self, path: str, text: str, preset: Optional[ChunkingPreset] = None) -> List[Chunk]:
        """
        Split one file into chunks.

        Args:
            path: Relative POSIX path of the file
            text: Full decoded file content
            preset: Override the preset chosen from area/language

        Returns:
            Ordered list of chunks (may be empty)
        """
        language = detect_language(path)
        area = detect_area(path, self.area_rules)
        preset = preset or self.preset_for(area, language)

        lines = split_lines(text)
        chunks: List[Chunk] = []
        offset = 0
        while offset < len(lines):
            end = min(offset + preset.window_lines, len(lines))
            content = "\n".join(lines[offset:end])
            if len(content.strip()) >= self.min_chunk_chars:
                chunks.append(Chunk(
                    id=chunk_id(path, offset),
                    file=path,
                    content=content,
                    language=language,
                    area=area,
                    start_line=offset + 1,
                    end_line=end,
                ))
            if end >= len(lines):
                break
            offset += preset.step

        return chunks
