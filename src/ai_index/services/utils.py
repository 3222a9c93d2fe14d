"""
Utility functions for services

Common utilities shared across service classes.
"""

import json
import os
import re
from fnmatch import fnmatch
from pathlib import Path
from typing import Any


def to_posix_relpath(path: Path, root: Path) -> str:
    """
    Convert a path under ``root`` to a relative path with forward slashes.

    Args:
        path: Absolute path inside root
        root: Project root

    Returns:
        Relative POSIX path string
    """
    return path.relative_to(root).as_posix()


def matches_pattern(path: str, pattern: str) -> bool:
    """
    Simple glob pattern matching.

    Supports:
    - * (any characters, including "/", as with fnmatch)
    - ** (any number of path components, including none)
    - ? (single character, including "/")

    Args:
        path: Relative POSIX path to check
        pattern: Glob pattern

    Returns:
        True if path matches pattern
    """
    if "**" not in pattern:
        return fnmatch(path, pattern)

    # "**/x" also matches "x" at the root; "a/**" matches anything under a
    if pattern.startswith("**/") and matches_pattern(path, pattern[3:]):
        return True

    parts = pattern.split("**")
    if len(parts) == 2:
        prefix, suffix = parts
        prefix = prefix.rstrip("/")
        suffix = suffix.lstrip("/")

        if prefix and not (path == prefix or path.startswith(prefix + "/")):
            return False
        if not suffix:
            return True
        rest = path[len(prefix) + 1:] if prefix else path
        components = rest.split("/")
        return any(
            fnmatch("/".join(components[i:]), suffix)
            for i in range(len(components))
        )

    # Multiple ** like "**/node_modules/**": each middle part must match a component
    prefix = parts[0].rstrip("/")
    suffix = parts[-1].lstrip("/")
    middle_parts = [p.strip("/") for p in parts[1:-1] if p.strip("/")]
    components = path.split("/")

    if prefix and not path.startswith(prefix + "/"):
        return False
    if suffix and not fnmatch(components[-1], suffix):
        return False

    # The last component is the file name; directories come before it
    directories = components[:-1] if suffix == "" else components
    for middle in middle_parts:
        if not _contains_components(directories, middle.split("/")):
            return False
    return True


def _contains_components(components: list, wanted: list) -> bool:
    """Check whether ``wanted`` globs match a contiguous run of components."""
    span = len(wanted)
    for i in range(len(components) - span + 1):
        if all(fnmatch(components[i + j], wanted[j]) for j in range(span)):
            return True
    return False


def sanitize_name(name: str) -> str:
    """Reduce a directory name to a safe identifier fragment."""
    cleaned = re.sub(r"[^A-Za-z0-9_-]+", "-", name).strip("-").lower()
    return cleaned or "root"


def atomic_write_text(path: Path, text: str) -> None:
    """
    Write text to a temp file beside ``path`` and rename it into place.

    Readers see either the previous or the new content, never a partial file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


def atomic_write_json(path: Path, data: Any) -> None:
    """Serialize ``data`` as indented JSON and write it atomically."""
    atomic_write_text(path, json.dumps(data, indent=2, sort_keys=False))
