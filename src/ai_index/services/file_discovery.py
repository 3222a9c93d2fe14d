"""
File discovery for indexing.

Walks a project root with os.walk, pruning excluded directories early, and
returns the relative POSIX paths that match the include globs.
"""

import os
from pathlib import Path
from typing import List, Sequence

from ..logging_config import configure_logger
from .utils import matches_pattern, to_posix_relpath

logger = configure_logger(__name__)


class FileDiscovery:
    """
    Finds indexable files under a root directory.

    Attributes:
        root: Project root directory
        include_patterns: Globs a file must match (any of)
        exclude_patterns: Globs that exclude a file or directory (any of)
    """

    def __init__(
        self,
        root: Path,
        include_patterns: Sequence[str],
        exclude_patterns: Sequence[str],
        state_dir_name: str = ".ai_index",
    ):
        self.root = Path(root).resolve()
        self.include_patterns = list(include_patterns)
        self.exclude_patterns = list(exclude_patterns)
        # The index state directory is never indexed
        state_glob = f"**/{state_dir_name}/**"
        if state_glob not in self.exclude_patterns:
            self.exclude_patterns.append(state_glob)

    def is_excluded(self, rel_path: str) -> bool:
        return any(matches_pattern(rel_path, p) for p in self.exclude_patterns)

    def is_included(self, rel_path: str) -> bool:
        return any(matches_pattern(rel_path, p) for p in self.include_patterns)

    def _is_excluded_dir(self, rel_dir: str) -> bool:
        # Test a child path so "**/name/**" patterns prune the directory itself
        return self.is_excluded(rel_dir + "/_")

    def discover(self) -> List[str]:
        """
        Scan the root.

        Returns:
            Sorted relative POSIX paths of matching regular files
        """
        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            current = Path(dirpath)
            rel_dir = "" if current == self.root else to_posix_relpath(current, self.root)

            dirnames[:] = sorted(
                d for d in dirnames
                if not self._is_excluded_dir(f"{rel_dir}/{d}" if rel_dir else d)
            )

            for filename in filenames:
                rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
                if not (current / filename).is_file():
                    continue
                if self.is_excluded(rel_path) or not self.is_included(rel_path):
                    continue
                found.append(rel_path)

        found.sort()
        logger.debug(f"Discovered {len(found)} files under {self.root}")
        return found
