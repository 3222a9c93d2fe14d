"""
Tests for file discovery and glob matching.
"""

import pytest

from ai_index.services.config_loader import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_INCLUDE_PATTERNS
from ai_index.services.file_discovery import FileDiscovery
from ai_index.services.utils import matches_pattern


class TestMatchesPattern:
    """Test glob matching on relative POSIX paths."""

    @pytest.mark.parametrize("path,pattern,expected", [
        ("a.js", "**/*.js", True),
        ("src/deep/a.js", "**/*.js", True),
        ("src/a.py", "**/*.js", False),
        ("Dockerfile", "**/Dockerfile", True),
        ("infra/Dockerfile", "**/Dockerfile", True),
        ("infra/Dockerfile.dev", "**/Dockerfile", False),
        ("node_modules/x/index.js", "**/node_modules/**", True),
        ("web/node_modules/x/index.js", "**/node_modules/**", True),
        ("src/node_modules.js", "**/node_modules/**", False),
        ("app/public/fonts/a.json", "**/public/fonts/**", True),
        ("app/public/a.json", "**/public/fonts/**", False),
        ("dist/app.min.js", "**/*.min.js", True),
        ("web/package-lock.json", "**/package-lock.json", True),
        ("src/a.js", "src/**", True),
        ("srcx/a.js", "src/**", False),
        ("a.js", "*.js", True),
        ("src/deep/a.js", "src/*.js", True),
        ("src/a.js", "src?a.js", True),
    ])
    def test_patterns(self, path, pattern, expected):
        assert matches_pattern(path, pattern) is expected


class TestFileDiscovery:
    """Test directory walking with include/exclude globs."""

    @pytest.fixture
    def tree(self, tmp_path):
        files = [
            "a.js",
            "b.md",
            "notes.txt",
            "Dockerfile",
            "src/app.ts",
            "src/app.min.js",
            "node_modules/lib/index.js",
            "web/node_modules/lib/index.js",
            ".git/config.json",
            ".ai_index/manifest.json",
            "dist/bundle.js",
            "package-lock.json",
            "terraform/main.tf",
        ]
        for rel in files:
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("content\n")
        return tmp_path

    def test_discover_default_patterns(self, tree):
        discovery = FileDiscovery(tree, DEFAULT_INCLUDE_PATTERNS, DEFAULT_EXCLUDE_PATTERNS)

        assert discovery.discover() == [
            "Dockerfile",
            "a.js",
            "b.md",
            "src/app.ts",
            "terraform/main.tf",
        ]

    def test_state_dir_always_excluded(self, tree):
        discovery = FileDiscovery(tree, ["**/*.json"], [])
        found = discovery.discover()

        assert ".ai_index/manifest.json" not in found
        assert ".git/config.json" in found

    def test_results_sorted_posix(self, tree):
        found = FileDiscovery(tree, ["**/*"], ["**/node_modules/**"]).discover()

        assert found == sorted(found)
        assert all("\\" not in p for p in found)
