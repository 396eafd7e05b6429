# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""Shared ignore patterns and workspace walking for codebase indexing.

This module centralizes the logic for deciding which files the indexer sees:
- Hidden directories (starting with '.') are excluded by convention
- Dependency and build output directories are always skipped
- Test directories and test files are skipped unless tests are included
- User exclude patterns (globs or plain directory names) are applied last
"""

import fnmatch
import os
from pathlib import Path
from typing import Collection, Iterable, Iterator, List, Optional, Sequence, Set

# Directories that never contain first-party source worth indexing
DEFAULT_SKIP_DIRS: Set[str] = {
    # Python
    "__pycache__",
    "venv",
    "env",
    "site-packages",
    # Node.js
    "node_modules",
    "bower_components",
    # Build outputs
    "build",
    "dist",
    "target",
    "out",
    # Coverage
    "coverage",
    "htmlcov",
}

TEST_DIRS: Set[str] = {"test", "tests", "spec", "__tests__", "__test__", "__mocks__"}

TEST_FILE_PATTERNS: Sequence[str] = (
    "test_*.py",
    "*_test.py",
    "*_test.go",
    "*.test.*",
    "*.spec.*",
    "*Test.java",
    "*Tests.java",
)

_GLOB_CHARS = set("*?[")


def is_hidden_path(path: Path) -> bool:
    """Check if any component of the path is hidden (starts with '.')."""
    return any(part.startswith(".") and part not in (".", "..") for part in path.parts)


def is_test_path(rel_path: str) -> bool:
    """True for files inside a test directory or named like a test file."""
    parts = rel_path.split("/")
    if any(part in TEST_DIRS for part in parts[:-1]):
        return True
    return any(fnmatch.fnmatch(parts[-1], pattern) for pattern in TEST_FILE_PATTERNS)


def normalize_patterns(patterns: Optional[Iterable[str]]) -> List[str]:
    """Strip whitespace, leading './' and trailing '/' from exclude patterns."""
    normalized = []
    for pattern in patterns or []:
        pattern = pattern.strip()
        if pattern.startswith("./"):
            pattern = pattern[2:]
        pattern = pattern.strip("/")
        if pattern:
            normalized.append(pattern)
    return normalized


def matches_exclude(rel_path: str, patterns: Iterable[str], is_dir: bool = False) -> bool:
    """Check a workspace-relative POSIX path against exclude patterns.

    A plain pattern (``vendor``, ``src/generated``) matches that directory name
    anywhere in the path, or that path prefix. A glob pattern is matched
    against the whole path and against the file name.

    Example:
        >>> matches_exclude("vendor/lib/util.go", ["vendor"])
        True
        >>> matches_exclude("src/app.min.js", ["*.min.js"])
        True
        >>> matches_exclude("src/vendored.py", ["vendor"])
        False
    """
    parts = rel_path.split("/")
    dir_parts = parts if is_dir else parts[:-1]
    for pattern in patterns:
        if _GLOB_CHARS & set(pattern):
            if (
                fnmatch.fnmatch(rel_path, pattern)
                or fnmatch.fnmatch(parts[-1], pattern)
                or fnmatch.fnmatch(rel_path, pattern + "/*")
            ):
                return True
        elif "/" in pattern:
            if rel_path == pattern or rel_path.startswith(pattern + "/"):
                return True
        elif pattern in dir_parts or (not is_dir and parts[-1] == pattern):
            return True
    return False


def should_skip_dir(
    name: str, rel_path: str, exclude_patterns: Sequence[str], include_tests: bool
) -> bool:
    if name.startswith(".") or name in DEFAULT_SKIP_DIRS or name.endswith(".egg-info"):
        return True
    if not include_tests and name in TEST_DIRS:
        return True
    return matches_exclude(rel_path, exclude_patterns, is_dir=True)


def should_ignore_path(
    rel_path: str,
    exclude_patterns: Optional[Iterable[str]] = None,
    include_tests: bool = False,
) -> bool:
    """Check if a workspace-relative file path is excluded from indexing.

    Example:
        >>> should_ignore_path("src/main.py")
        False
        >>> should_ignore_path(".git/config")
        True
        >>> should_ignore_path("node_modules/lodash/index.js")
        True
        >>> should_ignore_path("tests/test_main.py")
        True
    """
    path = Path(rel_path)
    if is_hidden_path(path):
        return True
    dirs = path.parts[:-1]
    if any(part in DEFAULT_SKIP_DIRS or part.endswith(".egg-info") for part in dirs):
        return True
    if not include_tests and is_test_path(rel_path):
        return True
    return matches_exclude(rel_path, normalize_patterns(exclude_patterns))


def iter_workspace_files(
    root: Path,
    extensions: Collection[str],
    exclude_patterns: Optional[Iterable[str]] = None,
    include_tests: bool = False,
) -> Iterator[str]:
    """Yield workspace-relative POSIX paths of candidate source files, sorted."""
    root = Path(root)
    patterns = normalize_patterns(exclude_patterns)
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(
            d for d in dirnames if not should_skip_dir(d, prefix + d, patterns, include_tests)
        )
        for name in sorted(filenames):
            rel_path = prefix + name
            if name.startswith(".") or Path(name).suffix.lower() not in extensions:
                continue
            if not include_tests and is_test_path(rel_path):
                continue
            if matches_exclude(rel_path, patterns):
                continue
            yield rel_path
