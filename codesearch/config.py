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


"""Configuration for codebase indexing and search.

Settings are plain pydantic models so they can be persisted inside the index
manifest and merged from partial updates coming from the tool layer.
"""

import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_STORAGE_ROOT = Path.home() / ".codesearch"
INDEX_DIR_NAME = "codebase-index"
STORE_FILE_NAME = "index.db"
MANIFEST_FILE_NAME = "manifest.json"


class IndexSettings(BaseModel):
    """User-tunable indexing settings for one workspace."""

    exclude_paths: List[str] = Field(
        default_factory=list,
        description="Glob or directory patterns (workspace-relative) to skip",
    )
    include_tests: bool = Field(default=False, description="Index test files and directories")
    auto_index_on_startup: bool = Field(
        default=True, description="Start a refresh as soon as indexing is enabled"
    )
    watch_for_changes: bool = Field(
        default=True, description="Refresh automatically when source files change"
    )
    max_workers: int = Field(default=4, ge=1, description="Concurrent parse+embed units")
    max_file_bytes: int = Field(default=1024 * 1024, ge=1, description="Skip larger files")
    max_symbols_per_file: int = Field(
        default=2000, ge=1, description="Above this, embed coarse line chunks instead"
    )
    reference_context_lines: int = Field(default=2, ge=0)
    max_snippet_lines: int = Field(default=40, ge=1)
    languages: Optional[List[str]] = Field(
        default=None, description="Restrict indexing to these language tags"
    )

    @field_validator("exclude_paths", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        # The tool layer sends "vendor, dist/**" as a single string
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def merged(self, updates: Dict[str, Any]) -> "IndexSettings":
        """Return a copy with the non-None entries of ``updates`` applied."""
        data = self.model_dump()
        data.update({key: value for key, value in updates.items() if value is not None})
        return IndexSettings.model_validate(data)


class SearchSettings(BaseModel):
    """Retrieval and ranking knobs."""

    default_k: int = Field(default=10, ge=1)
    candidate_multiplier: int = Field(
        default=3, ge=1, description="Nearest neighbours fetched per requested result"
    )
    query_cache_size: int = Field(default=128, ge=0)
    query_cache_ttl: float = Field(default=300.0, ge=0)


def workspace_key(workspace_root: Path) -> str:
    """Stable identifier for a workspace, derived from its absolute root path."""
    resolved = str(Path(workspace_root).resolve())
    return hashlib.sha256(resolved.encode("utf-8")).hexdigest()[:16]


def workspace_storage_dir(workspace_root: Path, storage_root: Optional[Path] = None) -> Path:
    """Directory holding the store and manifest for ``workspace_root``."""
    root = Path(storage_root) if storage_root is not None else DEFAULT_STORAGE_ROOT
    return root / INDEX_DIR_NAME / workspace_key(workspace_root)
