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


"""Data model shared by the indexer, the store and the search engine."""

import os
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from codesearch.config import IndexSettings

MAX_RECORDED_ERRORS = 20


class IndexStatus(str, Enum):
    """Lifecycle of an indexing pass."""

    IDLE = "idle"
    SCANNING = "scanning"
    INDEXING = "indexing"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class SourceFile(BaseModel):
    """A workspace file as last seen by the indexer."""

    path: str = Field(description="Workspace-relative POSIX path")
    content_hash: str
    language: str
    indexed_at: float = Field(default_factory=time.time)
    size: int = 0


class SymbolRecord(BaseModel):
    """One extracted definition, reference, import or coarse chunk."""

    file_path: str
    kind: str = Field(description="e.g. definition.function, reference.call, import, chunk")
    name: str
    start_byte: int
    end_byte: int
    start_line: int = Field(description="1-indexed")
    start_column: int = 0
    end_line: int
    end_column: int = 0
    scope: Optional[str] = Field(default=None, description="Enclosing definition, e.g. Class.method")
    snippet: str = ""
    documentation: Optional[str] = None
    id: Optional[int] = Field(default=None, description="Store row id, set once persisted")

    @property
    def category(self) -> str:
        return self.kind.split(".", 1)[0]

    @property
    def is_definition(self) -> bool:
        return self.category == "definition"

    def embedding_text(self) -> str:
        """Context window handed to the embedding provider."""
        parts = [f"Symbol: {self.name}", f"Type: {describe_kind(self.kind)}", f"File: {self.file_path}"]
        if self.scope:
            parts.append(f"Scope: {self.scope}")
        parts.append(self.snippet)
        return "\n".join(parts)


def describe_kind(kind: str) -> str:
    """``definition.function`` -> ``function definition``, ``import`` -> ``import``."""
    category, _, detail = kind.partition(".")
    return f"{detail} {category}" if detail else category


class IndexProgress(BaseModel):
    completed: int = 0
    total: int = 0


class FileError(BaseModel):
    """A non-fatal failure recorded during an indexing pass."""

    path: str
    error_type: str
    message: str


class StoreStats(BaseModel):
    files_count: int = 0
    symbols_count: int = 0
    last_indexed: Optional[float] = None


class IndexStats(StoreStats):
    """What getStats reports: store counts plus manifest status and progress."""

    status: IndexStatus = IndexStatus.IDLE
    progress: IndexProgress = Field(default_factory=IndexProgress)
    enabled: bool = False
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filesCount": self.files_count,
            "symbolsCount": self.symbols_count,
            "lastIndexed": self.last_indexed,
            "status": self.status.value,
            "progress": {"completed": self.progress.completed, "total": self.progress.total},
            "enabled": self.enabled,
            "errorCount": self.error_count,
        }


class SearchHit(BaseModel):
    """A ranked search result."""

    file_path: str
    start_line: int
    end_line: int
    start_byte: int
    end_byte: int
    kind: str
    name: str
    snippet: str
    score: float
    scope: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file_path,
            "span": {
                "start_line": self.start_line,
                "end_line": self.end_line,
                "start_byte": self.start_byte,
                "end_byte": self.end_byte,
            },
            "kind": self.kind,
            "name": self.name,
            "snippet": self.snippet,
            "score": round(self.score, 4),
        }


class IndexManifest(BaseModel):
    """Persisted control and status record for one workspace index."""

    workspace_root: str
    enabled: bool = False
    provider_id: Optional[str] = None
    distance_metric: str = "cosine"
    settings: IndexSettings = Field(default_factory=IndexSettings)
    status: IndexStatus = IndexStatus.IDLE
    progress: IndexProgress = Field(default_factory=IndexProgress)
    error_count: int = 0
    errors: List[FileError] = Field(default_factory=list)
    last_completed: Optional[float] = None
    needs_rebuild: bool = False
    created_at: float = Field(default_factory=time.time)

    def record_errors(self, errors: List[FileError]) -> None:
        self.error_count = len(errors)
        self.errors = errors[-MAX_RECORDED_ERRORS:]

    def reset(self) -> None:
        """Forget everything about the indexed state, keeping user settings."""
        self.provider_id = None
        self.status = IndexStatus.IDLE
        self.progress = IndexProgress()
        self.error_count = 0
        self.errors = []
        self.last_completed = None
        self.needs_rebuild = False

    @classmethod
    def load(cls, path: Path, workspace_root: Path) -> "IndexManifest":
        if path.exists():
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        return cls(workspace_root=str(workspace_root))

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp_path, path)
