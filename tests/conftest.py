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


"""Shared fixtures for codesearch tests."""

from pathlib import Path
from typing import Dict

import pytest

from codesearch.codebase.embeddings import EmbeddingConfig, EmbeddingModelConfig
from codesearch.codebase.tree_sitter_manager import GrammarRegistry
from codesearch.config import IndexSettings
from codesearch.service import CodebaseIndexService

FIXTURES_DIR = Path(__file__).parent / "fixtures"

FIXTURE_FILES = {
    "python": "python/sample.py",
    "javascript": "javascript/sample.js",
    "typescript": "typescript/sample.ts",
    "tsx": "tsx/sample.tsx",
    "go": "go/sample.go",
    "java": "java/Sample.java",
    "rust": "rust/sample.rs",
    "c": "c/sample.c",
    "cpp": "cpp/sample.cpp",
    "csharp": "csharp/Sample.cs",
    "ruby": "ruby/sample.rb",
    "php": "php/sample.php",
    "kotlin": "kotlin/Sample.kt",
}


def write_files(root: Path, files: Dict[str, str]) -> None:
    """Create workspace files from a {relative path: content} mapping."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def hash_embedding_config(**overrides) -> EmbeddingConfig:
    values = dict(
        model=EmbeddingModelConfig(model_type="hash", model_name="hashing-v1", dimension=128),
        max_retries=2,
        retry_multiplier=0,
        retry_min_wait=0,
        retry_max_wait=0,
    )
    values.update(overrides)
    return EmbeddingConfig(**values)


@pytest.fixture(scope="session")
def registry() -> GrammarRegistry:
    return GrammarRegistry()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def make_service(workspace: Path, storage_root: Path, registry: GrammarRegistry):
    """Factory for services with a local hashing model and no file watcher."""

    def factory(**kwargs) -> CodebaseIndexService:
        kwargs.setdefault("storage_root", storage_root)
        kwargs.setdefault(
            "settings", IndexSettings(watch_for_changes=False, auto_index_on_startup=False)
        )
        kwargs.setdefault("embedding_config", hash_embedding_config())
        kwargs.setdefault("registry", registry)
        return CodebaseIndexService(workspace, **kwargs)

    return factory
