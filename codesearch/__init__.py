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


"""Codebase Search Package.

Structural indexing and semantic search over a source tree:
- Tree-sitter grammars and per-language queries extract definitions,
  references and imports
- Symbols are embedded and stored per workspace in SQLite
- Incremental passes re-index only files whose content changed
- Natural-language queries are answered by nearest-neighbour search with
  structural re-ranking

Package Structure:
    errors.py                 - Exception hierarchy
    config.py                 - Settings models and storage layout
    models.py                 - Files, symbols, manifest and result models
    languages/                - Query catalog (one plugin per language)
    codebase/                 - Registry, extractor, store, indexer, search, watcher
    service.py                - Per-workspace service and multi-workspace manager
    tool.py                   - codebase_search tool adapter

Usage:
    from codesearch import CodebaseIndexService

    service = CodebaseIndexService("/path/to/repo")
    await service.open()
    await service.enable()
    await service.refresh_index()
    hits = await service.search("parse the config file")
"""

from codesearch.codebase.embeddings import EmbeddingConfig, EmbeddingModelConfig
from codesearch.config import IndexSettings, SearchSettings
from codesearch.errors import (
    CodeSearchError,
    EmbeddingProviderError,
    IndexUnavailable,
    ParseError,
    ProviderVersionMismatch,
    UnsupportedLanguageError,
)
from codesearch.models import IndexStats, IndexStatus, SearchHit, SymbolRecord
from codesearch.service import CodebaseIndexService, CodebaseSearchManager
from codesearch.tool import CodebaseSearchTool

__version__ = "0.1.0"

__all__ = [
    "CodebaseIndexService",
    "CodebaseSearchManager",
    "CodebaseSearchTool",
    "EmbeddingConfig",
    "EmbeddingModelConfig",
    "IndexSettings",
    "SearchSettings",
    "IndexStats",
    "IndexStatus",
    "SearchHit",
    "SymbolRecord",
    "CodeSearchError",
    "EmbeddingProviderError",
    "IndexUnavailable",
    "ParseError",
    "ProviderVersionMismatch",
    "UnsupportedLanguageError",
]
