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


"""Semantic search over the symbol index.

Retrieval is vector-first: the query is embedded with the active provider and
the nearest symbol vectors are fetched from the store. Symbols whose name
matches a query term are pulled in as extra candidates, and every candidate is
re-ranked with a small structural bonus so that an exact-name definition beats
a use site with the same embedding distance.
"""

import asyncio
import logging
import math
import re
import time
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

from codesearch.codebase.embeddings.base import EmbeddingProvider
from codesearch.codebase.embeddings.models import identifier_tokens
from codesearch.codebase.import_resolver import resolve_import
from codesearch.codebase.symbol_store import IndexStore
from codesearch.config import SearchSettings
from codesearch.models import SearchHit, SymbolRecord

logger = logging.getLogger(__name__)

# Share of the final score taken by the structural (name/kind) signal
STRUCTURAL_WEIGHT = 0.15

KIND_WEIGHTS: Dict[str, float] = {
    "definition": 1.0,
    "import": 0.6,
    "reference": 0.5,
    "chunk": 0.3,
}

MIN_TERM_LENGTH = 3

# Definitions that can own a base-class, interface or trait reference
TYPE_DEFINITION_KINDS = frozenset(
    {
        "definition.class",
        "definition.interface",
        "definition.struct",
        "definition.enum",
        "definition.object",
        "definition.trait",
        "definition.type",
    }
)

_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class QueryEmbeddingCache:
    """LRU cache of query vectors with a time-to-live."""

    def __init__(self, max_size: int = 128, ttl: float = 300.0):
        self.max_size = max_size
        self.ttl = ttl
        self._entries: "OrderedDict[Tuple[str, str], Tuple[float, List[float]]]" = OrderedDict()

    def get(self, key: Tuple[str, str]) -> Optional[List[float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, vector = entry
        if self.ttl and time.monotonic() - stored_at > self.ttl:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return vector

    def put(self, key: Tuple[str, str], vector: List[float]) -> None:
        if self.max_size <= 0:
            return
        self._entries[key] = (time.monotonic(), vector)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_size:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def split_directories(target_directories: Union[str, Sequence[str], None]) -> List[str]:
    """Normalize a comma-separated string or list of directories to path prefixes."""
    if not target_directories:
        return []
    if isinstance(target_directories, str):
        target_directories = target_directories.split(",")
    prefixes = []
    for directory in target_directories:
        directory = directory.strip()
        while directory.startswith("./"):
            directory = directory[2:]
        directory = directory.strip("/")
        if directory and directory != "." and directory not in prefixes:
            prefixes.append(directory)
    return prefixes


def query_terms(query: str) -> Set[str]:
    """Lower-cased words and identifier sub-tokens worth matching against names."""
    terms = {word.lower() for word in _WORD_RE.findall(query)}
    terms.update(identifier_tokens(query))
    return {term for term in terms if len(term) >= MIN_TERM_LENGTH}


def normalize_distance(distance: float, metric: str) -> float:
    """Map a store distance to a score in [0, 1], higher is closer."""
    if metric == "inner_product":
        # distance is the negated dot product
        return 1.0 / (1.0 + math.exp(max(min(distance, 50.0), -50.0)))
    return min(1.0, max(0.0, 1.0 - distance / 2.0))


def structural_score(record: SymbolRecord, terms: Set[str]) -> float:
    if not terms:
        return 0.0
    name = record.name.lower()
    name_tokens = set(identifier_tokens(record.name)) | {name}
    if name in terms:
        match = 1.0
    elif name_tokens & terms:
        match = 0.5
    else:
        return 0.0
    return match * KIND_WEIGHTS.get(record.category, 0.5)


class SearchEngine:
    """Read-only query side of the index."""

    def __init__(
        self,
        store: IndexStore,
        provider: EmbeddingProvider,
        settings: Optional[SearchSettings] = None,
    ):
        self.store = store
        self.provider = provider
        self.settings = settings or SearchSettings()
        self.cache = QueryEmbeddingCache(self.settings.query_cache_size, self.settings.query_cache_ttl)

    async def embed_query(self, query: str) -> List[float]:
        key = (self.provider.provider_id, query)
        vector = self.cache.get(key)
        if vector is None:
            vector = await self.provider.embed_query(query)
            self.cache.put(key, vector)
        return vector

    async def search(
        self,
        query: str,
        target_directories: Union[str, Sequence[str], None] = None,
        k: Optional[int] = None,
    ) -> List[SearchHit]:
        """Rank indexed symbols against a natural-language query.

        Args:
            query: Free text, e.g. "where do we validate login tokens"
            target_directories: Restrict results to files under these
                workspace-relative directories
            k: Maximum number of hits (defaults to ``settings.default_k``)

        Returns:
            Hits ordered by descending score; ties by (file, start offset).
            Empty when nothing is indexed.
        """
        query = query.strip()
        if not query:
            return []
        k = k or self.settings.default_k
        prefixes = split_directories(target_directories)

        stats = await asyncio.to_thread(self.store.stats)
        if stats.symbols_count == 0:
            return []

        vector = await self.embed_query(query)
        limit = k * self.settings.candidate_multiplier
        candidates = await asyncio.to_thread(self.store.nearest_neighbors, vector, limit, prefixes)

        terms = query_terms(query)
        if terms:
            by_name = await asyncio.to_thread(
                self.store.nearest_neighbors, vector, limit, prefixes, sorted(terms)
            )
            candidates = self._merge(candidates, by_name)

        metric = self.store.distance_metric
        scored = []
        for record, distance in candidates:
            base = normalize_distance(distance, metric)
            score = (1.0 - STRUCTURAL_WEIGHT) * base + STRUCTURAL_WEIGHT * structural_score(record, terms)
            scored.append((record, score))
        scored.sort(key=lambda item: (-round(item[1], 9), item[0].file_path, item[0].start_byte, item[0].kind))

        hits = [self._to_hit(record, score) for record, score in scored[:k]]
        logger.debug(f"Search '{query}' returned {len(hits)} of {len(candidates)} candidates")
        return hits

    @staticmethod
    def _merge(
        *groups: Iterable[Tuple[SymbolRecord, float]]
    ) -> List[Tuple[SymbolRecord, float]]:
        seen: Set[Tuple[str, int, int, str]] = set()
        merged = []
        for group in groups:
            for record, distance in group:
                key = (record.file_path, record.start_byte, record.end_byte, record.kind)
                if key in seen:
                    continue
                seen.add(key)
                merged.append((record, distance))
        return merged

    @staticmethod
    def _to_hit(record: SymbolRecord, score: float) -> SearchHit:
        return SearchHit(
            file_path=record.file_path,
            start_line=record.start_line,
            end_line=record.end_line,
            start_byte=record.start_byte,
            end_byte=record.end_byte,
            kind=record.kind,
            name=record.name,
            snippet=record.snippet,
            score=score,
            scope=record.scope,
        )

    async def find_references(
        self,
        name: str,
        include_definitions: bool = True,
        limit: int = 100,
        defined_in: Optional[str] = None,
    ) -> List[SymbolRecord]:
        """Every indexed use (and optionally definition) of ``name``.

        With ``defined_in`` the lookup covers only that file and the files
        whose imports resolve to it, which drops unrelated symbols that happen
        to share the name.
        """
        paths = None
        if defined_in is not None:
            paths = {defined_in} | set(await self.importers_of(defined_in))
        records = await asyncio.to_thread(self.store.find_by_name, name, None, limit, paths)
        if include_definitions:
            return records
        return [record for record in records if not record.is_definition]

    async def find_implementations(self, name: str, limit: int = 100) -> List[SymbolRecord]:
        """Types that extend or implement ``name``.

        Each base-class, interface or trait reference is mapped to the type
        definition it belongs to. A reference with no enclosing type (a Rust
        ``impl Trait for T`` block, a Ruby ``include`` at module level) is
        returned as is.
        """
        sites = await asyncio.to_thread(
            self.store.find_by_name, name, "reference.implementation", limit
        )
        results: List[SymbolRecord] = []
        seen: Set[Tuple[str, int, str]] = set()
        for site in sites:
            owners = await asyncio.to_thread(
                self.store.enclosing_definitions, site.file_path, site.start_byte, site.end_byte
            )
            record = owners[0] if owners and owners[0].kind in TYPE_DEFINITION_KINDS else site
            key = (record.file_path, record.start_byte, record.kind)
            if key not in seen:
                seen.add(key)
                results.append(record)
        results.sort(key=lambda r: (r.file_path, r.start_byte))
        return results

    def _import_edges(self) -> Dict[str, Set[str]]:
        files = {f.path: f.language for f in self.store.all_files()}
        edges: Dict[str, Set[str]] = {}
        for record in self.store.find_by_kind("import"):
            targets = resolve_import(record.file_path, record.name, files.get(record.file_path), files)
            if targets:
                edges.setdefault(record.file_path, set()).update(targets)
        return edges

    async def imports_of(self, path: str) -> List[str]:
        """Workspace files that ``path`` imports."""
        edges = await asyncio.to_thread(self._import_edges)
        return sorted(edges.get(path, ()))

    async def importers_of(self, path: str) -> List[str]:
        """Workspace files whose imports resolve to ``path``."""
        edges = await asyncio.to_thread(self._import_edges)
        return sorted(importer for importer, targets in edges.items() if path in targets)

    async def symbol_at(self, path: str, line: int, column: int) -> Optional[SymbolRecord]:
        return await asyncio.to_thread(self.store.symbol_at, path, line, column)
