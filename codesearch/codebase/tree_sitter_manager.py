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


"""Grammar registry: loads tree-sitter grammars on demand and caches them.

Grammars come from the pre-compiled per-language packages of tree-sitter 0.25+
(``pip install tree-sitter-<language>``). A registry instance owns its caches;
construct one per process and share it between workspaces, and call ``reset()``
between tests.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from tree_sitter import Language, Node, Parser, Query, QueryCursor, QueryError, Tree

from codesearch.errors import UnsupportedLanguageError
from codesearch.languages.base import LanguageTag, QueryDefinition
from codesearch.languages.catalog import QUERY_CATALOG, build_extension_map

logger = logging.getLogger(__name__)

# (pattern_index, {capture_name: [nodes]}) as returned by QueryCursor.matches()
QueryMatch = Tuple[int, Dict[str, List[Node]]]


@dataclass
class ParserHandle:
    """A grammar bound to its compiled query.

    tree-sitter parsers are not safe to share between threads, so each worker
    thread lazily gets its own Parser for the same Language.
    """

    definition: QueryDefinition
    language: Language
    query: Query
    _local: threading.local = field(default_factory=threading.local, repr=False)

    @property
    def tag(self) -> LanguageTag:
        return self.definition.tag

    @property
    def parser(self) -> Parser:
        parser = getattr(self._local, "parser", None)
        if parser is None:
            parser = Parser(self.language)
            self._local.parser = parser
        return parser

    def parse(self, source: bytes) -> Tree:
        return self.parser.parse(source)

    def matches(self, node: Node) -> List[QueryMatch]:
        return QueryCursor(self.query).matches(node)


class GrammarRegistry:
    """Memoized grammar and query loader keyed by file extension."""

    def __init__(self, catalog: Optional[Mapping[LanguageTag, QueryDefinition]] = None):
        self._catalog = dict(catalog if catalog is not None else QUERY_CATALOG)
        self._extension_map = build_extension_map(self._catalog)
        self._lock = threading.Lock()
        self._handles: Dict[LanguageTag, ParserHandle] = {}
        self._failures: Dict[LanguageTag, str] = {}

    @property
    def supported_extensions(self) -> List[str]:
        return sorted(self._extension_map)

    def language_for(self, file_path: str) -> Optional[LanguageTag]:
        return self.language_for_extension(Path(file_path).suffix)

    def language_for_extension(self, extension: str) -> Optional[LanguageTag]:
        return self._extension_map.get(extension.lower())

    def load_parsers(self, files: Iterable[str]) -> Dict[str, ParserHandle]:
        """Load every grammar needed for ``files``.

        Returns a mapping from extension to handle. Extensions without a usable
        grammar are left out; callers skip those files.
        """
        extensions = sorted({Path(f).suffix.lower() for f in files})
        handles: Dict[str, ParserHandle] = {}
        for ext in extensions:
            try:
                handles[ext] = self.get_handle(ext)
            except UnsupportedLanguageError as e:
                logger.debug(f"Skipping extension {ext or '<none>'}: {e}")
        return handles

    def get_handle(self, extension: str) -> ParserHandle:
        """Handle for one extension, loading its grammar at most once."""
        tag = self._extension_map.get(extension.lower())
        if tag is None:
            raise UnsupportedLanguageError(extension)

        handle = self._handles.get(tag)
        if handle is not None:
            return handle

        with self._lock:
            handle = self._handles.get(tag)
            if handle is not None:
                return handle
            if tag in self._failures:
                raise UnsupportedLanguageError(extension, self._failures[tag])

            definition = self._catalog[tag]
            try:
                language = self._load_language(definition)
                query = Query(language, definition.query)
            except (ImportError, AttributeError) as e:
                self._failures[tag] = str(e)
                raise UnsupportedLanguageError(extension, str(e)) from e
            except QueryError as e:
                self._failures[tag] = f"query failed to compile: {e}"
                raise UnsupportedLanguageError(extension, self._failures[tag]) from e

            handle = ParserHandle(definition=definition, language=language, query=query)
            self._handles[tag] = handle
            logger.debug(f"Loaded {tag.value} grammar from {definition.grammar_module}")
            return handle

    def _load_language(self, definition: QueryDefinition) -> Language:
        module_name = definition.grammar_module
        try:
            language_module = __import__(module_name)
        except ImportError as e:
            raise ImportError(
                f"Language package '{module_name}' not installed. "
                f"Install it with: pip install {module_name.replace('_', '-')}"
            ) from e
        lang_func = getattr(language_module, definition.grammar_function)
        lang_obj = lang_func()
        # Some grammar releases return a PyCapsule rather than a Language
        return lang_obj if isinstance(lang_obj, Language) else Language(lang_obj)

    def loaded_languages(self) -> List[LanguageTag]:
        return sorted(self._handles, key=lambda tag: tag.value)

    def reset(self) -> None:
        """Drop every cached grammar, query and recorded failure."""
        with self._lock:
            self._handles.clear()
            self._failures.clear()
