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


"""Symbol extraction from tree-sitter query matches.

The extractor runs a language's compiled query over a parsed file and turns
each match into a SymbolRecord: one per captured definition, reference or
import span. All language knowledge lives in the query catalog; this module has
no per-language branches.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from tree_sitter import Node

from codesearch.codebase.tree_sitter_manager import ParserHandle
from codesearch.errors import ParseError
from codesearch.languages.base import QueryDefinition
from codesearch.models import SymbolRecord

logger = logging.getLogger(__name__)

# Nodes that only wrap a declaration; the snippet climbs through them so that
# `export`, decorators and `const` keywords stay attached to the definition.
STATEMENT_WRAPPERS = frozenset(
    {
        "export_statement",
        "decorated_definition",
        "lexical_declaration",
        "variable_declaration",
        "variable_declarator",
        "expression_statement",
        "type_declaration",
        "const_declaration",
        "var_declaration",
        "field_declaration",
        "ambient_declaration",
        "declaration",
        "init_declarator",
        "template_declaration",
    }
)

# Higher wins when two patterns capture the same name node
_DEFINITION_RANK = {"variable": 0, "function": 1, "type": 1}
_REFERENCE_RANK = {"": 0, "property": 1, "implementation": 3}
_DEFAULT_RANK = 2

_QUOTES = "\"'`"
# C and C++ system includes
_INCLUDE_BRACKETS = "<>"


@dataclass
class _Candidate:
    record: SymbolRecord
    category: str
    name_span: Tuple[int, int]
    rank: int


def _node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


class SymbolExtractor:
    """Turns source text into ordered, de-duplicated SymbolRecords."""

    def __init__(self, reference_context_lines: int = 2, max_snippet_lines: int = 40):
        self.reference_context_lines = reference_context_lines
        self.max_snippet_lines = max_snippet_lines

    def extract(self, file_path: str, file_text: str, handle: ParserHandle) -> List[SymbolRecord]:
        """Extract symbol records from one file.

        Args:
            file_path: Workspace-relative path recorded on every symbol
            file_text: Full file contents
            handle: Grammar and compiled query for the file's language

        Returns:
            Records in ascending start offset

        Raises:
            ParseError: When the file does not parse into any usable tree
        """
        source = file_text.encode("utf-8")
        try:
            tree = handle.parse(source)
        except Exception as e:
            raise ParseError(file_path, str(e)) from e

        root = tree.root_node
        if root.type == "ERROR" or (
            root.named_child_count > 0 and all(c.type == "ERROR" for c in root.named_children)
        ):
            raise ParseError(file_path, "no valid top-level syntax")
        if root.has_error:
            logger.debug(f"{file_path} has syntax errors; extracting what parsed")

        lines = file_text.splitlines()
        definition = handle.definition
        candidates: Dict[Tuple[str, int, int], _Candidate] = {}

        for _pattern_index, captures in handle.matches(root):
            candidate = self._build_candidate(file_path, captures, source, lines, definition)
            if candidate is None:
                continue
            key = (candidate.category,) + candidate.name_span
            existing = candidates.get(key)
            if existing is None or candidate.rank > existing.rank:
                candidates[key] = candidate

        definition_spans = {
            c.name_span for c in candidates.values() if c.category == "definition"
        }
        records = [
            c.record
            for c in candidates.values()
            if not (c.category == "reference" and c.name_span in definition_spans)
        ]
        records.sort(key=lambda r: (r.start_byte, r.end_byte, r.kind))
        return records

    def _build_candidate(
        self,
        file_path: str,
        captures: Dict[str, List[Node]],
        source: bytes,
        lines: Sequence[str],
        definition: QueryDefinition,
    ) -> Optional[_Candidate]:
        classified = self._classify(captures)
        if classified is None:
            return None
        category, kind, name_node, outer = classified

        name = _node_text(name_node, source).strip()
        if category == "import":
            name = name.strip(_QUOTES + _INCLUDE_BRACKETS)
        if not name:
            return None

        documentation = None
        if category == "definition":
            statement = self._statement_node(outer)
            snippet = self._truncate(_node_text(statement, source))
            documentation = self._leading_comments(statement, source, definition)
            if documentation is None:
                documentation = self._docstring(outer, source, definition)
            if documentation:
                snippet = f"{documentation}\n{snippet}"
        elif category == "import":
            snippet = self._truncate(_node_text(self._statement_node(outer), source))
        else:
            snippet = self._line_window(lines, name_node.start_point[0])

        detail = kind.partition(".")[2]
        rank_table = _DEFINITION_RANK if category == "definition" else _REFERENCE_RANK
        record = SymbolRecord(
            file_path=file_path,
            kind=kind,
            name=name,
            start_byte=outer.start_byte,
            end_byte=outer.end_byte,
            start_line=outer.start_point[0] + 1,
            start_column=outer.start_point[1],
            end_line=outer.end_point[0] + 1,
            end_column=outer.end_point[1],
            scope=self._enclosing_scope(outer, source, definition.enclosing_scopes),
            snippet=snippet,
            documentation=documentation,
        )
        return _Candidate(
            record=record,
            category=category,
            name_span=(name_node.start_byte, name_node.end_byte),
            rank=rank_table.get(detail, _DEFAULT_RANK),
        )

    @staticmethod
    def _classify(captures: Dict[str, List[Node]]) -> Optional[Tuple[str, str, Node, Node]]:
        """Return (category, kind, name node, enclosing node) for one match."""
        for capture, nodes in captures.items():
            if capture.startswith("name.definition.") and nodes:
                detail = capture[len("name.definition.") :]
                outer = captures.get(f"definition.{detail}") or nodes
                return "definition", f"definition.{detail}", nodes[0], outer[0]

        for capture, nodes in captures.items():
            if (capture == "name.reference" or capture.startswith("name.reference.")) and nodes:
                detail = capture[len("name.reference") :].lstrip(".")
                kind = f"reference.{detail}" if detail else "reference"
                outer = captures.get(kind) or nodes
                return "reference", kind, nodes[0], outer[0]

        sources = captures.get("import.source")
        if sources:
            for capture, nodes in captures.items():
                if capture == "import" or (capture.startswith("import.") and capture != "import.source"):
                    return "import", capture, sources[0], nodes[0]
            return "import", "import", sources[0], sources[0]
        return None

    @staticmethod
    def _statement_node(node: Node) -> Node:
        while node.parent is not None and node.parent.type in STATEMENT_WRAPPERS:
            node = node.parent
        return node

    def _truncate(self, text: str) -> str:
        text_lines = text.splitlines()
        if len(text_lines) <= self.max_snippet_lines:
            return text
        return "\n".join(text_lines[: self.max_snippet_lines] + ["..."])

    def _line_window(self, lines: Sequence[str], row: int) -> str:
        start = max(0, row - self.reference_context_lines)
        end = min(len(lines), row + self.reference_context_lines + 1)
        return "\n".join(lines[start:end])

    @staticmethod
    def _leading_comments(
        node: Node, source: bytes, definition: QueryDefinition
    ) -> Optional[str]:
        """Contiguous comment block ending on the line right above ``node``."""
        comment_types = definition.comment_node_types
        comments: List[Node] = []
        current = node
        sibling = node.prev_sibling
        while sibling is not None and sibling.type in comment_types:
            if current.start_point[0] - sibling.end_point[0] > 1:
                break
            before = sibling.prev_sibling
            if (
                before is not None
                and before.type not in comment_types
                and before.end_point[0] == sibling.start_point[0]
            ):
                # trailing comment of the previous statement
                break
            comments.append(sibling)
            current = sibling
            sibling = before

        if not comments:
            return None
        text = "\n".join(
            definition.doc_comments.strip(_node_text(c, source)) for c in reversed(comments)
        ).strip()
        return text or None

    @staticmethod
    def _docstring(node: Node, source: bytes, definition: QueryDefinition) -> Optional[str]:
        if definition.doc_comments.location != "inside":
            return None
        body = node.child_by_field_name("body")
        if body is None or body.named_child_count == 0:
            return None
        first = body.named_children[0]
        if first.type != "expression_statement" or first.named_child_count == 0:
            return None
        string_node = first.named_children[0]
        if string_node.type != "string":
            return None
        text = _node_text(string_node, source).strip().strip(_QUOTES).strip()
        return text or None

    @staticmethod
    def _enclosing_scope(
        node: Node, source: bytes, enclosing_scopes: Sequence[Tuple[str, str]]
    ) -> Optional[str]:
        """Dotted chain of enclosing definitions, e.g. ``UserService.login``."""
        if not enclosing_scopes:
            return None
        scope_fields = dict(enclosing_scopes)
        names: List[str] = []
        current = node.parent
        while current is not None:
            field_name = scope_fields.get(current.type)
            if field_name:
                field_node = current.child_by_field_name(field_name)
                if field_node is not None:
                    names.append(_node_text(field_node, source))
            current = current.parent
        return ".".join(reversed(names)) or None
