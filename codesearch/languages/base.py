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


"""Typed query definitions for the per-language structural query catalog.

Every language entry is a QueryDefinition keyed by a LanguageTag. Capture names
follow one convention across languages:

    @name.definition.<kind>   name node of a definition
    @definition.<kind>        the enclosing definition node
    @name.reference[.<kind>]  name node of a use site
    @reference[.<kind>]       the enclosing use-site node (optional)
    @import                   the import/include statement
    @import.source            the imported module path

Captures prefixed with ``_`` are helpers for predicates and are ignored by the
extractor. Definitions are validated when constructed: a malformed catalog
entry fails at import time.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

_CAPTURE_RE = re.compile(r"@([A-Za-z_][\w.]*)")


class LanguageTag(str, Enum):
    """Languages with a registered grammar and query."""

    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    TSX = "tsx"
    GO = "go"
    JAVA = "java"
    RUST = "rust"
    C = "c"
    CPP = "cpp"
    CSHARP = "csharp"
    RUBY = "ruby"
    PHP = "php"
    KOTLIN = "kotlin"


@dataclass(frozen=True)
class DocCommentPattern:
    """How documentation comments look for a language.

    Attributes:
        line_prefixes: Markers stripped from the start of each comment line,
            longest first (e.g. ["///", "//"] for Rust)
        block_start: Start marker for block comments (e.g. "/**")
        block_end: End marker for block comments (e.g. "*/")
        location: "before" when comments precede the definition, "inside" when
            the language also uses docstrings (Python)
    """

    line_prefixes: Tuple[str, ...] = ()
    block_start: Optional[str] = None
    block_end: Optional[str] = None
    location: str = "before"

    def strip(self, comment_text: str) -> str:
        """Remove comment markers and surrounding whitespace from a comment."""
        text = comment_text.strip()
        if self.block_start and text.startswith(self.block_start):
            text = text[len(self.block_start) :]
            if self.block_end and text.endswith(self.block_end):
                text = text[: -len(self.block_end)]
        lines = []
        for line in text.splitlines():
            line = line.strip()
            for prefix in self.line_prefixes:
                if line.startswith(prefix):
                    line = line[len(prefix) :].strip()
                    break
            else:
                # Continuation lines inside /** ... */ blocks
                if self.block_start and line.startswith("*"):
                    line = line.lstrip("*").strip()
            lines.append(line)
        return "\n".join(lines).strip()


C_STYLE_COMMENTS = DocCommentPattern(
    line_prefixes=("///", "//!", "//"), block_start="/*", block_end="*/"
)
HASH_COMMENTS = DocCommentPattern(line_prefixes=("#",), location="inside")
# Hash comments without docstrings (Ruby)
HASH_LINE_COMMENTS = DocCommentPattern(line_prefixes=("#",))


def capture_names(query: str) -> Set[str]:
    """All capture names used in a query string."""
    return set(_CAPTURE_RE.findall(query))


def check_capture_names(names: Set[str]) -> List[str]:
    """Return a list of problems with a query's capture names (empty when valid)."""
    problems = []
    names = {name for name in names if not name.startswith("_")}

    def_kinds = {n[len("name.definition.") :] for n in names if n.startswith("name.definition.")}
    if not def_kinds:
        problems.append("no @name.definition.<kind> capture")
    for kind in sorted(def_kinds):
        if f"definition.{kind}" not in names:
            problems.append(f"@name.definition.{kind} has no matching @definition.{kind}")

    if not any(n == "name.reference" or n.startswith("name.reference.") for n in names):
        problems.append("no @name.reference capture")
    if "import.source" not in names:
        problems.append("no @import.source capture")
    if "import" not in names and not any(
        n.startswith("import.") and n != "import.source" for n in names
    ):
        problems.append("no @import capture")

    for name in sorted(names):
        if name.startswith(("name.definition.", "definition.", "name.reference", "reference")):
            continue
        if name == "import" or name.startswith("import."):
            continue
        problems.append(f"unknown capture @{name}")
    return problems


class QueryDefinition(BaseModel):
    """Grammar binding and structural query for one language."""

    model_config = ConfigDict(frozen=True)

    tag: LanguageTag
    display_name: str
    extensions: Tuple[str, ...]
    grammar_module: str = Field(description="Importable tree-sitter grammar package")
    grammar_function: str = Field(default="language", description="Callable returning the grammar")
    query: str
    comment_node_types: FrozenSet[str] = frozenset({"comment"})
    doc_comments: DocCommentPattern = C_STYLE_COMMENTS
    # (node_type, name_field) pairs used to build "Outer.inner" scope names
    enclosing_scopes: Tuple[Tuple[str, str], ...] = ()

    @model_validator(mode="after")
    def _check_query(self) -> "QueryDefinition":
        problems = check_capture_names(capture_names(self.query))
        if problems:
            raise ValueError(f"Invalid query for {self.tag.value}: " + "; ".join(problems))
        if not self.extensions or not all(ext.startswith(".") for ext in self.extensions):
            raise ValueError(f"Extensions for {self.tag.value} must start with '.'")
        return self

    @property
    def definition_kinds(self) -> Set[str]:
        return {
            name[len("name.definition.") :]
            for name in capture_names(self.query)
            if name.startswith("name.definition.")
        }
