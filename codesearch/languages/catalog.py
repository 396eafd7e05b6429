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


"""Static catalog of structural queries, keyed by language tag."""

from pathlib import Path
from typing import Dict, Mapping, Optional

from codesearch.languages.base import LanguageTag, QueryDefinition
from codesearch.languages.plugins import (
    c,
    cpp,
    csharp,
    go,
    java,
    javascript,
    kotlin,
    php,
    python,
    ruby,
    rust,
    typescript,
)

QUERY_CATALOG: Mapping[LanguageTag, QueryDefinition] = {
    LanguageTag.PYTHON: python.QUERY_DEFINITION,
    LanguageTag.JAVASCRIPT: javascript.QUERY_DEFINITION,
    LanguageTag.TYPESCRIPT: typescript.QUERY_DEFINITION,
    LanguageTag.TSX: typescript.TSX_QUERY_DEFINITION,
    LanguageTag.GO: go.QUERY_DEFINITION,
    LanguageTag.JAVA: java.QUERY_DEFINITION,
    LanguageTag.RUST: rust.QUERY_DEFINITION,
    LanguageTag.C: c.QUERY_DEFINITION,
    LanguageTag.CPP: cpp.QUERY_DEFINITION,
    LanguageTag.CSHARP: csharp.QUERY_DEFINITION,
    LanguageTag.RUBY: ruby.QUERY_DEFINITION,
    LanguageTag.PHP: php.QUERY_DEFINITION,
    LanguageTag.KOTLIN: kotlin.QUERY_DEFINITION,
}


def build_extension_map(catalog: Mapping[LanguageTag, QueryDefinition]) -> Dict[str, LanguageTag]:
    """Map each file extension to its language, rejecting overlaps."""
    extension_map: Dict[str, LanguageTag] = {}
    for tag, definition in catalog.items():
        if definition.tag != tag:
            raise ValueError(f"Catalog key {tag.value} holds a {definition.tag.value} definition")
        for ext in definition.extensions:
            if ext in extension_map:
                raise ValueError(
                    f"Extension {ext} claimed by both {extension_map[ext].value} and {tag.value}"
                )
            extension_map[ext] = tag
    return extension_map


EXTENSION_MAP: Dict[str, LanguageTag] = build_extension_map(QUERY_CATALOG)


def detect_language(file_path: str) -> Optional[LanguageTag]:
    """Language tag for a path, or None when no grammar covers its extension."""
    return EXTENSION_MAP.get(Path(file_path).suffix.lower())
