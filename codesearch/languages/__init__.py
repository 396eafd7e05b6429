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


"""Language support for structural symbol extraction.

Each supported language contributes a QueryDefinition (grammar package plus
structural query) under ``plugins/``; ``catalog`` gathers them into one
enum-keyed table.
"""

from codesearch.languages.base import (
    DocCommentPattern,
    LanguageTag,
    QueryDefinition,
    capture_names,
    check_capture_names,
)
from codesearch.languages.catalog import (
    EXTENSION_MAP,
    QUERY_CATALOG,
    build_extension_map,
    detect_language,
)

__all__ = [
    "DocCommentPattern",
    "LanguageTag",
    "QueryDefinition",
    "capture_names",
    "check_capture_names",
    "EXTENSION_MAP",
    "QUERY_CATALOG",
    "build_extension_map",
    "detect_language",
]
