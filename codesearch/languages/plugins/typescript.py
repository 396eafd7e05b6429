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


"""TypeScript and TSX query definitions."""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition
from codesearch.languages.plugins.javascript import JS_ENCLOSING_SCOPES, JS_SHARED_QUERY

TYPESCRIPT_QUERY = (
    r"""
(class_declaration
  name: (type_identifier) @name.definition.class) @definition.class

(abstract_class_declaration
  name: (type_identifier) @name.definition.class) @definition.class

(interface_declaration
  name: (type_identifier) @name.definition.interface) @definition.interface

(type_alias_declaration
  name: (type_identifier) @name.definition.type) @definition.type

(enum_declaration
  name: (identifier) @name.definition.enum) @definition.enum

(module
  name: (identifier) @name.definition.module) @definition.module

(internal_module
  name: (identifier) @name.definition.module) @definition.module

(function_signature
  name: (identifier) @name.definition.function) @definition.function

(method_signature
  name: (property_identifier) @name.definition.method) @definition.method

(abstract_method_signature
  name: (property_identifier) @name.definition.method) @definition.method

(type_annotation
  (type_identifier) @name.reference.type) @reference.type

(extends_clause
  value: (identifier) @name.reference.implementation)

(implements_clause
  (type_identifier) @name.reference.implementation)

(extends_type_clause
  type: (type_identifier) @name.reference.implementation)
"""
    + JS_SHARED_QUERY
)

TS_ENCLOSING_SCOPES = JS_ENCLOSING_SCOPES + (
    ("abstract_class_declaration", "name"),
    ("interface_declaration", "name"),
    ("module", "name"),
    ("internal_module", "name"),
)

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.TYPESCRIPT,
    display_name="TypeScript",
    extensions=(".ts", ".mts", ".cts"),
    grammar_module="tree_sitter_typescript",
    grammar_function="language_typescript",
    query=TYPESCRIPT_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=TS_ENCLOSING_SCOPES,
)

TSX_QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.TSX,
    display_name="TSX",
    extensions=(".tsx",),
    grammar_module="tree_sitter_typescript",
    grammar_function="language_tsx",
    query=TYPESCRIPT_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=TS_ENCLOSING_SCOPES,
)
