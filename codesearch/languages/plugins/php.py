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



"""PHP query definition."""

from codesearch.languages.base import DocCommentPattern, LanguageTag, QueryDefinition

PHP_QUERY = r"""
(namespace_definition
  name: (namespace_name) @name.definition.module) @definition.module

(class_declaration
  name: (name) @name.definition.class) @definition.class

(interface_declaration
  name: (name) @name.definition.interface) @definition.interface

(trait_declaration
  name: (name) @name.definition.trait) @definition.trait

(enum_declaration
  name: (name) @name.definition.enum) @definition.enum

(function_definition
  name: (name) @name.definition.function) @definition.function

(method_declaration
  name: (name) @name.definition.method) @definition.method

(const_declaration
  (const_element
    (name) @name.definition.constant)) @definition.constant

(base_clause
  (name) @name.reference.implementation)

(class_interface_clause
  (name) @name.reference.implementation)

(function_call_expression
  function: (name) @name.reference.call) @reference.call

(member_call_expression
  name: (name) @name.reference.method) @reference.method

(scoped_call_expression
  name: (name) @name.reference.method) @reference.method

(object_creation_expression
  (name) @name.reference.class) @reference.class

(namespace_use_declaration
  (namespace_use_clause
    [(name) (qualified_name)] @import.source)) @import

(include_expression
  [(string) (encapsed_string)] @import.source) @import

(include_once_expression
  [(string) (encapsed_string)] @import.source) @import

(require_expression
  [(string) (encapsed_string)] @import.source) @import

(require_once_expression
  [(string) (encapsed_string)] @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.PHP,
    display_name="PHP",
    extensions=(".php",),
    grammar_module="tree_sitter_php",
    grammar_function="language_php",
    query=PHP_QUERY,
    doc_comments=DocCommentPattern(line_prefixes=("//", "#"), block_start="/*", block_end="*/"),
    enclosing_scopes=(
        ("namespace_definition", "name"),
        ("class_declaration", "name"),
        ("interface_declaration", "name"),
        ("trait_declaration", "name"),
        ("method_declaration", "name"),
    ),
)
