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



"""Kotlin query definition.

The Kotlin grammar names few fields, so patterns match on child node types.
Interfaces parse as ``class_declaration`` and are indexed as classes.
"""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

KOTLIN_QUERY = r"""
(package_header
  (identifier) @name.definition.module) @definition.module

(class_declaration
  (type_identifier) @name.definition.class) @definition.class

(object_declaration
  (type_identifier) @name.definition.object) @definition.object

(function_declaration
  (simple_identifier) @name.definition.function) @definition.function

(property_declaration
  (variable_declaration
    (simple_identifier) @name.definition.property)) @definition.property

(delegation_specifier
  (user_type
    (type_identifier) @name.reference.implementation))

(delegation_specifier
  (constructor_invocation
    (user_type
      (type_identifier) @name.reference.implementation)))

(call_expression
  (simple_identifier) @name.reference.call) @reference.call

(call_expression
  (navigation_expression
    (navigation_suffix
      (simple_identifier) @name.reference.method))) @reference.method

(navigation_suffix
  (simple_identifier) @name.reference.property) @reference.property

(value_argument
  (simple_identifier) @name.reference)

(import_header
  (identifier) @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.KOTLIN,
    display_name="Kotlin",
    extensions=(".kt", ".kts"),
    grammar_module="tree_sitter_kotlin",
    query=KOTLIN_QUERY,
    comment_node_types=frozenset({"line_comment", "multiline_comment"}),
    doc_comments=C_STYLE_COMMENTS,
)
