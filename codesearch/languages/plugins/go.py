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


"""Go query definition."""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

GO_QUERY = r"""
(package_clause
  (package_identifier) @name.definition.module) @definition.module

(function_declaration
  name: (identifier) @name.definition.function) @definition.function

(method_declaration
  name: (field_identifier) @name.definition.method) @definition.method

(type_spec
  name: (type_identifier) @name.definition.type) @definition.type

(type_spec
  name: (type_identifier) @name.definition.struct
  type: (struct_type)) @definition.struct

(type_spec
  name: (type_identifier) @name.definition.interface
  type: (interface_type)) @definition.interface

(var_spec
  name: (identifier) @name.definition.variable) @definition.variable

(const_spec
  name: (identifier) @name.definition.constant) @definition.constant

(call_expression
  function: (identifier) @name.reference.call) @reference.call

(call_expression
  function: (selector_expression
    field: (field_identifier) @name.reference.method)) @reference.method

(selector_expression
  field: (field_identifier) @name.reference.property) @reference.property

(composite_literal
  type: (type_identifier) @name.reference.type) @reference.type

(argument_list
  (identifier) @name.reference)

(import_spec
  path: (interpreted_string_literal) @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.GO,
    display_name="Go",
    extensions=(".go",),
    grammar_module="tree_sitter_go",
    query=GO_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=(
        ("function_declaration", "name"),
        ("method_declaration", "name"),
        ("type_spec", "name"),
    ),
)
