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


"""Rust query definition."""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

RUST_QUERY = r"""
(mod_item
  name: (identifier) @name.definition.module) @definition.module

(function_item
  name: (identifier) @name.definition.function) @definition.function

(impl_item
  body: (declaration_list
    (function_item
      name: (identifier) @name.definition.method) @definition.method))

(trait_item
  body: (declaration_list
    (function_signature_item
      name: (identifier) @name.definition.method) @definition.method))

(struct_item
  name: (type_identifier) @name.definition.struct) @definition.struct

(enum_item
  name: (type_identifier) @name.definition.enum) @definition.enum

(trait_item
  name: (type_identifier) @name.definition.interface) @definition.interface

(type_item
  name: (type_identifier) @name.definition.type) @definition.type

(const_item
  name: (identifier) @name.definition.constant) @definition.constant

(static_item
  name: (identifier) @name.definition.variable) @definition.variable

(impl_item
  trait: (type_identifier) @name.reference.implementation) @reference.implementation

(call_expression
  function: (identifier) @name.reference.call) @reference.call

(call_expression
  function: (scoped_identifier
    name: (identifier) @name.reference.call)) @reference.call

(call_expression
  function: (field_expression
    field: (field_identifier) @name.reference.method)) @reference.method

(field_expression
  field: (field_identifier) @name.reference.property) @reference.property

(struct_expression
  name: (type_identifier) @name.reference.class) @reference.class

(macro_invocation
  macro: (identifier) @name.reference.macro) @reference.macro

(arguments
  (identifier) @name.reference)

(use_declaration
  argument: (_) @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.RUST,
    display_name="Rust",
    extensions=(".rs",),
    grammar_module="tree_sitter_rust",
    query=RUST_QUERY,
    comment_node_types=frozenset({"line_comment", "block_comment"}),
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=(
        ("mod_item", "name"),
        ("impl_item", "type"),
        ("trait_item", "name"),
        ("function_item", "name"),
    ),
)
