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



"""C++ query definition."""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

CPP_QUERY = r"""
(namespace_definition
  name: (namespace_identifier) @name.definition.module) @definition.module

(class_specifier
  name: (type_identifier) @name.definition.class
  body: (field_declaration_list)) @definition.class

(struct_specifier
  name: (type_identifier) @name.definition.struct
  body: (field_declaration_list)) @definition.struct

(enum_specifier
  name: (type_identifier) @name.definition.enum
  body: (enumerator_list)) @definition.enum

(function_definition
  declarator: (function_declarator
    declarator: (identifier) @name.definition.function)) @definition.function

(function_definition
  declarator: (function_declarator
    declarator: (field_identifier) @name.definition.method)) @definition.method

(function_definition
  declarator: (function_declarator
    declarator: (qualified_identifier
      name: (identifier) @name.definition.method))) @definition.method

(field_declaration
  declarator: (function_declarator
    declarator: (field_identifier) @name.definition.method)) @definition.method

(field_declaration
  declarator: (field_identifier) @name.definition.field) @definition.field

(type_definition
  declarator: (type_identifier) @name.definition.type) @definition.type

(alias_declaration
  name: (type_identifier) @name.definition.type) @definition.type

(preproc_def
  name: (identifier) @name.definition.constant) @definition.constant

(base_class_clause
  (type_identifier) @name.reference.implementation)

(call_expression
  function: (identifier) @name.reference.call) @reference.call

(call_expression
  function: (qualified_identifier
    name: (identifier) @name.reference.call)) @reference.call

(call_expression
  function: (field_expression
    field: (field_identifier) @name.reference.method)) @reference.method

(field_expression
  field: (field_identifier) @name.reference.property) @reference.property

(new_expression
  type: (type_identifier) @name.reference.class) @reference.class

(argument_list
  (identifier) @name.reference)

(preproc_include
  path: [(string_literal) (system_lib_string)] @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.CPP,
    display_name="C++",
    extensions=(".cpp", ".cc", ".cxx", ".hpp", ".hh", ".hxx"),
    grammar_module="tree_sitter_cpp",
    query=CPP_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=(
        ("namespace_definition", "name"),
        ("class_specifier", "name"),
        ("struct_specifier", "name"),
    ),
)
