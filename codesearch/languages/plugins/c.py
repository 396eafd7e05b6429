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



"""C query definition.

Headers (``.h``) are parsed as C; C++ projects keep their declarations in
``.hpp``/``.hh`` files.
"""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

C_QUERY = r"""
(function_definition
  declarator: (function_declarator
    declarator: (identifier) @name.definition.function)) @definition.function

(function_definition
  declarator: (pointer_declarator
    declarator: (function_declarator
      declarator: (identifier) @name.definition.function))) @definition.function

(declaration
  declarator: (function_declarator
    declarator: (identifier) @name.definition.function)) @definition.function

(struct_specifier
  name: (type_identifier) @name.definition.struct
  body: (field_declaration_list)) @definition.struct

(union_specifier
  name: (type_identifier) @name.definition.struct
  body: (field_declaration_list)) @definition.struct

(enum_specifier
  name: (type_identifier) @name.definition.enum
  body: (enumerator_list)) @definition.enum

(type_definition
  declarator: (type_identifier) @name.definition.type) @definition.type

(enumerator
  name: (identifier) @name.definition.constant) @definition.constant

(preproc_def
  name: (identifier) @name.definition.constant) @definition.constant

(preproc_function_def
  name: (identifier) @name.definition.macro) @definition.macro

(translation_unit
  (declaration
    declarator: (init_declarator
      declarator: (identifier) @name.definition.variable)) @definition.variable)

(call_expression
  function: (identifier) @name.reference.call) @reference.call

(call_expression
  function: (field_expression
    field: (field_identifier) @name.reference.method)) @reference.method

(field_expression
  field: (field_identifier) @name.reference.property) @reference.property

(declaration
  type: (type_identifier) @name.reference.type)

(parameter_declaration
  type: (type_identifier) @name.reference.type)

(argument_list
  (identifier) @name.reference)

(preproc_include
  path: [(string_literal) (system_lib_string)] @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.C,
    display_name="C",
    extensions=(".c", ".h"),
    grammar_module="tree_sitter_c",
    query=C_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=(
        ("struct_specifier", "name"),
        ("union_specifier", "name"),
    ),
)
