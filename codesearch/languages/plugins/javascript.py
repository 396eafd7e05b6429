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


"""JavaScript query definition.

The patterns in JS_SHARED_QUERY are valid for the TypeScript and TSX grammars
too, which extend the JavaScript grammar.
"""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

JS_SHARED_QUERY = r"""
(function_declaration
  name: (identifier) @name.definition.function) @definition.function

(generator_function_declaration
  name: (identifier) @name.definition.function) @definition.function

(method_definition
  name: (property_identifier) @name.definition.method) @definition.method

(variable_declarator
  name: (identifier) @name.definition.function
  value: [(arrow_function) (function_expression)]) @definition.function

(program
  (lexical_declaration
    (variable_declarator
      name: (identifier) @name.definition.variable) @definition.variable))

(program
  (variable_declaration
    (variable_declarator
      name: (identifier) @name.definition.variable) @definition.variable))

(export_statement
  declaration: (lexical_declaration
    (variable_declarator
      name: (identifier) @name.definition.variable) @definition.variable))

((variable_declarator
  name: (identifier) @name.definition.constant) @definition.constant
  (#match? @name.definition.constant "^[A-Z][A-Z0-9_]*$"))

(call_expression
  function: (identifier) @name.reference.call) @reference.call

(call_expression
  function: (member_expression
    property: (property_identifier) @name.reference.method)) @reference.method

(member_expression
  property: (property_identifier) @name.reference.property) @reference.property

(new_expression
  constructor: (identifier) @name.reference.class) @reference.class

(arguments
  (identifier) @name.reference)

(import_statement
  source: (string) @import.source) @import

((call_expression
  function: (identifier) @_require
  arguments: (arguments (string) @import.source)) @import
  (#eq? @_require "require"))
"""

JS_ENCLOSING_SCOPES = (
    ("class_declaration", "name"),
    ("function_declaration", "name"),
    ("method_definition", "name"),
)

JAVASCRIPT_QUERY = (
    r"""
(class_declaration
  name: (identifier) @name.definition.class) @definition.class

(class_heritage
  (identifier) @name.reference.implementation)
"""
    + JS_SHARED_QUERY
)

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.JAVASCRIPT,
    display_name="JavaScript",
    extensions=(".js", ".jsx", ".mjs", ".cjs"),
    grammar_module="tree_sitter_javascript",
    query=JAVASCRIPT_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=JS_ENCLOSING_SCOPES,
)
