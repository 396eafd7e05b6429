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


"""Python query definition."""

from codesearch.languages.base import HASH_COMMENTS, LanguageTag, QueryDefinition

PYTHON_QUERY = r"""
(class_definition
  name: (identifier) @name.definition.class) @definition.class

(function_definition
  name: (identifier) @name.definition.function) @definition.function

(class_definition
  body: (block
    (function_definition
      name: (identifier) @name.definition.method) @definition.method))

(class_definition
  body: (block
    (decorated_definition
      definition: (function_definition
        name: (identifier) @name.definition.method) @definition.method)))

(module
  (expression_statement
    (assignment
      left: (identifier) @name.definition.variable) @definition.variable))

((module
  (expression_statement
    (assignment
      left: (identifier) @name.definition.constant) @definition.constant))
  (#match? @name.definition.constant "^[A-Z][A-Z0-9_]*$"))

(class_definition
  superclasses: (argument_list
    (identifier) @name.reference.implementation))

(class_definition
  superclasses: (argument_list
    (attribute
      attribute: (identifier) @name.reference.implementation)))

(call
  function: (identifier) @name.reference.call) @reference.call

(call
  function: (attribute
    attribute: (identifier) @name.reference.method)) @reference.method

(attribute
  attribute: (identifier) @name.reference.property) @reference.property

(argument_list
  (identifier) @name.reference)

(import_statement
  name: (dotted_name) @import.source) @import

(import_statement
  name: (aliased_import
    name: (dotted_name) @import.source)) @import

(import_from_statement
  module_name: [(dotted_name) (relative_import)] @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.PYTHON,
    display_name="Python",
    extensions=(".py", ".pyi"),
    grammar_module="tree_sitter_python",
    query=PYTHON_QUERY,
    comment_node_types=frozenset({"comment"}),
    doc_comments=HASH_COMMENTS,
    enclosing_scopes=(("class_definition", "name"), ("function_definition", "name")),
)
