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


"""Java query definition."""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

JAVA_QUERY = r"""
(package_declaration
  [(identifier) (scoped_identifier)] @name.definition.module) @definition.module

(class_declaration
  name: (identifier) @name.definition.class) @definition.class

(interface_declaration
  name: (identifier) @name.definition.interface) @definition.interface

(enum_declaration
  name: (identifier) @name.definition.enum) @definition.enum

(method_declaration
  name: (identifier) @name.definition.method) @definition.method

(constructor_declaration
  name: (identifier) @name.definition.constructor) @definition.constructor

(field_declaration
  declarator: (variable_declarator
    name: (identifier) @name.definition.variable)) @definition.variable

((field_declaration
  declarator: (variable_declarator
    name: (identifier) @name.definition.constant)) @definition.constant
  (#match? @name.definition.constant "^[A-Z][A-Z0-9_]*$"))

(superclass
  (type_identifier) @name.reference.implementation)

(super_interfaces
  (type_list
    (type_identifier) @name.reference.implementation))

(extends_interfaces
  (type_list
    (type_identifier) @name.reference.implementation))

(method_invocation
  name: (identifier) @name.reference.method) @reference.method

(object_creation_expression
  type: (type_identifier) @name.reference.class) @reference.class

(field_access
  field: (identifier) @name.reference.property) @reference.property

(argument_list
  (identifier) @name.reference)

(import_declaration
  [(identifier) (scoped_identifier)] @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.JAVA,
    display_name="Java",
    extensions=(".java",),
    grammar_module="tree_sitter_java",
    query=JAVA_QUERY,
    comment_node_types=frozenset({"line_comment", "block_comment"}),
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=(
        ("class_declaration", "name"),
        ("interface_declaration", "name"),
        ("enum_declaration", "name"),
        ("method_declaration", "name"),
    ),
)
