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



"""C# query definition."""

from codesearch.languages.base import C_STYLE_COMMENTS, LanguageTag, QueryDefinition

CSHARP_QUERY = r"""
(namespace_declaration
  name: [(identifier) (qualified_name)] @name.definition.module) @definition.module

(file_scoped_namespace_declaration
  name: [(identifier) (qualified_name)] @name.definition.module) @definition.module

(class_declaration
  name: (identifier) @name.definition.class) @definition.class

(record_declaration
  name: (identifier) @name.definition.class) @definition.class

(interface_declaration
  name: (identifier) @name.definition.interface) @definition.interface

(struct_declaration
  name: (identifier) @name.definition.struct) @definition.struct

(enum_declaration
  name: (identifier) @name.definition.enum) @definition.enum

(method_declaration
  name: (identifier) @name.definition.method) @definition.method

(constructor_declaration
  name: (identifier) @name.definition.constructor) @definition.constructor

(property_declaration
  name: (identifier) @name.definition.property) @definition.property

(base_list
  (identifier) @name.reference.implementation)

(invocation_expression
  function: (identifier) @name.reference.call) @reference.call

(invocation_expression
  function: (member_access_expression
    name: (identifier) @name.reference.method)) @reference.method

(member_access_expression
  name: (identifier) @name.reference.property) @reference.property

(object_creation_expression
  type: (identifier) @name.reference.class) @reference.class

(argument
  (identifier) @name.reference)

(using_directive
  [(identifier) (qualified_name)] @import.source) @import
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.CSHARP,
    display_name="C#",
    extensions=(".cs",),
    grammar_module="tree_sitter_c_sharp",
    query=CSHARP_QUERY,
    doc_comments=C_STYLE_COMMENTS,
    enclosing_scopes=(
        ("namespace_declaration", "name"),
        ("class_declaration", "name"),
        ("interface_declaration", "name"),
        ("struct_declaration", "name"),
        ("method_declaration", "name"),
    ),
)
