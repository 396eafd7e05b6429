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



"""Ruby query definition.

``require``/``require_relative`` calls are the imports, and ``include``,
``extend`` and ``prepend`` of a constant count as implementing it.
"""

from codesearch.languages.base import HASH_LINE_COMMENTS, LanguageTag, QueryDefinition

RUBY_QUERY = r"""
(class
  name: (constant) @name.definition.class) @definition.class

(module
  name: (constant) @name.definition.module) @definition.module

(method
  name: (identifier) @name.definition.method) @definition.method

(singleton_method
  name: (identifier) @name.definition.method) @definition.method

(assignment
  left: (constant) @name.definition.constant) @definition.constant

(class
  superclass: (superclass
    (constant) @name.reference.implementation))

((call
  method: (identifier) @_mixin
  arguments: (argument_list
    (constant) @name.reference.implementation))
  (#match? @_mixin "^(include|extend|prepend)$"))

(call
  method: (identifier) @name.reference.call) @reference.call

(call
  receiver: (constant) @name.reference.class) @reference.class

(argument_list
  (identifier) @name.reference)

((call
  method: (identifier) @_require
  arguments: (argument_list
    (string
      (string_content) @import.source))) @import
  (#match? @_require "^require(_relative)?$"))
"""

QUERY_DEFINITION = QueryDefinition(
    tag=LanguageTag.RUBY,
    display_name="Ruby",
    extensions=(".rb",),
    grammar_module="tree_sitter_ruby",
    query=RUBY_QUERY,
    doc_comments=HASH_LINE_COMMENTS,
    enclosing_scopes=(
        ("class", "name"),
        ("module", "name"),
        ("method", "name"),
    ),
)
