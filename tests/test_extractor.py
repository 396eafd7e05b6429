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


"""Tests for symbol extraction."""

from unittest.mock import MagicMock

import pytest

from codesearch.codebase.chunker import chunk_by_lines
from codesearch.codebase.tree_sitter_extractor import SymbolExtractor
from codesearch.errors import ParseError
from conftest import FIXTURE_FILES, FIXTURES_DIR


def python_records(registry, text=None, **kwargs):
    rel_path = FIXTURE_FILES["python"]
    if text is None:
        text = (FIXTURES_DIR / rel_path).read_text(encoding="utf-8")
    return SymbolExtractor(**kwargs).extract(rel_path, text, registry.get_handle(".py"))


def by_name(records, name, kind):
    matches = [r for r in records if r.name == name and r.kind == kind]
    assert matches, f"{kind} {name} not extracted"
    return matches[0]


class TestSymbolExtractor:
    """Test suite for SymbolExtractor."""

    @pytest.mark.parametrize("language", sorted(FIXTURE_FILES))
    def test_records_in_source_order(self, registry, language):
        """Records come out in ascending start offset."""
        rel_path = FIXTURE_FILES[language]
        path = FIXTURES_DIR / rel_path
        records = SymbolExtractor().extract(
            rel_path, path.read_text(encoding="utf-8"), registry.get_handle(path.suffix)
        )
        offsets = [(r.start_byte, r.end_byte, r.kind) for r in records]
        assert offsets == sorted(offsets)

    @pytest.mark.parametrize("language", sorted(FIXTURE_FILES))
    def test_no_duplicate_spans(self, registry, language):
        """No two records share the same span and kind."""
        rel_path = FIXTURE_FILES[language]
        path = FIXTURES_DIR / rel_path
        records = SymbolExtractor().extract(
            rel_path, path.read_text(encoding="utf-8"), registry.get_handle(path.suffix)
        )
        keys = [(r.start_byte, r.end_byte, r.kind) for r in records]
        assert len(keys) == len(set(keys))

    def test_positions_match_source(self, registry):
        """Spans are byte offsets and 1-indexed lines into the original text."""
        text = (FIXTURES_DIR / FIXTURE_FILES["python"]).read_text(encoding="utf-8")
        record = by_name(python_records(registry), "load_profiles", "definition.function")
        source = text.encode("utf-8")
        assert source[record.start_byte : record.end_byte].decode().startswith("def load_profiles")
        assert record.start_line == 11
        assert record.end_line == 13

    def test_leading_comment_becomes_documentation(self, registry):
        record = by_name(python_records(registry), "load_profiles", "definition.function")
        assert record.documentation == (
            "Loads user profiles from disk.\nMissing files yield an empty dict."
        )
        assert record.snippet.startswith("Loads user profiles from disk.")
        assert "def load_profiles(path):" in record.snippet

    def test_python_docstring_becomes_documentation(self, registry):
        record = by_name(python_records(registry), "UserService", "definition.class")
        assert record.documentation == "Authenticates users against stored profiles."

    def test_decorated_method_snippet_keeps_decorator(self, registry):
        record = by_name(python_records(registry), "profile_path", "definition.method")
        assert record.snippet.lstrip().startswith("@property")
        assert record.scope == "UserService"

    def test_method_scope(self, registry):
        record = by_name(python_records(registry), "login", "definition.method")
        assert record.scope == "UserService"
        call = by_name(python_records(registry), "print", "reference.call")
        assert call.scope == "UserService.login"

    def test_reference_snippet_is_line_window(self, registry):
        """A reference snippet spans the configured radius around its line."""
        records = python_records(registry, reference_context_lines=1)
        call = by_name(records, "print", "reference.call")
        assert call.start_line == 29
        assert call.snippet.splitlines() == [
            "        profiles = load_profiles(self.profile_path)",
            "        print(username)",
            "        return profiles.get(username) == password",
        ]

    def test_definition_name_not_duplicated_as_reference(self, registry):
        """A definition's own name node is never also reported as a reference."""
        records = python_records(registry)
        definition_names = {
            (r.name, r.start_line) for r in records if r.is_definition
        }
        for record in records:
            if record.category == "reference" and record.kind == "reference":
                assert (record.name, record.start_line) not in definition_names

    def test_snippet_truncation(self, registry):
        body = "\n".join(f"    x{i} = {i}" for i in range(30))
        text = f"def long_function():\n{body}\n"
        records = python_records(registry, text=text, max_snippet_lines=5)
        record = by_name(records, "long_function", "definition.function")
        lines = record.snippet.splitlines()
        assert len(lines) == 6
        assert lines[-1] == "..."

    def test_localized_syntax_error_still_extracts(self, registry):
        """Valid definitions around a syntax error are still extracted."""
        text = "def ok():\n    return 1\n\n\ndef broken(:\n    pass\n"
        records = python_records(registry, text=text)
        assert any(r.name == "ok" and r.kind == "definition.function" for r in records)

    def test_unparseable_file_raises_parse_error(self, registry):
        """A tree with nothing but errors is a ParseError for that file."""
        handle = MagicMock()
        handle.parse.return_value.root_node.type = "ERROR"
        with pytest.raises(ParseError) as exc_info:
            SymbolExtractor().extract("bad.py", "))))", handle)
        assert exc_info.value.file_path == "bad.py"

    def test_parser_failure_raises_parse_error(self):
        handle = MagicMock()
        handle.parse.side_effect = ValueError("boom")
        with pytest.raises(ParseError):
            SymbolExtractor().extract("bad.py", "x = 1", handle)


class TestChunker:
    """Test suite for coarse line chunks."""

    def test_chunks_cover_file_with_overlap(self):
        text = "\n".join(f"line {i}" for i in range(1, 151))
        chunks = chunk_by_lines("big.py", text, lines_per_chunk=60, overlap=10)
        assert [c.start_line for c in chunks] == [1, 51, 101]
        assert chunks[0].end_line == 60
        assert chunks[-1].end_line == 150
        assert all(c.kind == "chunk" for c in chunks)
        assert chunks[0].name == "big.py:1-60"

    def test_empty_file_has_no_chunks(self):
        assert chunk_by_lines("empty.py", "") == []
