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


"""Tests for the SQLite index store."""

import threading

import pytest

from codesearch.codebase.symbol_store import IndexStore
from codesearch.errors import IndexUnavailable
from codesearch.models import SourceFile, SymbolRecord


def make_record(path, name, start=0, kind="definition.function", **kwargs):
    values = dict(
        file_path=path,
        kind=kind,
        name=name,
        start_byte=start,
        end_byte=start + 10,
        start_line=start // 10 + 1,
        start_column=0,
        end_line=start // 10 + 2,
        end_column=4,
        snippet=f"def {name}(): pass",
    )
    values.update(kwargs)
    return SymbolRecord(**values)


def source_file(path, content_hash="h1"):
    return SourceFile(path=path, content_hash=content_hash, language="python", size=10)


@pytest.fixture
def store(tmp_path):
    store = IndexStore(tmp_path / "index.db")
    store.open()
    yield store
    store.close()


class TestIndexStore:
    """Test suite for IndexStore."""

    def test_round_trip(self, store):
        """A stored record comes back with identical position, name and kind."""
        record = make_record(
            "src/app.py",
            "handle_request",
            start=120,
            scope="Server",
            documentation="Handles one request.",
        )
        ids = store.commit_file(source_file("src/app.py"), [(record, [1.0, 0.0, 0.0])])

        [stored] = store.get_symbols("src/app.py")
        assert stored.id == ids[0]
        assert stored.model_dump(exclude={"id"}) == record.model_dump(exclude={"id"})
        assert store.get_symbol(ids[0]) == stored
        assert store.get_file("src/app.py").content_hash == "h1"

    def test_replace_symbols_replaces_old_set(self, store):
        store.commit_file(source_file("a.py"), [(make_record("a.py", "old"), [1.0, 0.0])])
        store.commit_file(
            source_file("a.py", "h2"),
            [(make_record("a.py", "new", start=0), [0.0, 1.0]), (make_record("a.py", "newer", start=20), None)],
        )
        assert [r.name for r in store.get_symbols("a.py")] == ["new", "newer"]
        assert store.stats().symbols_count == 2

    def test_replace_symbols_is_atomic_for_readers(self, store):
        """Concurrent readers see either the whole old set or the whole new set."""
        store.upsert_file(source_file("a.py"))
        old = [(make_record("a.py", "old", start=i * 10), [1.0, 0.0]) for i in range(10)]
        new = [(make_record("a.py", "new", start=i * 10), [0.0, 1.0]) for i in range(15)]
        store.replace_symbols("a.py", old)

        stop = threading.Event()
        observed = []

        def reader():
            while not stop.is_set():
                names = [r.name for r in store.get_symbols("a.py")]
                observed.append((len(names), set(names)))

        thread = threading.Thread(target=reader)
        thread.start()
        try:
            for i in range(40):
                store.replace_symbols("a.py", new if i % 2 == 0 else old)
        finally:
            stop.set()
            thread.join()

        assert observed
        for count, names in observed:
            assert (count, names) in ((10, {"old"}), (15, {"new"}))

    def test_failed_replace_rolls_back(self, store):
        store.commit_file(source_file("a.py"), [(make_record("a.py", "keep"), [1.0, 0.0])])
        with pytest.raises(ValueError):
            store.replace_symbols(
                "a.py",
                [(make_record("a.py", "first"), [1.0, 0.0]), (make_record("a.py", "bad", start=20), [1.0, 0.0, 0.0])],
            )
        assert [r.name for r in store.get_symbols("a.py")] == ["keep"]

    def test_delete_cascades(self, store):
        """Deleting a file drops exactly its symbols and vectors."""
        store.commit_file(
            source_file("a.py"),
            [(make_record("a.py", f"a{i}", start=i * 10), [1.0, 0.0]) for i in range(3)],
        )
        store.commit_file(source_file("b.py"), [(make_record("b.py", "b0"), [0.0, 1.0])])
        before = store.stats().symbols_count

        removed = store.delete_file("a.py")

        assert removed == 3
        assert store.stats().symbols_count == before - removed
        assert store.get_file("a.py") is None
        assert store.get_symbols("a.py") == []
        hits = store.nearest_neighbors([1.0, 0.0], k=10)
        assert [record.file_path for record, _ in hits] == ["b.py"]

    def test_nearest_neighbors_ranking_and_tie_break(self, store):
        """Equal distances are ordered by path, then start offset."""
        store.commit_file(
            source_file("b.py"),
            [(make_record("b.py", "b_far", start=50), [0.0, 1.0]), (make_record("b.py", "b_same"), [1.0, 0.0])],
        )
        store.commit_file(
            source_file("a.py"),
            [(make_record("a.py", "a_second", start=30), [2.0, 0.0]), (make_record("a.py", "a_first"), [1.0, 0.0])],
        )
        hits = store.nearest_neighbors([1.0, 0.0], k=4)
        assert [record.name for record, _ in hits] == ["a_first", "a_second", "b_same", "b_far"]
        assert hits[0][1] == pytest.approx(0.0, abs=1e-6)
        assert hits[-1][1] == pytest.approx(1.0)

    def test_nearest_neighbors_filters(self, store):
        store.commit_file(source_file("src/a.py"), [(make_record("src/a.py", "login"), [1.0, 0.0])])
        store.commit_file(source_file("srcx/b.py"), [(make_record("srcx/b.py", "login"), [1.0, 0.0])])
        store.commit_file(source_file("lib/c.py"), [(make_record("lib/c.py", "logout"), [1.0, 0.0])])

        in_src = store.nearest_neighbors([1.0, 0.0], k=10, path_prefixes=["src"])
        assert [r.file_path for r, _ in in_src] == ["src/a.py"]

        named = store.nearest_neighbors([1.0, 0.0], k=10, names=["LOGIN"])
        assert sorted(r.file_path for r, _ in named) == ["src/a.py", "srcx/b.py"]

    def test_unembedded_symbols_excluded_from_search(self, store):
        store.commit_file(
            source_file("a.py"),
            [(make_record("a.py", "embedded"), [1.0, 0.0]), (make_record("a.py", "pending", start=20), None)],
        )
        hits = store.nearest_neighbors([1.0, 0.0], k=10)
        assert [r.name for r, _ in hits] == ["embedded"]
        assert store.paths_missing_vectors() == {"a.py"}

    def test_inner_product_metric(self, tmp_path):
        store = IndexStore(tmp_path / "ip.db", distance_metric="inner_product")
        store.open()
        store.commit_file(
            source_file("a.py"),
            [(make_record("a.py", "small"), [1.0, 0.0]), (make_record("a.py", "large", start=20), [3.0, 0.0])],
        )
        hits = store.nearest_neighbors([1.0, 0.0], k=2)
        assert [r.name for r, _ in hits] == ["large", "small"]
        assert hits[0][1] == pytest.approx(-3.0)

    def test_query_dimension_mismatch(self, store):
        store.commit_file(source_file("a.py"), [(make_record("a.py", "x"), [1.0, 0.0])])
        with pytest.raises(ValueError):
            store.nearest_neighbors([1.0, 0.0, 0.0], k=1)

    def test_find_by_name_and_symbol_at(self, store):
        outer = make_record("a.py", "Outer", kind="definition.class", start=0, end_byte=200, start_line=1, end_line=20)
        inner = make_record("a.py", "method", kind="definition.method", start=40, end_byte=80, start_line=5, start_column=4, end_line=8)
        store.commit_file(source_file("a.py"), [(outer, None), (inner, None)])

        assert [r.name for r in store.find_by_name("outer")] == ["Outer"]
        assert store.find_by_name("method", kind_prefix="reference") == []
        assert store.symbol_at("a.py", 6, 8).name == "method"
        assert store.symbol_at("a.py", 15, 0).name == "Outer"
        assert store.symbol_at("a.py", 30, 0) is None

    def test_stats_and_clear(self, store):
        assert store.stats().model_dump() == {"files_count": 0, "symbols_count": 0, "last_indexed": None}
        store.commit_file(source_file("a.py"), [(make_record("a.py", "x"), [1.0, 0.0])])
        stats = store.stats()
        assert (stats.files_count, stats.symbols_count) == (1, 1)
        assert stats.last_indexed is not None

        store.clear()
        assert store.stats().symbols_count == 0
        # dimension is forgotten with the data
        store.commit_file(source_file("a.py"), [(make_record("a.py", "x"), [1.0, 0.0, 0.0])])

    def test_write_count_tracks_transactions(self, store):
        start = store.write_count
        store.commit_file(source_file("a.py"), [(make_record("a.py", "x"), None)])
        store.get_symbols("a.py")
        store.stats()
        assert store.write_count == start + 1

    def test_corrupt_database_is_unavailable(self, tmp_path):
        db_path = tmp_path / "index.db"
        db_path.write_bytes(b"this is not a sqlite database" * 100)
        store = IndexStore(db_path)
        with pytest.raises(IndexUnavailable):
            store.open()
        assert not store.is_open
        store.destroy()
        assert not db_path.exists()
        store.open()
        assert store.stats().files_count == 0

    def test_closed_store_is_unavailable(self, tmp_path):
        store = IndexStore(tmp_path / "index.db")
        with pytest.raises(IndexUnavailable):
            store.stats()
