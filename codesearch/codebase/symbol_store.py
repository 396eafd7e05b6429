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


"""SQLite-backed index store for source files, symbols and their vectors.

One store per workspace. Files, symbols and vectors live in a single SQLite
database so that replacing a file's symbols and vectors is one transaction:
readers (each query opens its own connection) see either the old set or the new
one, never a mix. Vectors are float32 blobs; nearest-neighbour ranking is an
exact numpy scan.

Usage:
    store = IndexStore(storage_dir / "index.db", distance_metric="cosine")
    store.open()
    store.commit_file(source_file, [(record, vector), ...])
    hits = store.nearest_neighbors(query_vector, k=10, path_prefixes=["src"])
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Collection, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np

from codesearch.errors import IndexUnavailable
from codesearch.models import SourceFile, StoreStats, SymbolRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"

# (record, vector or None when embedding failed)
SymbolEntry = Tuple[SymbolRecord, Optional[Sequence[float]]]

_SYMBOL_COLUMNS = (
    "id, file_path, kind, name, start_byte, end_byte, start_line, start_column, "
    "end_line, end_column, scope, snippet, documentation"
)


def _row_to_symbol(row: sqlite3.Row) -> SymbolRecord:
    return SymbolRecord(
        id=row["id"],
        file_path=row["file_path"],
        kind=row["kind"],
        name=row["name"],
        start_byte=row["start_byte"],
        end_byte=row["end_byte"],
        start_line=row["start_line"],
        start_column=row["start_column"],
        end_line=row["end_line"],
        end_column=row["end_column"],
        scope=row["scope"],
        snippet=row["snippet"],
        documentation=row["documentation"],
    )


def _row_to_file(row: sqlite3.Row) -> SourceFile:
    return SourceFile(
        path=row["path"],
        content_hash=row["content_hash"],
        language=row["language"],
        indexed_at=row["indexed_at"],
        size=row["size"],
    )


def _path_filter(path_prefixes: Optional[Sequence[str]]) -> Tuple[str, List[object]]:
    """SQL clause restricting s.file_path to any of the given directories."""
    prefixes = [p.strip().strip("/") for p in path_prefixes or [] if p.strip().strip("/")]
    if not prefixes:
        return "", []
    clauses = []
    params: List[object] = []
    for prefix in prefixes:
        clauses.append("(s.file_path = ? OR substr(s.file_path, 1, ?) = ?)")
        params.extend([prefix, len(prefix) + 1, prefix + "/"])
    return " AND (" + " OR ".join(clauses) + ")", params


class IndexStore:
    """Persistent, file-scoped symbol and vector store."""

    def __init__(self, db_path: Path, distance_metric: str = "cosine"):
        self.db_path = Path(db_path)
        self.distance_metric = distance_metric
        self.write_count = 0
        self._write_lock = threading.Lock()
        self._opened = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Create or validate the database.

        Raises:
            IndexUnavailable: If the file is corrupt or was written by an
                incompatible schema
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._opened = True
        try:
            with self._connect() as conn:
                check = conn.execute("PRAGMA quick_check").fetchone()[0]
                if check != "ok":
                    raise IndexUnavailable(f"Integrity check failed: {check}", str(self.db_path))
                conn.execute("PRAGMA journal_mode = WAL")
                conn.executescript("""
                    CREATE TABLE IF NOT EXISTS files (
                        path TEXT PRIMARY KEY,
                        language TEXT NOT NULL,
                        content_hash TEXT NOT NULL,
                        size INTEGER DEFAULT 0,
                        indexed_at REAL NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS symbols (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        file_path TEXT NOT NULL REFERENCES files(path) ON DELETE CASCADE,
                        kind TEXT NOT NULL,
                        name TEXT NOT NULL,
                        start_byte INTEGER NOT NULL,
                        end_byte INTEGER NOT NULL,
                        start_line INTEGER NOT NULL,
                        start_column INTEGER NOT NULL,
                        end_line INTEGER NOT NULL,
                        end_column INTEGER NOT NULL,
                        scope TEXT,
                        snippet TEXT NOT NULL,
                        documentation TEXT
                    );

                    CREATE TABLE IF NOT EXISTS vectors (
                        symbol_id INTEGER PRIMARY KEY REFERENCES symbols(id) ON DELETE CASCADE,
                        vector BLOB NOT NULL
                    );

                    CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file_path);
                    CREATE INDEX IF NOT EXISTS idx_symbols_name ON symbols(name COLLATE NOCASE);

                    CREATE TABLE IF NOT EXISTS metadata (
                        key TEXT PRIMARY KEY,
                        value TEXT
                    );
                """)
                row = conn.execute(
                    "SELECT value FROM metadata WHERE key = 'schema_version'"
                ).fetchone()
                if row is None:
                    conn.execute(
                        "INSERT INTO metadata (key, value) VALUES ('schema_version', ?)",
                        (SCHEMA_VERSION,),
                    )
                elif row["value"] != SCHEMA_VERSION:
                    raise IndexUnavailable(
                        f"Unsupported schema version {row['value']}", str(self.db_path)
                    )
        except IndexUnavailable:
            self._opened = False
            raise
        logger.debug(f"Opened index store at {self.db_path}")

    def close(self) -> None:
        self._opened = False

    @property
    def is_open(self) -> bool:
        return self._opened

    def destroy(self) -> None:
        """Delete the database files. Used to recover from corruption."""
        self._opened = False
        for suffix in ("", "-wal", "-shm", "-journal"):
            path = Path(f"{self.db_path}{suffix}")
            if path.exists():
                path.unlink()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        if not self._opened:
            raise IndexUnavailable("Index store is not open", str(self.db_path))
        try:
            conn = sqlite3.connect(
                str(self.db_path), timeout=30.0, isolation_level=None, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise IndexUnavailable(f"Cannot open index store: {e}", str(self.db_path)) from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.DatabaseError as e:
            raise IndexUnavailable(f"Index store error: {e}", str(self.db_path)) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._write_lock, self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            self.write_count += 1

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def upsert_file(self, source_file: SourceFile) -> None:
        with self._transaction() as conn:
            self._upsert_file(conn, source_file)

    def _upsert_file(self, conn: sqlite3.Connection, source_file: SourceFile) -> None:
        conn.execute(
            """INSERT INTO files (path, language, content_hash, size, indexed_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(path) DO UPDATE SET
                   language = excluded.language,
                   content_hash = excluded.content_hash,
                   size = excluded.size,
                   indexed_at = excluded.indexed_at""",
            (
                source_file.path,
                source_file.language,
                source_file.content_hash,
                source_file.size,
                source_file.indexed_at,
            ),
        )

    def get_file(self, path: str) -> Optional[SourceFile]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM files WHERE path = ?", (path,)).fetchone()
        return _row_to_file(row) if row else None

    def all_files(self) -> List[SourceFile]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM files ORDER BY path").fetchall()
        return [_row_to_file(row) for row in rows]

    def delete_file(self, path: str) -> int:
        """Remove a file with its symbols and vectors. Returns the symbol count removed."""
        with self._transaction() as conn:
            removed = conn.execute(
                "SELECT COUNT(*) FROM symbols WHERE file_path = ?", (path,)
            ).fetchone()[0]
            conn.execute("DELETE FROM files WHERE path = ?", (path,))
        return removed

    def paths_missing_vectors(self) -> Set[str]:
        """Files that still have symbols without a vector (failed embedding batches)."""
        with self._connect() as conn:
            rows = conn.execute(
                """SELECT DISTINCT s.file_path FROM symbols s
                   LEFT JOIN vectors v ON v.symbol_id = s.id
                   WHERE v.symbol_id IS NULL"""
            ).fetchall()
        return {row[0] for row in rows}

    # ------------------------------------------------------------------
    # Symbols
    # ------------------------------------------------------------------

    def replace_symbols(self, path: str, entries: Sequence[SymbolEntry]) -> List[int]:
        """Atomically replace every symbol (and vector) stored for ``path``."""
        with self._transaction() as conn:
            return self._replace_symbols(conn, path, entries)

    def commit_file(self, source_file: SourceFile, entries: Sequence[SymbolEntry]) -> List[int]:
        """Upsert a file and replace its symbols in one transaction."""
        with self._transaction() as conn:
            self._upsert_file(conn, source_file)
            return self._replace_symbols(conn, source_file.path, entries)

    def _replace_symbols(
        self, conn: sqlite3.Connection, path: str, entries: Sequence[SymbolEntry]
    ) -> List[int]:
        dimension = self._dimension(conn)
        conn.execute("DELETE FROM symbols WHERE file_path = ?", (path,))
        ids = []
        for record, vector in entries:
            if record.file_path != path:
                raise ValueError(f"Symbol {record.name} belongs to {record.file_path}, not {path}")
            cursor = conn.execute(
                """INSERT INTO symbols
                   (file_path, kind, name, start_byte, end_byte, start_line, start_column,
                    end_line, end_column, scope, snippet, documentation)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    path,
                    record.kind,
                    record.name,
                    record.start_byte,
                    record.end_byte,
                    record.start_line,
                    record.start_column,
                    record.end_line,
                    record.end_column,
                    record.scope,
                    record.snippet,
                    record.documentation,
                ),
            )
            symbol_id = cursor.lastrowid
            ids.append(symbol_id)
            if vector is None:
                continue
            array = np.asarray(vector, dtype=np.float32)
            if dimension is None:
                dimension = int(array.shape[0])
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES ('dimension', ?)",
                    (str(dimension),),
                )
            elif array.shape[0] != dimension:
                raise ValueError(
                    f"Vector dimension {array.shape[0]} does not match store dimension {dimension}"
                )
            conn.execute(
                "INSERT INTO vectors (symbol_id, vector) VALUES (?, ?)",
                (symbol_id, array.tobytes()),
            )
        return ids

    @staticmethod
    def _dimension(conn: sqlite3.Connection) -> Optional[int]:
        row = conn.execute("SELECT value FROM metadata WHERE key = 'dimension'").fetchone()
        return int(row["value"]) if row else None

    def get_symbols(self, path: str) -> List[SymbolRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_SYMBOL_COLUMNS} FROM symbols WHERE file_path = ? "
                "ORDER BY start_byte, end_byte, kind",
                (path,),
            ).fetchall()
        return [_row_to_symbol(row) for row in rows]

    def get_symbol(self, symbol_id: int) -> Optional[SymbolRecord]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_SYMBOL_COLUMNS} FROM symbols WHERE id = ?", (symbol_id,)
            ).fetchone()
        return _row_to_symbol(row) if row else None

    def find_by_name(
        self,
        name: str,
        kind_prefix: Optional[str] = None,
        limit: int = 100,
        paths: Optional[Collection[str]] = None,
    ) -> List[SymbolRecord]:
        """Exact (case-insensitive) name lookup, in (path, offset) order.

        ``paths`` restricts the lookup to those files.
        """
        sql = f"SELECT {_SYMBOL_COLUMNS} FROM symbols WHERE name = ? COLLATE NOCASE"
        params: List[object] = [name]
        if kind_prefix:
            sql += " AND substr(kind, 1, ?) = ?"
            params.extend([len(kind_prefix), kind_prefix])
        if paths is not None:
            if not paths:
                return []
            sql += f" AND file_path IN ({', '.join('?' for _ in paths)})"
            params.extend(sorted(paths))
        sql += " ORDER BY file_path, start_byte LIMIT ?"
        params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_symbol(row) for row in rows]

    def find_by_kind(self, kind_prefix: str, path: Optional[str] = None) -> List[SymbolRecord]:
        """Every record whose kind starts with ``kind_prefix``, in (path, offset) order."""
        sql = f"SELECT {_SYMBOL_COLUMNS} FROM symbols WHERE substr(kind, 1, ?) = ?"
        params: List[object] = [len(kind_prefix), kind_prefix]
        if path is not None:
            sql += " AND file_path = ?"
            params.append(path)
        sql += " ORDER BY file_path, start_byte"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_symbol(row) for row in rows]

    def enclosing_definitions(self, path: str, start_byte: int, end_byte: int) -> List[SymbolRecord]:
        """Definitions in ``path`` covering the byte range, innermost first."""
        sql = (
            f"SELECT {_SYMBOL_COLUMNS} FROM symbols"
            " WHERE file_path = ? AND substr(kind, 1, 11) = 'definition.'"
            " AND start_byte <= ? AND end_byte >= ?"
            " ORDER BY end_byte - start_byte, start_byte"
        )
        with self._connect() as conn:
            rows = conn.execute(sql, (path, start_byte, end_byte)).fetchall()
        return [_row_to_symbol(row) for row in rows]

    def symbol_at(self, path: str, line: int, column: int) -> Optional[SymbolRecord]:
        """Innermost symbol whose span covers a 1-indexed line and 0-indexed column."""
        best: Optional[SymbolRecord] = None
        for record in self.get_symbols(path):
            starts_before = (record.start_line, record.start_column) <= (line, column)
            ends_after = (line, column) <= (record.end_line, record.end_column)
            if not (starts_before and ends_after):
                continue
            width = record.end_byte - record.start_byte
            if best is None or width <= best.end_byte - best.start_byte:
                best = record
        return best

    # ------------------------------------------------------------------
    # Vector search
    # ------------------------------------------------------------------

    def nearest_neighbors(
        self,
        query_vector: Sequence[float],
        k: int,
        path_prefixes: Optional[Sequence[str]] = None,
        names: Optional[Sequence[str]] = None,
    ) -> List[Tuple[SymbolRecord, float]]:
        """Rank embedded symbols by distance to ``query_vector``.

        Args:
            query_vector: Vector from the same provider as the stored ones
            k: Maximum results
            path_prefixes: Only consider files under these directories
            names: Only consider symbols with one of these names (case-insensitive)

        Returns:
            (record, distance) pairs, nearest first; ties ordered by
            (file path, start offset)
        """
        if k <= 0:
            return []
        where, params = _path_filter(path_prefixes)
        if names:
            placeholders = ", ".join("?" for _ in names)
            where += f" AND s.name COLLATE NOCASE IN ({placeholders})"
            params.extend(names)

        columns = ", ".join(f"s.{c.strip()}" for c in _SYMBOL_COLUMNS.split(","))
        with self._connect() as conn:
            dimension = self._dimension(conn)
            rows = conn.execute(
                f"SELECT {columns}, v.vector FROM symbols s "
                f"JOIN vectors v ON v.symbol_id = s.id WHERE 1 = 1{where}",
                params,
            ).fetchall()
        if not rows:
            return []

        query = np.asarray(query_vector, dtype=np.float32)
        if dimension is not None and query.shape[0] != dimension:
            raise ValueError(
                f"Query dimension {query.shape[0]} does not match store dimension {dimension}"
            )
        matrix = np.vstack([np.frombuffer(row["vector"], dtype=np.float32) for row in rows])
        distances = self._distances(matrix, query)

        ranked = sorted(
            range(len(rows)),
            key=lambda i: (
                round(float(distances[i]), 9),
                rows[i]["file_path"],
                rows[i]["start_byte"],
            ),
        )
        return [(_row_to_symbol(rows[i]), float(distances[i])) for i in ranked[:k]]

    def _distances(self, matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
        dots = matrix @ query
        if self.distance_metric == "inner_product":
            return -dots
        norms = np.linalg.norm(matrix, axis=1) * float(np.linalg.norm(query))
        with np.errstate(divide="ignore", invalid="ignore"):
            similarity = np.where(norms > 0, dots / norms, 0.0)
        return 1.0 - similarity

    # ------------------------------------------------------------------
    # Stats / maintenance
    # ------------------------------------------------------------------

    def stats(self) -> StoreStats:
        with self._connect() as conn:
            files_count, last_indexed = conn.execute(
                "SELECT COUNT(*), MAX(indexed_at) FROM files"
            ).fetchone()
            symbols_count = conn.execute("SELECT COUNT(*) FROM symbols").fetchone()[0]
        return StoreStats(
            files_count=files_count, symbols_count=symbols_count, last_indexed=last_indexed
        )

    def clear(self) -> None:
        """Clear all data from the store, including the recorded vector dimension."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM vectors")
            conn.execute("DELETE FROM symbols")
            conn.execute("DELETE FROM files")
            conn.execute("DELETE FROM metadata WHERE key = 'dimension'")
