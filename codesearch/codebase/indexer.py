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


"""Indexing orchestrator: keeps a workspace's index in step with its files.

A pass walks the workspace, diffs content hashes against the store, purges
deleted files and re-extracts/re-embeds new or changed ones:

    idle -> scanning -> indexing -> completed
                 \\          \\-> error (per-file failures, or store unavailable)

A running pass can be paused and resumed between files; while paused the
manifest reports ``paused`` and no further files are written.

Work is spread over a bounded pool of workers; each file is one unit
(read -> parse/extract -> embed -> commit). Cancellation is checked between
units, so a cancelled pass never leaves a half-written file behind. Refresh
requests that arrive while a pass is running are coalesced into a single
follow-up pass.
"""

import asyncio
import hashlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from codesearch.codebase.chunker import chunk_by_lines
from codesearch.codebase.embeddings.base import EmbeddingProvider
from codesearch.codebase.ignore_patterns import iter_workspace_files
from codesearch.codebase.symbol_store import IndexStore
from codesearch.codebase.tree_sitter_extractor import SymbolExtractor
from codesearch.codebase.tree_sitter_manager import GrammarRegistry
from codesearch.config import IndexSettings
from codesearch.errors import IndexUnavailable, ParseError, UnsupportedLanguageError
from codesearch.models import (
    FileError,
    IndexManifest,
    IndexProgress,
    IndexStatus,
    SourceFile,
)

logger = logging.getLogger(__name__)

# Files under these top-level directories are indexed first
PRIORITY_DIRS = ("src", "lib", "app", "core")


@dataclass
class IndexEvent:
    """Snapshot delivered to status listeners."""

    status: IndexStatus
    progress: IndexProgress
    error_count: int = 0


StatusListener = Callable[[IndexEvent], None]


@dataclass
class IndexRunReport:
    """Outcome of one indexing pass."""

    added: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: int = 0
    errors: List[FileError] = field(default_factory=list)
    full_rebuild: bool = False
    cancelled: bool = False
    elapsed: float = 0.0

    @property
    def changed(self) -> int:
        return len(self.added) + len(self.updated) + len(self.removed)


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def priority_key(rel_path: str) -> Tuple[int, str]:
    top = rel_path.split("/", 1)[0]
    return (0 if top in PRIORITY_DIRS else 1, rel_path)


class IndexingOrchestrator:
    """Drives incremental indexing for one workspace.

    The orchestrator is the only writer of the index store. It mutates the
    manifest's status and progress and hands it to ``persist`` on every status
    transition.
    """

    def __init__(
        self,
        workspace_root: Path,
        store: IndexStore,
        registry: GrammarRegistry,
        provider: EmbeddingProvider,
        manifest: IndexManifest,
        persist: Optional[Callable[[], None]] = None,
        read_text: Optional[Callable[[str], str]] = None,
        list_files: Optional[Callable[[IndexSettings], Iterable[str]]] = None,
    ):
        self.root = Path(workspace_root).resolve()
        self.store = store
        self.registry = registry
        self.provider = provider
        self.manifest = manifest
        self._persist = persist
        self._read_text = read_text
        self._list_files = list_files
        self._listeners: List[StatusListener] = []

        self._running: Optional["asyncio.Task[IndexRunReport]"] = None
        self._rerun = False
        self._rerun_force = False
        self._cancel_requested = False
        self._abort = False
        self._paused = False
        self._resume_event = asyncio.Event()
        self._phase = IndexStatus.SCANNING

    @property
    def settings(self) -> IndexSettings:
        return self.manifest.settings

    @property
    def is_running(self) -> bool:
        return self._running is not None and not self._running.done()

    @property
    def is_paused(self) -> bool:
        return self._paused

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    def start(self, force: bool = False) -> "asyncio.Task[IndexRunReport]":
        """Start a pass, or coalesce with the one already running.

        Returns the task of the (possibly already running) pass; it completes
        after the follow-up pass when one was requested.
        """
        if self.is_running:
            logger.debug("Refresh requested during an active pass; coalescing")
            self._rerun = True
            self._rerun_force = self._rerun_force or force
            return self._running
        self._cancel_requested = False
        self._running = asyncio.get_running_loop().create_task(self._run_passes(force))
        return self._running

    async def refresh(self, force: bool = False) -> IndexRunReport:
        return await asyncio.shield(self.start(force))

    async def wait(self) -> Optional[IndexRunReport]:
        """Wait for the pass in flight, if any."""
        if self._running is None:
            return None
        return await asyncio.shield(self._running)

    async def cancel(self) -> None:
        """Stop the running pass at the next file boundary and wait for it."""
        if not self.is_running:
            return
        self._cancel_requested = True
        self._rerun = False
        if self._paused:
            self._paused = False
            self._resume_event.set()
        task = self._running
        try:
            await asyncio.shield(task)
        except IndexUnavailable:
            logger.debug("Cancelled pass ended with an unavailable store")
        finally:
            self._cancel_requested = False

    def pause(self) -> bool:
        """Hold the running pass at the next file boundary.

        Files already being processed finish; search keeps serving what is
        committed. Returns False when no pass is running or it is already paused.
        """
        if not self.is_running or self._paused:
            return False
        self._paused = True
        self._resume_event.clear()
        self._set_status(IndexStatus.PAUSED)
        logger.info("Indexing paused")
        return True

    def resume(self) -> bool:
        """Continue a paused pass. Returns False when nothing was paused."""
        if not self._paused:
            return False
        self._paused = False
        self._resume_event.set()
        if self.is_running:
            self._set_status(self._phase)
        logger.info("Indexing resumed")
        return True

    async def _wait_if_paused(self) -> None:
        if self._paused:
            await self._resume_event.wait()

    async def clear(self) -> None:
        """Stop any running pass and drop every indexed file, symbol and vector.

        A store that cannot be cleared is deleted and recreated empty.
        """
        await self.cancel()
        self._rerun = False
        try:
            await asyncio.to_thread(self.store.clear)
        except IndexUnavailable as e:
            logger.warning(f"Recreating index store that could not be cleared: {e}")
            self.store.destroy()
            self.store.open()
        self.manifest.reset()
        self._set_status(IndexStatus.IDLE, IndexProgress())

    def _should_stop(self) -> bool:
        return self._cancel_requested or self._abort

    def vectors_incomparable(self) -> bool:
        """True when stored vectors come from another (or an unknown) vector space."""
        return (
            self.manifest.needs_rebuild
            or self.manifest.provider_id != self.provider.provider_id
            or self.manifest.distance_metric != self.store.distance_metric
        )

    async def _run_passes(self, force: bool) -> IndexRunReport:
        # The event belongs to the loop running this task
        self._resume_event = asyncio.Event()
        if not self._paused:
            self._resume_event.set()
        try:
            report = await self._run_pass(force)
            while self._rerun and not self._cancel_requested:
                force = self._rerun_force
                self._rerun = False
                self._rerun_force = False
                report = await self._run_pass(force)
        finally:
            self._paused = False
        return report

    # ------------------------------------------------------------------
    # A single pass
    # ------------------------------------------------------------------

    async def _run_pass(self, force: bool) -> IndexRunReport:
        started = time.monotonic()
        report = IndexRunReport(full_rebuild=force)
        self._abort = False
        try:
            await self._wait_if_paused()
            self._set_status(IndexStatus.SCANNING, IndexProgress())
            if force and self.vectors_incomparable():
                # Old vectors cannot be ranked against new ones
                await asyncio.to_thread(self.store.clear)

            current, unreadable = await asyncio.to_thread(self._scan, report)
            await self._wait_if_paused()
            stored = {f.path: f for f in await asyncio.to_thread(self.store.all_files)}
            missing_vectors = await asyncio.to_thread(self.store.paths_missing_vectors)

            to_index: List[str] = []
            for path, digest in current.items():
                known = stored.get(path)
                if known is None:
                    report.added.append(path)
                    to_index.append(path)
                elif force or known.content_hash != digest or path in missing_vectors:
                    report.updated.append(path)
                    to_index.append(path)
                else:
                    report.unchanged += 1

            for path in sorted(set(stored) - set(current) - unreadable):
                if self._should_stop():
                    break
                await asyncio.to_thread(self.store.delete_file, path)
                report.removed.append(path)

            to_index.sort(key=priority_key)
            await self._wait_if_paused()
            self._set_status(IndexStatus.INDEXING, IndexProgress(total=len(to_index)))
            await self._reindex(to_index, report)
        except IndexUnavailable as e:
            logger.error(f"Index store unavailable, aborting pass: {e}")
            report.errors.append(FileError(path="", error_type=type(e).__name__, message=str(e)))
            self.manifest.needs_rebuild = True
            self.manifest.record_errors(report.errors)
            self._set_status(IndexStatus.ERROR)
            raise
        except Exception as e:
            logger.error(f"Indexing pass failed: {e}")
            report.errors.append(FileError(path="", error_type=type(e).__name__, message=str(e)))
            self.manifest.record_errors(report.errors)
            self._set_status(IndexStatus.ERROR)
            raise
        finally:
            report.elapsed = time.monotonic() - started

        report.cancelled = self._cancel_requested
        self.manifest.record_errors(report.errors)
        if report.cancelled:
            logger.info("Indexing pass cancelled")
            self._set_status(IndexStatus.IDLE)
            return report

        self.manifest.provider_id = self.provider.provider_id
        self.manifest.distance_metric = self.store.distance_metric
        self.manifest.needs_rebuild = False
        self.manifest.last_completed = time.time()
        if report.changed:
            logger.info(
                f"Indexed {self.root}: {len(report.added)} added, {len(report.updated)} updated, "
                f"{len(report.removed)} removed, {report.unchanged} unchanged, "
                f"{len(report.errors)} errors in {report.elapsed:.2f}s"
            )
        else:
            logger.debug(f"Index up to date ({report.unchanged} files unchanged)")
        self._set_status(IndexStatus.ERROR if report.errors else IndexStatus.COMPLETED)
        return report

    def _scan(self, report: IndexRunReport) -> Tuple[Dict[str, str], Set[str]]:
        """Hash every candidate file. Returns (path -> hash, unreadable paths)."""
        extensions = set(self._extensions())
        if self._list_files is not None:
            candidates: Iterable[str] = (
                p for p in self._list_files(self.settings) if PurePosixPath(p).suffix.lower() in extensions
            )
        else:
            candidates = iter_workspace_files(
                self.root,
                extensions,
                exclude_patterns=self.settings.exclude_paths,
                include_tests=self.settings.include_tests,
            )

        hashes: Dict[str, str] = {}
        unreadable: Set[str] = set()
        for rel_path in candidates:
            if self._should_stop():
                break
            try:
                data = self._read_bytes(rel_path)
            except (OSError, UnicodeDecodeError) as e:
                logger.debug(f"Cannot read {rel_path}: {e}")
                report.errors.append(
                    FileError(path=rel_path, error_type=type(e).__name__, message=str(e))
                )
                unreadable.add(rel_path)
                continue
            if len(data) > self.settings.max_file_bytes:
                logger.debug(f"Skipping {rel_path}: {len(data)} bytes exceeds limit")
                continue
            hashes[rel_path] = content_hash(data)
        return hashes, unreadable

    def _extensions(self) -> List[str]:
        extensions = self.registry.supported_extensions
        if not self.settings.languages:
            return extensions
        allowed = {lang.lower() for lang in self.settings.languages}
        selected = []
        for ext in extensions:
            tag = self.registry.language_for_extension(ext)
            if tag is not None and tag.value in allowed:
                selected.append(ext)
        return selected

    def _read_bytes(self, rel_path: str) -> bytes:
        if self._read_text is not None:
            return self._read_text(rel_path).encode("utf-8")
        return (self.root / rel_path).read_bytes()

    async def _reindex(self, paths: List[str], report: IndexRunReport) -> None:
        if not paths:
            return
        extractor = SymbolExtractor(
            reference_context_lines=self.settings.reference_context_lines,
            max_snippet_lines=self.settings.max_snippet_lines,
        )
        workers = min(self.settings.max_workers, len(paths))
        pending = iter(paths)

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="codesearch-parse") as executor:

            async def worker() -> None:
                for path in pending:
                    await self._wait_if_paused()
                    if self._should_stop():
                        return
                    try:
                        await self._index_file(path, extractor, executor, report)
                    except (UnsupportedLanguageError, OSError, UnicodeDecodeError) as e:
                        logger.debug(f"Skipping {path}: {e}")
                        report.errors.append(
                            FileError(path=path, error_type=type(e).__name__, message=str(e))
                        )
                    except Exception:
                        self._abort = True
                        raise
                    self._advance()

            results = await asyncio.gather(
                *(worker() for _ in range(workers)), return_exceptions=True
            )

        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _index_file(
        self,
        path: str,
        extractor: SymbolExtractor,
        executor: ThreadPoolExecutor,
        report: IndexRunReport,
    ) -> None:
        handle = self.registry.get_handle(PurePosixPath(path).suffix)
        data = await asyncio.to_thread(self._read_bytes, path)
        text = data.decode("utf-8")
        source_file = SourceFile(
            path=path,
            content_hash=content_hash(data),
            language=handle.tag.value,
            size=len(data),
        )

        loop = asyncio.get_running_loop()
        try:
            records = await loop.run_in_executor(executor, extractor.extract, path, text, handle)
        except ParseError as e:
            logger.debug(str(e))
            report.errors.append(FileError(path=path, error_type="ParseError", message=str(e)))
            records = []

        if len(records) > self.settings.max_symbols_per_file:
            logger.debug(f"{path} has {len(records)} symbols; indexing coarse chunks instead")
            records = chunk_by_lines(path, text)

        vectors, batch_errors = await self.provider.embed_all(
            [record.embedding_text() for record in records]
        )
        for error in batch_errors:
            report.errors.append(
                FileError(path=path, error_type=type(error).__name__, message=str(error))
            )

        if self._should_stop():
            return
        await asyncio.to_thread(self.store.commit_file, source_file, list(zip(records, vectors)))

    # ------------------------------------------------------------------
    # Status and progress
    # ------------------------------------------------------------------

    def _advance(self) -> None:
        progress = self.manifest.progress
        self.manifest.progress = IndexProgress(
            completed=min(progress.completed + 1, progress.total), total=progress.total
        )
        self._notify()

    def _set_status(self, status: IndexStatus, progress: Optional[IndexProgress] = None) -> None:
        if status in (IndexStatus.SCANNING, IndexStatus.INDEXING):
            self._phase = status
        self.manifest.status = status
        if progress is not None:
            self.manifest.progress = progress
        if self._persist is not None:
            self._persist()
        self._notify()

    def _notify(self) -> None:
        event = IndexEvent(
            status=self.manifest.status,
            progress=self.manifest.progress.model_copy(),
            error_count=self.manifest.error_count,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Error in index status listener: {e}")
