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


"""Workspace-level codebase index service.

CodebaseIndexService ties one workspace's store, manifest, indexing
orchestrator, file watcher and search engine together and exposes the control
operations (enable, disable, refresh, clear, update settings, stats) plus
search. CodebaseSearchManager keeps one service per workspace root.

Usage:
    service = CodebaseIndexService("/path/to/repo")
    await service.open()
    await service.enable()
    await service.refresh_index()
    hits = await service.search("where are login tokens validated")
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic import ValidationError

from codesearch.codebase.embeddings.base import EmbeddingConfig, EmbeddingProvider
from codesearch.codebase.embeddings.models import BaseEmbeddingModel
from codesearch.codebase.indexer import IndexingOrchestrator, IndexRunReport, StatusListener
from codesearch.codebase.search import SearchEngine, split_directories
from codesearch.codebase.symbol_store import IndexStore
from codesearch.codebase.tree_sitter_manager import GrammarRegistry
from codesearch.codebase.watcher import CodebaseFileHandler, WorkspaceWatcher
from codesearch.config import (
    MANIFEST_FILE_NAME,
    STORE_FILE_NAME,
    IndexSettings,
    SearchSettings,
    workspace_storage_dir,
)
from codesearch.errors import IndexUnavailable, ProviderVersionMismatch
from codesearch.models import (
    FileError,
    IndexManifest,
    IndexStats,
    IndexStatus,
    SearchHit,
    StoreStats,
    SymbolRecord,
)

logger = logging.getLogger(__name__)


class CodebaseIndexService:
    """Index lifecycle and search for a single workspace."""

    def __init__(
        self,
        workspace_root: Union[str, Path],
        storage_root: Optional[Union[str, Path]] = None,
        settings: Optional[IndexSettings] = None,
        embedding_config: Optional[EmbeddingConfig] = None,
        search_settings: Optional[SearchSettings] = None,
        registry: Optional[GrammarRegistry] = None,
        model: Optional[BaseEmbeddingModel] = None,
        read_text: Optional[Callable[[str], str]] = None,
        list_files: Optional[Callable[[IndexSettings], Iterable[str]]] = None,
    ):
        self.root = Path(workspace_root).resolve()
        self.storage_dir = workspace_storage_dir(
            self.root, Path(storage_root) if storage_root is not None else None
        )
        self.manifest_path = self.storage_dir / MANIFEST_FILE_NAME
        self.embedding_config = embedding_config or EmbeddingConfig()
        self.registry = registry or GrammarRegistry()
        self.provider = EmbeddingProvider(self.embedding_config, model)
        self.store = IndexStore(
            self.storage_dir / STORE_FILE_NAME,
            distance_metric=self.embedding_config.distance_metric,
        )
        self.search_engine = SearchEngine(self.store, self.provider, search_settings)

        self._initial_settings = settings
        self._read_text = read_text
        self._list_files = list_files
        self._listeners: List[StatusListener] = []
        self._last_store_stats = StoreStats()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        self.manifest: Optional[IndexManifest] = None
        self.orchestrator: Optional[IndexingOrchestrator] = None
        self._watcher: Optional[WorkspaceWatcher] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.manifest is not None

    @property
    def settings(self) -> IndexSettings:
        self._check_open()
        return self.manifest.settings

    async def open(self) -> None:
        """Load the manifest, open the store and resume indexing if enabled.

        Raises:
            IndexUnavailable: When the store on disk is corrupt. The damaged
                files are removed and the next refresh rebuilds from scratch.
        """
        if self.is_open:
            return
        self._loop = asyncio.get_running_loop()
        self.manifest = self._load_manifest()
        if self.manifest.status in (IndexStatus.SCANNING, IndexStatus.INDEXING, IndexStatus.PAUSED):
            # An earlier process stopped mid-pass
            self.manifest.status = IndexStatus.IDLE
        self.orchestrator = IndexingOrchestrator(
            self.root,
            self.store,
            self.registry,
            self.provider,
            self.manifest,
            persist=self._save_manifest,
            read_text=self._read_text,
            list_files=self._list_files,
        )
        for listener in self._listeners:
            self.orchestrator.add_listener(listener)

        await self.provider.initialize()
        try:
            self._open_store()
        finally:
            self._save_manifest()

        if self.manifest.enabled:
            self._start_watcher()
            if self.manifest.settings.auto_index_on_startup:
                self.schedule_refresh()

    def _load_manifest(self) -> IndexManifest:
        try:
            manifest = IndexManifest.load(self.manifest_path, self.root)
        except (ValidationError, ValueError, OSError) as e:
            logger.warning(f"Discarding unreadable index manifest {self.manifest_path}: {e}")
            manifest = IndexManifest(workspace_root=str(self.root), needs_rebuild=True)
            if self._initial_settings is not None:
                manifest.settings = self._initial_settings
            return manifest
        if not self.manifest_path.exists() and self._initial_settings is not None:
            manifest.settings = self._initial_settings
        return manifest

    def _save_manifest(self) -> None:
        if self.manifest is not None:
            self.manifest.save(self.manifest_path)

    def _open_store(self) -> None:
        try:
            self.store.open()
        except IndexUnavailable as e:
            logger.warning(f"Index store for {self.root} is unavailable, scheduling rebuild: {e}")
            self.store.destroy()
            self.manifest.needs_rebuild = True
            self.manifest.status = IndexStatus.ERROR
            self.manifest.record_errors(
                [FileError(path="", error_type=type(e).__name__, message=str(e))]
            )
            raise

    def _ensure_store(self) -> None:
        """Make sure the store is usable, rebuilding it if it was lost."""
        if self.manifest.needs_rebuild and not self.orchestrator.is_running:
            self.store.destroy()
        if not self.store.is_open:
            self.store.open()

    async def close(self) -> None:
        """Stop indexing and watching and release the store."""
        if not self.is_open:
            return
        self._stop_watcher()
        await self.orchestrator.cancel()
        await self.provider.close()
        self.store.close()
        self._save_manifest()
        self.search_engine.cache.clear()
        self.manifest = None
        self.orchestrator = None
        logger.debug(f"Closed codebase index for {self.root}")

    def _check_open(self) -> None:
        if not self.is_open:
            raise IndexUnavailable(f"Codebase index for {self.root} is not open")

    def _check_enabled(self) -> None:
        self._check_open()
        if not self.manifest.enabled:
            raise IndexUnavailable(f"Codebase indexing is disabled for {self.root}")

    # ------------------------------------------------------------------
    # Listeners and watching
    # ------------------------------------------------------------------

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)
        if self.orchestrator is not None:
            self.orchestrator.add_listener(listener)

    def remove_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        if self.orchestrator is not None:
            self.orchestrator.remove_listener(listener)

    def _start_watcher(self) -> None:
        if self._watcher is not None or not self.manifest.settings.watch_for_changes:
            return
        handler = CodebaseFileHandler(
            self.root,
            on_change=self._on_files_changed,
            extensions=self.registry.supported_extensions,
            settings_provider=lambda: self.manifest.settings,
        )
        self._watcher = WorkspaceWatcher(handler)
        self._watcher.start()

    def _stop_watcher(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    def _on_files_changed(self, paths: List[str]) -> None:
        # Called from the watcher's timer thread
        logger.debug(f"{len(paths)} file(s) changed under {self.root}")
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._refresh_after_change)

    def _refresh_after_change(self) -> None:
        if self.is_open and self.manifest.enabled:
            self.schedule_refresh()

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    async def enable(self) -> IndexStats:
        """Turn indexing on and start a pass."""
        self._check_open()
        self.manifest.enabled = True
        self._save_manifest()
        self._start_watcher()
        self.schedule_refresh()
        logger.info(f"Codebase indexing enabled for {self.root}")
        return self.get_stats()

    async def disable(self) -> IndexStats:
        """Turn indexing off. Indexed data is kept for when it is re-enabled."""
        self._check_open()
        self._stop_watcher()
        await self.orchestrator.cancel()
        self.manifest.enabled = False
        self._save_manifest()
        logger.info(f"Codebase indexing disabled for {self.root}")
        return self.get_stats()

    def _provider_changed(self) -> bool:
        indexed = self.manifest.provider_id
        if indexed is None:
            return False
        return (
            indexed != self.provider.provider_id
            or self.manifest.distance_metric != self.store.distance_metric
        )

    def _needs_full_rebuild(self) -> bool:
        if self.manifest.needs_rebuild or self._provider_changed():
            return True
        # Vectors of unknown origin
        return self.manifest.provider_id is None and self.store.stats().symbols_count > 0

    def _prepare_pass(self, force: bool) -> bool:
        self._check_enabled()
        self._ensure_store()
        if not force and self._needs_full_rebuild():
            logger.info(
                f"Full reindex of {self.root} required "
                f"(indexed with {self.manifest.provider_id}, active {self.provider.provider_id})"
            )
            force = True
        if force:
            self.search_engine.cache.clear()
        return force

    async def refresh_index(self, force: bool = False) -> IndexRunReport:
        """Run an indexing pass and wait for it.

        Joins the pass already in flight instead of starting an overlapping one.
        """
        force = self._prepare_pass(force)
        return await self.orchestrator.refresh(force)

    def schedule_refresh(self, force: bool = False) -> "asyncio.Task[IndexRunReport]":
        """Start (or coalesce) a pass without waiting for it."""
        force = self._prepare_pass(force)
        task = self.orchestrator.start(force)
        task.add_done_callback(self._log_pass_failure)
        return task

    @staticmethod
    def _log_pass_failure(task: "asyncio.Task[IndexRunReport]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Background indexing pass failed: {error}")

    async def clear_index(self) -> IndexStats:
        """Interrupt indexing and drop every indexed file, symbol and vector."""
        self._check_open()
        await self.orchestrator.clear()
        self.search_engine.cache.clear()
        self._last_store_stats = StoreStats()
        self._save_manifest()
        logger.info(f"Cleared codebase index for {self.root}")
        return self.get_stats()

    def pause_indexing(self) -> IndexStats:
        """Hold the running pass between files; no-op when nothing is running."""
        self._check_open()
        if self.orchestrator.pause():
            logger.info(f"Paused indexing of {self.root}")
        return self.get_stats()

    def resume_indexing(self) -> IndexStats:
        self._check_open()
        if self.orchestrator.resume():
            logger.info(f"Resumed indexing of {self.root}")
        return self.get_stats()

    def update_settings(
        self,
        exclude_paths: Optional[Union[str, Sequence[str]]] = None,
        include_tests: Optional[bool] = None,
        auto_index_on_startup: Optional[bool] = None,
        **other: Any,
    ) -> IndexSettings:
        """Merge a partial settings update into the manifest.

        Takes effect on the next pass; call refresh_index to apply it now.
        """
        self._check_open()
        updates: Dict[str, Any] = dict(other)
        updates.update(
            exclude_paths=exclude_paths,
            include_tests=include_tests,
            auto_index_on_startup=auto_index_on_startup,
        )
        previous = self.manifest.settings
        self.manifest.settings = previous.merged(updates)
        self._save_manifest()

        if self.manifest.enabled and previous.watch_for_changes != self.manifest.settings.watch_for_changes:
            if self.manifest.settings.watch_for_changes:
                self._start_watcher()
            else:
                self._stop_watcher()
        logger.debug(f"Updated index settings for {self.root}: {self.manifest.settings}")
        return self.manifest.settings

    def get_stats(self) -> IndexStats:
        """Counts from the store plus manifest status and progress.

        Falls back to the last successfully read counts when the store is
        unavailable.
        """
        self._check_open()
        if self.store.is_open:
            try:
                self._last_store_stats = self.store.stats()
            except IndexUnavailable as e:
                logger.warning(f"Cannot read index stats: {e}")
        return IndexStats(
            files_count=self._last_store_stats.files_count,
            symbols_count=self._last_store_stats.symbols_count,
            last_indexed=self._last_store_stats.last_indexed,
            status=self.manifest.status,
            progress=self.manifest.progress.model_copy(),
            enabled=self.manifest.enabled,
            error_count=self.manifest.error_count,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        target_directories: Union[str, Sequence[str], None] = None,
        k: Optional[int] = None,
    ) -> List[SearchHit]:
        """Semantic search over the workspace.

        Returns an empty list when nothing is indexed; check ``get_stats``
        to tell "not indexed yet" apart from "no matches".

        Raises:
            IndexUnavailable: Indexing is disabled or the store cannot be read
            ProviderVersionMismatch: The index was built by another embedding
                provider and could not be rebuilt
        """
        self._check_enabled()
        self._ensure_store()
        if self._needs_full_rebuild() and self.orchestrator.is_running:
            await self.orchestrator.wait()
        if self._needs_full_rebuild():
            logger.info(f"Index of {self.root} is stale for {self.provider.provider_id}; rebuilding")
            await self.refresh_index(force=True)
            if self._provider_changed():
                raise ProviderVersionMismatch(self.manifest.provider_id, self.provider.provider_id)
        return await self.search_engine.search(
            query, self._relative_directories(target_directories), k
        )

    def _relative_directories(
        self, target_directories: Union[str, Sequence[str], None]
    ) -> List[str]:
        relative = []
        for directory in split_directories(target_directories):
            path = Path(directory)
            if path.is_absolute():
                try:
                    directory = path.resolve().relative_to(self.root).as_posix()
                except ValueError:
                    logger.debug(f"Ignoring directory outside the workspace: {directory}")
                    continue
            relative.append(directory)
        return relative

    def _relative_path(self, path: str) -> str:
        candidate = Path(path)
        if candidate.is_absolute():
            try:
                return candidate.resolve().relative_to(self.root).as_posix()
            except ValueError as e:
                raise ValueError(f"{path} is outside the workspace {self.root}") from e
        return candidate.as_posix()

    async def find_references(
        self, name: str, include_definitions: bool = True, defined_in: Optional[str] = None
    ) -> List[SymbolRecord]:
        """Indexed uses of ``name``, optionally scoped to the file defining it and its importers."""
        self._check_open()
        self._ensure_store()
        if defined_in is not None:
            defined_in = self._relative_path(defined_in)
        return await self.search_engine.find_references(
            name, include_definitions, defined_in=defined_in
        )

    async def find_implementations(self, name: str) -> List[SymbolRecord]:
        self._check_open()
        self._ensure_store()
        return await self.search_engine.find_implementations(name)

    async def importers_of(self, path: str) -> List[str]:
        self._check_open()
        self._ensure_store()
        return await self.search_engine.importers_of(self._relative_path(path))

    async def imports_of(self, path: str) -> List[str]:
        self._check_open()
        self._ensure_store()
        return await self.search_engine.imports_of(self._relative_path(path))

    async def symbol_at(self, path: str, line: int, column: int) -> Optional[SymbolRecord]:
        self._check_open()
        self._ensure_store()
        return await self.search_engine.symbol_at(path, line, column)


class CodebaseSearchManager:
    """One CodebaseIndexService per workspace, sharing a grammar registry."""

    def __init__(
        self,
        storage_root: Optional[Union[str, Path]] = None,
        embedding_config: Optional[EmbeddingConfig] = None,
        search_settings: Optional[SearchSettings] = None,
        registry: Optional[GrammarRegistry] = None,
    ):
        self.storage_root = storage_root
        self.embedding_config = embedding_config
        self.search_settings = search_settings
        self.registry = registry or GrammarRegistry()
        self._services: Dict[Path, CodebaseIndexService] = {}

    def workspaces(self) -> List[Path]:
        return sorted(self._services)

    async def get_service(self, workspace_root: Union[str, Path]) -> CodebaseIndexService:
        """Return the open service for a workspace, creating it on first use."""
        root = Path(workspace_root).resolve()
        service = self._services.get(root)
        if service is None:
            service = CodebaseIndexService(
                root,
                storage_root=self.storage_root,
                embedding_config=self.embedding_config,
                search_settings=self.search_settings,
                registry=self.registry,
            )
            self._services[root] = service
        await service.open()
        return service

    async def close_workspace(self, workspace_root: Union[str, Path]) -> None:
        service = self._services.pop(Path(workspace_root).resolve(), None)
        if service is not None:
            await service.close()

    async def close_all(self) -> None:
        for root in list(self._services):
            await self.close_workspace(root)
