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


"""File watching: turns workspace changes into debounced refresh requests."""

import logging
import threading
from pathlib import Path
from typing import Callable, Collection, List, Optional, Set

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from codesearch.codebase.ignore_patterns import should_ignore_path
from codesearch.config import IndexSettings

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_DELAY = 0.5


class CodebaseFileHandler(FileSystemEventHandler):
    """File system event handler for tracking codebase changes.

    Collects changed source paths and hands them to ``on_change`` as one
    batch once the workspace has been quiet for ``debounce_delay`` seconds.
    """

    def __init__(
        self,
        root: Path,
        on_change: Callable[[List[str]], None],
        extensions: Collection[str],
        settings_provider: Callable[[], IndexSettings],
        debounce_delay: float = DEFAULT_DEBOUNCE_DELAY,
    ):
        """Initialize file handler.

        Args:
            root: Workspace root being watched
            on_change: Callback receiving the sorted workspace-relative paths
            extensions: File extensions worth reacting to (e.g. {".py"})
            settings_provider: Returns the current settings, so exclude
                patterns updated at runtime take effect immediately
            debounce_delay: Quiet period before notifying
        """
        super().__init__()
        self.root = Path(root).resolve()
        self.on_change = on_change
        self.extensions = {ext.lower() for ext in extensions}
        self.settings_provider = settings_provider
        self._debounce_lock = threading.Lock()
        self._pending_changes: Set[str] = set()
        self._debounce_timer: Optional[threading.Timer] = None
        self._debounce_delay = debounce_delay

    def _relative(self, path: str) -> Optional[str]:
        try:
            return Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None

    def _should_process(self, path: str) -> bool:
        rel_path = self._relative(path)
        if rel_path is None or Path(rel_path).suffix.lower() not in self.extensions:
            return False
        settings = self.settings_provider()
        return not should_ignore_path(rel_path, settings.exclude_paths, settings.include_tests)

    def _debounced_notify(self) -> None:
        with self._debounce_lock:
            changes = sorted(self._pending_changes)
            self._pending_changes.clear()
            self._debounce_timer = None

        if not changes:
            return
        try:
            self.on_change(changes)
        except Exception as e:
            logger.warning(f"Error in file change callback: {e}")

    def _schedule_notification(self, path: str) -> None:
        rel_path = self._relative(path)
        if rel_path is None:
            return
        with self._debounce_lock:
            self._pending_changes.add(rel_path)
            if self._debounce_timer:
                self._debounce_timer.cancel()
            self._debounce_timer = threading.Timer(self._debounce_delay, self._debounced_notify)
            self._debounce_timer.daemon = True
            self._debounce_timer.start()

    def cancel(self) -> None:
        """Drop pending changes without notifying."""
        with self._debounce_lock:
            if self._debounce_timer:
                self._debounce_timer.cancel()
            self._debounce_timer = None
            self._pending_changes.clear()

    def _handle(self, path: str) -> None:
        if self._should_process(path):
            self._schedule_notification(path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._handle(event.src_path)
            self._handle(event.dest_path)


class WorkspaceWatcher:
    """Owns the watchdog observer for one workspace."""

    def __init__(self, handler: CodebaseFileHandler):
        self.handler = handler
        self._observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.handler.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info(f"Watching {self.handler.root} for changes")

    def stop(self) -> None:
        if self._observer is None:
            return
        self.handler.cancel()
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.debug(f"Stopped watching {self.handler.root}")
