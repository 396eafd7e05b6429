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


"""Tests for the workspace service: control operations and search scenarios."""

import asyncio

import pytest

from codesearch.config import IndexSettings
from codesearch.errors import IndexUnavailable
from codesearch.models import IndexStatus
from codesearch.service import CodebaseSearchManager
from conftest import hash_embedding_config, write_files

LOGIN_WORKSPACE = {
    "a.ts": (
        "export function login(user: string, password: string): boolean {\n"
        "  return user.length > 0 && password.length > 0;\n"
        "}\n"
    ),
    "b.ts": 'import { login } from "./a";\n\nconst ok = login("bob", "secret");\n',
}


SHAPES_WORKSPACE = {
    "shapes/base.py": "class Shape:\n    def area(self):\n        return 0\n",
    "shapes/circle.py": (
        "from .base import Shape\n\n\nclass Circle(Shape):\n    def area(self):\n        return 3.14\n"
    ),
    "shapes/square.py": (
        "from shapes.base import Shape\n\n\nclass Square(Shape):\n    def area(self):\n        return 1\n"
    ),
    "other/shape.py": "class Shape:\n    pass\n\n\nclass Blob(Shape):\n    pass\n",
}


class TestCodebaseIndexService:
    """Test suite for CodebaseIndexService."""

    def test_login_definition_ranks_above_call(self, workspace, make_service):
        """search("login function") puts a.ts's definition at or above b.ts's call."""
        write_files(workspace, LOGIN_WORKSPACE)
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            hits = await service.search("login function")
            await service.close()
            return hits

        hits = asyncio.run(scenario())

        keys = [(hit.file_path, hit.kind, hit.name) for hit in hits]
        definition = keys.index(("a.ts", "definition.function", "login"))
        reference = keys.index(("b.ts", "reference.call", "login"))
        assert definition < reference
        assert all(0.0 <= hit.score <= 1.0 for hit in hits)
        assert hits == sorted(hits, key=lambda h: -h.score)

    def test_exclude_paths_update(self, workspace, make_service):
        """updateSettings(excludePaths="vendor") + refresh drops vendor symbols."""
        write_files(
            workspace,
            {
                "src/app.py": "def app():\n    return helper()\n",
                "vendor/lib.py": "def helper():\n    pass\n",
            },
        )
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            before = service.get_stats()
            service.update_settings(exclude_paths="vendor")
            await service.refresh_index()
            after = service.get_stats()
            app_symbols = len(service.store.get_symbols("src/app.py"))
            await service.close()
            return before, after, app_symbols

        before, after, app_symbols = asyncio.run(scenario())

        assert before.files_count == 2
        assert after.files_count == 1
        assert after.symbols_count == app_symbols
        assert after.status == IndexStatus.COMPLETED

    def test_provider_change_forces_reindex_before_search(self, workspace, make_service):
        write_files(workspace, LOGIN_WORKSPACE)
        service = make_service()
        events = []

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            service.manifest.provider_id = "hash:older-model:64"
            service.add_listener(events.append)
            hits = await service.search("login")
            await service.close()
            return hits

        hits = asyncio.run(scenario())

        statuses = [event.status for event in events]
        assert statuses.index(IndexStatus.SCANNING) < statuses.index(IndexStatus.INDEXING)
        assert statuses[-1] == IndexStatus.COMPLETED
        assert hits
        assert service.embedding_config.model.model_name == "hashing-v1"

    def test_empty_workspace(self, make_service):
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            stats = service.get_stats().to_dict()
            hits = await service.search("anything at all")
            await service.close()
            return stats, hits

        stats, hits = asyncio.run(scenario())

        assert {key: stats[key] for key in ("filesCount", "symbolsCount", "lastIndexed", "status")} == {
            "filesCount": 0,
            "symbolsCount": 0,
            "lastIndexed": None,
            "status": "completed",
        }
        assert stats["progress"] == {"completed": 0, "total": 0}
        assert hits == []

    def test_search_requires_enabled_index(self, make_service):
        service = make_service()

        async def scenario():
            await service.open()
            try:
                with pytest.raises(IndexUnavailable):
                    await service.search("login")
            finally:
                await service.close()

        asyncio.run(scenario())

    def test_target_directories(self, workspace, make_service):
        write_files(
            workspace,
            {
                "api/login.py": "def login(user):\n    pass\n",
                "web/login.py": "def login(user):\n    pass\n",
            },
        )
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            relative = await service.search("login", target_directories="web")
            absolute = await service.search("login", target_directories=[str(workspace / "api")])
            await service.close()
            return relative, absolute

        relative, absolute = asyncio.run(scenario())

        assert relative and {hit.file_path for hit in relative} == {"web/login.py"}
        assert absolute and {hit.file_path for hit in absolute} == {"api/login.py"}

    def test_clear_index(self, workspace, make_service):
        write_files(workspace, LOGIN_WORKSPACE)
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            stats = await service.clear_index()
            hits = await service.search("login")
            await service.close()
            return stats, hits

        stats, hits = asyncio.run(scenario())

        assert (stats.files_count, stats.symbols_count) == (0, 0)
        assert stats.status == IndexStatus.IDLE
        assert stats.enabled
        assert hits == []

    def test_disable_keeps_data(self, workspace, make_service):
        write_files(workspace, LOGIN_WORKSPACE)
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            stats = await service.disable()
            await service.close()
            return stats

        stats = asyncio.run(scenario())
        assert not stats.enabled
        assert stats.files_count == 2

    def test_manifest_persists_across_sessions(self, workspace, make_service):
        """Settings and indexed state survive a restart; startup indexing resumes."""
        write_files(workspace, LOGIN_WORKSPACE)

        async def first_session():
            service = make_service()
            await service.open()
            await service.enable()
            service.update_settings(exclude_paths=["dist"], auto_index_on_startup=True)
            await service.refresh_index()
            await service.close()

        async def second_session():
            service = make_service(settings=IndexSettings(watch_for_changes=False))
            await service.open()
            running = service.orchestrator.is_running
            report = await service.orchestrator.wait()
            settings = service.settings
            stats = service.get_stats()
            await service.close()
            return running, report, settings, stats

        asyncio.run(first_session())
        running, report, settings, stats = asyncio.run(second_session())

        assert running
        assert report.unchanged == 2
        assert settings.exclude_paths == ["dist"]
        assert stats.enabled and stats.files_count == 2

    def test_corrupt_store_is_rebuilt(self, workspace, make_service):
        write_files(workspace, LOGIN_WORKSPACE)
        service = make_service()
        service.store.db_path.parent.mkdir(parents=True)
        service.store.db_path.write_bytes(b"garbage, not sqlite" * 200)

        async def scenario():
            with pytest.raises(IndexUnavailable):
                await service.open()
            failed = service.get_stats()
            await service.enable()
            await service.refresh_index()
            rebuilt = service.get_stats()
            await service.close()
            return failed, rebuilt

        failed, rebuilt = asyncio.run(scenario())

        assert failed.status == IndexStatus.ERROR
        assert failed.files_count == 0
        assert rebuilt.status == IndexStatus.COMPLETED
        assert rebuilt.files_count == 2

    def test_find_references_and_symbol_at(self, workspace, make_service):
        write_files(workspace, LOGIN_WORKSPACE)
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            everything = await service.find_references("login")
            uses = await service.find_references("login", include_definitions=False)
            at = await service.symbol_at("a.ts", 2, 10)
            await service.close()
            return everything, uses, at

        everything, uses, at = asyncio.run(scenario())

        assert ("a.ts", "definition.function") in {(r.file_path, r.kind) for r in everything}
        assert uses and all(not r.is_definition for r in uses)
        assert at is not None and at.file_path == "a.ts"

    def test_find_implementations(self, workspace, make_service):
        write_files(workspace, SHAPES_WORKSPACE)
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            found = await service.find_implementations("Shape")
            await service.close()
            return found

        found = asyncio.run(scenario())

        assert [(r.file_path, r.name, r.kind) for r in found] == [
            ("other/shape.py", "Blob", "definition.class"),
            ("shapes/circle.py", "Circle", "definition.class"),
            ("shapes/square.py", "Square", "definition.class"),
        ]

    def test_references_scoped_to_importers(self, workspace, make_service):
        """Only the defining file and files importing it are searched."""
        write_files(workspace, SHAPES_WORKSPACE)
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            everywhere = await service.find_references("Shape")
            scoped = await service.find_references(
                "Shape", defined_in=str(workspace / "shapes" / "base.py")
            )
            importers = await service.importers_of("shapes/base.py")
            imports = await service.imports_of("shapes/circle.py")
            await service.close()
            return everywhere, scoped, importers, imports

        everywhere, scoped, importers, imports = asyncio.run(scenario())

        assert "other/shape.py" in {r.file_path for r in everywhere}
        assert {r.file_path for r in scoped} == {
            "shapes/base.py",
            "shapes/circle.py",
            "shapes/square.py",
        }
        assert importers == ["shapes/circle.py", "shapes/square.py"]
        assert imports == ["shapes/base.py"]

    def test_pause_and_resume_indexing(self, workspace, make_service):
        write_files(
            workspace, {f"pkg/m{i:02d}.py": f"def f{i}():\n    return {i}\n" for i in range(20)}
        )
        service = make_service(settings=IndexSettings(watch_for_changes=False, auto_index_on_startup=False, max_workers=1))

        async def scenario():
            await service.open()
            await service.enable()
            task = service.schedule_refresh()
            while not service.orchestrator.is_running:
                await asyncio.sleep(0)
            paused = service.pause_indexing()
            resumed = service.resume_indexing()
            await task
            done = service.get_stats()
            idle = service.pause_indexing()
            await service.close()
            return paused, resumed, done, idle

        paused, resumed, done, idle = asyncio.run(scenario())

        assert paused.status == IndexStatus.PAUSED
        assert resumed.status in (IndexStatus.SCANNING, IndexStatus.INDEXING)
        assert done.status == IndexStatus.COMPLETED
        assert done.files_count == 20
        assert idle.status == IndexStatus.COMPLETED

    def test_file_change_schedules_refresh(self, workspace, make_service):
        service = make_service()

        async def scenario():
            await service.open()
            await service.enable()
            await service.refresh_index()
            write_files(workspace, {"new.py": "def fresh():\n    pass\n"})
            service._on_files_changed(["new.py"])
            await asyncio.sleep(0)
            await service.orchestrator.wait()
            stats = service.get_stats()
            await service.close()
            return stats

        stats = asyncio.run(scenario())
        assert stats.files_count == 1


class TestCodebaseSearchManager:
    """Test suite for CodebaseSearchManager."""

    def test_one_service_per_workspace(self, tmp_path, storage_root):
        first_root = tmp_path / "one"
        second_root = tmp_path / "two"
        first_root.mkdir()
        second_root.mkdir()
        manager = CodebaseSearchManager(storage_root=storage_root, embedding_config=hash_embedding_config())

        async def scenario():
            first = await manager.get_service(first_root)
            again = await manager.get_service(str(first_root))
            second = await manager.get_service(second_root)
            workspaces = manager.workspaces()
            await manager.close_all()
            return first, again, second, workspaces

        first, again, second, workspaces = asyncio.run(scenario())

        assert first is again
        assert first is not second
        assert first.registry is second.registry
        assert first.storage_dir != second.storage_dir
        assert workspaces == sorted([first_root.resolve(), second_root.resolve()])
        assert manager.workspaces() == []
        assert not first.is_open
