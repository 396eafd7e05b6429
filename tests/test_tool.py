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


"""Tests for the codebase_search tool adapter."""

import asyncio

import pytest

from codesearch.errors import EmbeddingProviderError
from codesearch.models import SearchHit
from codesearch.tool import CONTROL_ACTIONS, TOOL_NAME, CodebaseSearchTool
from conftest import write_files


def run_with_tool(make_service, steps):
    """Open a service, run ``steps(tool)`` and close the service."""

    async def scenario():
        service = make_service()
        await service.open()
        try:
            return await steps(CodebaseSearchTool(service))
        finally:
            await service.close()

    return asyncio.run(scenario())


class TestCodebaseSearchTool:
    """Test suite for CodebaseSearchTool."""

    def test_schema(self, make_service):
        tool = CodebaseSearchTool(make_service())
        schema = tool.schema()
        assert schema["name"] == TOOL_NAME == "codebase_search"
        assert schema["parameters"]["required"] == ["query"]
        assert set(schema["parameters"]["properties"]) == {"query", "target_directories", "explanation"}

    def test_control_and_search(self, workspace, make_service):
        write_files(workspace, {"src/session.py": "def open_session(user):\n    return user\n"})

        async def steps(tool):
            enabled = await tool.control("enable")
            refreshed = await tool.control("refreshIndex")
            result = await tool.execute("open session", target_directories="src", explanation="find sessions")
            stats = await tool.control("getStats")
            return enabled, refreshed, result, stats

        enabled, refreshed, result, stats = run_with_tool(make_service, steps)

        assert enabled["status"] == "ok" and enabled["stats"]["enabled"]
        assert refreshed["report"]["added"] + refreshed["report"]["unchanged"] == 1
        assert refreshed["report"]["errors"] == 0
        assert result["status"] == "ok"
        assert result["indexStatus"] == "completed"
        top = result["results"][0]
        assert top["file"] == "src/session.py"
        assert top["name"] == "open_session"
        assert set(top["span"]) == {"start_line", "end_line", "start_byte", "end_byte"}
        assert stats["stats"]["filesCount"] == 1
        progress = stats["stats"]["progress"]
        assert progress["completed"] == progress["total"]

    def test_update_settings_uses_camel_case(self, make_service):
        async def steps(tool):
            return await tool.control("updateSettings", excludePaths="vendor, dist", includeTests=True)

        result = run_with_tool(make_service, steps)

        assert result["settings"] == {
            "excludePaths": ["vendor", "dist"],
            "includeTests": True,
            "autoIndexOnStartup": False,
        }

    def test_unknown_setting_and_action(self, make_service):
        async def steps(tool):
            with pytest.raises(ValueError):
                await tool.control("updateSettings", colour="blue")
            with pytest.raises(ValueError):
                await tool.control("reindexEverything")

        run_with_tool(make_service, steps)
        assert "clearIndex" in CONTROL_ACTIONS

    def test_unavailable_is_distinct_from_no_results(self, make_service):
        async def steps(tool):
            disabled = await tool.execute("anything")
            await tool.control("enable")
            await tool.control("refreshIndex")
            empty = await tool.execute("anything")
            return disabled, empty

        disabled, empty = run_with_tool(make_service, steps)

        assert disabled["status"] == "unavailable"
        assert "disabled" in disabled["error"]
        assert empty == {"status": "ok", "results": [], "indexStatus": "completed", "indexed": True}

    def test_refresh_when_disabled(self, make_service):
        async def steps(tool):
            return await tool.control("refreshIndex")

        result = run_with_tool(make_service, steps)
        assert result["status"] == "unavailable"
        assert result["stats"]["enabled"] is False

    def test_empty_query(self, make_service):
        async def steps(tool):
            return await tool.execute("   ")

        assert run_with_tool(make_service, steps)["status"] == "error"

    def test_format_results(self):
        hit = SearchHit(
            file_path="src/a.py",
            start_line=3,
            end_line=5,
            start_byte=20,
            end_byte=60,
            kind="definition.function",
            name="login",
            snippet="def login():\n    pass",
            score=0.8123,
        )
        text = CodebaseSearchTool.format_results([hit])
        assert text.startswith("src/a.py:3-5 definition.function login (score 0.812)")
        assert "def login():" in text
        assert CodebaseSearchTool.format_results([]) == "No matching code found."

    def test_embedding_failure_is_reported_not_raised(self, workspace, make_service):
        write_files(workspace, {"a.ts": "export function login() {\n  return true;\n}\n"})

        async def offline(texts):
            raise EmbeddingProviderError("provider offline")

        async def steps(tool):
            await tool.control("enable")
            await tool.control("refreshIndex")
            tool.service.provider.model.embed_batch = offline
            return await tool.execute("login function")

        result = run_with_tool(make_service, steps)

        assert result["status"] == "unavailable"
        assert result["results"] == []
        assert "provider offline" in result["error"]

    def test_pause_and_resume_actions(self, workspace, make_service):
        write_files(workspace, {f"m{i}.py": f"def f{i}():\n    return {i}\n" for i in range(10)})

        async def steps(tool):
            await tool.control("enable")
            await tool.control("refreshIndex")
            idle = await tool.control("pauseIndexing")
            write_files(workspace, {"extra.py": "def extra():\n    return 0\n"})
            task = tool.service.schedule_refresh()
            paused = await tool.control("pauseIndexing")
            resumed = await tool.control("resumeIndexing")
            await task
            return idle, paused, resumed

        idle, paused, resumed = run_with_tool(make_service, steps)

        assert idle["status"] == "ok"
        assert idle["stats"]["status"] == "completed"
        assert paused["stats"]["status"] == "paused"
        assert resumed["stats"]["status"] in ("scanning", "indexing")
        assert {"pauseIndexing", "resumeIndexing"} <= set(CONTROL_ACTIONS)
