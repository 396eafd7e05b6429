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


"""Tool-invocation adapter for codebase search.

Exposes the ``codebase_search`` query operation and the index control
operations as plain dictionaries suitable for an agent tool layer.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from codesearch.codebase.indexer import IndexRunReport
from codesearch.errors import (
    CodeSearchError,
    EmbeddingProviderError,
    IndexUnavailable,
    ProviderVersionMismatch,
)
from codesearch.models import IndexStatus, SearchHit
from codesearch.service import CodebaseIndexService

logger = logging.getLogger(__name__)

TOOL_NAME = "codebase_search"

TOOL_DESCRIPTION = (
    "Find snippets of code from the codebase most relevant to the search query. "
    "This is a semantic search tool, so the query should ask for something "
    "semantically matching what is needed. Use target_directories to limit the "
    "search to specific folders."
)

TOOL_PARAMETERS: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": "The search query to find relevant code.",
        },
        "target_directories": {
            "type": "string",
            "description": "Comma-separated workspace directories to search in.",
        },
        "explanation": {
            "type": "string",
            "description": "One sentence explanation as to why this tool is being used.",
        },
    },
    "required": ["query"],
}

CONTROL_ACTIONS = (
    "enable",
    "disable",
    "refreshIndex",
    "clearIndex",
    "pauseIndexing",
    "resumeIndexing",
    "updateSettings",
    "getStats",
)

# camelCase settings keys accepted by updateSettings
_SETTINGS_KEYS = {
    "excludePaths": "exclude_paths",
    "includeTests": "include_tests",
    "autoIndexOnStartup": "auto_index_on_startup",
}


def _unavailable(error: CodeSearchError) -> Dict[str, Any]:
    return {"status": "unavailable", "error": str(error), "results": []}


def _report_to_dict(report: IndexRunReport) -> Dict[str, Any]:
    return {
        "added": len(report.added),
        "updated": len(report.updated),
        "removed": len(report.removed),
        "unchanged": report.unchanged,
        "errors": len(report.errors),
        "cancelled": report.cancelled,
        "fullRebuild": report.full_rebuild,
        "elapsedSeconds": round(report.elapsed, 3),
    }


class CodebaseSearchTool:
    """``codebase_search`` tool bound to one workspace service."""

    name = TOOL_NAME
    description = TOOL_DESCRIPTION
    parameters = TOOL_PARAMETERS

    def __init__(self, service: CodebaseIndexService, max_results: int = 10):
        self.service = service
        self.max_results = max_results

    def schema(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}

    async def execute(
        self,
        query: str,
        target_directories: Optional[Union[str, Sequence[str]]] = None,
        explanation: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Run a search.

        Returns:
            ``{"status": "ok", "results": [...], "indexStatus": ...}`` on
            success. ``status`` is ``"unavailable"`` when the index cannot
            serve queries, which is distinct from an empty result list.
        """
        if not query or not query.strip():
            return {"status": "error", "error": "query must not be empty", "results": []}
        if explanation:
            logger.debug(f"codebase_search: {explanation}")
        try:
            hits = await self.service.search(query, target_directories, self.max_results)
        except (IndexUnavailable, ProviderVersionMismatch, EmbeddingProviderError) as e:
            logger.warning(f"codebase_search unavailable: {e}")
            return _unavailable(e)

        stats = self.service.get_stats()
        return {
            "status": "ok",
            "results": [hit.to_dict() for hit in hits],
            "indexStatus": stats.status.value,
            "indexed": stats.status == IndexStatus.COMPLETED or stats.files_count > 0,
        }

    @staticmethod
    def format_results(hits: List[SearchHit]) -> str:
        """Render hits as text for a model-facing tool response."""
        if not hits:
            return "No matching code found."
        sections = []
        for hit in hits:
            header = f"{hit.file_path}:{hit.start_line}-{hit.end_line} {hit.kind} {hit.name} (score {hit.score:.3f})"
            sections.append(f"{header}\n{hit.snippet}")
        return "\n\n".join(sections)

    async def control(self, action: str, **params: Any) -> Dict[str, Any]:
        """Dispatch an index control action.

        Args:
            action: One of CONTROL_ACTIONS
            **params: For updateSettings, any of excludePaths, includeTests,
                autoIndexOnStartup; for refreshIndex, an optional force flag

        Raises:
            ValueError: On an unknown action or settings key
        """
        if action not in CONTROL_ACTIONS:
            raise ValueError(f"Unknown action: {action}. Available: {', '.join(CONTROL_ACTIONS)}")

        result: Dict[str, Any] = {"status": "ok"}
        try:
            if action == "enable":
                await self.service.enable()
            elif action == "disable":
                await self.service.disable()
            elif action == "refreshIndex":
                report = await self.service.refresh_index(force=bool(params.get("force", False)))
                result["report"] = _report_to_dict(report)
            elif action == "clearIndex":
                await self.service.clear_index()
            elif action == "pauseIndexing":
                self.service.pause_indexing()
            elif action == "resumeIndexing":
                self.service.resume_indexing()
            elif action == "updateSettings":
                unknown = sorted(set(params) - set(_SETTINGS_KEYS))
                if unknown:
                    raise ValueError(f"Unknown settings: {', '.join(unknown)}")
                settings = self.service.update_settings(
                    **{_SETTINGS_KEYS[key]: value for key, value in params.items()}
                )
                result["settings"] = {
                    "excludePaths": list(settings.exclude_paths),
                    "includeTests": settings.include_tests,
                    "autoIndexOnStartup": settings.auto_index_on_startup,
                }
        except IndexUnavailable as e:
            logger.warning(f"{action} failed: {e}")
            result = {"status": "unavailable", "error": str(e)}

        try:
            result["stats"] = self.service.get_stats().to_dict()
        except IndexUnavailable as e:
            result.setdefault("error", str(e))
        return result
