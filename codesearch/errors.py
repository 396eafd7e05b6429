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


"""Error taxonomy for codebase indexing and search.

Per-file failures (UnsupportedLanguageError, ParseError) and per-batch failures
(EmbeddingProviderError) are non-fatal: the indexer records them and moves on.
IndexUnavailable aborts the current pass and forces a full rebuild on the next
one. ProviderVersionMismatch blocks search until a reindex completes.
"""

from typing import Optional


class CodeSearchError(Exception):
    """Base class for all codesearch errors."""


class UnsupportedLanguageError(CodeSearchError):
    """No usable grammar is registered for a file extension."""

    def __init__(self, extension: str, reason: Optional[str] = None):
        self.extension = extension
        self.reason = reason
        message = f"No grammar registered for extension '{extension}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ParseError(CodeSearchError):
    """A source file could not be parsed into a syntax tree."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"Failed to parse {file_path}: {reason}")


class EmbeddingProviderError(CodeSearchError):
    """The embedding provider failed to return vectors for a batch."""

    def __init__(self, message: str, provider_id: Optional[str] = None):
        self.provider_id = provider_id
        super().__init__(message)


class IndexUnavailable(CodeSearchError):
    """The index store is corrupt, unreachable, or otherwise unusable."""

    def __init__(self, message: str, store_path: Optional[str] = None):
        self.store_path = store_path
        super().__init__(message)


class ProviderVersionMismatch(CodeSearchError):
    """Stored vectors were produced by a different embedding provider."""

    def __init__(self, indexed_provider: Optional[str], active_provider: str):
        self.indexed_provider = indexed_provider
        self.active_provider = active_provider
        super().__init__(
            f"Index was built with '{indexed_provider}' but the active provider is "
            f"'{active_provider}'; a full reindex is required"
        )
