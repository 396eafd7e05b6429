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


"""Coarse line-window chunking for files too large to embed per symbol.

Files whose symbol count exceeds the configured limit (generated code, bundled
sources, huge tables) are indexed as overlapping windows of lines instead. Each
window becomes a ``chunk`` record with its own vector.
"""

import logging
from pathlib import PurePosixPath
from typing import List

from codesearch.models import SymbolRecord

logger = logging.getLogger(__name__)

DEFAULT_LINES_PER_CHUNK = 60
DEFAULT_OVERLAP_LINES = 10
MAX_CHUNKS_PER_FILE = 100


def chunk_by_lines(
    file_path: str,
    file_text: str,
    lines_per_chunk: int = DEFAULT_LINES_PER_CHUNK,
    overlap: int = DEFAULT_OVERLAP_LINES,
    max_chunks: int = MAX_CHUNKS_PER_FILE,
) -> List[SymbolRecord]:
    """Split a file into overlapping line windows.

    Args:
        file_path: Workspace-relative path recorded on each chunk
        file_text: Full file contents
        lines_per_chunk: Lines per window
        overlap: Lines shared by consecutive windows
        max_chunks: Upper bound on windows per file

    Returns:
        Chunk records in source order
    """
    if overlap >= lines_per_chunk:
        raise ValueError("overlap must be smaller than lines_per_chunk")

    lines = file_text.splitlines(keepends=True)
    offsets = [0]
    for line in lines:
        offsets.append(offsets[-1] + len(line.encode("utf-8")))

    base_name = PurePosixPath(file_path).name
    chunks: List[SymbolRecord] = []
    step = lines_per_chunk - overlap
    for start in range(0, len(lines), step):
        end = min(start + lines_per_chunk, len(lines))
        text = "".join(lines[start:end])
        if text.strip():
            chunks.append(
                SymbolRecord(
                    file_path=file_path,
                    kind="chunk",
                    name=f"{base_name}:{start + 1}-{end}",
                    start_byte=offsets[start],
                    end_byte=offsets[end],
                    start_line=start + 1,
                    end_line=end,
                    end_column=len(lines[end - 1].rstrip("\r\n")),
                    snippet=text.rstrip("\n"),
                )
            )
        if len(chunks) >= max_chunks:
            logger.debug(f"Reached chunk limit for {file_path}")
            break
        if end == len(lines):
            break
    return chunks
