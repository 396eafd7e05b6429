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


"""Embedding provider: batching, retries and identity on top of a model.

This module separates concerns:
1. **Embedding Model** (models.py): generates vectors from text
2. **Embedding Provider** (here): batches calls, retries transient failures,
   and names the vector space so stale vectors can be detected
3. **Index Store** (symbol_store.py): stores and searches vectors
"""

import logging
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from codesearch.codebase.embeddings.models import (
    BaseEmbeddingModel,
    EmbeddingModelConfig,
    create_embedding_model,
)
from codesearch.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)

DISTANCE_METRICS = ("cosine", "inner_product")


class EmbeddingConfig(BaseModel):
    """Configuration for embeddings and the vector space they live in."""

    model: EmbeddingModelConfig = Field(default_factory=EmbeddingModelConfig)
    distance_metric: str = Field(
        default="cosine", description="Distance metric (cosine, inner_product)"
    )
    max_retries: int = Field(default=3, ge=1, description="Attempts per batch")
    retry_multiplier: float = Field(default=1.0, ge=0)
    retry_min_wait: float = Field(default=1.0, ge=0, description="Seconds")
    retry_max_wait: float = Field(default=30.0, ge=0, description="Seconds")

    @field_validator("distance_metric")
    @classmethod
    def _check_metric(cls, value: str) -> str:
        if value not in DISTANCE_METRICS:
            raise ValueError(
                f"Unknown distance metric: {value}. Available: {', '.join(DISTANCE_METRICS)}"
            )
        return value


class EmbeddingProvider:
    """Batched, retrying front end to an embedding model."""

    def __init__(self, config: EmbeddingConfig, model: Optional[BaseEmbeddingModel] = None):
        self.config = config
        self.model = model if model is not None else create_embedding_model(config.model)

    @property
    def batch_size(self) -> int:
        return self.config.model.batch_size

    @property
    def dimension(self) -> int:
        return self.model.get_dimension()

    @property
    def provider_id(self) -> str:
        """Identity of the vector space; vectors from different ids are incomparable."""
        model_config = self.model.config
        return f"{model_config.model_type}:{model_config.model_name}:{self.dimension}"

    async def initialize(self) -> None:
        await self.model.initialize()

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed one batch, retrying transient failures with exponential backoff.

        Raises:
            EmbeddingProviderError: When every attempt failed
        """
        vectors: List[List[float]] = []
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.max_retries),
            wait=wait_exponential(
                multiplier=self.config.retry_multiplier,
                min=self.config.retry_min_wait,
                max=self.config.retry_max_wait,
            ),
            retry=retry_if_exception_type(EmbeddingProviderError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                vectors = await self.model.embed_batch(list(texts))
                self._check_vectors(texts, vectors)
        return vectors

    async def embed_all(
        self, texts: Sequence[str]
    ) -> Tuple[List[Optional[List[float]]], List[EmbeddingProviderError]]:
        """Embed ``texts`` in batches of ``batch_size``.

        A batch that still fails after its retries is skipped: its slots are
        None and the error is returned alongside, so the caller can keep the
        symbols unembedded and try again on a later pass.
        """
        results: List[Optional[List[float]]] = [None] * len(texts)
        errors: List[EmbeddingProviderError] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                vectors = await self.embed_batch(batch)
            except EmbeddingProviderError as e:
                logger.warning(
                    f"Embedding batch of {len(batch)} texts failed after "
                    f"{self.config.max_retries} attempts: {e}"
                )
                errors.append(e)
                continue
            results[start : start + len(vectors)] = vectors
        return results, errors

    async def embed_query(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    def _check_vectors(self, texts: Sequence[str], vectors: Sequence[Sequence[float]]) -> None:
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Expected {len(texts)} vectors, got {len(vectors)}", self.provider_id
            )
        dimension = self.dimension
        for vector in vectors:
            if len(vector) != dimension:
                raise EmbeddingProviderError(
                    f"Expected dimension {dimension}, got {len(vector)}", self.provider_id
                )

    async def close(self) -> None:
        await self.model.close()
