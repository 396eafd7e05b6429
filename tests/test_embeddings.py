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


"""Tests for embedding models and the retrying provider."""

import asyncio
from typing import List

import numpy as np
import pytest
from pydantic import ValidationError

from codesearch.codebase.embeddings import (
    BaseEmbeddingModel,
    EmbeddingConfig,
    EmbeddingModelConfig,
    EmbeddingProvider,
    HashingEmbeddingModel,
    create_embedding_model,
    identifier_tokens,
    register_embedding_model,
)
from codesearch.errors import EmbeddingProviderError
from conftest import hash_embedding_config


class FlakyModel(BaseEmbeddingModel):
    """Fails a configurable number of calls, or every batch containing ``poison``."""

    def __init__(self, config: EmbeddingModelConfig, failures: int = 0, poison: str = None):
        super().__init__(config)
        self.failures = failures
        self.poison = poison
        self.calls = 0

    async def initialize(self) -> None:
        self._initialized = True

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        if self.calls <= self.failures:
            raise EmbeddingProviderError("temporarily unavailable")
        if self.poison is not None and self.poison in texts:
            raise EmbeddingProviderError("rejected batch")
        return [[float(len(text)), 1.0, 0.0, 0.0] for text in texts]

    def get_dimension(self) -> int:
        return 4


def flaky_provider(**kwargs) -> EmbeddingProvider:
    model_config = EmbeddingModelConfig(model_type="flaky", model_name="test", dimension=4, batch_size=2)
    config = hash_embedding_config(model=model_config, max_retries=3)
    return EmbeddingProvider(config, FlakyModel(model_config, **kwargs))


class TestHashingModel:
    """Test suite for the deterministic hashing model."""

    def test_identifier_tokens(self):
        assert identifier_tokens("getUserName(user_id)") == [
            "getusername", "get", "user", "name", "user_id", "user", "id",
        ]

    def test_deterministic_and_normalized(self):
        model = HashingEmbeddingModel(EmbeddingModelConfig(dimension=64))
        first, second = asyncio.run(model.embed_batch(["def login(user)", "def login(user)"]))
        assert first == second
        assert len(first) == 64
        assert np.linalg.norm(first) == pytest.approx(1.0, abs=1e-5)

    def test_related_texts_are_closer(self):
        model = HashingEmbeddingModel(EmbeddingModelConfig(dimension=256))
        query, related, unrelated = asyncio.run(
            model.embed_batch(["login user", "function loginUser", "parse xml document"])
        )
        assert np.dot(query, related) > np.dot(query, unrelated)

    def test_empty_text_is_zero_vector(self):
        model = HashingEmbeddingModel(EmbeddingModelConfig(dimension=8))
        [vector] = asyncio.run(model.embed_batch([""]))
        assert vector == [0.0] * 8


class TestModelRegistry:
    """Test suite for the model factory."""

    def test_unknown_model_type(self):
        with pytest.raises(ValueError):
            create_embedding_model(EmbeddingModelConfig(model_type="nope"))

    def test_register_custom_model(self):
        register_embedding_model("flaky", FlakyModel)
        model = create_embedding_model(EmbeddingModelConfig(model_type="flaky"))
        assert isinstance(model, FlakyModel)

    def test_invalid_distance_metric(self):
        with pytest.raises(ValidationError):
            EmbeddingConfig(distance_metric="euclidean")


class TestEmbeddingProvider:
    """Test suite for EmbeddingProvider."""

    def test_provider_id(self):
        provider = EmbeddingProvider(hash_embedding_config())
        assert provider.provider_id == "hash:hashing-v1:128"
        assert provider.dimension == 128

    def test_transient_failures_are_retried(self):
        provider = flaky_provider(failures=2)
        vectors = asyncio.run(provider.embed_batch(["abc"]))
        assert vectors == [[3.0, 1.0, 0.0, 0.0]]
        assert provider.model.calls == 3

    def test_gives_up_after_max_retries(self):
        provider = flaky_provider(failures=10)
        with pytest.raises(EmbeddingProviderError):
            asyncio.run(provider.embed_batch(["abc"]))
        assert provider.model.calls == 3

    def test_failed_batch_is_skipped(self):
        """A batch that keeps failing leaves its slots empty; others succeed."""
        provider = flaky_provider(poison="bad")
        vectors, errors = asyncio.run(provider.embed_all(["a", "bb", "bad", "ccc", "dddd"]))
        assert vectors[0] == [1.0, 1.0, 0.0, 0.0]
        assert vectors[1] == [2.0, 1.0, 0.0, 0.0]
        assert vectors[2] is None and vectors[3] is None
        assert vectors[4] == [4.0, 1.0, 0.0, 0.0]
        assert len(errors) == 1

    def test_wrong_dimension_is_an_error(self):
        class ShortModel(FlakyModel):
            async def embed_batch(self, texts):
                return [[1.0] for _ in texts]

        model_config = EmbeddingModelConfig(model_type="short", dimension=4)
        provider = EmbeddingProvider(hash_embedding_config(model=model_config), ShortModel(model_config))
        with pytest.raises(EmbeddingProviderError):
            asyncio.run(provider.embed_batch(["x"]))

    def test_embed_all_empty(self):
        provider = EmbeddingProvider(hash_embedding_config())
        assert asyncio.run(provider.embed_all([])) == ([], [])
