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


"""Embedding models and the batching/retrying provider around them."""

from codesearch.codebase.embeddings.base import (
    DISTANCE_METRICS,
    EmbeddingConfig,
    EmbeddingProvider,
)
from codesearch.codebase.embeddings.models import (
    BaseEmbeddingModel,
    CohereEmbeddingModel,
    EmbeddingModelConfig,
    HashingEmbeddingModel,
    OllamaEmbeddingModel,
    OpenAIEmbeddingModel,
    SentenceTransformerModel,
    create_embedding_model,
    identifier_tokens,
    register_embedding_model,
)

__all__ = [
    "DISTANCE_METRICS",
    "EmbeddingConfig",
    "EmbeddingProvider",
    "BaseEmbeddingModel",
    "CohereEmbeddingModel",
    "EmbeddingModelConfig",
    "HashingEmbeddingModel",
    "OllamaEmbeddingModel",
    "OpenAIEmbeddingModel",
    "SentenceTransformerModel",
    "create_embedding_model",
    "identifier_tokens",
    "register_embedding_model",
]
