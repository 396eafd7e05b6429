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


"""Embedding models: turn text into fixed-length vectors.

Models only generate vectors. Batching, retries and provider identity live in
``EmbeddingProvider`` (base.py); storage and nearest-neighbour search live in
the index store.

Remote and heavyweight models import their client libraries lazily, so the
local ``hash`` model works with the core dependencies alone.
"""

import asyncio
import hashlib
import logging
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

import httpx
import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from codesearch.errors import EmbeddingProviderError

logger = logging.getLogger(__name__)


class EmbeddingModelConfig(BaseModel):
    """Configuration for embedding model."""

    model_config = ConfigDict(protected_namespaces=())

    model_type: str = Field(
        default="hash",
        description="Model type (hash, sentence-transformers, openai, cohere, ollama)",
    )
    model_name: str = Field(default="hashing-v1", description="Specific model name")
    dimension: int = Field(
        default=256, ge=1, description="Embedding dimension (auto-detected if possible)"
    )
    api_key: Optional[str] = Field(default=None, description="API key for cloud providers")
    base_url: Optional[str] = Field(default=None, description="Server URL for self-hosted models")
    batch_size: int = Field(default=32, ge=1, description="Texts per embedding call")


class BaseEmbeddingModel(ABC):
    """Abstract base for embedding models.

    Implementations raise EmbeddingProviderError for transient failures so the
    provider can retry them.
    """

    def __init__(self, config: EmbeddingModelConfig):
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the model (load weights, connect to API, etc.)."""
        pass

    async def embed_text(self, text: str) -> List[float]:
        """Generate embedding for single text."""
        return (await self.embed_batch([text]))[0]

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for multiple texts, in input order."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of embeddings produced by this model."""
        pass

    async def close(self) -> None:
        """Clean up resources."""
        self._initialized = False


_WORD_RE = re.compile(r"[A-Za-z0-9_]+")
_SUBTOKEN_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def identifier_tokens(text: str) -> List[str]:
    """Lower-cased words plus their camelCase/snake_case parts.

    >>> identifier_tokens("getUserName(user_id)")
    ['getusername', 'get', 'user', 'name', 'user_id', 'user', 'id']
    """
    tokens: List[str] = []
    for word in _WORD_RE.findall(text):
        parts = [p.lower() for p in _SUBTOKEN_RE.findall(word)]
        lowered = word.lower()
        if parts != [lowered]:
            tokens.append(lowered)
        tokens.extend(parts)
    return tokens


class HashingEmbeddingModel(BaseEmbeddingModel):
    """Deterministic local model based on feature hashing of identifier tokens.

    No downloads, no network, stable across processes and platforms. Quality is
    lexical rather than semantic, which is enough for offline use and tests.
    """

    async def initialize(self) -> None:
        self._initialized = True

    def _embed_one(self, text: str) -> List[float]:
        dimension = self.config.dimension
        vector = np.zeros(dimension, dtype=np.float32)
        for token in identifier_tokens(text):
            digest = int.from_bytes(
                hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest(), "big"
            )
            sign = 1.0 if (digest >> 63) & 1 else -1.0
            vector[digest % dimension] += sign
        norm = float(np.linalg.norm(vector))
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not self._initialized:
            await self.initialize()
        return [self._embed_one(text) for text in texts]

    def get_dimension(self) -> int:
        return self.config.dimension


class SentenceTransformerModel(BaseEmbeddingModel):
    """Sentence-transformers embedding model (local, CPU/GPU).

    Good for: privacy-sensitive code and offline use once the weights are cached.
    """

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self._model = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ImportError(
                "sentence-transformers not installed. "
                "Install with: pip install sentence-transformers"
            )

        logger.info(f"Loading sentence-transformer model: {self.config.model_name}")
        self._model = await asyncio.to_thread(SentenceTransformer, self.config.model_name)
        self._initialized = True

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not self._initialized:
            await self.initialize()

        try:
            embeddings = await asyncio.to_thread(
                self._model.encode,
                texts,
                batch_size=self.config.batch_size,
                normalize_embeddings=True,
                show_progress_bar=False,
            )
        except (RuntimeError, ValueError, OSError) as e:
            raise EmbeddingProviderError(f"sentence-transformers encode failed: {e}") from e
        return [emb.tolist() for emb in embeddings]

    def get_dimension(self) -> int:
        if self._model is not None:
            return self._model.get_sentence_embedding_dimension()
        return self.config.dimension

    async def close(self) -> None:
        self._model = None
        self._initialized = False


class OpenAIEmbeddingModel(BaseEmbeddingModel):
    """OpenAI embedding model (cloud API)."""

    DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.client = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            from openai import AsyncOpenAI
        except ImportError:
            raise ImportError("openai not installed. Install with: pip install openai")

        if not self.config.api_key:
            raise ValueError("OpenAI API key required")

        self.client = AsyncOpenAI(api_key=self.config.api_key, base_url=self.config.base_url)
        self._initialized = True
        logger.info(f"OpenAI embedding model initialized: {self.config.model_name}")

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not self._initialized:
            await self.initialize()

        try:
            response = await self.client.embeddings.create(
                model=self.config.model_name, input=texts
            )
        except Exception as e:
            raise EmbeddingProviderError(f"OpenAI embedding request failed: {e}") from e
        return [item.embedding for item in response.data]

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None
        self._initialized = False


class CohereEmbeddingModel(BaseEmbeddingModel):
    """Cohere embedding model (cloud API)."""

    DIMENSIONS = {
        "embed-english-v3.0": 1024,
        "embed-multilingual-v3.0": 1024,
        "embed-english-light-v3.0": 384,
        "embed-multilingual-light-v3.0": 384,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.client = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            import cohere
        except ImportError:
            raise ImportError("cohere not installed. Install with: pip install cohere")

        if not self.config.api_key:
            raise ValueError("Cohere API key required")

        self.client = cohere.AsyncClient(api_key=self.config.api_key)
        self._initialized = True
        logger.info(f"Cohere embedding model initialized: {self.config.model_name}")

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not self._initialized:
            await self.initialize()

        try:
            response = await self.client.embed(
                texts=texts, model=self.config.model_name, input_type="search_document"
            )
        except Exception as e:
            raise EmbeddingProviderError(f"Cohere embedding request failed: {e}") from e
        return list(response.embeddings)

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        self.client = None
        self._initialized = False


class OllamaEmbeddingModel(BaseEmbeddingModel):
    """Ollama embedding model served locally over HTTP.

    Ollama has no batch endpoint, so a batch is sent as concurrent requests.
    """

    DIMENSIONS = {
        "qwen3-embedding:8b": 4096,
        "qwen3-embedding:4b": 2560,
        "bge-m3": 1024,
        "mxbai-embed-large": 1024,
        "nomic-embed-text": 768,
        "all-minilm": 384,
    }

    def __init__(self, config: EmbeddingModelConfig):
        super().__init__(config)
        self.base_url = config.base_url or "http://localhost:11434"
        self.client = None

    async def initialize(self) -> None:
        if self._initialized:
            return

        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=120.0)
        self._initialized = True
        logger.info(f"Ollama embedding model {self.config.model_name} at {self.base_url}")

    async def embed_text(self, text: str) -> List[float]:
        if not self._initialized:
            await self.initialize()

        try:
            response = await self.client.post(
                "/api/embeddings", json={"model": self.config.model_name, "prompt": text}
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise ValueError(
                    f"Ollama model '{self.config.model_name}' not found. "
                    f"Pull it with: ollama pull {self.config.model_name}"
                ) from e
            raise EmbeddingProviderError(f"Ollama API error: {e}") from e
        except httpx.HTTPError as e:
            raise EmbeddingProviderError(f"Cannot reach Ollama at {self.base_url}: {e}") from e
        return response.json()["embedding"]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return list(await asyncio.gather(*(self.embed_text(text) for text in texts)))

    def get_dimension(self) -> int:
        return self.DIMENSIONS.get(self.config.model_name, self.config.dimension)

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None
        self._initialized = False


# Model Registry
_embedding_models: Dict[str, Type[BaseEmbeddingModel]] = {
    "hash": HashingEmbeddingModel,
    "sentence-transformers": SentenceTransformerModel,
    "openai": OpenAIEmbeddingModel,
    "cohere": CohereEmbeddingModel,
    "ollama": OllamaEmbeddingModel,
}


def register_embedding_model(model_type: str, model_class: Type[BaseEmbeddingModel]) -> None:
    """Register a custom embedding model class under ``model_type``."""
    _embedding_models[model_type] = model_class


def create_embedding_model(config: EmbeddingModelConfig) -> BaseEmbeddingModel:
    """Factory function to create embedding model.

    Raises:
        ValueError: If model type not recognized
    """
    model_class = _embedding_models.get(config.model_type)
    if not model_class:
        available = ", ".join(_embedding_models.keys())
        raise ValueError(
            f"Unknown embedding model type: {config.model_type}. Available: {available}"
        )

    return model_class(config)
