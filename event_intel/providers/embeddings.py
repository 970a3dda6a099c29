"""Embedding providers.

The query gate only needs ``embed(text) -> list[float]``. ``mock`` is a
deterministic hash-based embedding for development and tests;
``openai_compat`` calls an OpenAI-compatible ``/embeddings`` endpoint.
"""

from __future__ import annotations

import math
from typing import List, Protocol, Sequence, runtime_checkable

import httpx

from event_intel.config import Settings
from event_intel.core.exceptions import EmbeddingError
from event_intel.core.logging import get_logger
from event_intel.providers.openai_compat import OpenAICompatClient

logger = get_logger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 for mismatched lengths or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


@runtime_checkable
class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]: ...
    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]: ...
    async def aclose(self) -> None: ...


class MockEmbeddingProvider:
    """Deterministic embedding: similar strings get similar vectors."""

    def __init__(self, dimensions: int = 1536):
        self.dimensions = dimensions

    def _embed_sync(self, text: str) -> List[float]:
        vec = [0.0] * self.dimensions
        for i, ch in enumerate(text):
            code = ord(ch)
            idx = (i * 7 + code) % self.dimensions
            vec[idx] = (vec[idx] + (code / 255) - 0.5) / 2

        magnitude = math.sqrt(sum(v * v for v in vec))
        if magnitude > 0:
            vec = [v / magnitude for v in vec]
        return vec

    async def embed(self, text: str) -> List[float]:
        return self._embed_sync(text)

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        return [self._embed_sync(t) for t in texts]

    async def aclose(self) -> None:
        return None


class OpenAICompatEmbeddingProvider:
    """Embeddings from an OpenAI-compatible endpoint."""

    def __init__(self, http: OpenAICompatClient, model: str):
        self._http = http
        self.model = model

    async def embed_many(self, texts: Sequence[str]) -> List[List[float]]:
        try:
            data = await self._http.post_json("/embeddings", {"model": self.model, "input": list(texts)})
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"Embedding request failed: {exc}", provider="openai_compat") from exc

        items = sorted(data.get("data", []), key=lambda d: d.get("index", 0))
        vectors = [item.get("embedding") for item in items]
        if len(vectors) != len(texts) or not all(isinstance(v, list) and v for v in vectors):
            raise EmbeddingError("Failed to generate embedding", provider="openai_compat")
        return vectors

    async def embed(self, text: str) -> List[float]:
        return (await self.embed_many([text]))[0]

    async def aclose(self) -> None:
        await self._http.aclose()


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Build the configured embedding provider."""
    if settings.embeddings_provider == "openai_compat":
        http = OpenAICompatClient(
            base_url=settings.embeddings_base_url,
            api_key=settings.embeddings_api_key,
            timeout=settings.provider_timeout_seconds,
        )
        logger.info("Using OpenAI-compatible embeddings", data={"model": settings.embeddings_model})
        return OpenAICompatEmbeddingProvider(http, settings.embeddings_model)

    logger.info("Using deterministic mock embeddings", data={"dimensions": settings.embedding_dimensions})
    return MockEmbeddingProvider(settings.embedding_dimensions)
