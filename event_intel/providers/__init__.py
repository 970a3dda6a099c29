"""External collaborators: embeddings and summaries."""

from event_intel.providers.embeddings import (
    EmbeddingProvider,
    MockEmbeddingProvider,
    OpenAICompatEmbeddingProvider,
    cosine_similarity,
    create_embedding_provider,
)
from event_intel.providers.summarizer import (
    MockSummarizer,
    OpenAICompatSummarizer,
    Summarizer,
    create_summarizer,
    generate_mock_summary,
)

__all__ = [
    "EmbeddingProvider",
    "MockEmbeddingProvider",
    "MockSummarizer",
    "OpenAICompatEmbeddingProvider",
    "OpenAICompatSummarizer",
    "Summarizer",
    "cosine_similarity",
    "create_embedding_provider",
    "create_summarizer",
    "generate_mock_summary",
]
