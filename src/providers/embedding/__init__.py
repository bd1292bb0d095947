"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
These vectors are stored in ChromaDB and used for similarity search.

Two implementations of IEmbeddingProvider (listed in factory priority order):
    1. OpenAIEmbeddingProvider — any OpenAI-compatible endpoint (OpenAI,
       Gemini ``text-embedding-004``), 768 dims.  Requires an API key.
    2. NomicEmbeddingProvider  — nomic-embed-text via Ollama (768 dims).
       Free and local, but requires a running Ollama server.
"""

from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider", "NomicEmbeddingProvider"]
