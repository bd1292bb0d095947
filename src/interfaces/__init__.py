"""Public interface definitions for the ingestion core's collaborators.

Every external service the ingestion core talks to is accessed exclusively
through the abstract base classes defined in this package.  Concrete
adapters implement these interfaces and are injected at runtime.

ADAPTER PATTERN EXPLAINED (for junior developers):
    The adapter pattern decouples business logic from specific external services.
    Instead of calling ``openai.embeddings.create(...)`` directly in the
    ingestor, it calls ``embedding_provider.embed_single(...)`` where
    ``embedding_provider`` is any object implementing ``IEmbeddingProvider``.
    This means:
        - Swapping OpenAI for Ollama requires changing ONE line (the provider
          selection in main.py) instead of every file that embeds text.
        - Unit tests can inject a mock/fake provider without real API calls.
        - Multiple providers can be tried in priority order (fallback chains).

    The concrete providers live in ``src/providers/`` and are wired together
    in ``src/main.py`` by :func:`build_pipeline`.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  OpenAIEmbeddingProvider,
                                  NomicEmbeddingProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IContentClassifier         →  HeuristicContentClassifier
                                  (src/services/ingestion/)
"""

from src.interfaces.content_classifier import IContentClassifier
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IContentClassifier",
    "IEmbeddingProvider",
    "IVectorStoreProvider",
]
