"""Abstract base class for text-embedding service providers.

Defines the contract for generating embedding vectors from text.
Implementations may wrap an OpenAI-compatible API (OpenAI, Gemini), Nomic
``nomic-embed-text`` (local via Ollama), or any other embedding backend
that produces vectors of the dimension the vector store was created with.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider: OpenAI-compatible endpoints (requires API key)
#   NomicEmbeddingProvider: nomic-embed-text via Ollama (local)
# Located in: src/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the ingestion pipeline.

    The ingestor calls :meth:`embed_single` once per chunk and stores the
    vector through
    :class:`~src.interfaces.vector_store_provider.IVectorStoreProvider`.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations should
            handle batching internally if the underlying API has a per-call
            limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        src.utils.errors.RAGError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        This is a convenience wrapper around :meth:`embed` for the common
        single-text case (e.g. embedding a search query).

        Parameters
        ----------
        text:
            The text string to embed.

        Returns
        -------
        list[float]
            The embedding vector with length equal to :meth:`get_dimension`.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        This value must remain constant for the lifetime of the provider
        instance and must match the dimension configured in the vector store.

        Example values: ``768`` (Gemini ``text-embedding-004``, Nomic
        ``nomic-embed-text``), ``1536`` (OpenAI ``text-embedding-3-small``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider.

        Example return values: ``"openai_embedding"``,
        ``"nomic_embedding"``.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable.

        Implementations should verify that credentials (if any) are present
        and the model is accessible without generating an actual embedding.
        """
