"""Nomic embedding provider adapter (local/free via Ollama).

Wraps the Ollama OpenAI-compatible endpoint to implement
:class:`IEmbeddingProvider` using ``nomic-embed-text``.  The model emits
768-dimensional vectors, the size the vector store is created with; any
other length coming back from the server is rejected before it can reach
the store.  Runs locally with no API key required.

The ingestor embeds one chunk per call and owns the retry budget, so the
client is built with ``max_retries=0``: one ``embed_single`` is exactly
one HTTP request and every failed attempt is visible in the run report.
"""

from __future__ import annotations

import httpx
import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import EmbeddingDimensionError, ProviderUnavailableError, RAGError

logger = structlog.get_logger(logger_name=__name__)

_MODEL = "nomic-embed-text"
_NATIVE_DIMENSION = 768


class NomicEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by ``nomic-embed-text`` served via Ollama.

    Parameters
    ----------
    settings:
        Supplies ``ollama_base_url`` and the ``embedding_dimension`` every
        returned vector is checked against.
    """

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._expected_dimension = settings.embedding_dimension
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",  # Ollama doesn't require a real key
            max_retries=0,
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed_single(self, text: str) -> list[float]:
        """Embed one chunk or query with a single request."""
        [embedding] = await self._create([text])
        return embedding

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in one request; Ollama accepts a list input."""
        if not texts:
            return []
        return await self._create(texts)

    def get_dimension(self) -> int:
        return _NATIVE_DIMENSION

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if Ollama is reachable and has pulled the model."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        if response.status_code != 200:
            return False

        try:
            models = response.json().get("models") or []
        except ValueError:
            return False
        names = {str(model.get("name", "")).split(":")[0] for model in models}
        if _MODEL not in names:
            logger.warning("nomic_model_not_pulled", base_url=self._base_url, model=_MODEL)
            return False
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _create(self, texts: list[str]) -> list[list[float]]:
        try:
            response = await self._client.embeddings.create(input=texts, model=_MODEL)
        except openai.APIConnectionError as exc:
            raise ProviderUnavailableError(
                message=f"Ollama is not reachable at {self._base_url}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise RAGError(
                message=f"Nomic/Ollama embedding API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        embeddings = [item.embedding for item in response.data]
        if len(embeddings) != len(texts):
            raise RAGError(
                message=f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs",
                provider_name=self.get_provider_name(),
            )
        for embedding in embeddings:
            if len(embedding) != self._expected_dimension:
                raise EmbeddingDimensionError(
                    message=(
                        f"{_MODEL} returned a {len(embedding)}-dim vector, "
                        f"expected {self._expected_dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )

        logger.debug("nomic_embedding", model=_MODEL, inputs=len(texts))
        return embeddings
