"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports real OpenAI and OpenAI-compatible endpoints (Gemini's
``/v1beta/openai/`` endpoint, TogetherAI, ...) via custom ``base_url`` and
model name settings.  The vector store is created for 768-dimensional
vectors, so models that can shorten their output are asked for exactly
that many dimensions.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.errors import ConfigurationError, RAGError, RateLimitError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

_DEFAULT_OPENAI_MODEL = "text-embedding-3-small"
_DEFAULT_GEMINI_MODEL = "text-embedding-004"

# Native output dimensions of known embedding models.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "text-embedding-004": 768,
    "gemini-embedding-001": 3072,
    "BAAI/bge-base-en-v1.5": 768,
    "intfloat/multilingual-e5-large-instruct": 1024,
}

# Models that accept the ``dimensions`` request parameter.
_SHORTENABLE_MODELS: frozenset[str] = frozenset(
    {"text-embedding-3-small", "text-embedding-3-large", "gemini-embedding-001"}
)


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` shortened to ``embedding_dimension``
    (768) by default.  When ``openai_base_url`` points at Gemini and no
    model is configured, ``text-embedding-004`` is used instead.

    Errors are mapped onto the ingestion hierarchy: authentication
    failures become :class:`ConfigurationError` (never retried), rate
    limits become :class:`RateLimitError`, anything else :class:`RAGError`.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        # Build client kwargs; add base_url only when configured.
        client_kwargs: dict = {"api_key": self._api_key}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or self._default_model(settings.openai_base_url)

        native = _MODEL_DIMENSIONS.get(self._model, settings.embedding_dimension)
        self._request_dimensions = (
            settings.embedding_dimension
            if self._model in _SHORTENABLE_MODELS and native != settings.embedding_dimension
            else None
        )
        self._dimension = self._request_dimensions or native
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Automatically splits into batches of 2048 if the input exceeds the
        per-call limit.
        """
        if not texts:
            return []

        request_kwargs: dict = {"model": self._model}
        if self._request_dimensions is not None:
            request_kwargs["dimensions"] = self._request_dimensions

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), _OPENAI_BATCH_LIMIT):
                batch = texts[start : start + _OPENAI_BATCH_LIMIT]
                response = await self._client.embeddings.create(input=batch, **request_kwargs)
                all_embeddings.extend(item.embedding for item in response.data)
                logger.debug(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.AuthenticationError as exc:
            raise ConfigurationError(
                message=f"{self._provider_label} rejected the API key: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.RateLimitError as exc:
            raise RateLimitError(
                message=f"{self._provider_label} rate limit exceeded: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise RAGError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    @staticmethod
    def _default_model(base_url: str) -> str:
        if "generativelanguage.googleapis.com" in base_url:
            return _DEFAULT_GEMINI_MODEL
        return _DEFAULT_OPENAI_MODEL
