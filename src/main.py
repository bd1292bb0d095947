"""Application wiring for the document ingestion core.

Builds every provider and service once, at process start, and hands them
to the caller by explicit injection.  The upload handler (or a script)
calls :func:`build_pipeline` and keeps the returned components for the
life of the process; nothing here is a global singleton.

Configuration comes from ``.env`` / environment variables
(:class:`~src.config.settings.Settings`) merged over ``config/config.yaml``
(:func:`~src.config.loader.load_config`).
"""

from __future__ import annotations

from typing import Any

import structlog

from src.config.loader import load_config
from src.config.policies import ChunkingPolicy, IngestionPolicy
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.pipeline.progress_reporter import ProgressReporter
from src.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion.chunker import AdaptiveChunker
from src.services.ingestion.content_classifier import HeuristicContentClassifier
from src.services.ingestion.embedding_ingestor import EmbeddingIngestor
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.table_chunker import TableChunker
from src.utils.errors import ConfigurationError
from src.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) ->
              Nomic/Ollama (if reachable).

    Raises
    ------
    ConfigurationError
        If no provider is configured and reachable.
    """
    if app_settings.has_openai_credentials():
        provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
        if provider.is_available():
            return provider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    raise ConfigurationError(
        message=(
            "No embedding provider available: set OPENAI_API_KEY or run Ollama "
            f"at {app_settings.ollama_base_url}"
        ),
    )


def _build_vector_store(app_settings: Settings, config: dict[str, Any]) -> IVectorStoreProvider:
    store_config = config.get("vector_store") or {}
    return ChromaDBProvider(
        persist_directory=store_config.get("persist_dir", app_settings.chromadb_persist_dir),
        collection_name=store_config.get("collection", app_settings.chromadb_collection),
        embedding_dimension=app_settings.embedding_dimension,
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_pipeline(
    custom_settings: Settings | None = None,
    config_path: str = "config/config.yaml",
    embedding_provider: IEmbeddingProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
) -> dict[str, Any]:
    """Construct every ingestion component with injected dependencies.

    Parameters
    ----------
    custom_settings:
        Application settings.  Read from the environment when omitted.
    config_path:
        YAML file with chunking / ingestion tuning.
    embedding_provider, vector_store:
        Pre-built collaborators; selected from settings when omitted.

    Returns
    -------
    dict
        Components keyed by role name: ``chunker``, ``ingestor``,
        ``ingestion_service``, ``progress``, ``embedding_provider``,
        ``vector_store``, ``settings`` and ``config``.
    """
    app_settings = custom_settings or Settings()
    config = load_config(config_path, settings=app_settings)

    log_config = config.get("logging") or {}
    configure_logging(
        log_level=log_config.get("level", app_settings.log_level),
        json_output=(app_settings.app_env == "production"),
    )

    chunking_policy = ChunkingPolicy.from_config(config)
    ingestion_policy = IngestionPolicy.from_config(config)

    embedding_provider = embedding_provider or _build_embedding_provider(app_settings)
    if embedding_provider.get_dimension() != ingestion_policy.embedding_dimension:
        raise ConfigurationError(
            message=(
                f"Embedding provider produces {embedding_provider.get_dimension()}-dim vectors "
                f"but {ingestion_policy.embedding_dimension} are required"
            ),
            provider_name=embedding_provider.get_provider_name(),
        )
    vector_store = vector_store or _build_vector_store(app_settings, config)

    progress = ProgressReporter(interval=ingestion_policy.progress_interval)
    classifier = HeuristicContentClassifier()
    chunker = AdaptiveChunker(
        classifier=classifier,
        table_chunker=TableChunker(classifier, chunking_policy),
        policy=chunking_policy,
        progress=progress,
    )
    ingestor = EmbeddingIngestor(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        policy=ingestion_policy,
        progress=progress,
    )
    ingestion_service = IngestionService(
        chunker=chunker,
        ingestor=ingestor,
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        policy=ingestion_policy,
    )

    _logger.info(
        "pipeline_built",
        embedding_provider=embedding_provider.get_provider_name(),
        vector_store=vector_store.get_provider_name(),
        adaptive_chunking=chunking_policy.adaptive,
        max_chunks_per_document=ingestion_policy.max_chunks_per_document,
    )

    return {
        "chunker": chunker,
        "ingestor": ingestor,
        "ingestion_service": ingestion_service,
        "progress": progress,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "settings": app_settings,
        "config": config,
    }


def build_ingestion_service(custom_settings: Settings | None = None, **kwargs: Any) -> IngestionService:
    """Shortcut for callers that only need the document-level service."""
    return build_pipeline(custom_settings, **kwargs)["ingestion_service"]
