"""Document ingestion core: extracted blocks in, searchable chunks out.

Orchestrates the pipeline: **chunk -> embed -> store -> verdict**.

Pipeline stages overview:

1. **Chunk** (chunker.py / AdaptiveChunker) -- Picks chunk size and
   overlap from the document length, routes tables to
   table_chunker.py / TableChunker, and drops duplicate chunks by their
   content_hasher.py fingerprint.

2. **Classify** (content_classifier.py / HeuristicContentClassifier) --
   Detects RTL script, currency and table keywords that make content
   "complex" and cleans table text before embedding.

3. **Embed + Store** (embedding_ingestor.py / EmbeddingIngestor) --
   Embeds each chunk via IEmbeddingProvider and persists it via
   IVectorStoreProvider, with per-chunk timeouts, retries and a final
   recovery pass.

4. **Verdict** -- The run's success rate becomes an IngestionVerdict; a
   failed run raises IngestionFailedError.

The IngestionService class ties the stages together per document and
rolls back stored chunks when a run fails or runs out of time.
"""

from src.services.ingestion.chunker import AdaptiveChunker
from src.services.ingestion.content_classifier import HeuristicContentClassifier
from src.services.ingestion.content_hasher import content_hash
from src.services.ingestion.embedding_ingestor import EmbeddingIngestor
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.table_chunker import TableChunker

__all__ = [
    "AdaptiveChunker",
    "EmbeddingIngestor",
    "HeuristicContentClassifier",
    "IngestionService",
    "TableChunker",
    "content_hash",
]
