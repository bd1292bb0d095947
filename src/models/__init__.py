"""Domain models for the ingestion core — re-exports all public model classes.

Other parts of the codebase can import directly from ``src.models`` (e.g.
``from src.models import Chunk``) instead of the individual module files.

The models are organized across two submodules:
    - document.py   — Extracted blocks, chunks and their metadata
    - ingestion.py  — Per-chunk outcomes, run reports, verdicts and
                      vector-store records

If you add a new model class, remember to add it to ``__all__`` too.
"""

from __future__ import annotations

# --- Document models: what the extraction stage hands in and what the
# chunker hands on to the embedding stage. ---
from src.models.document import (
    COMPLEX_KINDS,
    BlockKind,
    BlockMetadata,
    Chunk,
    ChunkingResult,
    ChunkMetadata,
    ExtractedBlock,
)
# --- Ingestion models: the outcome of embedding and storing a document. ---
from src.models.ingestion import (
    AttemptStatus,
    DocumentIngestionResult,
    IngestionOutcome,
    IngestionReport,
    IngestionVerdict,
    RetrievedChunk,
    StoredChunkRecord,
)

__all__ = [
    # document
    "BlockKind",
    "BlockMetadata",
    "COMPLEX_KINDS",
    "Chunk",
    "ChunkMetadata",
    "ChunkingResult",
    "ExtractedBlock",
    # ingestion
    "AttemptStatus",
    "DocumentIngestionResult",
    "IngestionOutcome",
    "IngestionReport",
    "IngestionVerdict",
    "RetrievedChunk",
    "StoredChunkRecord",
]
