"""Document data models: extracted blocks in, chunks out.

Defines Pydantic v2 models for the two ends of the chunking stage.  All
models use frozen config to enforce immutability: chunks are stamped with
run-level fields (``sequential_id``, ``total_document_chunks``) and later
with ingestion fields by producing new copies via ``model_copy``.

Metadata is a structured record rather than a free-form dict.  The fields
the core reads or writes are declared explicitly; anything else the
extraction stage wants to carry through to the vector store goes into the
single open-ended ``extra`` map.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# BlockKind: discriminates table-specific handling.
# ---------------------------------------------------------------------------
class BlockKind(str, Enum):  # noqa: UP042
    """Kind of content an extracted block holds."""

    TEXT = "text"
    TABLE = "table"
    JSON = "json"
    IMAGE_OCR = "image_ocr"


# Kinds that force the smaller, more-overlapping chunk parameters.
COMPLEX_KINDS: frozenset[BlockKind] = frozenset({BlockKind.TABLE, BlockKind.IMAGE_OCR})


# ---------------------------------------------------------------------------
# BlockMetadata: provenance produced by the extraction stage.
# ---------------------------------------------------------------------------
class BlockMetadata(BaseModel):
    """Structural provenance of one extracted unit (page, table, OCR image)."""

    model_config = ConfigDict(frozen=True)

    source_filename: str = Field(description="Name of the uploaded file.")
    extraction_type: BlockKind = Field(description="Extractor that produced the block.")
    chapter: str | None = Field(default=None, description="Chapter heading, if detected.")
    section: str | None = Field(default=None, description="Section heading, if detected.")
    page_number: int | None = Field(default=None, ge=0, description="1-based page number.")
    table_index: int | None = Field(default=None, ge=0, description="Index of the table in the file.")
    image_index: int | None = Field(default=None, ge=0, description="Index of the OCR'd image.")
    extra: dict[str, Any] = Field(
        default_factory=dict,
        description="Open-ended extension map for extractor-specific fields.",
    )


# ---------------------------------------------------------------------------
# ExtractedBlock: input to the chunker.
# ---------------------------------------------------------------------------
class ExtractedBlock(BaseModel):
    """A typed unit of text produced by the (external) extraction stage."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Raw text content of the block.")
    kind: BlockKind = Field(default=BlockKind.TEXT, description="Content kind.")
    metadata: BlockMetadata


# ---------------------------------------------------------------------------
# ChunkMetadata: block provenance plus chunking / ingestion stamps.
# ---------------------------------------------------------------------------
class ChunkMetadata(BlockMetadata):
    """Metadata attached to every chunk.

    Groups of fields are filled by different stages:

    * position fields by :class:`~src.services.ingestion.chunker.AdaptiveChunker`
    * table flags by :class:`~src.services.ingestion.table_chunker.TableChunker`
    * ingestion stamps by
      :class:`~src.services.ingestion.embedding_ingestor.EmbeddingIngestor`
      just before a chunk is persisted
    """

    # --- Position within the source block / document ---
    chunk_index: int = Field(default=0, ge=0, description="Position within the source block.")
    total_chunks: int = Field(default=1, ge=0, description="Chunks produced from the source block.")
    element_index: int = Field(default=0, ge=0, description="Position of the source block.")
    sequential_id: int | None = Field(default=None, ge=0, description="Position in the document.")
    total_document_chunks: int | None = Field(default=None, ge=0)
    adaptive_chunk_size: int | None = Field(default=None, gt=0)
    original_length: int | None = Field(default=None, ge=0, description="Source block length.")

    # --- Table flags ---
    is_table_chunk: bool = False
    is_complete_table: bool = False
    is_partial_table: bool = False
    is_final_chunk: bool = False
    is_hebrew_table: bool = False
    has_currency: bool = False
    has_table_keywords: bool = False
    table_language: str | None = None
    row_start: int | None = Field(default=None, ge=0)
    row_end: int | None = Field(default=None, ge=0)
    row_count: int | None = Field(default=None, ge=0)
    total_table_rows: int | None = Field(default=None, ge=0)

    # --- Error recovery ---
    fallback_chunk: bool = False
    error_recovery: bool = False

    # --- Ingestion stamps ---
    chunk_id: str | None = None
    document_id: str | None = None
    chunk_length: int | None = Field(default=None, ge=0)
    attempt_number: int | None = Field(default=None, ge=1)
    final_retry: bool = False
    original_error: str | None = None
    processing_timestamp: str | None = None

    @classmethod
    def from_block(cls, block_metadata: BlockMetadata, **fields: Any) -> ChunkMetadata:
        """Build chunk metadata inheriting every field of *block_metadata*."""
        return cls(**block_metadata.model_dump(), **fields)


# ---------------------------------------------------------------------------
# Chunk: the atomic unit embedded and stored.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A unit of text produced from one extracted block."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Chunk content (tables may be cleaned).")
    metadata: ChunkMetadata

    def with_metadata(self, **updates: Any) -> Chunk:
        """Return a copy of this chunk with metadata fields replaced."""
        return self.model_copy(update={"metadata": self.metadata.model_copy(update=updates)})


# ---------------------------------------------------------------------------
# ChunkingResult: chunks plus the accounting of one chunking run.
# ---------------------------------------------------------------------------
class ChunkingResult(BaseModel):
    """Output of :meth:`AdaptiveChunker.chunk_with_stats`."""

    model_config = ConfigDict(frozen=True)

    chunks: list[Chunk] = Field(default_factory=list)
    chunk_size: int = Field(gt=0, description="Selected chunk size in characters.")
    overlap: int = Field(ge=0, description="Selected overlap in characters.")
    total_chars: int = Field(default=0, ge=0, description="Characters across all source blocks.")
    covered_chars: int = Field(default=0, ge=0, description="Characters across emitted chunks.")
    duplicates_dropped: int = Field(default=0, ge=0)
    fallback_blocks: int = Field(default=0, ge=0, description="Blocks emitted unsplit after errors.")
    complex_content: bool = False

    @property
    def coverage(self) -> float:
        """Ratio of chunk characters to source characters (observational only)."""
        if self.total_chars == 0:
            return 0.0
        return self.covered_chars / self.total_chars
