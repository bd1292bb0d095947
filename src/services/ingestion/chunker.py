"""Adaptive chunking of extracted document blocks.

Splits a document's :class:`~src.models.document.ExtractedBlock` sequence
into :class:`~src.models.document.Chunk` objects sized for the embedding
model.  Three ideas shape the output:

1. **Adaptive sizing** -- chunk size and overlap are picked from the total
   length of the document.  Short documents get large chunks (few
   embeddings, full context); long documents get small ones so retrieval
   stays precise.  Tables, OCR'd images and right-to-left text are
   "complex" and always get small chunks with generous overlap.

2. **Structure awareness** -- table blocks go through
   :class:`~src.services.ingestion.table_chunker.TableChunker`; everything
   else is split by LangChain's ``RecursiveCharacterTextSplitter`` on the
   strongest available boundary (section break, paragraph, line, sentence,
   clause, word).

3. **No duplicates** -- headers, footers and repeated disclaimers appear
   on every page of a PDF.  Each chunk is fingerprinted with
   :func:`~src.services.ingestion.content_hasher.content_hash` and dropped
   if an earlier chunk of the same document had the same normalized text.

A block that cannot be split never loses its content: it is emitted as a
single fallback chunk instead.
"""

from __future__ import annotations

import structlog
from langchain_text_splitters import RecursiveCharacterTextSplitter

from src.config.policies import ChunkingPolicy
from src.interfaces.content_classifier import IContentClassifier
from src.models.document import (
    COMPLEX_KINDS,
    BlockKind,
    Chunk,
    ChunkingResult,
    ChunkMetadata,
    ExtractedBlock,
)
from src.pipeline.progress_reporter import ProgressReporter, ProgressSnapshot, ProgressStage
from src.services.ingestion.content_classifier import HeuristicContentClassifier
from src.services.ingestion.content_hasher import content_hash
from src.services.ingestion.table_chunker import TableChunker
from src.utils.errors import ChunkingError

logger = structlog.get_logger(logger_name=__name__)

# Strongest boundary first; "" lets the splitter cut mid-word as a last resort.
SEPARATORS: list[str] = ["\n\n\n", "\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ", ""]

# (exclusive upper bound on total characters, chunk size, overlap)
SIZE_TIERS: list[tuple[int, int, int]] = [
    (3_000, 1500, 50),
    (10_000, 1200, 100),
    (30_000, 1000, 150),
    (100_000, 800, 120),
]
LARGE_DOCUMENT_SIZE = 600
LARGE_DOCUMENT_OVERLAP = 80


class AdaptiveChunker:
    """Turns a document's extracted blocks into deduplicated chunks.

    Parameters
    ----------
    classifier:
        Content classifier used for RTL detection and table handling.
        Defaults to :class:`HeuristicContentClassifier`.
    table_chunker:
        Splitter for table blocks.  Built from *classifier* and *policy*
        when omitted.
    policy:
        Chunking knobs (adaptive sizing, complex-content clamps, table
        thresholds).
    progress:
        Receives a coverage snapshot every ``policy.progress_interval``
        blocks and at the end of the run.
    """

    def __init__(
        self,
        classifier: IContentClassifier | None = None,
        table_chunker: TableChunker | None = None,
        policy: ChunkingPolicy | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        self._policy = policy or ChunkingPolicy()
        self._classifier = classifier or HeuristicContentClassifier()
        self._table_chunker = table_chunker or TableChunker(self._classifier, self._policy)
        self._progress = progress or ProgressReporter(interval=self._policy.progress_interval)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        blocks: list[ExtractedBlock],
        base_size: int = 500,
        base_overlap: int = 100,
        document_id: str | None = None,
    ) -> list[Chunk]:
        """Split *blocks* into chunks.  See :meth:`chunk_with_stats`."""
        return self.chunk_with_stats(blocks, base_size, base_overlap, document_id).chunks

    def chunk_with_stats(
        self,
        blocks: list[ExtractedBlock],
        base_size: int = 500,
        base_overlap: int = 100,
        document_id: str | None = None,
    ) -> ChunkingResult:
        """Split *blocks* into chunks and account for the run.

        Parameters
        ----------
        blocks:
            Extracted blocks in document order.
        base_size, base_overlap:
            Chunk size and overlap used verbatim when the policy disables
            adaptive sizing.
        document_id:
            Only used to key progress snapshots.

        Returns
        -------
        ChunkingResult
            Chunks in emission order, each stamped with ``sequential_id``
            and ``total_document_chunks``, plus coverage and dedup counts.
        """
        total_chars = sum(len(block.text) for block in blocks)
        complex_content = self._has_complex_content(blocks)
        chunk_size, overlap = self.select_parameters(total_chars, complex_content, base_size, base_overlap)

        logger.info(
            "chunking_started",
            blocks=len(blocks),
            total_chars=total_chars,
            chunk_size=chunk_size,
            overlap=overlap,
            complex_content=complex_content,
        )

        seen: set[str] = set()
        chunks: list[Chunk] = []
        covered_chars = 0
        duplicates = 0
        fallback_blocks = 0

        for element_index, block in enumerate(blocks):
            try:
                pieces = self._split_block(block, chunk_size, overlap)
                admitted, fingerprints, dropped = self._admit_pieces(block, pieces, element_index, chunk_size, seen)
            except Exception as exc:
                fallback_blocks += 1
                logger.warning(
                    "block_split_failed",
                    element_index=element_index,
                    kind=block.kind.value,
                    error=str(exc),
                )
                pieces = [(block.text, {"fallback_chunk": True, "error_recovery": True})]
                admitted, fingerprints, dropped = self._admit_pieces(block, pieces, element_index, chunk_size, seen)

            seen.update(fingerprints)
            chunks.extend(admitted)
            covered_chars += sum(len(chunk.text) for chunk in admitted)
            duplicates += dropped

            processed = element_index + 1
            if self._progress.should_report(processed, len(blocks)):
                self._progress.report(
                    ProgressSnapshot(
                        document_id=document_id,
                        stage=ProgressStage.CHUNKING,
                        processed=processed,
                        total=len(blocks),
                        covered_chars=covered_chars,
                        total_chars=total_chars,
                    )
                )

        total = len(chunks)
        chunks = [
            chunk.with_metadata(sequential_id=position, total_document_chunks=total)
            for position, chunk in enumerate(chunks)
        ]

        result = ChunkingResult(
            chunks=chunks,
            chunk_size=chunk_size,
            overlap=overlap,
            total_chars=total_chars,
            covered_chars=covered_chars,
            duplicates_dropped=duplicates,
            fallback_blocks=fallback_blocks,
            complex_content=complex_content,
        )
        logger.info(
            "chunking_complete",
            chunks=total,
            coverage=round(result.coverage * 100, 1),
            duplicates_dropped=duplicates,
            fallback_blocks=fallback_blocks,
        )
        return result

    def select_parameters(
        self,
        total_chars: int,
        complex_content: bool,
        base_size: int = 500,
        base_overlap: int = 100,
    ) -> tuple[int, int]:
        """Return ``(chunk_size, overlap)`` for a document of *total_chars* characters."""
        if not self._policy.adaptive:
            return base_size, base_overlap

        size, overlap = LARGE_DOCUMENT_SIZE, LARGE_DOCUMENT_OVERLAP
        for upper_bound, tier_size, tier_overlap in SIZE_TIERS:
            if total_chars < upper_bound:
                size, overlap = tier_size, tier_overlap
                break

        if complex_content:
            size = min(size, self._policy.complex_max_chunk_size)
            overlap = max(overlap, self._policy.complex_min_overlap)
        return size, overlap

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _has_complex_content(self, blocks: list[ExtractedBlock]) -> bool:
        return any(block.kind in COMPLEX_KINDS or self._classifier.is_rtl(block.text) for block in blocks)

    def _admit_pieces(
        self,
        block: ExtractedBlock,
        pieces: list[tuple[str, dict]],
        element_index: int,
        chunk_size: int,
        seen: set[str],
    ) -> tuple[list[Chunk], set[str], int]:
        """Turn one block's pieces into chunks, skipping blanks and duplicates.

        *seen* is left untouched; the block's new fingerprints are returned
        so a block that fails half-way leaves nothing behind.  ``chunk_index``
        is the piece's position in the split, so it stays comparable with
        ``total_chunks`` when duplicates are dropped.
        """
        admitted: list[Chunk] = []
        fingerprints: set[str] = set()
        dropped = 0

        for position, (text, fields) in enumerate(pieces):
            if not text.strip():
                continue
            fingerprint = content_hash(text)
            if fingerprint in seen or fingerprint in fingerprints:
                dropped += 1
                continue
            fingerprints.add(fingerprint)

            if block.kind is not BlockKind.TABLE and not fields.get("fallback_chunk"):
                fields = {**fields, "original_length": len(block.text)}
            metadata = ChunkMetadata.from_block(
                block.metadata,
                chunk_index=position,
                total_chunks=len(pieces),
                element_index=element_index,
                adaptive_chunk_size=chunk_size,
                **fields,
            )
            admitted.append(Chunk(text=text, metadata=metadata))

        return admitted, fingerprints, dropped

    def _split_block(self, block: ExtractedBlock, chunk_size: int, overlap: int) -> list[tuple[str, dict]]:
        if block.kind is BlockKind.TABLE:
            return [(piece.text, piece.fields) for piece in self._table_chunker.chunk_table(block, chunk_size)]

        if overlap >= chunk_size:
            raise ChunkingError(f"Overlap {overlap} must be smaller than chunk size {chunk_size}")

        splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=overlap,
            separators=SEPARATORS,
            keep_separator=True,
            length_function=len,
        )
        return [(text, {}) for text in splitter.split_text(block.text)]
