"""Unit tests for the document and ingestion models and the error hierarchy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.document import BlockKind, BlockMetadata, Chunk, ChunkingResult, ChunkMetadata
from src.models.ingestion import IngestionReport, IngestionVerdict, RetrievedChunk
from src.utils.errors import (
    ConfigurationError,
    DocIngestError,
    DocumentTooLargeError,
    EmbeddingTimeoutError,
    IngestionFailedError,
    IngestionTimeoutError,
    RAGError,
)

# ======================================================================
# Document models
# ======================================================================


class TestChunkMetadata:
    def test_from_block_inherits_provenance(self) -> None:
        block_meta = BlockMetadata(
            source_filename="invoice.pdf",
            extraction_type=BlockKind.TABLE,
            page_number=4,
            table_index=1,
            extra={"ocr_confidence": 0.93},
        )

        meta = ChunkMetadata.from_block(block_meta, chunk_index=2, total_chunks=3, is_table_chunk=True)

        assert meta.source_filename == "invoice.pdf"
        assert meta.extraction_type is BlockKind.TABLE
        assert meta.page_number == 4
        assert meta.table_index == 1
        assert meta.extra == {"ocr_confidence": 0.93}
        assert meta.chunk_index == 2
        assert meta.is_table_chunk is True

    def test_negative_positions_are_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChunkMetadata(source_filename="a.pdf", extraction_type=BlockKind.TEXT, chunk_index=-1)


class TestChunk:
    def test_with_metadata_returns_a_copy(self) -> None:
        chunk = Chunk(
            text="hello",
            metadata=ChunkMetadata(source_filename="a.pdf", extraction_type=BlockKind.TEXT),
        )

        stamped = chunk.with_metadata(sequential_id=3, document_id="doc-1")

        assert stamped.metadata.sequential_id == 3
        assert stamped.metadata.document_id == "doc-1"
        assert chunk.metadata.sequential_id is None
        assert stamped.text == "hello"

    def test_chunk_is_frozen(self) -> None:
        chunk = Chunk(text="x", metadata=ChunkMetadata(source_filename="a.pdf", extraction_type=BlockKind.TEXT))
        with pytest.raises(ValidationError):
            chunk.text = "y"  # type: ignore[misc]


class TestChunkingResult:
    def test_coverage(self) -> None:
        result = ChunkingResult(chunk_size=1500, overlap=50, total_chars=2000, covered_chars=2060)
        assert result.coverage == pytest.approx(1.03)

    def test_coverage_of_empty_document(self) -> None:
        assert ChunkingResult(chunk_size=1500, overlap=50).coverage == 0.0


# ======================================================================
# Ingestion models
# ======================================================================


class TestIngestionVerdict:
    @pytest.mark.parametrize(
        ("rate", "expected"),
        [
            (1.0, IngestionVerdict.EXCELLENT),
            (0.95, IngestionVerdict.EXCELLENT),
            (0.94, IngestionVerdict.GOOD),
            (0.85, IngestionVerdict.GOOD),
            (0.84, IngestionVerdict.ACCEPTABLE),
            (0.70, IngestionVerdict.ACCEPTABLE),
            (0.69, IngestionVerdict.FAILED),
            (0.0, IngestionVerdict.FAILED),
        ],
    )
    def test_thresholds(self, rate: float, expected: IngestionVerdict) -> None:
        assert IngestionVerdict.from_success_rate(rate) is expected

    def test_all_succeeded_is_perfect(self) -> None:
        assert IngestionVerdict.from_success_rate(1.0, all_succeeded=True) is IngestionVerdict.PERFECT

    def test_custom_acceptable_threshold(self) -> None:
        assert IngestionVerdict.from_success_rate(0.75, acceptable_threshold=0.8) is IngestionVerdict.FAILED
        assert IngestionVerdict.from_success_rate(0.55, acceptable_threshold=0.5) is IngestionVerdict.ACCEPTABLE


class TestIngestionReport:
    def test_defaults_describe_an_empty_run(self) -> None:
        report = IngestionReport()
        assert report.verdict is IngestionVerdict.PERFECT
        assert report.accepted is True
        assert report.has_missing_content is False

    def test_summary_per_verdict(self) -> None:
        perfect = IngestionReport(total=20, succeeded=20)
        acceptable = IngestionReport(
            total=10, succeeded=8, failed=2, success_rate=0.8, verdict=IngestionVerdict.ACCEPTABLE
        )
        failed = IngestionReport(total=10, succeeded=5, failed=5, success_rate=0.5, verdict=IngestionVerdict.FAILED)

        assert perfect.summary() == "All 20 chunks processed and stored."
        assert "80.0%" in acceptable.summary()
        assert "2 failed" in acceptable.summary()
        assert acceptable.has_missing_content is True
        assert failed.summary().startswith("Only 50.0%")
        assert failed.accepted is False

    def test_success_rate_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            IngestionReport(success_rate=1.2)

    def test_retrieved_chunk_similarity_is_bounded(self) -> None:
        with pytest.raises(ValidationError):
            RetrievedChunk(content="x", similarity=1.5)


# ======================================================================
# Error hierarchy
# ======================================================================


class TestErrors:
    def test_provider_prefix(self) -> None:
        assert str(RAGError("upsert failed", provider_name="chromadb")) == "[chromadb] upsert failed"
        assert str(RAGError("upsert failed")) == "upsert failed"

    def test_hierarchy(self) -> None:
        assert issubclass(EmbeddingTimeoutError, RAGError)
        assert issubclass(ConfigurationError, DocIngestError)
        assert issubclass(IngestionFailedError, DocIngestError)

    def test_document_too_large_message(self) -> None:
        exc = DocumentTooLargeError(chunk_count=612, max_chunks=500)
        assert exc.chunk_count == 612
        assert "612 chunks created" in str(exc)
        assert "Maximum 500 chunks" in str(exc)

    def test_ingestion_failed_carries_report(self) -> None:
        report = IngestionReport(total=10, succeeded=6, failed=4, success_rate=0.6, verdict=IngestionVerdict.FAILED)
        exc = IngestionFailedError(report)

        assert exc.report is report
        assert "60.0%" in str(exc)
        assert "(6/10 chunks)" in str(exc)

    def test_ingestion_timeout_message(self) -> None:
        exc = IngestionTimeoutError(budget_s=180, document_id="doc-7")
        assert exc.budget_s == 180
        assert "'doc-7'" in str(exc)
        assert "180s" in str(exc)
