"""Unit tests for the AdaptiveChunker — sizing tiers, deduplication and fallback."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from src.config.policies import ChunkingPolicy
from src.models.document import BlockKind
from src.pipeline.progress_reporter import ProgressReporter, ProgressSnapshot, ProgressStage
from src.services.ingestion.chunker import AdaptiveChunker
from src.services.ingestion.content_hasher import content_hash
from tests.conftest import make_block

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(**policy_overrides: object) -> AdaptiveChunker:
    """Build an AdaptiveChunker with a predictable policy."""
    return AdaptiveChunker(policy=ChunkingPolicy(**policy_overrides))


def _paragraphs(count: int) -> list:
    return [make_block(f"Paragraph {i} covers the quarterly revenue.", page_number=i + 1) for i in range(count)]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestParameterSelection:
    """Chunk size and overlap follow the document length tiers."""

    @pytest.mark.parametrize(
        ("total_chars", "expected"),
        [
            (0, (1500, 50)),
            (2_999, (1500, 50)),
            (3_000, (1200, 100)),
            (9_999, (1200, 100)),
            (10_000, (1000, 150)),
            (29_999, (1000, 150)),
            (30_000, (800, 120)),
            (99_999, (800, 120)),
            (100_000, (600, 80)),
            (2_000_000, (600, 80)),
        ],
    )
    def test_size_tiers(self, total_chars: int, expected: tuple[int, int]) -> None:
        assert _make_chunker().select_parameters(total_chars, complex_content=False) == expected

    def test_complex_content_clamps_size_and_raises_overlap(self) -> None:
        chunker = _make_chunker()
        assert chunker.select_parameters(2_000, complex_content=True) == (900, 100)
        assert chunker.select_parameters(50_000, complex_content=True) == (800, 120)
        assert chunker.select_parameters(200_000, complex_content=True) == (600, 100)

    def test_non_adaptive_uses_base_values(self) -> None:
        chunker = _make_chunker(adaptive=False)
        assert chunker.select_parameters(50_000, True, base_size=300, base_overlap=30) == (300, 30)


class TestAdaptiveChunking:
    """End-to-end chunking of plain text blocks."""

    def test_short_document_gets_two_large_chunks(self, sample_text_2000: str) -> None:
        result = _make_chunker().chunk_with_stats([make_block(sample_text_2000)])

        assert result.chunk_size == 1500
        assert result.overlap == 50
        assert result.complex_content is False
        assert len(result.chunks) == 2
        assert all(len(chunk.text) <= 1500 for chunk in result.chunks)
        # Overlap makes coverage slightly exceed the source.
        assert 1.0 <= result.coverage <= 1.10

    def test_rtl_text_counts_as_complex(self) -> None:
        result = _make_chunker().chunk_with_stats([make_block("דוח רבעוני: ההכנסות עלו בעשרה אחוזים.")])

        assert result.complex_content is True
        assert result.chunk_size == 900
        assert result.overlap == 100

    def test_metadata_is_inherited_and_positioned(self, sample_text_2000: str) -> None:
        block = make_block(sample_text_2000, page_number=3, chapter="Finance")
        chunks = _make_chunker().chunk([make_block("Cover page."), block])

        tail = chunks[1:]
        assert [c.metadata.chunk_index for c in tail] == [0, 1]
        for chunk in tail:
            assert chunk.metadata.page_number == 3
            assert chunk.metadata.chapter == "Finance"
            assert chunk.metadata.source_filename == "report.pdf"
            assert chunk.metadata.element_index == 1
            assert chunk.metadata.total_chunks == 2
            assert chunk.metadata.original_length == len(sample_text_2000)
            assert chunk.metadata.adaptive_chunk_size == 1500

    def test_sequential_ids_span_the_document(self) -> None:
        chunks = _make_chunker().chunk(_paragraphs(7))

        assert [c.metadata.sequential_id for c in chunks] == list(range(7))
        assert all(c.metadata.total_document_chunks == 7 for c in chunks)

    def test_blank_blocks_produce_no_chunks(self) -> None:
        result = _make_chunker().chunk_with_stats([make_block("   \n  "), make_block("Real content here.")])

        assert [c.text for c in result.chunks] == ["Real content here."]

    def test_empty_input(self) -> None:
        result = _make_chunker().chunk_with_stats([])

        assert result.chunks == []
        assert result.coverage == 0.0


class TestDeduplication:
    """Repeated headers and footers are dropped after their first occurrence."""

    def test_repeated_blocks_are_dropped(self) -> None:
        footer = "Confidential. Do not distribute."
        blocks = [
            make_block(footer, page_number=1),
            make_block("Page one body text.", page_number=1),
            make_block(footer, page_number=2),
            make_block("  CONFIDENTIAL. DO NOT DISTRIBUTE.  ", page_number=3),
        ]
        result = _make_chunker().chunk_with_stats(blocks)

        assert [c.text for c in result.chunks] == [footer, "Page one body text."]
        assert result.duplicates_dropped == 2
        assert result.chunks[0].metadata.page_number == 1

    def test_no_two_chunks_share_a_fingerprint(self, sample_text_2000: str) -> None:
        chunks = _make_chunker().chunk([make_block(sample_text_2000)] * 3)
        fingerprints = [content_hash(c.text) for c in chunks]

        assert len(fingerprints) == len(set(fingerprints))

    def test_chunk_index_is_the_split_position(self) -> None:
        blocks = [make_block("Cover page."), make_block("Cover page.\n\nBody text here.")]

        result = _make_chunker(adaptive=False).chunk_with_stats(blocks, base_size=20, base_overlap=0)

        body = result.chunks[-1]
        assert [c.text for c in result.chunks] == ["Cover page.", "Body text here."]
        assert body.metadata.chunk_index == 1
        assert body.metadata.total_chunks == 2
        assert result.duplicates_dropped == 1


class TestTableBlocks:
    """Table blocks are routed to the table chunker."""

    def test_table_block_is_kept_whole(self, sample_hebrew_table: str) -> None:
        blocks = [make_block("Invoice summary follows."), make_block(sample_hebrew_table, kind=BlockKind.TABLE)]
        result = _make_chunker().chunk_with_stats(blocks)

        table_chunk = result.chunks[-1]
        assert result.complex_content is True
        assert table_chunk.metadata.is_table_chunk is True
        assert table_chunk.metadata.is_complete_table is True
        assert table_chunk.metadata.is_hebrew_table is True
        assert table_chunk.metadata.original_length is None

    def test_ocr_block_counts_as_complex(self) -> None:
        result = _make_chunker().chunk_with_stats([make_block("Scanned receipt text", kind=BlockKind.IMAGE_OCR)])

        assert result.complex_content is True
        assert result.chunk_size == 900


class TestFallback:
    """A block that cannot be split is emitted as a single fallback chunk."""

    def test_invalid_overlap_falls_back_to_whole_block(self) -> None:
        text = "A block that the splitter refuses to handle."
        result = _make_chunker(adaptive=False).chunk_with_stats([make_block(text)], base_size=100, base_overlap=100)

        assert result.fallback_blocks == 1
        assert len(result.chunks) == 1
        chunk = result.chunks[0]
        assert chunk.text == text
        assert chunk.metadata.fallback_chunk is True
        assert chunk.metadata.error_recovery is True
        assert chunk.metadata.original_length is None

    def test_table_chunker_error_falls_back(self, sample_hebrew_table: str) -> None:
        class _BrokenTableChunker:
            def chunk_table(self, block, chunk_size):
                raise RuntimeError("malformed table")

        chunker = AdaptiveChunker(table_chunker=_BrokenTableChunker())  # type: ignore[arg-type]
        result = chunker.chunk_with_stats([make_block(sample_hebrew_table, kind=BlockKind.TABLE)])

        assert result.fallback_blocks == 1
        assert result.chunks[0].text == sample_hebrew_table
        assert result.chunks[0].metadata.fallback_chunk is True

    def test_lone_surrogate_does_not_abort_the_document(self) -> None:
        truncated = json.loads('"Ticket sales closed \\ud83d end."')

        result = _make_chunker().chunk_with_stats([make_block("Opening remarks."), make_block(truncated)])

        assert [c.text for c in result.chunks] == ["Opening remarks.", truncated]
        assert result.fallback_blocks == 0

    def test_admission_error_falls_back_for_that_block_only(self) -> None:
        chunker = _make_chunker()
        admit = chunker._admit_pieces

        def failing_admit(block, pieces, *args):
            if block.text.startswith("Second") and not pieces[0][1].get("fallback_chunk"):
                raise ValueError("metadata rejected")
            return admit(block, pieces, *args)

        with patch.object(chunker, "_admit_pieces", side_effect=failing_admit):
            result = chunker.chunk_with_stats([make_block("First block."), make_block("Second block.")])

        assert [c.text for c in result.chunks] == ["First block.", "Second block."]
        assert result.fallback_blocks == 1
        assert result.chunks[0].metadata.fallback_chunk is False
        assert result.chunks[1].metadata.fallback_chunk is True


class TestChunkingProgress:
    """Coverage snapshots are reported every interval and at the end."""

    def test_snapshots_every_interval(self) -> None:
        progress = ProgressReporter(interval=5)
        seen: list[ProgressSnapshot] = []
        progress.register_listener(seen.append, document_id="doc-1")

        AdaptiveChunker(progress=progress).chunk(_paragraphs(7), document_id="doc-1")

        assert [s.processed for s in seen] == [5, 7]
        assert all(s.stage is ProgressStage.CHUNKING for s in seen)
        assert seen[-1].total == 7
        assert seen[-1].coverage == pytest.approx(1.0)
        assert progress.get_status("doc-1") is seen[-1]
