"""Unit tests for the TableChunker — keep-whole rules and row-based splitting."""

from __future__ import annotations

from src.config.policies import ChunkingPolicy
from src.models.document import BlockKind
from src.services.ingestion.content_classifier import HeuristicContentClassifier
from src.services.ingestion.table_chunker import TableChunker
from tests.conftest import make_block

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_chunker(**policy_overrides: object) -> TableChunker:
    return TableChunker(HeuristicContentClassifier(), ChunkingPolicy(**policy_overrides))


def _table(text: str):
    return make_block(text, kind=BlockKind.TABLE, table_index=0)


def _plain_rows(count: int) -> list[str]:
    """Rows of 29 characters with no RTL script, currency or table keywords."""
    return [f"row {i:02d} | alpha | beta | gamma" for i in range(count)]


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestKeepWhole:
    """Short, RTL and keyword-rich tables are never split."""

    def test_short_hebrew_table_is_one_complete_chunk(self, sample_hebrew_table: str) -> None:
        pieces = _make_chunker().chunk_table(_table(sample_hebrew_table), chunk_size=900)

        assert len(pieces) == 1
        fields = pieces[0].fields
        assert fields["is_table_chunk"] is True
        assert fields["is_complete_table"] is True
        assert fields["is_hebrew_table"] is True
        assert fields["has_currency"] is True
        assert fields["has_table_keywords"] is True
        assert fields["table_language"] == "hebrew"

    def test_whole_table_text_is_cleaned(self) -> None:
        text = "Code  |   Description\nA1    |   Widget  100 $"
        pieces = _make_chunker().chunk_table(_table(text), chunk_size=500)

        assert pieces[0].text == "Code | Description\nA1 | Widget 100$"
        assert pieces[0].fields["table_language"] == "english"
        assert pieces[0].fields["is_hebrew_table"] is False

    def test_table_under_minimum_whole_size_is_not_split(self) -> None:
        text = "\n".join(_plain_rows(30))  # ~900 characters
        assert len(text) <= 1000

        pieces = _make_chunker().chunk_table(_table(text), chunk_size=100)

        assert len(pieces) == 1
        assert pieces[0].fields["is_complete_table"] is True

    def test_long_rtl_table_is_not_split(self) -> None:
        rows = [f"שורה {i} | ערך {i * 7} | הערה כללית" for i in range(80)]
        text = "\n".join(rows)
        assert len(text) > 1500

        pieces = _make_chunker().chunk_table(_table(text), chunk_size=200)

        assert len(pieces) == 1
        assert pieces[0].fields["is_hebrew_table"] is True

    def test_keyword_rich_table_is_not_split(self) -> None:
        rows = ["Date | Amount | Remarks"] + [f"2024 | {i * 13} | ok" for i in range(120)]
        text = "\n".join(rows)
        assert len(text) > 1000

        pieces = _make_chunker().chunk_table(_table(text), chunk_size=200)

        assert len(pieces) == 1
        assert pieces[0].fields["has_table_keywords"] is True

    def test_few_long_rows_are_kept_raw(self) -> None:
        rows = [f"r{i} " + "lorem ipsum " * 20 for i in range(5)]
        text = "\n".join(rows) + "\n"
        assert len(text) > 1000

        pieces = _make_chunker().chunk_table(_table(text), chunk_size=200)

        assert len(pieces) == 1
        assert pieces[0].text == text.strip()
        assert pieces[0].fields["row_count"] == 5
        assert pieces[0].fields["is_complete_table"] is True

    def test_blank_table_produces_nothing(self) -> None:
        assert _make_chunker().chunk_table(_table("  \n\t "), chunk_size=500) == []


class TestRowSplitting:
    """Long, plain tables are split on row boundaries with one row of overlap."""

    def test_rows_are_packed_with_overlap(self) -> None:
        rows = _plain_rows(50)
        pieces = _make_chunker().chunk_table(_table("\n".join(rows)), chunk_size=100)

        assert len(pieces) > 1
        for piece in pieces:
            assert len(piece.text) <= 100
            assert piece.fields["is_partial_table"] is True
            assert piece.fields["total_table_rows"] == 50

        for previous, current in zip(pieces, pieces[1:]):
            assert current.fields["row_start"] == previous.fields["row_end"]
            assert current.fields["row_end"] > previous.fields["row_end"]
            assert current.text.startswith(rows[previous.fields["row_end"]])

        assert pieces[0].fields["row_start"] == 0
        assert pieces[-1].fields["row_end"] == 49

    def test_only_last_piece_is_final(self) -> None:
        pieces = _make_chunker().chunk_table(_table("\n".join(_plain_rows(50))), chunk_size=100)

        assert pieces[-1].fields["is_final_chunk"] is True
        final = pieces[-1]
        assert final.fields["row_count"] == final.fields["row_end"] - final.fields["row_start"] + 1
        assert final.fields["row_count"] == len(final.text.splitlines())
        assert final.fields["row_count"] < final.fields["total_table_rows"]
        assert all("is_final_chunk" not in p.fields for p in pieces[:-1])

    def test_no_overlap_when_disabled(self) -> None:
        pieces = _make_chunker(table_overlap_rows=0).chunk_table(
            _table("\n".join(_plain_rows(50))), chunk_size=100
        )

        for previous, current in zip(pieces, pieces[1:]):
            assert current.fields["row_start"] == previous.fields["row_end"] + 1

    def test_oversized_row_is_emitted_alone(self) -> None:
        rows = _plain_rows(40)
        big_index = 20
        rows.insert(big_index, "z" * 150)
        pieces = _make_chunker().chunk_table(_table("\n".join(rows)), chunk_size=100)

        alone = [p for p in pieces if p.text == rows[big_index]]
        assert len(alone) == 1
        position = pieces.index(alone[0])
        assert alone[0].fields["row_start"] == alone[0].fields["row_end"] == big_index
        # The next piece starts fresh, without repeating the oversized row.
        assert pieces[position + 1].fields["row_start"] == big_index + 1
        assert pieces[position - 1].fields["row_end"] == big_index - 1
