"""Table-aware splitting for extracted table blocks.

Tables lose most of their meaning when split mid-row, and a Hebrew
invoice split between its header row and its totals row retrieves badly
in either half.  The chunker therefore prefers to keep a table whole and
only falls back to row-based splitting for long, non-RTL, keyword-poor
tables:

1. **Keep whole (cleaned)** when the table is short, contains RTL script,
   or hits at least two table keywords.
2. **Keep whole (raw)** when it has at most five non-empty rows.
3. **Split by rows** otherwise, packing rows up to the chunk size and
   repeating the last row of each chunk at the start of the next one.
"""

from __future__ import annotations

from typing import Any, NamedTuple

import structlog

from src.config.policies import ChunkingPolicy
from src.interfaces.content_classifier import IContentClassifier
from src.models.document import ExtractedBlock

logger = structlog.get_logger(logger_name=__name__)


class TablePiece(NamedTuple):
    """One table chunk: its text and the metadata fields to stamp on it."""

    text: str
    fields: dict[str, Any]


class TableChunker:
    """Splits table blocks into :class:`TablePiece` objects.

    Parameters
    ----------
    classifier:
        Detects RTL script, currency and keywords, and cleans table text.
    policy:
        Thresholds for keeping tables whole and the row overlap.
    """

    def __init__(self, classifier: IContentClassifier, policy: ChunkingPolicy | None = None) -> None:
        self._classifier = classifier
        self._policy = policy or ChunkingPolicy()

    def chunk_table(self, block: ExtractedBlock, chunk_size: int) -> list[TablePiece]:
        """Split one table block.

        Parameters
        ----------
        block:
            A block of kind ``table``.
        chunk_size:
            Maximum characters per row-split chunk.

        Returns
        -------
        list[TablePiece]
            At least one piece for any non-blank table; empty for a blank one.
        """
        text = block.text
        if not text.strip():
            return []

        is_rtl = self._classifier.is_rtl(text)
        has_currency = self._classifier.has_currency(text)
        keyword_hits = self._classifier.count_keywords(text)
        whole_limit = max(self._policy.table_whole_factor * chunk_size, self._policy.table_min_whole_chars)

        if len(text) <= whole_limit or is_rtl or keyword_hits >= self._policy.table_min_keyword_hits:
            logger.debug(
                "table_kept_whole",
                length=len(text),
                is_rtl=is_rtl,
                keyword_hits=keyword_hits,
            )
            return [
                TablePiece(
                    text=self._classifier.clean_table(text),
                    fields={
                        "is_table_chunk": True,
                        "is_complete_table": True,
                        "is_hebrew_table": is_rtl,
                        "has_currency": has_currency,
                        "has_table_keywords": keyword_hits > 0,
                        "table_language": "hebrew" if is_rtl else "english",
                    },
                )
            ]

        rows = [row for row in text.split("\n") if row.strip()]
        if len(rows) <= self._policy.table_max_whole_rows:
            return [
                TablePiece(
                    text=text.strip(),
                    fields={
                        "is_table_chunk": True,
                        "is_complete_table": True,
                        "row_count": len(rows),
                    },
                )
            ]

        pieces = self._split_rows(rows, chunk_size)
        logger.debug("table_split_by_rows", rows=len(rows), pieces=len(pieces))
        return pieces

    # ------------------------------------------------------------------
    # Row splitting
    # ------------------------------------------------------------------

    def _split_rows(self, rows: list[str], chunk_size: int) -> list[TablePiece]:
        """Pack *rows* into chunks of at most *chunk_size* characters.

        Each chunk after the first starts with the last
        ``table_overlap_rows`` rows of its predecessor.  A row longer than
        *chunk_size* on its own is emitted alone and the chunk after it
        starts without overlap, so every chunk contains at least one row
        that no earlier chunk ended with.
        """
        total_rows = len(rows)
        overlap_rows = self._policy.table_overlap_rows
        spans: list[tuple[int, int]] = []  # inclusive (row_start, row_end)

        start = 0
        fresh = 0  # rows in the current chunk that are not overlap
        length = 0

        for index, row in enumerate(rows):
            if len(row) > chunk_size:
                if fresh:
                    spans.append((start, index - 1))
                spans.append((index, index))
                start, fresh, length = index + 1, 0, 0
                continue

            if fresh and length + 1 + len(row) > chunk_size:
                spans.append((start, index - 1))
                start = max(index - overlap_rows, spans[-1][0] + 1)
                fresh = 0
                length = len("\n".join(rows[start:index]))
                if length and length + 1 + len(row) > chunk_size:
                    start, length = index, 0

            length = len(row) if length == 0 else length + 1 + len(row)
            fresh += 1

        if fresh:
            spans.append((start, total_rows - 1))

        pieces: list[TablePiece] = []
        for position, (row_start, row_end) in enumerate(spans):
            fields: dict[str, Any] = {
                "is_table_chunk": True,
                "is_partial_table": True,
                "row_start": row_start,
                "row_end": row_end,
                "total_table_rows": total_rows,
            }
            if position == len(spans) - 1:
                fields["is_final_chunk"] = True
                fields["row_count"] = row_end - row_start + 1
            pieces.append(TablePiece(text="\n".join(rows[row_start : row_end + 1]), fields=fields))
        return pieces
