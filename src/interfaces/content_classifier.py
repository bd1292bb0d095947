"""Abstract base class for content classifiers.

Defines the contract the chunkers use to detect "complex" content
(right-to-left script, money amounts, table keywords) and to tidy tables
before they are embedded.  The default implementation is keyword- and
regex-driven; a language-detection or ML-based classifier can replace it
without any change to the chunking code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: HeuristicContentClassifier
# Located in: src/services/ingestion/content_classifier.py
class IContentClassifier(ABC):
    """Contract for detecting content traits that change how text is chunked.

    All methods are pure and synchronous: they run once per block or table
    inside the chunking loop.
    """

    @abstractmethod
    def is_rtl(self, text: str) -> bool:
        """Return ``True`` if *text* contains right-to-left script (Hebrew, Arabic)."""

    @abstractmethod
    def has_currency(self, text: str) -> bool:
        """Return ``True`` if *text* contains a currency symbol."""

    @abstractmethod
    def count_keywords(self, text: str) -> int:
        """Return the number of distinct table keywords found in *text*."""

    @abstractmethod
    def is_complex(self, text: str) -> bool:
        """Return ``True`` if *text* should be chunked with the complex-content parameters."""

    @abstractmethod
    def clean_table(self, text: str) -> str:
        """Normalize extraction artifacts in a table's text.

        Implementations must preserve row boundaries (newlines) so a
        cleaned table can still be split by rows.

        Parameters
        ----------
        text:
            Raw table text as produced by the extraction stage.

        Returns
        -------
        str
            The cleaned text, stripped of leading/trailing whitespace.
        """
