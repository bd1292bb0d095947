"""Regex- and keyword-based content classifier for Hebrew / English documents."""

from __future__ import annotations

import re

from src.config.domain_knowledge import (
    CURRENCY_CLEANUP_RULES,
    CURRENCY_SYMBOLS,
    DATE_CLEANUP_RULES,
    HORIZONTAL_WHITESPACE,
    LEADING_WHITESPACE,
    RTL_CLEANUP_RULES,
    RTL_PATTERN,
    TABLE_KEYWORDS,
)
from src.interfaces.content_classifier import IContentClassifier


class HeuristicContentClassifier(IContentClassifier):
    """Detects complex content with the curated lists in :mod:`src.config.domain_knowledge`.

    Parameters
    ----------
    keywords:
        Table keywords to count.  Defaults to the built-in Hebrew and
        English column-header list.  Matching is case-insensitive.
    """

    def __init__(self, keywords: tuple[str, ...] | list[str] | None = None) -> None:
        self._keywords = tuple(k.lower() for k in (keywords or TABLE_KEYWORDS))

    def is_rtl(self, text: str) -> bool:
        return RTL_PATTERN.search(text) is not None

    def has_currency(self, text: str) -> bool:
        return any(symbol in text for symbol in CURRENCY_SYMBOLS)

    def count_keywords(self, text: str) -> int:
        lowered = text.lower()
        return sum(1 for keyword in self._keywords if keyword in lowered)

    def is_complex(self, text: str) -> bool:
        return self.is_rtl(text) or self.has_currency(text) or self.count_keywords(text) > 0

    def clean_table(self, text: str) -> str:
        cleaned = HORIZONTAL_WHITESPACE.sub(" ", text)
        cleaned = LEADING_WHITESPACE.sub("\n", cleaned)

        if self.is_rtl(cleaned):
            cleaned = _apply(RTL_CLEANUP_RULES, cleaned)
        if self.has_currency(cleaned):
            cleaned = _apply(CURRENCY_CLEANUP_RULES, cleaned)
        cleaned = _apply(DATE_CLEANUP_RULES, cleaned)

        return cleaned.strip()


def _apply(rules: list[tuple[re.Pattern[str], str]], text: str) -> str:
    for pattern, replacement in rules:
        text = pattern.sub(replacement, text)
    return text
