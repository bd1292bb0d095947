"""Static content-detection knowledge for multilingual (mainly Hebrew) documents.

# ─── PURPOSE ───────────────────────────────────────────────────────────
#
# The chunker treats some content as "complex": right-to-left script,
# money amounts and tabular data.  Complex content gets smaller chunks
# with more overlap, and tables that look like Hebrew business records
# are never split.  The curated lists here drive that detection:
#
#   - Unicode ranges that mark a text as right-to-left.
#   - Currency symbols that mark a text as containing amounts.
#   - Keywords that typically head columns of invoices, reports and
#     forms ("סכום", "תאריך", "total", "date", ...).
#   - Regex rules used to tidy extracted tables before embedding.
#
# Everything here is pure data built once at import time.  The default
# HeuristicContentClassifier reads it; a different classifier can be
# plugged in without touching this module.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import re


# ═════════════════════════════════════════════════════════════════════════
# 1. SCRIPT DETECTION
# ═════════════════════════════════════════════════════════════════════════

HEBREW_RANGE: tuple[str, str] = ("\u0590", "\u05ff")
ARABIC_RANGE: tuple[str, str] = ("\u0600", "\u06ff")

RTL_PATTERN: re.Pattern[str] = re.compile(
    f"[{HEBREW_RANGE[0]}-{HEBREW_RANGE[1]}{ARABIC_RANGE[0]}-{ARABIC_RANGE[1]}]"
)


# ═════════════════════════════════════════════════════════════════════════
# 2. CURRENCY
# ═════════════════════════════════════════════════════════════════════════
# New shekel first: most uploaded invoices are Israeli.

CURRENCY_SYMBOLS: frozenset[str] = frozenset({"₪", "$", "€", "£", "¥"})
CURRENCY_CLASS = "[₪$€£¥]"


# ═════════════════════════════════════════════════════════════════════════
# 3. TABLE KEYWORDS
# ═════════════════════════════════════════════════════════════════════════
# Column headers common in Hebrew business tables.  Abbreviations appear
# both with gershayim (סה״כ) and without (סהכ) because OCR and PDF text
# layers drop the mark about half the time.

HEBREW_TABLE_KEYWORDS: tuple[str, ...] = (
    "סכום",      # amount
    "מחיר",      # price
    "כמות",      # quantity
    "תאריך",     # date
    "שם",        # name
    "מספר",      # number
    "סה״כ",      # total
    "סהכ",
    "ח״מ",       # undersigned
    "חמ",
    "ת״ז",       # ID number
    "תז",
    "קוד",       # code
    "רשימה",     # list
    "פירוט",     # breakdown
    "תיאור",     # description
    "טבלה",      # table
    "נתונים",    # data
    "דוח",       # report
    "סטטיסטיקה", # statistics
)

ENGLISH_TABLE_KEYWORDS: tuple[str, ...] = (
    "amount",
    "price",
    "quantity",
    "date",
    "total",
    "name",
    "number",
    "code",
    "description",
    "table",
    "report",
)

TABLE_KEYWORDS: tuple[str, ...] = HEBREW_TABLE_KEYWORDS + ENGLISH_TABLE_KEYWORDS


# ═════════════════════════════════════════════════════════════════════════
# 4. TABLE CLEANUP RULES
# ═════════════════════════════════════════════════════════════════════════
# (pattern, replacement) pairs applied in order.  Grouped by the signal
# that enables them so the classifier only runs what the table needs.

_HEB = f"{HEBREW_RANGE[0]}-{HEBREW_RANGE[1]}"

HORIZONTAL_WHITESPACE: re.Pattern[str] = re.compile(r"[ \t\f\v\u00a0]+")
LEADING_WHITESPACE: re.Pattern[str] = re.compile(r"\n[ \t\f\v\u00a0]+")

RTL_CLEANUP_RULES: list[tuple[re.Pattern[str], str]] = [
    # Space between Latin/digits and Hebrew so each side tokenizes alone.
    (re.compile(f"([a-zA-Z0-9])([{_HEB}])"), r"\1 \2"),
    (re.compile(f"([{_HEB}])([a-zA-Z0-9])"), r"\1 \2"),
    # Re-glue geresh / gershayim that extraction split off the word.
    (re.compile(f"([{_HEB}])[ \\t]+([׳״'\"])[ \\t]*([{_HEB}])"), r"\1\2\3"),
    # Common abbreviations written with ASCII quotes or stray spaces.
    (re.compile(r"ח[ \t]*[\"״][ \t]*מ"), "ח״מ"),
    (re.compile(r"ת[ \t]*[\"״][ \t]*ז"), "ת״ז"),
    (re.compile(r"סה[ \t]*[\"״][ \t]*כ"), "סה״כ"),
]

CURRENCY_CLEANUP_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(f"({CURRENCY_CLASS})[ \\t]+(\\d)"), r"\1\2"),
    (re.compile(f"(\\d)[ \\t]+({CURRENCY_CLASS})"), r"\1\2"),
]

DATE_CLEANUP_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(\d{1,2})[ \t]*[/\-.][ \t]*(\d{1,2})[ \t]*[/\-.][ \t]*(\d{2,4})"), r"\1/\2/\3"),
]
