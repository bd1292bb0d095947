"""Content fingerprinting for chunk deduplication.

Two chunks are duplicates when their text is identical after trimming and
lowercasing.  The fingerprint is the first 16 hex characters of a SHA-256
digest of the UTF-8 bytes; lone surrogates (left behind by truncated JSON
escapes) are encoded as-is rather than rejected.  A truncation collision
would drop a distinct chunk as a duplicate, which is accepted at the chunk
counts one document produces.
"""

from __future__ import annotations

import hashlib

HASH_LENGTH = 16


def content_hash(text: str) -> str:
    """Return the normalized fingerprint of *text*.

    >>> content_hash("  Text ") == content_hash("text")
    True
    """
    normalized = text.strip().lower()
    return hashlib.sha256(normalized.encode("utf-8", errors="surrogatepass")).hexdigest()[:HASH_LENGTH]
