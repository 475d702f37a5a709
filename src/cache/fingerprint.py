# src/cache/fingerprint.py — v1
"""Head/tail document fingerprinting for the result cache.

The fingerprint covers only the first and last ``window`` characters of the
case-normalized, whitespace-collapsed text. Two documents that share those
slices collide on purpose: re-uploads of the same letter with a changed
middle page are served from cache.
"""

from __future__ import annotations

import hashlib
import re

DEFAULT_WINDOW = 200
_KEY_HASH_LEN = 32


def normalize_text(text: str) -> str:
    """Lowercase and collapse all whitespace runs to single spaces."""
    return re.sub(r"\s+", " ", text.lower()).strip()


def head_tail(text: str, window: int = DEFAULT_WINDOW) -> tuple[str, str]:
    """Return the normalized head and tail slices of *text*."""
    if window <= 0:
        raise ValueError(f"window must be positive, got {window}")
    normalized = normalize_text(text)
    return normalized[:window], normalized[-window:]


def text_fingerprint(text: str, window: int = DEFAULT_WINDOW) -> str:
    """SHA-256 hex digest over ``head|tail``."""
    head, tail = head_tail(text, window)
    return hashlib.sha256(f"{head}|{tail}".encode("utf-8")).hexdigest()


def build_cache_key(document_type: str, text: str, window: int = DEFAULT_WINDOW) -> str:
    """Cache key: ``"{document_type}:{fingerprint[:32]}"``.

    Pure function of (document type, fingerprint).
    """
    return f"{document_type.strip().lower()}:{text_fingerprint(text, window)[:_KEY_HASH_LEN]}"
