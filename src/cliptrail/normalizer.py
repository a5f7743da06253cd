"""
Text normalization and content hashing.

Two captures are the same content iff their hashes are equal.
"""

import hashlib
import re

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lower-case, collapse whitespace runs to single spaces, and trim."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def content_hash(text: str) -> str:
    """SHA-256 of the normalized text as 64 hex characters."""
    return hashlib.sha256(normalize(text).encode("utf-8")).hexdigest()


def bytes_hash(data: bytes) -> str:
    """SHA-256 of raw bytes, used to tell clipboard images apart."""
    return hashlib.sha256(data).hexdigest()
