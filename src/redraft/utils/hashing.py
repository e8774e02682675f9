"""Content hashing for documents and snapshots."""

import hashlib

HASH_PREFIX_LENGTH = 16


def content_hash(content: str) -> str:
    """Return the advisory identity hash of a document.

    First 16 hex characters of the SHA-256 digest of the UTF-8 bytes. Used for
    display and quick comparison only; collisions are tolerated.

    Examples:
        >>> content_hash("")
        'e3b0c44298fc1c14'
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:HASH_PREFIX_LENGTH]
