"""Content hashing helpers."""

import hashlib
from typing import Iterable


def sha256_bytes(data: bytes) -> str:
    """Hex sha256 digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def digest_entries(entries: Iterable[tuple[str, bytes]]) -> str:
    """Digest a set of named blobs independent of iteration order.

    Args:
        entries: ``(name, content)`` pairs

    Returns:
        Hex sha256 over the sorted names and their content hashes
    """
    h = hashlib.sha256()
    for name, content in sorted(entries, key=lambda item: item[0]):
        h.update(name.encode("utf-8"))
        h.update(b"\0")
        h.update(sha256_bytes(content).encode("ascii"))
        h.update(b"\n")
    return h.hexdigest()
