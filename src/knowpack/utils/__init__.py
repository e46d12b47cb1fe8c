"""Utility functions for knowpack."""

from knowpack.utils.hashing import digest_entries, sha256_bytes
from knowpack.utils.text import pack_blocks, split_blocks
from knowpack.utils.tokens import estimate_tokens

__all__ = ["digest_entries", "estimate_tokens", "pack_blocks", "sha256_bytes", "split_blocks"]
