"""Token estimation for budgets and export ceilings."""

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimate the token count of a string.

    Uses a fixed characters-per-token ratio so that the same text always
    yields the same estimate on every machine.

    Args:
        text: Text to measure

    Returns:
        Estimated token count (0 for empty text)
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
