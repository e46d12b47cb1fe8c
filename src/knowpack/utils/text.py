"""Block-based text splitting for size-limited records."""

from typing import Callable

from knowpack.utils.tokens import estimate_tokens

FENCE = "```"


def split_blocks(text: str) -> list[str]:
    """Split text into blocks on blank lines, keeping code fences whole.

    A fenced code block is one block even when it contains blank lines.

    Args:
        text: The text to split

    Returns:
        Non-empty blocks in original order
    """
    blocks: list[str] = []
    current: list[str] = []
    in_fence = False

    for line in text.splitlines():
        if line.lstrip().startswith(FENCE):
            in_fence = not in_fence
            current.append(line)
            continue

        if not line.strip() and not in_fence:
            if current:
                blocks.append("\n".join(current))
                current = []
            continue

        current.append(line)

    if current:
        blocks.append("\n".join(current))

    return [block for block in blocks if block.strip()]


def pack_blocks(
    blocks: list[str],
    limit: int,
    measure: Callable[[str], int] = estimate_tokens,
) -> list[str]:
    """Greedily merge blocks into pieces that each measure at most ``limit``.

    Blocks that are too large on their own are split by lines, then by
    words, and finally hard-split by characters. Text is never dropped.

    Args:
        blocks: Blocks from split_blocks (or any ordered pieces)
        limit: Maximum size per piece, in ``measure`` units
        measure: Size function (defaults to estimated tokens)

    Returns:
        Pieces in original order
    """
    limit = max(1, limit)
    pieces: list[str] = []
    buffer = ""

    for block in blocks:
        candidate = f"{buffer}\n\n{block}" if buffer else block
        if measure(candidate) <= limit:
            buffer = candidate
            continue

        # Flush buffer first
        if buffer:
            pieces.append(buffer)
            buffer = ""

        if measure(block) <= limit:
            buffer = block
        else:
            pieces.extend(_split_oversized(block, limit, measure))

    # Don't forget trailing buffer
    if buffer:
        pieces.append(buffer)

    return pieces


def _split_oversized(block: str, limit: int, measure: Callable[[str], int]) -> list[str]:
    lines = block.splitlines()
    if len(lines) > 1:
        return _pack_units(lines, "\n", limit, measure)

    words = block.split(" ")
    if len(words) > 1:
        return _pack_units(words, " ", limit, measure)

    # Single unbreakable token: hard-split by characters
    pieces = []
    start = 0
    while start < len(block):
        end = start + 1
        while end < len(block) and measure(block[start : end + 1]) <= limit:
            end += 1
        pieces.append(block[start:end])
        start = end
    return pieces


def _pack_units(
    units: list[str], sep: str, limit: int, measure: Callable[[str], int]
) -> list[str]:
    pieces: list[str] = []
    buffer: str | None = None

    for unit in units:
        candidate = unit if buffer is None else f"{buffer}{sep}{unit}"
        if measure(candidate) <= limit:
            buffer = candidate
            continue

        if buffer is not None:
            pieces.append(buffer)
            buffer = None

        if measure(unit) <= limit:
            buffer = unit
        else:
            pieces.extend(_split_oversized(unit, limit, measure))

    if buffer is not None:
        pieces.append(buffer)

    return [piece for piece in pieces if piece.strip()]
