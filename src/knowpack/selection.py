"""Priority-driven selection of chunks for size-budgeted output."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from knowpack.errors import BudgetExceededError
from knowpack.models import Chunk, Priority
from knowpack.utils.tokens import estimate_tokens

logger = logging.getLogger(__name__)

Sizer = Callable[[Chunk], int]

REASON_OVER_BUDGET = "over budget"
REASON_LOW_TIER = "low tier excluded from budgeted output"


def chunk_size(chunk: Chunk) -> int:
    """Default sizer: estimated tokens of the chunk's full text."""
    return estimate_tokens(chunk.flat_text())


@dataclass
class Selection:
    """Outcome of one selection run."""

    budget: int
    included: list[Chunk] = field(default_factory=list)
    excluded: list[tuple[str, str]] = field(default_factory=list)  # (id, reason)
    used: int = 0

    @property
    def included_ids(self) -> list[str]:
        return [chunk.id for chunk in self.included]

    def to_dict(self) -> dict:
        return {
            "budget": self.budget,
            "used": self.used,
            "included": self.included_ids,
            "excluded": [{"id": chunk_id, "reason": reason} for chunk_id, reason in self.excluded],
        }


class SelectionEngine:
    """Pick the chunks that go into the size-constrained reference document.

    Critical chunks are a hard floor. High then medium chunks fill the
    remaining budget in ascending identifier order, stopping at the first
    chunk that does not fit. Low chunks are never selected.

    Filling never skips ahead: a large high chunk that does not fit also
    keeps out every later chunk, including smaller medium ones that would.
    No medium chunk is ever in the document while a high chunk is out,
    at the cost of possibly leaving budget unused.
    """

    FILL_TIERS = (Priority.HIGH, Priority.MEDIUM)

    def __init__(self, budget: int, sizer: Optional[Sizer] = None):
        """Initialize the engine.

        Args:
            budget: Maximum total size, in sizer units (estimated tokens)
            sizer: Size function for a chunk. Defaults to chunk_size.
        """
        self.budget = budget
        self.sizer = sizer or chunk_size

    def select(self, chunks: Iterable[Chunk]) -> Selection:
        """Select chunks under the budget.

        Args:
            chunks: Validated chunks (any order)

        Returns:
            Selection with included chunks in inclusion order

        Raises:
            BudgetExceededError: If critical chunks alone exceed the budget
        """
        by_tier: dict[Priority, list[Chunk]] = {tier: [] for tier in Priority}
        for chunk in chunks:
            by_tier[chunk.priority].append(chunk)
        for tier_chunks in by_tier.values():
            tier_chunks.sort(key=lambda c: c.id)

        selection = Selection(budget=self.budget)

        critical = by_tier[Priority.CRITICAL]
        required = sum(self.sizer(chunk) for chunk in critical)
        if required > self.budget:
            logger.warning(
                f"Budget violation: {len(critical)} critical chunks need {required} "
                f"tokens, budget is {self.budget}"
            )
            raise BudgetExceededError(required, self.budget)

        selection.included.extend(critical)
        selection.used = required

        exhausted = False
        for tier in self.FILL_TIERS:
            for chunk in by_tier[tier]:
                if exhausted:
                    selection.excluded.append((chunk.id, REASON_OVER_BUDGET))
                    continue
                size = self.sizer(chunk)
                if selection.used + size > self.budget:
                    exhausted = True
                    selection.excluded.append((chunk.id, REASON_OVER_BUDGET))
                    continue
                selection.included.append(chunk)
                selection.used += size

        selection.excluded.extend((chunk.id, REASON_LOW_TIER) for chunk in by_tier[Priority.LOW])

        logger.info(
            f"Selected {len(selection.included)} chunks "
            f"({selection.used}/{self.budget} tokens), excluded {len(selection.excluded)}"
        )
        return selection
