"""Exception hierarchy for the knowpack build pipeline.

Per-chunk problems (unparseable files, schema violations, dangling
references) are reported as values and never raised. The exceptions below
cover run-level failures: the ones that abort a single renderer and the
ones that abort the whole build.
"""

from __future__ import annotations

__all__ = [
    "KnowpackError",
    "ConfigError",
    "ContentRootError",
    "ArtifactWriteError",
    "RendererError",
    "BudgetExceededError",
]


class KnowpackError(RuntimeError):
    """Base exception for knowpack failures."""


class ConfigError(KnowpackError):
    """Raised when a configuration file or CLI override is invalid."""


class ContentRootError(KnowpackError):
    """Raised when the content root is missing or unreadable."""


class ArtifactWriteError(KnowpackError):
    """Raised when the staging or output location cannot be written."""


class RendererError(KnowpackError):
    """Raised by a renderer that cannot produce its artifacts."""

    def __init__(self, message: str, *, renderer: str | None = None) -> None:
        super().__init__(message)
        self.renderer = renderer


class BudgetExceededError(RendererError):
    """Raised when critical-tier chunks alone exceed the size budget."""

    def __init__(self, required: int, budget: int) -> None:
        super().__init__(
            f"critical chunks need {required} tokens but the budget is {budget}",
            renderer="static",
        )
        self.required = required
        self.budget = budget
