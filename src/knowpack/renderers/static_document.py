"""Static markdown output: the budgeted quick reference plus per-topic detail."""

from __future__ import annotations

import logging

from knowpack.errors import BudgetExceededError
from knowpack.models import Chunk, ChunkType
from knowpack.renderers.base import Artifact, RenderContext
from knowpack.resolver import ResolutionReport

logger = logging.getLogger(__name__)

CORE_TYPES = {ChunkType.CONCEPT_EXPLANATION.value, ChunkType.OPERATOR_REFERENCE.value}
GOTCHA_TYPES = {ChunkType.MISTAKE_PATTERN.value}

TOPICS_DIR = "topics"


def _tier_order(chunk: Chunk) -> tuple[int, str]:
    return (chunk.priority.rank, chunk.id)


class StaticDocumentRenderer:
    """Render the quick-reference document and one detail file per topic.

    The quick reference holds the budgeted selection in a fixed section
    order: core syntax, then gotchas by descending priority, then
    condensed topic summaries. Topic files cover every valid chunk.
    """

    name = "static"

    def render(self, context: RenderContext) -> list[Artifact]:
        if context.selection is None:
            error = context.selection_error
            if error is None:
                raise BudgetExceededError(0, context.config.budget)
            raise error

        artifacts = [
            Artifact.text(
                context.config.reference_name,
                self.render_reference(context.selection.included),
            )
        ]
        chunks = context.chunk_map()
        for chunk in context.chunks:
            artifacts.append(
                Artifact.text(
                    f"{TOPICS_DIR}/{chunk.id}.md",
                    self.render_topic(chunk, context.resolution, chunks),
                )
            )

        logger.info(
            f"Static document: {len(context.selection.included)} chunks in reference, "
            f"{len(context.chunks)} topic files"
        )
        return artifacts

    def render_reference(self, selected: list[Chunk]) -> str:
        """Render the budgeted quick-reference document."""
        core = sorted((c for c in selected if c.type in CORE_TYPES), key=_tier_order)
        gotchas = sorted((c for c in selected if c.type in GOTCHA_TYPES), key=_tier_order)
        summaries = sorted(
            (c for c in selected if c.type not in CORE_TYPES | GOTCHA_TYPES), key=_tier_order
        )

        lines = ["# Quick Reference", ""]

        if core:
            lines += ["## Core Syntax", ""]
            for chunk in core:
                lines += self._full_entry(chunk)

        if gotchas:
            lines += ["## Gotchas", ""]
            for chunk in gotchas:
                lines += self._full_entry(chunk, show_priority=True)

        if summaries:
            lines += ["## Topic Summaries", ""]
            for chunk in summaries:
                lines.append(
                    f"- **{chunk.title}** ([{chunk.id}]({TOPICS_DIR}/{chunk.id}.md)): "
                    f"{chunk.summary}"
                )
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"

    def _full_entry(self, chunk: Chunk, show_priority: bool = False) -> list[str]:
        heading = f"### {chunk.title}"
        if show_priority:
            heading += f" ({chunk.priority.value})"
        lines = [heading, ""]
        for _, text in chunk.sections():
            lines += [text, ""]
        return lines

    def render_topic(
        self, chunk: Chunk, resolution: ResolutionReport, chunks: dict[str, Chunk]
    ) -> str:
        """Render the full-detail document for one chunk."""
        lines = [f"# {chunk.title}", ""]
        lines.append(f"- **ID:** `{chunk.id}`")
        lines.append(f"- **Type:** {chunk.type}")
        lines.append(f"- **Priority:** {chunk.priority.value}")
        if chunk.introduced_in:
            lines.append(f"- **Introduced in:** {chunk.introduced_in}")
        if chunk.deprecated:
            lines.append(f"- **Deprecated:** {chunk.deprecated}")
        if chunk.keywords:
            lines.append(f"- **Keywords:** {', '.join(chunk.keywords)}")
        lines.append("")

        for _, text in chunk.sections():
            lines += [text, ""]

        refs = resolution.references_for(chunk.id)
        if refs:
            lines += ["## Related", ""]
            listed = set()
            for ref in refs:
                if ref.target in listed:
                    continue
                listed.add(ref.target)
                if ref.resolved:
                    target = chunks[ref.target]
                    lines.append(f"- [{target.title}]({ref.target}.md)")
                else:
                    lines.append(f"- `{ref.target}` (missing)")
            lines.append("")

        if chunk.links:
            lines += ["## Links", ""]
            for link in chunk.links:
                lines.append(f"- [{link.title or link.url}]({link.url})")
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"
