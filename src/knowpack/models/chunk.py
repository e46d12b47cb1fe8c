"""Core data models for knowledge chunks."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Optional, Union


class ChunkType(str, Enum):
    """Fixed vocabulary of chunk type tags."""

    MISTAKE_PATTERN = "mistake-pattern"
    FUNCTION_REFERENCE = "function-reference"
    USAGE_PATTERN = "usage-pattern"
    CONCEPT_EXPLANATION = "concept-explanation"
    OPERATOR_REFERENCE = "operator-reference"


class Priority(str, Enum):
    """Priority tiers, most important first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Return 0 for critical up to 3 for low."""
        return _PRIORITY_ORDER.index(self)


_PRIORITY_ORDER = [Priority.CRITICAL, Priority.HIGH, Priority.MEDIUM, Priority.LOW]


@dataclass(frozen=True)
class RawChunkRecord:
    """A parsed but unvalidated chunk as read from storage."""

    data: dict[str, Any]
    source: str
    index: Optional[int] = None  # position inside a multi-chunk file

    @property
    def label(self) -> str:
        """Human-readable location, e.g. ``gotchas/indexing.yaml[2]``."""
        if self.index is None:
            return self.source
        return f"{self.source}[{self.index}]"

    @property
    def category(self) -> str:
        """First directory component of the source path, or empty."""
        parts = PurePosixPath(self.source).parts
        return parts[0] if len(parts) > 1 else ""

    @property
    def declared_id(self) -> Optional[str]:
        """The identifier the record claims, if it is a non-empty string."""
        value = self.data.get("id")
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None


@dataclass(frozen=True)
class LoadError:
    """A source file (or list item) that could not become a raw record."""

    source: str
    message: str
    line: Optional[int] = None

    def describe(self) -> str:
        where = f"{self.source}:{self.line}" if self.line is not None else self.source
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class ValidationIssue:
    """One schema violation found in a raw record."""

    field: str
    message: str

    def describe(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class Example:
    """A code sample with its explanation."""

    code: str
    explanation: str = ""


@dataclass(frozen=True)
class Parameter:
    name: str
    description: str = ""


@dataclass(frozen=True)
class Link:
    """An external reference."""

    url: str
    title: Optional[str] = None


# Type-dependent payloads. The type tag decides which one a chunk carries.


@dataclass(frozen=True)
class MistakePayload:
    wrong: Example
    right: Example


@dataclass(frozen=True)
class FunctionPayload:
    signature: str
    parameters: tuple[Parameter, ...] = ()
    returns: Optional[str] = None


@dataclass(frozen=True)
class OperatorPayload:
    syntax: str


@dataclass(frozen=True)
class UsagePayload:
    example: Optional[Example] = None
    steps: tuple[str, ...] = ()


@dataclass(frozen=True)
class ConceptPayload:
    pass


Payload = Union[MistakePayload, FunctionPayload, OperatorPayload, UsagePayload, ConceptPayload]


@dataclass(frozen=True)
class Chunk:
    """A validated knowledge chunk."""

    id: str
    type: str  # a ChunkType value, or a tag added through register_type_rule
    title: str
    summary: str
    content: str
    priority: Priority = Priority.MEDIUM
    payload: Payload = field(default_factory=ConceptPayload)
    related: tuple[str, ...] = ()
    see_also: tuple[str, ...] = ()
    links: tuple[Link, ...] = ()
    keywords: tuple[str, ...] = ()
    introduced_in: Optional[str] = None
    deprecated: Optional[str] = None
    source: str = ""
    category: str = ""

    def references(self) -> list[tuple[str, str]]:
        """Return ``(kind, target_id)`` pairs in declared order."""
        refs = [("related", target) for target in self.related]
        refs.extend(("see_also", target) for target in self.see_also)
        return refs

    def sections(self) -> list[tuple[str, str]]:
        """Linearize the chunk into labelled prose sections.

        The first section is always the overview (summary plus body);
        structured payload fields follow as their own sections so that
        callers can split along them.
        """
        sections = [("overview", f"{self.summary}\n\n{self.content}")]
        payload = self.payload

        if isinstance(payload, MistakePayload):
            sections.append(("wrong", _example_text("Wrong", payload.wrong)))
            sections.append(("right", _example_text("Right", payload.right)))
        elif isinstance(payload, FunctionPayload):
            lines = [f"Signature: {payload.signature}"]
            for param in payload.parameters:
                desc = f": {param.description}" if param.description else ""
                lines.append(f"- {param.name}{desc}")
            if payload.returns:
                lines.append(f"Returns: {payload.returns}")
            sections.append(("signature", "\n".join(lines)))
        elif isinstance(payload, OperatorPayload):
            sections.append(("syntax", f"Syntax: {payload.syntax}"))
        elif isinstance(payload, UsagePayload):
            if payload.steps:
                steps = "\n".join(f"{i}. {step}" for i, step in enumerate(payload.steps, 1))
                sections.append(("steps", f"Steps:\n{steps}"))
            if payload.example is not None:
                sections.append(("example", _example_text("Example", payload.example)))

        return sections

    def flat_text(self) -> str:
        """Full linearized text: title followed by every section."""
        body = "\n\n".join(text for _, text in self.sections())
        return f"{self.title}\n\n{body}"


def _example_text(label: str, example: Example) -> str:
    text = f"{label}:\n```\n{example.code.rstrip()}\n```"
    if example.explanation:
        text += f"\n{example.explanation}"
    return text
