"""Schema validation for raw chunk records."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

from knowpack.models import Chunk, Priority, RawChunkRecord, ValidationIssue
from knowpack.validation.rules import (
    ID_PATTERN,
    REQUIRED_FIELDS,
    get_type_rule,
    known_types,
    links_field,
    optional_text,
    require_text,
    string_list,
)

logger = logging.getLogger(__name__)

PRIORITY_VALUES = [p.value for p in Priority]


@dataclass(frozen=True)
class ValidationResult:
    """Either a validated chunk or the list of problems, never both."""

    record: RawChunkRecord
    chunk: Optional[Chunk] = None
    errors: list[ValidationIssue] = field(default_factory=list)

    def __post_init__(self) -> None:
        if (self.chunk is None) == (not self.errors):
            raise ValueError("ValidationResult needs exactly one of chunk or errors")

    @property
    def valid(self) -> bool:
        return self.chunk is not None


class SchemaValidator:
    """Check raw records against the chunk field contract.

    Errors accumulate per record, so a report lists every problem found
    rather than just the first one.
    """

    def validate(self, record: RawChunkRecord) -> ValidationResult:
        """Validate one raw record.

        Args:
            record: Parsed record from a loader

        Returns:
            ValidationResult with a Chunk or with errors
        """
        data = record.data
        issues: list[ValidationIssue] = []

        # 1. Required envelope fields
        values = {key: require_text(data, key, issues) for key in REQUIRED_FIELDS}
        chunk_id = values["id"]
        if chunk_id is not None and not ID_PATTERN.match(chunk_id):
            issues.append(
                ValidationIssue(
                    "id", f"'{chunk_id}' must be lowercase letters, digits, '.', '_' or '-'"
                )
            )

        # 2. Type vocabulary
        type_tag = values["type"]
        rule = None
        if type_tag is not None:
            rule = get_type_rule(type_tag)
            if rule is None:
                issues.append(
                    ValidationIssue(
                        "type",
                        f"unknown type '{type_tag}' (expected one of: {', '.join(known_types())})",
                    )
                )

        # 3. Type-specific payload shape
        payload = rule(data, issues) if rule is not None else None

        # 4. Priority tier
        priority = self._priority(data, issues)

        # 5. Optional fields
        related = string_list(data, "related", issues)
        see_also = string_list(data, "see_also", issues)
        keywords = string_list(data, "keywords", issues)
        links = links_field(data, issues)
        introduced_in = optional_text(data, "introduced_in", issues)
        deprecated = optional_text(data, "deprecated", issues)

        if issues:
            return ValidationResult(record=record, errors=issues)

        chunk = Chunk(
            id=chunk_id,
            type=type_tag,
            title=values["title"],
            summary=values["summary"],
            content=values["content"],
            priority=priority,
            payload=payload,
            related=related,
            see_also=see_also,
            links=links,
            keywords=keywords,
            introduced_in=introduced_in,
            deprecated=deprecated,
            source=record.label,
            category=record.category,
        )
        return ValidationResult(record=record, chunk=chunk)

    @staticmethod
    def _priority(data: dict, issues: list[ValidationIssue]) -> Priority:
        value = data.get("priority")
        if value is None:
            return Priority.MEDIUM
        if isinstance(value, str) and value.strip().lower() in PRIORITY_VALUES:
            return Priority(value.strip().lower())
        issues.append(
            ValidationIssue(
                "priority", f"'{value}' is not one of: {', '.join(PRIORITY_VALUES)}"
            )
        )
        return Priority.MEDIUM


def validate_corpus(
    records: Iterable[RawChunkRecord],
    validator: Optional[SchemaValidator] = None,
    map_fn: Callable = map,
) -> list[ValidationResult]:
    """Validate every record and enforce identifier uniqueness.

    Every record that declares an identifier used by another record is
    invalid, including the first one seen.

    Args:
        records: Raw records in load order
        validator: Validator to use (a fresh SchemaValidator by default)
        map_fn: Mapping function, e.g. ``executor.map`` for parallel runs

    Returns:
        Results in the same order as the input records
    """
    validator = validator or SchemaValidator()
    records = list(records)
    results = list(map_fn(validator.validate, records))

    by_id: dict[str, list[int]] = defaultdict(list)
    for position, record in enumerate(records):
        if record.declared_id is not None:
            by_id[record.declared_id].append(position)

    for chunk_id, positions in by_id.items():
        if len(positions) < 2:
            continue
        labels = [records[p].label for p in positions]
        logger.warning(f"Duplicate identifier '{chunk_id}' in {', '.join(labels)}")
        for p in positions:
            others = [label for label in labels if label != records[p].label]
            issue = ValidationIssue(
                "id", f"duplicate identifier '{chunk_id}' (also declared in {', '.join(others)})"
            )
            result = results[p]
            results[p] = replace(result, chunk=None, errors=[*result.errors, issue])

    return results
