"""Field checks and the per-type payload rule table.

Every chunk shares a common envelope (id, type, title, summary, content,
priority, relationships). The shape of the rest depends on the type tag:
each tag maps to a rule that checks the type-specific fields and builds
the matching payload.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Any, Callable, Optional

from knowpack.models import (
    ChunkType,
    ConceptPayload,
    Example,
    FunctionPayload,
    Link,
    MistakePayload,
    OperatorPayload,
    Parameter,
    Payload,
    UsagePayload,
    ValidationIssue,
)

REQUIRED_FIELDS = ("id", "type", "title", "summary", "content")

ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")

# A rule appends issues and returns a payload, or None when the shape is wrong
TypeRule = Callable[[dict[str, Any], list[ValidationIssue]], Optional[Payload]]


def require_text(
    data: dict[str, Any], key: str, issues: list[ValidationIssue], context: str = ""
) -> Optional[str]:
    """Return a stripped non-empty string field, or record why it is invalid."""
    value = data.get(key)
    suffix = f" for {context}" if context else ""
    if value is None:
        issues.append(ValidationIssue(key, f"required{suffix}"))
        return None
    if not isinstance(value, str):
        issues.append(ValidationIssue(key, f"must be a string, got {type(value).__name__}"))
        return None
    if not value.strip():
        issues.append(ValidationIssue(key, f"must not be empty{suffix}"))
        return None
    return value.strip()


def optional_text(data: dict[str, Any], key: str, issues: list[ValidationIssue]) -> Optional[str]:
    """Return an optional scalar as a stripped string.

    Integers and YAML dates are accepted as written (dates in ISO form).
    Unquoted decimals are rejected: YAML reads `1.10` as the float 1.1, so
    the original spelling is already lost.
    """
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        issues.append(
            ValidationIssue(key, f"unquoted number {value!r} loses its spelling; quote it as a string")
        )
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        issues.append(ValidationIssue(key, f"must be a string, got {type(value).__name__}"))
        return None
    text = str(value).strip()
    return text or None


def string_list(data: dict[str, Any], key: str, issues: list[ValidationIssue]) -> tuple[str, ...]:
    """Return an optional list of non-empty strings."""
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        issues.append(ValidationIssue(key, f"must be a list, got {type(value).__name__}"))
        return ()
    items = []
    for position, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            issues.append(ValidationIssue(f"{key}[{position}]", "must be a non-empty string"))
            continue
        items.append(item.strip())
    return tuple(items)


def links_field(data: dict[str, Any], issues: list[ValidationIssue]) -> tuple[Link, ...]:
    """Parse ``links``: URL strings or ``{title, url}`` mappings."""
    value = data.get("links")
    if value is None:
        return ()
    if not isinstance(value, list):
        issues.append(ValidationIssue("links", f"must be a list, got {type(value).__name__}"))
        return ()

    links = []
    for position, item in enumerate(value):
        where = f"links[{position}]"
        if isinstance(item, str) and item.strip():
            links.append(Link(url=item.strip()))
        elif isinstance(item, dict):
            url = item.get("url")
            title = item.get("title")
            if not isinstance(url, str) or not url.strip():
                issues.append(ValidationIssue(where, "mapping needs a non-empty 'url'"))
                continue
            if title is not None and not isinstance(title, str):
                issues.append(ValidationIssue(where, "'title' must be a string"))
                continue
            links.append(Link(url=url.strip(), title=title.strip() if title else None))
        else:
            issues.append(ValidationIssue(where, "must be a URL string or a {title, url} mapping"))
    return tuple(links)


def example_field(
    data: dict[str, Any],
    key: str,
    issues: list[ValidationIssue],
    *,
    context: str,
    require_explanation: bool,
) -> Optional[Example]:
    """Parse a ``{code, explanation}`` sub-record."""
    value = data.get(key)
    if value is None:
        issues.append(ValidationIssue(key, f"required for {context}"))
        return None
    if not isinstance(value, dict):
        issues.append(ValidationIssue(key, "must be a mapping with 'code' and 'explanation'"))
        return None

    sub_issues: list[ValidationIssue] = []
    code = require_text(value, "code", sub_issues)
    explanation: Optional[str]
    if require_explanation:
        explanation = require_text(value, "explanation", sub_issues)
    else:
        explanation = optional_text(value, "explanation", sub_issues) or ""

    issues.extend(ValidationIssue(f"{key}.{i.field}", i.message) for i in sub_issues)
    if sub_issues or code is None or explanation is None:
        return None
    return Example(code=code, explanation=explanation)


# Per-type rules


def mistake_pattern_rule(data: dict[str, Any], issues: list[ValidationIssue]) -> Optional[Payload]:
    context = "mistake-pattern chunks"
    wrong = example_field(data, "wrong", issues, context=context, require_explanation=True)
    right = example_field(data, "right", issues, context=context, require_explanation=True)
    if wrong is None or right is None:
        return None
    return MistakePayload(wrong=wrong, right=right)


def function_reference_rule(
    data: dict[str, Any], issues: list[ValidationIssue]
) -> Optional[Payload]:
    signature = require_text(data, "signature", issues, "function-reference chunks")
    returns = optional_text(data, "returns", issues)

    parameters = []
    raw_params = data.get("parameters")
    if raw_params is not None and not isinstance(raw_params, list):
        issues.append(ValidationIssue("parameters", "must be a list"))
        raw_params = None
    failed = False
    for position, item in enumerate(raw_params or []):
        where = f"parameters[{position}]"
        if not isinstance(item, dict):
            issues.append(ValidationIssue(where, "must be a mapping with 'name'"))
            failed = True
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            issues.append(ValidationIssue(f"{where}.name", "must not be empty"))
            failed = True
            continue
        description = item.get("description") or ""
        if not isinstance(description, str):
            issues.append(ValidationIssue(f"{where}.description", "must be a string"))
            failed = True
            continue
        parameters.append(Parameter(name=name.strip(), description=description.strip()))

    if signature is None or failed:
        return None
    return FunctionPayload(signature=signature, parameters=tuple(parameters), returns=returns)


def operator_reference_rule(
    data: dict[str, Any], issues: list[ValidationIssue]
) -> Optional[Payload]:
    syntax = require_text(data, "syntax", issues, "operator-reference chunks")
    if syntax is None:
        return None
    return OperatorPayload(syntax=syntax)


def usage_pattern_rule(data: dict[str, Any], issues: list[ValidationIssue]) -> Optional[Payload]:
    before = len(issues)
    example = None
    if data.get("example") is not None:
        example = example_field(
            data, "example", issues, context="usage-pattern chunks", require_explanation=False
        )
    steps = string_list(data, "steps", issues)
    if len(issues) > before:
        return None
    return UsagePayload(example=example, steps=steps)


def concept_explanation_rule(
    data: dict[str, Any], issues: list[ValidationIssue]
) -> Optional[Payload]:
    return ConceptPayload()


_TYPE_RULES: dict[str, TypeRule] = {
    ChunkType.MISTAKE_PATTERN.value: mistake_pattern_rule,
    ChunkType.FUNCTION_REFERENCE.value: function_reference_rule,
    ChunkType.OPERATOR_REFERENCE.value: operator_reference_rule,
    ChunkType.USAGE_PATTERN.value: usage_pattern_rule,
    ChunkType.CONCEPT_EXPLANATION.value: concept_explanation_rule,
}


def get_type_rule(type_tag: str) -> Optional[TypeRule]:
    return _TYPE_RULES.get(type_tag)


def known_types() -> list[str]:
    """Recognized type tags, sorted."""
    return sorted(_TYPE_RULES)


def register_type_rule(type_tag: str, rule: TypeRule) -> None:
    """Add (or replace) the payload rule for a type tag.

    Args:
        type_tag: Tag as written in chunk files
        rule: Callable that checks the type-specific fields
    """
    _TYPE_RULES[type_tag] = rule
