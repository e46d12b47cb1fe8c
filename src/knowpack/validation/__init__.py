"""Schema validation for knowledge chunks."""

from knowpack.validation.rules import known_types, register_type_rule
from knowpack.validation.validator import SchemaValidator, ValidationResult, validate_corpus

__all__ = [
    "SchemaValidator",
    "ValidationResult",
    "known_types",
    "register_type_rule",
    "validate_corpus",
]
