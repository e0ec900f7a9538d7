"""Example Validator - Checks synthesized examples against their declared schema.

The pattern heuristic and scalar defaults are best-effort, so a synthesized
example can disagree with its schema (a pattern the heuristic only guessed at,
an explicit example outside its bounds). This module reports such cases; it
never changes an example.

The IR is converted back to a plain JSON Schema with references inlined up to
the depth bound, then checked with a Draft 4 validator.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft4Validator, SchemaError, ValidationError

from api_flatten.resolver import SchemaResolver
from api_flatten.schema_nodes import (
    DEFAULT_MAX_DEPTH,
    ArrayNode,
    BooleanNode,
    DateNode,
    DateTimeNode,
    IntegerNode,
    NumberNode,
    ObjectNode,
    SchemaNode,
    StringNode,
)

logger = logging.getLogger(__name__)


@dataclass
class ExampleViolation:
    """A single disagreement between an example and its schema.

    Attributes:
        path: JSONPath to the violating value (e.g., "$.items[0].id")
        message: Human-readable description of the violation
        violation_type: wrong_type, pattern_mismatch, invalid_enum, etc.
    """

    path: str
    message: str
    violation_type: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message} ({self.violation_type})"


class ExampleValidator:
    """Validates example values against IR schema nodes.

    Usage:
        validator = ExampleValidator(normalized.definitions)
        violations = validator.validate(body.schema, synthesizer.synthesize(body.schema))
    """

    def __init__(self, definitions: Mapping[str, SchemaNode], max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self._resolver = SchemaResolver(definitions, max_depth)
        self._max_depth = max_depth

    def validate(self, node: SchemaNode | None, value: Any) -> list[ExampleViolation]:
        """Validate value against node.

        Returns:
            Violations in validator order; empty when the value conforms.
        """
        if node is None:
            return []

        schema = self.to_json_schema(node)
        try:
            errors = list(Draft4Validator(schema).iter_errors(value))
        except (SchemaError, re.error) as e:
            logger.debug("Schema could not be checked: %s", e)
            return [
                ExampleViolation(
                    path="$",
                    message=f"Schema validation error: {e}",
                    violation_type="validation_error",
                )
            ]

        return [
            ExampleViolation(
                path=_error_path_to_jsonpath(error.absolute_path),
                message=error.message,
                violation_type=_classify_validation_error(error),
            )
            for error in errors
        ]

    def to_json_schema(self, node: SchemaNode | None, depth: int = 0) -> dict[str, Any]:
        """Convert an IR node to a JSON Schema dict.

        Nodes past the depth bound, and untyped nodes, become {} (anything).
        """
        if node is None or depth > self._max_depth:
            return {}
        node = self._resolver.resolve(node, depth)

        if isinstance(node, ObjectNode):
            properties, required = self._resolver.object_members(node, depth)
            schema: dict[str, Any] = {
                "type": "object",
                "properties": {
                    name: self.to_json_schema(prop, depth + 1) for name, prop in properties.items()
                },
            }
            if required:
                schema["required"] = list(required)
            return schema
        if isinstance(node, ArrayNode):
            schema = {"type": "array"}
            if node.items is not None:
                schema["items"] = self.to_json_schema(node.items, depth + 1)
            return schema
        if isinstance(node, StringNode):
            schema = {"type": "string"}
            if node.enum:
                schema["enum"] = list(node.enum)
            if node.pattern:
                schema["pattern"] = node.pattern
            return schema
        if isinstance(node, (IntegerNode, NumberNode)):
            schema = {"type": "integer" if isinstance(node, IntegerNode) else "number"}
            if node.enum:
                schema["enum"] = list(node.enum)
            if _is_number(node.minimum):
                schema["minimum"] = node.minimum
            if _is_number(node.maximum):
                schema["maximum"] = node.maximum
            return schema
        if isinstance(node, BooleanNode):
            return {"type": "boolean"}
        if isinstance(node, (DateNode, DateTimeNode)):
            return {"type": "string"}
        return {}


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _error_path_to_jsonpath(path) -> str:
    """Convert a jsonschema error path to JSONPath, e.g. "$.data.items[0].id"."""
    parts = ["$"]
    for segment in path:
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        else:
            parts.append(f".{segment}")
    return "".join(parts)


def _classify_validation_error(error: ValidationError) -> str:
    validator = error.validator
    if validator == "type":
        return "wrong_type"
    if validator == "required":
        return "missing_required"
    if validator == "enum":
        return "invalid_enum"
    if validator in ("minimum", "maximum"):
        return "out_of_range"
    if validator == "pattern":
        return "pattern_mismatch"
    return "other"
