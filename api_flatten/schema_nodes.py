"""Internal schema representation shared by both document dialects.

The normalizer produces these nodes from Swagger 2.0 and OpenAPI 3.x schema
objects. The resolver, synthesizer and flattener only ever see these nodes and
never branch on dialect.

Every node may carry a description and an explicit example. References are
kept as ReferenceNode and resolved at the point of use, never eagerly.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

DEFAULT_MAX_DEPTH = 20

DATE_EXAMPLE = "2024-01-01"
DATE_TIME_EXAMPLE = "2024-01-01T00:00:00Z"
FALLBACK_EXAMPLE = "example"

# Literal examples keyed by string format. uuid is generated per call.
FORMAT_EXAMPLES = {
    "email": "example@test.com",
    "uri": "https://example.com",
    "date": DATE_EXAMPLE,
    "date-time": DATE_TIME_EXAMPLE,
    "ipv4": "192.168.1.1",
    "ipv6": "2001:0db8:85a3:0000:0000:8a2e:0370:7334",
}


@dataclass
class SchemaNode:
    """Base class for all schema variants."""

    description: str | None = None
    example: Any = None

    @property
    def has_example(self) -> bool:
        return self.example is not None


@dataclass
class ObjectNode(SchemaNode):
    """Object with ordered properties.

    Property order is declaration order and drives both example key order and
    flattening order. all_of members are merged lazily by the resolver.
    """

    properties: dict[str, SchemaNode] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    all_of: list[SchemaNode] = field(default_factory=list)


@dataclass
class ArrayNode(SchemaNode):
    """Array with a single item schema (None when the document omits items)."""

    items: SchemaNode | None = None


@dataclass
class StringNode(SchemaNode):
    enum: list[Any] = field(default_factory=list)
    pattern: str | None = None
    format: str | None = None


@dataclass
class IntegerNode(SchemaNode):
    minimum: Any = None
    maximum: Any = None
    enum: list[Any] = field(default_factory=list)


@dataclass
class NumberNode(SchemaNode):
    minimum: Any = None
    maximum: Any = None
    enum: list[Any] = field(default_factory=list)


@dataclass
class BooleanNode(SchemaNode):
    pass


@dataclass
class DateNode(SchemaNode):
    pass


@dataclass
class DateTimeNode(SchemaNode):
    pass


@dataclass
class ReferenceNode(SchemaNode):
    """Named pointer into the document's definition table.

    Attributes:
        name: Definition name (last segment of the $ref).
        ref: The $ref string as written, kept for diagnostics.
    """

    name: str = ""
    ref: str = ""


@dataclass
class UntypedNode(SchemaNode):
    """Catch-all for schemas whose type is missing or not understood.

    Attributes:
        type_name: The declared type, if any (e.g. "file").
    """

    type_name: str | None = None


SCALAR_NODES = (StringNode, IntegerNode, NumberNode, BooleanNode, DateNode, DateTimeNode)


def is_composite(node: SchemaNode | None) -> bool:
    return isinstance(node, (ObjectNode, ArrayNode))


def scalar_default(node: SchemaNode, pattern_example: str | None = None) -> Any:
    """Type-keyed default value for a scalar node.

    Explicit examples are not considered here; callers check has_example first.
    For strings, pattern_example is the heuristic result the caller already
    computed for the node's pattern (None when absent or missed).

    Args:
        node: A resolved, non-composite schema node.
        pattern_example: Pattern-derived example for StringNode, if any.

    Returns:
        The default example value.
    """
    if isinstance(node, StringNode):
        if node.enum:
            return node.enum[0]
        if pattern_example is not None:
            return pattern_example
        if node.format == "uuid":
            return str(uuid.uuid4())
        if node.format in FORMAT_EXAMPLES:
            return FORMAT_EXAMPLES[node.format]
        return "string"
    if isinstance(node, IntegerNode):
        if node.enum:
            return int(_to_decimal(node.enum[0]) or 0)
        return _bounded_default(node.minimum, node.maximum, int, 1)
    if isinstance(node, NumberNode):
        if node.enum:
            return float(_to_decimal(node.enum[0]) or 0)
        return _bounded_default(node.minimum, node.maximum, float, 1.0)
    if isinstance(node, BooleanNode):
        return True
    if isinstance(node, DateNode):
        return DATE_EXAMPLE
    if isinstance(node, DateTimeNode):
        return DATE_TIME_EXAMPLE
    return FALLBACK_EXAMPLE


def _bounded_default(minimum: Any, maximum: Any, cast: type, default: Any) -> Any:
    """Midpoint of both bounds, else the minimum, else min(maximum, 100)."""
    low = _to_decimal(minimum)
    high = _to_decimal(maximum)
    if low is not None and high is not None:
        # int() truncates toward zero, matching integer division of the midpoint
        return cast((low + high) / 2)
    if low is not None:
        return cast(low)
    if high is not None:
        return cast(min(high, Decimal(100)))
    return default


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None
