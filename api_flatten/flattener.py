"""Schema Flattener - Turns schema trees into ordered, path-indexed parameter records.

One SchemaFlattener is used per operation: record ids come from a single
counter, so request and response records of an operation never share an id
and parent_id always points at a record emitted earlier.

Paths use dots for properties and [0] for the one representative array
element, e.g. data.items[0].id. Top-level array bodies start at "items".
"""

from __future__ import annotations

import itertools
import logging
import random
from collections.abc import Mapping
from typing import Any

from api_flatten.errors import DiagnosticCode, Diagnostics, report
from api_flatten.example_synthesizer import ExampleSynthesizer
from api_flatten.models import (
    ParameterLocation,
    ParameterRecord,
    ResponseParameterRecord,
    example_to_text,
)
from api_flatten.pattern_example import example_for
from api_flatten.resolver import SchemaResolver
from api_flatten.schema_nodes import (
    DEFAULT_MAX_DEPTH,
    ArrayNode,
    ObjectNode,
    SchemaNode,
    StringNode,
    is_composite,
    scalar_default,
)

logger = logging.getLogger(__name__)

BODY_RECORD_NAME = "body"
TOP_LEVEL_ARRAY_PATH = "items"


class SchemaFlattener:
    """Flattens parameters, bodies and headers of one operation.

    Usage:
        flattener = SchemaFlattener(normalized.definitions)
        records = flattener.flatten_body(schema, "application/json", example_json)
    """

    def __init__(
        self,
        definitions: Mapping[str, SchemaNode],
        max_depth: int = DEFAULT_MAX_DEPTH,
        diagnostics: Diagnostics | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._resolver = SchemaResolver(definitions, max_depth, diagnostics)
        self._synthesizer = ExampleSynthesizer(definitions, max_depth, diagnostics, rng)
        self._max_depth = max_depth
        self._diagnostics = diagnostics
        self._rng = rng
        self._ids = itertools.count(1)

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def flatten_parameter(
        self,
        name: str,
        location: ParameterLocation,
        schema: SchemaNode | None,
        required: bool = False,
        description: str | None = None,
        example: Any = None,
        status_code: str | None = None,
    ) -> list[ParameterRecord]:
        """Flatten one declared parameter or response header.

        The parameter itself is emitted first. Object and array parameters
        are then expanded under the parameter name, with the parameter's
        record as parent.

        Args:
            name: Declared parameter name.
            location: Where the value travels.
            schema: Parameter schema (None is treated as an untyped string).
            required: The parameter's own required marker.
            description: Parameter-level description, preferred over the schema's.
            example: Parameter-level example, preferred over the schema's.
            status_code: Set for response headers.

        Returns:
            Records in emission order.
        """
        resolved = self._resolver.resolve(schema) if schema is not None else None
        pattern, pattern_example = self._pattern_fields(resolved)

        if example is not None:
            value = example_to_text(example)
        elif resolved is None:
            value = None
        elif is_composite(resolved):
            value = example_to_text(
                resolved.example if resolved.has_example else self._synthesizer.synthesize(resolved)
            )
        else:
            value = self._scalar_example(resolved, pattern_example)

        record = self._make_record(
            status_code,
            name=name,
            location=location,
            param_type=self._resolver.type_tag(schema),
            required=required,
            pattern=pattern,
            pattern_example=pattern_example,
            example=value,
            description=description or _description_of(schema, resolved),
            hierarchy_path=name,
        )
        records = [record]
        if is_composite(resolved):
            records.extend(
                self.flatten(resolved, location, name, record.record_id, status_code=status_code, depth=1)
            )
        return records

    def flatten_body(
        self,
        schema: SchemaNode | None,
        content_type: str | None,
        example_json: str | None,
        required: bool = False,
        description: str | None = None,
        status_code: str | None = None,
    ) -> list[ParameterRecord]:
        """Flatten a request or response body.

        A single whole-document body record always comes first, carrying
        example_json. Object and array bodies are then flattened into leaf
        records whose top-level entries have no parent.

        Args:
            schema: Body schema.
            content_type: Declared media type.
            example_json: Complete synthesized example, or None.
            required: Whether the request body is required.
            description: Body-level description.
            status_code: Set for response bodies.

        Returns:
            Records in emission order.
        """
        resolved = self._resolver.resolve(schema) if schema is not None else None
        record = self._make_record(
            status_code,
            name=BODY_RECORD_NAME,
            location=ParameterLocation.BODY,
            content_type=content_type,
            param_type=self._resolver.type_tag(schema),
            required=required,
            example=example_json,
            description=description or _description_of(schema, resolved),
            hierarchy_path="",
        )
        records = [record]
        if is_composite(resolved):
            records.extend(
                self.flatten(
                    resolved,
                    ParameterLocation.BODY,
                    "",
                    None,
                    status_code=status_code,
                    content_type=content_type,
                )
            )
        return records

    def placeholder_body(self, status_code: str, description: str | None = None) -> ParameterRecord:
        """Body record for a response that declares neither body nor headers."""
        return self._make_record(
            status_code,
            name=BODY_RECORD_NAME,
            location=ParameterLocation.BODY,
            param_type="String",
            description=description,
            hierarchy_path="",
        )

    # -------------------------------------------------------------------------
    # Recursive walk
    # -------------------------------------------------------------------------

    def flatten(
        self,
        node: SchemaNode | None,
        location: ParameterLocation,
        hierarchy_path: str = "",
        parent_id: int | None = None,
        status_code: str | None = None,
        content_type: str | None = None,
        depth: int = 0,
    ) -> list[ParameterRecord]:
        """Flatten node into records below hierarchy_path.

        Objects emit one record per property, then recurse into composite
        properties with that record as parent. Arrays recurse into their item
        schema once. A scalar reached through an array emits a single
        element record.

        Returns:
            Records in declaration order.
        """
        if node is None:
            return []
        if depth > self._max_depth:
            report(
                self._diagnostics,
                DiagnosticCode.DEPTH_EXCEEDED,
                f"Flattening stopped at {hierarchy_path or '<root>'} (depth {depth})",
                logger,
            )
            return []

        resolved = self._resolver.resolve(node, depth)
        context = (location, status_code, content_type)

        if isinstance(resolved, ObjectNode):
            return self._flatten_object(resolved, hierarchy_path, parent_id, context, depth)
        if isinstance(resolved, ArrayNode):
            return self._flatten_array(resolved, hierarchy_path, parent_id, context, depth)
        if not hierarchy_path:
            # A bare scalar body is fully described by its body record
            return []
        return [self._leaf_record(node, resolved, hierarchy_path, parent_id, False, context, depth)]

    def _flatten_object(
        self,
        node: ObjectNode,
        hierarchy_path: str,
        parent_id: int | None,
        context: tuple,
        depth: int,
    ) -> list[ParameterRecord]:
        properties, required = self._resolver.object_members(node, depth)
        records: list[ParameterRecord] = []
        for name, prop in properties.items():
            path = f"{hierarchy_path}.{name}" if hierarchy_path else name
            resolved = self._resolver.resolve(prop, depth + 1)
            record = self._leaf_record(prop, resolved, path, parent_id, name in required, context, depth + 1)
            records.append(record)
            if is_composite(resolved):
                location, status_code, content_type = context
                records.extend(
                    self.flatten(
                        resolved,
                        location,
                        path,
                        record.record_id,
                        status_code,
                        content_type,
                        depth + 1,
                    )
                )
        return records

    def _flatten_array(
        self,
        node: ArrayNode,
        hierarchy_path: str,
        parent_id: int | None,
        context: tuple,
        depth: int,
    ) -> list[ParameterRecord]:
        if node.items is None:
            return []
        path = f"{hierarchy_path}[0]" if hierarchy_path else TOP_LEVEL_ARRAY_PATH
        location, status_code, content_type = context
        item = self._resolver.resolve(node.items, depth + 1)
        if is_composite(item):
            return self.flatten(item, location, path, parent_id, status_code, content_type, depth + 1)
        return [self._leaf_record(node.items, item, path, parent_id, False, context, depth + 1)]

    # -------------------------------------------------------------------------
    # Record construction
    # -------------------------------------------------------------------------

    def _leaf_record(
        self,
        declared: SchemaNode,
        resolved: SchemaNode,
        hierarchy_path: str,
        parent_id: int | None,
        required: bool,
        context: tuple,
        depth: int,
    ) -> ParameterRecord:
        location, status_code, content_type = context
        pattern, pattern_example = self._pattern_fields(resolved)
        if is_composite(resolved):
            value = example_to_text(resolved.example)
        else:
            value = self._scalar_example(resolved, pattern_example)
        return self._make_record(
            status_code,
            name=hierarchy_path.rsplit(".", 1)[-1],
            location=location,
            content_type=content_type if location == ParameterLocation.BODY else None,
            param_type=self._resolver.type_tag(declared, depth),
            required=required,
            pattern=pattern,
            pattern_example=pattern_example,
            example=value,
            description=_description_of(declared, resolved),
            hierarchy_path=hierarchy_path,
            parent_id=parent_id,
        )

    def _pattern_fields(self, node: SchemaNode | None) -> tuple[str | None, str | None]:
        if not isinstance(node, StringNode) or not node.pattern:
            return None, None
        return node.pattern, example_for(node.pattern, self._rng, self._diagnostics)

    def _scalar_example(self, node: SchemaNode, pattern_example: str | None) -> str | None:
        if node.has_example:
            return example_to_text(node.example)
        return example_to_text(scalar_default(node, pattern_example))

    def _make_record(self, status_code: str | None, **fields: Any) -> ParameterRecord:
        record_id = next(self._ids)
        if status_code is not None:
            return ResponseParameterRecord(record_id=record_id, status_code=status_code, **fields)
        return ParameterRecord(record_id=record_id, **fields)


def _description_of(declared: SchemaNode | None, resolved: SchemaNode | None) -> str | None:
    if declared is not None and declared.description:
        return declared.description
    if resolved is not None:
        return resolved.description
    return None
