"""Example Synthesizer - Builds a complete example value for a schema node.

Objects and arrays are always rebuilt from their structure, even when the
schema carries its own example, so nested payloads come out complete. Scalars
use an explicit example when present, otherwise a type-keyed default.

Example generation is best-effort: to_json never raises, it returns None and
records an example_synthesis_failure diagnostic instead.
"""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Mapping
from typing import Any

from api_flatten.errors import DiagnosticCode, Diagnostics, report
from api_flatten.pattern_example import example_for
from api_flatten.resolver import SchemaResolver
from api_flatten.schema_nodes import (
    DEFAULT_MAX_DEPTH,
    FALLBACK_EXAMPLE,
    SCALAR_NODES,
    ArrayNode,
    ObjectNode,
    ReferenceNode,
    SchemaNode,
    StringNode,
    scalar_default,
)

logger = logging.getLogger(__name__)


class ExampleSynthesizer:
    """Synthesizes example values from schema nodes.

    Usage:
        synthesizer = ExampleSynthesizer(normalized.definitions)
        payload = synthesizer.to_json(body.schema)
    """

    def __init__(
        self,
        definitions: Mapping[str, SchemaNode],
        max_depth: int = DEFAULT_MAX_DEPTH,
        diagnostics: Diagnostics | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Initialize with the document's definition table for reference resolution.

        Args:
            definitions: Definition name -> schema node.
            max_depth: Recursion bound; nodes deeper than this synthesize to None.
            diagnostics: Optional collector for non-fatal conditions.
            rng: Random source for pattern-derived strings.
        """
        self._resolver = SchemaResolver(definitions, max_depth, diagnostics)
        self._max_depth = max_depth
        self._diagnostics = diagnostics
        self._rng = rng

    def synthesize(self, node: SchemaNode | None, depth: int = 0) -> Any:
        """Convert a schema node into an example value.

        Rules, first match wins:
        1. depth beyond max_depth - None
        2. reference - resolve, then synthesize at the same depth
        3. scalar with explicit example - the example
        4. object - ordered dict of synthesized properties, None values dropped
        5. array - single-element list; ["example"] when items are absent
        6-9. scalars - enum, pattern, format, bounds or type default
        10. anything else - "example"

        Args:
            node: Schema node (None synthesizes to None).
            depth: Current nesting depth.

        Returns:
            None, bool, int, float, str, list or dict.
        """
        if depth > self._max_depth:
            report(
                self._diagnostics,
                DiagnosticCode.DEPTH_EXCEEDED,
                f"Example synthesis stopped at depth {depth}",
                logger,
            )
            return None
        if node is None:
            return None

        if isinstance(node, ReferenceNode):
            node = self._resolver.resolve(node, depth)

        if isinstance(node, SCALAR_NODES) and node.has_example:
            return node.example

        if isinstance(node, ObjectNode):
            return self._synthesize_object(node, depth)
        if isinstance(node, ArrayNode):
            return self._synthesize_array(node, depth)
        if isinstance(node, SCALAR_NODES):
            pattern_example = None
            if isinstance(node, StringNode) and not node.enum and node.pattern:
                pattern_example = example_for(node.pattern, self._rng, self._diagnostics)
            return scalar_default(node, pattern_example)

        logger.debug("Unrecognized schema node %s, using fallback", type(node).__name__)
        return FALLBACK_EXAMPLE

    def to_json(self, node: SchemaNode | None) -> str | None:
        """Synthesize node and serialize it as indented JSON.

        Returns:
            JSON text, or None when synthesis produced nothing or
            serialization failed.
        """
        if node is None:
            return None

        value = self.synthesize(node)
        if value is None:
            report(
                self._diagnostics,
                DiagnosticCode.EXAMPLE_SYNTHESIS_FAILURE,
                "Synthesized example is empty",
                logger,
            )
            return None

        try:
            text = json.dumps(value, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            report(
                self._diagnostics,
                DiagnosticCode.EXAMPLE_SYNTHESIS_FAILURE,
                f"Could not serialize example: {e}",
                logger,
            )
            return None

        logger.debug("Synthesized JSON example, length %d", len(text))
        return text

    def _synthesize_object(self, node: ObjectNode, depth: int) -> dict[str, Any]:
        properties, _ = self._resolver.object_members(node, depth)
        example: dict[str, Any] = {}
        for name, prop in properties.items():
            value = self.synthesize(prop, depth + 1)
            if value is not None:
                example[name] = value
        return example

    def _synthesize_array(self, node: ArrayNode, depth: int) -> list[Any]:
        if node.items is None:
            return [FALLBACK_EXAMPLE]
        item = self.synthesize(node.items, depth + 1)
        # Items cut off by the depth bound leave the array empty
        return [item] if item is not None else []
