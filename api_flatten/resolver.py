"""Schema Reference Resolver - Looks up ReferenceNode targets in the definition table.

Resolution is lazy: only the node handed in is resolved, never its
descendants. Consumers call back in as they descend. Depth is bounded so that
cyclic or deeply chained definitions always terminate.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from api_flatten.errors import DiagnosticCode, Diagnostics, report
from api_flatten.schema_nodes import (
    DEFAULT_MAX_DEPTH,
    ArrayNode,
    BooleanNode,
    DateNode,
    DateTimeNode,
    IntegerNode,
    NumberNode,
    ObjectNode,
    ReferenceNode,
    SchemaNode,
    StringNode,
)

logger = logging.getLogger(__name__)


class SchemaResolver:
    """Resolves references against a read-only definition table.

    Usage:
        resolver = SchemaResolver(normalized.definitions)
        node = resolver.resolve(ReferenceNode(name="Pet"))
    """

    def __init__(
        self,
        definitions: Mapping[str, SchemaNode],
        max_depth: int = DEFAULT_MAX_DEPTH,
        diagnostics: Diagnostics | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            definitions: Definition name -> schema node. Never mutated.
            max_depth: Resolution bound; beyond it an empty object is returned.
            diagnostics: Optional collector for non-fatal conditions.
        """
        self._definitions = definitions
        self._max_depth = max_depth
        self._diagnostics = diagnostics

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def diagnostics(self) -> Diagnostics | None:
        return self._diagnostics

    def resolve(self, node: SchemaNode, depth: int = 0) -> SchemaNode:
        """Return node, or the definition it refers to.

        Unresolvable references and chains longer than max_depth degrade to
        an empty ObjectNode placeholder instead of failing.
        """
        if not isinstance(node, ReferenceNode):
            return node

        if depth > self._max_depth:
            report(
                self._diagnostics,
                DiagnosticCode.DEPTH_EXCEEDED,
                f"Reference {node.ref or node.name!r} exceeds resolution depth {self._max_depth}",
                logger,
            )
            return ObjectNode()

        target = self._definitions.get(node.name)
        if target is None:
            report(
                self._diagnostics,
                DiagnosticCode.UNRESOLVED_REFERENCE,
                f"Reference {node.ref or node.name!r} not found in definitions",
                logger,
            )
            return ObjectNode(description=node.description)

        logger.debug("Resolved reference %s at depth %d", node.name, depth)
        return self.resolve(target, depth + 1)

    def object_members(
        self, node: ObjectNode, depth: int = 0
    ) -> tuple[dict[str, SchemaNode], list[str]]:
        """Ordered properties and required names of an object, allOf members merged.

        Members are merged in declaration order after the object's own
        properties; a later member redefining a property replaces the schema
        but keeps the original position.

        Returns:
            Tuple of (properties, required names).
        """
        properties = dict(node.properties)
        required = list(node.required)
        if not node.all_of:
            return properties, required

        if depth > self._max_depth:
            report(
                self._diagnostics,
                DiagnosticCode.DEPTH_EXCEEDED,
                f"allOf merge exceeds depth {self._max_depth}",
                logger,
            )
            return properties, required

        for member in node.all_of:
            resolved = self.resolve(member, depth)
            if not isinstance(resolved, ObjectNode):
                continue
            member_props, member_required = self.object_members(resolved, depth + 1)
            properties.update(member_props)
            for name in member_required:
                if name not in required:
                    required.append(name)
        return properties, required

    def type_tag(self, node: SchemaNode | None, depth: int = 0) -> str:
        """Declared type tag: String/Integer/Number/Boolean/Array<T>/Object/Date/DateTime.

        Arrays report their item type recursively. Missing nodes, unknown
        nodes and references that cannot be followed are tagged String. No
        diagnostics are reported here.
        """
        if node is None:
            return "String"
        while isinstance(node, ReferenceNode):
            if depth > self._max_depth or node.name not in self._definitions:
                return "String"
            node = self._definitions[node.name]
            depth += 1
        if isinstance(node, ObjectNode):
            return "Object"
        if isinstance(node, ArrayNode):
            if node.items is None or depth > self._max_depth:
                return "Array"
            return f"Array<{self.type_tag(node.items, depth + 1)}>"
        if isinstance(node, StringNode):
            return "String"
        if isinstance(node, IntegerNode):
            return "Integer"
        if isinstance(node, NumberNode):
            return "Number"
        if isinstance(node, BooleanNode):
            return "Boolean"
        if isinstance(node, DateNode):
            return "Date"
        if isinstance(node, DateTimeNode):
            return "DateTime"
        return "String"


def resolve(
    node: SchemaNode,
    definitions: Mapping[str, SchemaNode],
    depth: int = 0,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> SchemaNode:
    """Functional form of SchemaResolver.resolve."""
    return SchemaResolver(definitions, max_depth).resolve(node, depth)
