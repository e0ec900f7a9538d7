"""Dialect Normalizer - Converts Swagger 2.0 and OpenAPI 3.x documents to one form.

Two adapters, one per dialect, produce the same descriptors and SchemaNode IR.
Nothing downstream of this module branches on dialect.

Schema $refs become ReferenceNode and are resolved lazily by consumers. $refs
on parameters, request bodies, responses and headers are followed here, on the
raw document, since they never form part of a schema tree.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from api_flatten.document_loader import LoadedDocument
from api_flatten.errors import DiagnosticCode, Diagnostics, report
from api_flatten.models import (
    DEFAULT_SERVER_URL,
    Dialect,
    DocumentInfo,
    ParameterLocation,
    ServerInfo,
)
from api_flatten.schema_nodes import (
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
    UntypedNode,
)

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options", "trace")

DEFAULT_CONTENT_TYPE = "application/json"
DEFAULT_SCHEME = "https"

# Guards against YAML alias cycles inside inline schemas
MAX_SCHEMA_NESTING = 64

_LOCATIONS = {
    "path": ParameterLocation.PATH,
    "query": ParameterLocation.QUERY,
    "header": ParameterLocation.HEADER,
    "cookie": ParameterLocation.COOKIE,
    "formData": ParameterLocation.FORM,
}

_SERVER_VARIABLE = re.compile(r"\{([^{}]+)\}")


# =============================================================================
# Descriptors
# =============================================================================


@dataclass
class ParameterDescriptor:
    """A declared non-body request parameter."""

    name: str
    location: ParameterLocation
    required: bool = False
    description: str | None = None
    schema: SchemaNode | None = None
    example: Any = None


@dataclass
class BodyDescriptor:
    """A request or response body for one content type.

    Attributes:
        example: Author-supplied media example, used when synthesis fails.
    """

    content_type: str
    schema: SchemaNode | None = None
    description: str | None = None
    example: Any = None
    required: bool = False


@dataclass
class HeaderDescriptor:
    name: str
    schema: SchemaNode | None = None
    description: str | None = None
    example: Any = None
    required: bool = False


@dataclass
class ResponseDescriptor:
    status_code: str
    description: str | None = None
    bodies: list[BodyDescriptor] = field(default_factory=list)
    headers: list[HeaderDescriptor] = field(default_factory=list)


@dataclass
class OperationDescriptor:
    """One (path, method) pair with everything needed to flatten it."""

    path: str
    method: str
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    deprecated: bool = False
    parameters: list[ParameterDescriptor] = field(default_factory=list)
    request_bodies: list[BodyDescriptor] = field(default_factory=list)
    responses: list[ResponseDescriptor] = field(default_factory=list)


@dataclass
class NormalizedDocument:
    """Dialect-independent view of a document.

    Attributes:
        definitions: Definition name -> schema node. Read-only once built.
    """

    dialect: Dialect
    info: DocumentInfo
    servers: list[ServerInfo] = field(default_factory=list)
    operations: list[OperationDescriptor] = field(default_factory=list)
    definitions: dict[str, SchemaNode] = field(default_factory=dict)


# =============================================================================
# Schema conversion
# =============================================================================


def convert_schema(raw: Any, depth: int = 0) -> SchemaNode:
    """Convert a raw schema object of either dialect into a SchemaNode.

    oneOf/anyOf keep their first alternative, allOf becomes an object whose
    members are merged at point of use, and OpenAPI 3.1 type lists use their
    first non-null entry.

    Args:
        raw: Schema mapping as parsed from the document.
        depth: Inline nesting depth.

    Returns:
        SchemaNode. Anything that is not a schema mapping is UntypedNode.
    """
    if not isinstance(raw, dict) or depth > MAX_SCHEMA_NESTING:
        return UntypedNode()

    description = _text(raw.get("description"))
    example = _schema_example(raw)

    ref = raw.get("$ref")
    if isinstance(ref, str):
        return ReferenceNode(
            description=description, example=example, name=ref.rsplit("/", 1)[-1], ref=ref
        )

    for key in ("oneOf", "anyOf"):
        alternatives = raw.get(key)
        if isinstance(alternatives, list) and alternatives and not _declared_type(raw):
            node = convert_schema(alternatives[0], depth + 1)
            if description and not node.description:
                node.description = description
            return node

    all_of = raw.get("allOf")
    if isinstance(all_of, list) and all_of:
        properties, required = _object_fields(raw, depth)
        return ObjectNode(
            description=description,
            example=example,
            properties=properties,
            required=required,
            all_of=[convert_schema(member, depth + 1) for member in all_of],
        )

    type_name = _declared_type(raw)
    if type_name is None:
        if "properties" in raw or "additionalProperties" in raw:
            type_name = "object"
        elif "items" in raw:
            type_name = "array"

    if type_name == "object":
        properties, required = _object_fields(raw, depth)
        return ObjectNode(
            description=description, example=example, properties=properties, required=required
        )
    if type_name == "array":
        items = raw.get("items")
        return ArrayNode(
            description=description,
            example=example,
            items=convert_schema(items, depth + 1) if isinstance(items, dict) else None,
        )
    if type_name == "string":
        fmt = raw.get("format")
        if fmt == "date":
            return DateNode(description=description, example=example)
        if fmt == "date-time":
            return DateTimeNode(description=description, example=example)
        pattern = raw.get("pattern")
        return StringNode(
            description=description,
            example=example,
            enum=_enum(raw),
            pattern=pattern if isinstance(pattern, str) else None,
            format=fmt if isinstance(fmt, str) else None,
        )
    if type_name == "integer":
        return IntegerNode(
            description=description,
            example=example,
            minimum=raw.get("minimum"),
            maximum=raw.get("maximum"),
            enum=_enum(raw),
        )
    if type_name == "number":
        return NumberNode(
            description=description,
            example=example,
            minimum=raw.get("minimum"),
            maximum=raw.get("maximum"),
            enum=_enum(raw),
        )
    if type_name == "boolean":
        return BooleanNode(description=description, example=example)

    return UntypedNode(description=description, example=example, type_name=type_name)


def convert_definitions(raw: Any) -> dict[str, SchemaNode]:
    """Convert a definitions / components.schemas table, keeping declaration order."""
    if not isinstance(raw, dict):
        return {}
    return {str(name): convert_schema(schema) for name, schema in raw.items()}


def _declared_type(raw: dict[str, Any]) -> str | None:
    type_value = raw.get("type")
    if isinstance(type_value, list):
        for candidate in type_value:
            if candidate != "null":
                return str(candidate)
        return None
    return type_value if isinstance(type_value, str) else None


def _object_fields(raw: dict[str, Any], depth: int) -> tuple[dict[str, SchemaNode], list[str]]:
    properties_raw = raw.get("properties")
    properties: dict[str, SchemaNode] = {}
    if isinstance(properties_raw, dict):
        for name, prop in properties_raw.items():
            properties[str(name)] = convert_schema(prop, depth + 1)
    required_raw = raw.get("required")
    required = [str(name) for name in required_raw] if isinstance(required_raw, list) else []
    return properties, required


def _schema_example(raw: dict[str, Any]) -> Any:
    if "example" in raw:
        return raw["example"]
    # OpenAPI 3.1 / JSON Schema examples list
    examples = raw.get("examples")
    if isinstance(examples, list) and examples:
        return examples[0]
    return None


def _enum(raw: dict[str, Any]) -> list[Any]:
    values = raw.get("enum")
    return list(values) if isinstance(values, list) else []


def _text(value: Any) -> str | None:
    return str(value) if value is not None else None


# =============================================================================
# Adapters
# =============================================================================


class _Adapter(ABC):
    """Shared walk over paths and raw $ref following."""

    def __init__(self, raw: dict[str, Any], diagnostics: Diagnostics | None) -> None:
        self._raw = raw
        self._diagnostics = diagnostics

    def operations(self) -> list[OperationDescriptor]:
        operations: list[OperationDescriptor] = []
        paths = _mapping(self._raw.get("paths"))
        for path, path_item in paths.items():
            path_item = self._deref(path_item)
            if not isinstance(path_item, dict):
                continue
            path_params = path_item.get("parameters") or []
            for method in HTTP_METHODS:
                operation = path_item.get(method)
                if not isinstance(operation, dict):
                    continue
                params = self._merge_parameters(path_params, operation.get("parameters") or [])
                operations.append(self._operation(str(path), method, operation, params))
                logger.debug("Normalized %s %s", method.upper(), path)
        return operations

    @abstractmethod
    def _operation(
        self, path: str, method: str, operation: dict[str, Any], params: list[dict[str, Any]]
    ) -> OperationDescriptor:
        """Build the descriptor for one operation of this dialect."""

    def _base_operation(self, path: str, method: str, operation: dict[str, Any]) -> OperationDescriptor:
        tags = operation.get("tags")
        return OperationDescriptor(
            path=path,
            method=method.upper(),
            operation_id=_text(operation.get("operationId")),
            summary=_text(operation.get("summary")),
            description=_text(operation.get("description")),
            tags=[str(tag) for tag in tags] if isinstance(tags, list) else [],
            deprecated=bool(operation.get("deprecated", False)),
        )

    def _merge_parameters(self, path_params: Any, op_params: Any) -> list[dict[str, Any]]:
        """Merge path-level and operation-level parameters.

        Operation-level wins on the same (name, in); order is first appearance.
        """
        by_key: dict[tuple[str, str], dict[str, Any]] = {}
        for group in (path_params, op_params):
            if not isinstance(group, list):
                continue
            for param in group:
                param = self._deref(param)
                if isinstance(param, dict):
                    by_key[(str(param.get("name", "")), str(param.get("in", "")))] = param
        return list(by_key.values())

    def _deref(self, obj: Any) -> Any:
        """Follow local $ref pointers until a concrete object is reached."""
        seen: set[str] = set()
        while isinstance(obj, dict) and isinstance(obj.get("$ref"), str):
            ref = obj["$ref"]
            if ref in seen:
                report(
                    self._diagnostics,
                    DiagnosticCode.UNRESOLVED_REFERENCE,
                    f"Circular reference {ref!r}",
                    logger,
                )
                return {}
            seen.add(ref)
            target = self._follow(ref)
            if target is None:
                report(
                    self._diagnostics,
                    DiagnosticCode.UNRESOLVED_REFERENCE,
                    f"Reference {ref!r} not found in document",
                    logger,
                )
                return {}
            obj = target
        return obj

    def _follow(self, ref: str) -> Any:
        if not ref.startswith("#/"):
            return None
        current: Any = self._raw
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return None
        return current


class _Swagger2Adapter(_Adapter):
    """Swagger 2.0: body/formData parameters, consumes/produces, host/basePath/schemes."""

    def info(self) -> dict[str, Any]:
        return _mapping(self._raw.get("info"))

    def definitions(self) -> dict[str, SchemaNode]:
        return convert_definitions(self._raw.get("definitions"))

    def servers(self, default_url: str) -> list[ServerInfo]:
        host = self._raw.get("host")
        base_path = self._raw.get("basePath") or ""
        schemes = [str(s) for s in self._raw.get("schemes") or []]

        if not host:
            return [ServerInfo(url=f"{default_url}{base_path}", description="Default server")]

        first = schemes[0] if schemes else DEFAULT_SCHEME
        servers = [ServerInfo(url=f"{first}://{host}{base_path}", description="Swagger 2.0 server")]
        for scheme in schemes[1:]:
            servers.append(
                ServerInfo(url=f"{scheme}://{host}{base_path}", description=f"Swagger 2.0 server ({scheme})")
            )
        return servers

    def _operation(
        self, path: str, method: str, operation: dict[str, Any], params: list[dict[str, Any]]
    ) -> OperationDescriptor:
        descriptor = self._base_operation(path, method, operation)
        consumes = _first(operation.get("consumes")) or _first(self._raw.get("consumes"))
        produces = _first(operation.get("produces")) or _first(self._raw.get("produces"))

        for param in params:
            location = param.get("in")
            if location == "body":
                descriptor.request_bodies.append(
                    BodyDescriptor(
                        content_type=consumes or DEFAULT_CONTENT_TYPE,
                        schema=convert_schema(param.get("schema")) if "schema" in param else None,
                        description=_text(param.get("description")),
                        example=param.get("x-example"),
                        required=bool(param.get("required", False)),
                    )
                )
                continue
            if location not in _LOCATIONS:
                logger.debug("Skipping parameter %r with location %r", param.get("name"), location)
                continue
            descriptor.parameters.append(
                ParameterDescriptor(
                    name=str(param.get("name", "")),
                    location=_LOCATIONS[location],
                    required=bool(param.get("required", False)),
                    description=_text(param.get("description")),
                    # Non-body Swagger 2 parameters carry their schema inline
                    schema=convert_schema(_without_description(param)),
                    example=param.get("x-example", param.get("example")),
                )
            )

        responses = _mapping(operation.get("responses"))
        for status_code, response in responses.items():
            response = self._deref(response)
            if not isinstance(response, dict):
                continue
            descriptor.responses.append(self._response(str(status_code), response, produces))
        return descriptor

    def _response(self, status_code: str, response: dict[str, Any], produces: str | None) -> ResponseDescriptor:
        description = _text(response.get("description"))
        result = ResponseDescriptor(status_code=status_code, description=description)
        content_type = produces or DEFAULT_CONTENT_TYPE
        if "schema" in response:
            examples = response.get("examples")
            example = None
            if isinstance(examples, dict) and examples:
                example = examples.get(content_type, next(iter(examples.values())))
            result.bodies.append(
                BodyDescriptor(
                    content_type=content_type,
                    schema=convert_schema(response["schema"]),
                    description=description,
                    example=example,
                )
            )
        headers = _mapping(response.get("headers"))
        for name, header in headers.items():
            header = self._deref(header)
            if not isinstance(header, dict):
                continue
            result.headers.append(
                HeaderDescriptor(
                    name=str(name),
                    schema=convert_schema(_without_description(header)),
                    description=_text(header.get("description")),
                    example=header.get("x-example", header.get("example")),
                )
            )
        return result


class _OpenApi3Adapter(_Adapter):
    """OpenAPI 3.x: requestBody/content maps, server list with variables."""

    def info(self) -> dict[str, Any]:
        return _mapping(self._raw.get("info"))

    def definitions(self) -> dict[str, SchemaNode]:
        components = _mapping(self._raw.get("components"))
        return convert_definitions(components.get("schemas"))

    def servers(self, default_url: str) -> list[ServerInfo]:
        servers: list[ServerInfo] = []
        for server in self._raw.get("servers") or []:
            if not isinstance(server, dict) or not server.get("url"):
                continue
            servers.append(
                ServerInfo(
                    url=_substitute_server_variables(str(server["url"]), server.get("variables")),
                    description=_text(server.get("description")),
                )
            )
        if not servers:
            servers.append(ServerInfo(url=default_url, description="Default server"))
        return servers

    def _operation(
        self, path: str, method: str, operation: dict[str, Any], params: list[dict[str, Any]]
    ) -> OperationDescriptor:
        descriptor = self._base_operation(path, method, operation)

        for param in params:
            location = param.get("in")
            if location not in _LOCATIONS or location == "formData":
                logger.debug("Skipping parameter %r with location %r", param.get("name"), location)
                continue
            schema_raw = param.get("schema")
            if schema_raw is None:
                # content-based parameter: use its first media schema
                media = _first_media(param.get("content"))
                schema_raw = media.get("schema") if media else None
            descriptor.parameters.append(
                ParameterDescriptor(
                    name=str(param.get("name", "")),
                    location=_LOCATIONS[location],
                    required=bool(param.get("required", False)),
                    description=_text(param.get("description")),
                    schema=convert_schema(schema_raw) if schema_raw is not None else None,
                    example=_media_example(param),
                )
            )

        request_body = self._deref(operation.get("requestBody"))
        if isinstance(request_body, dict):
            descriptor.request_bodies.extend(
                self._bodies(
                    request_body.get("content"),
                    _text(request_body.get("description")),
                    bool(request_body.get("required", False)),
                )
            )

        responses = _mapping(operation.get("responses"))
        for status_code, response in responses.items():
            response = self._deref(response)
            if not isinstance(response, dict):
                continue
            description = _text(response.get("description"))
            result = ResponseDescriptor(
                status_code=str(status_code),
                description=description,
                bodies=self._bodies(response.get("content"), description, False),
            )
            headers = _mapping(response.get("headers"))
            for name, header in headers.items():
                header = self._deref(header)
                if not isinstance(header, dict):
                    continue
                schema_raw = header.get("schema")
                result.headers.append(
                    HeaderDescriptor(
                        name=str(name),
                        schema=convert_schema(schema_raw) if schema_raw is not None else None,
                        description=_text(header.get("description")),
                        example=_media_example(header),
                        required=bool(header.get("required", False)),
                    )
                )
            descriptor.responses.append(result)
        return descriptor

    def _bodies(self, content: Any, description: str | None, required: bool) -> list[BodyDescriptor]:
        bodies: list[BodyDescriptor] = []
        if not isinstance(content, dict):
            return bodies
        for content_type, media in content.items():
            if not isinstance(media, dict):
                media = {}
            schema_raw = media.get("schema")
            bodies.append(
                BodyDescriptor(
                    content_type=str(content_type),
                    schema=convert_schema(schema_raw) if schema_raw is not None else None,
                    description=description,
                    example=_media_example(media),
                    required=required,
                )
            )
        return bodies


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first(values: Any) -> str | None:
    if isinstance(values, list) and values:
        return str(values[0])
    return None


def _first_media(content: Any) -> dict[str, Any] | None:
    if isinstance(content, dict):
        for media in content.values():
            if isinstance(media, dict):
                return media
    return None


def _media_example(obj: dict[str, Any]) -> Any:
    """example, else the value of the first entry in examples."""
    if obj.get("example") is not None:
        return obj["example"]
    examples = obj.get("examples")
    if isinstance(examples, dict):
        for entry in examples.values():
            if isinstance(entry, dict) and "value" in entry:
                return entry["value"]
    return None


def _without_description(raw: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in raw.items() if key != "description"}


def _substitute_server_variables(url: str, variables: Any) -> str:
    if not isinstance(variables, dict):
        return url

    def replace(match: re.Match[str]) -> str:
        variable = variables.get(match.group(1))
        if isinstance(variable, dict) and variable.get("default") is not None:
            return str(variable["default"])
        return match.group(0)

    return _SERVER_VARIABLE.sub(replace, url)


# =============================================================================
# Entry point
# =============================================================================


def normalize(
    loaded: LoadedDocument,
    source: str = "content",
    source_url: str | None = None,
    default_server_url: str = DEFAULT_SERVER_URL,
    diagnostics: Diagnostics | None = None,
) -> NormalizedDocument:
    """Normalize a parsed document into descriptors and IR.

    A document without paths is not an error; it yields no operations.

    Args:
        loaded: Output of document_loader.load_document.
        source: Provenance tag recorded on the document info.
        source_url: Where the document came from, if known.
        default_server_url: Used when the document declares no server.
        diagnostics: Optional collector for non-fatal conditions.

    Returns:
        NormalizedDocument.
    """
    adapter: _Swagger2Adapter | _OpenApi3Adapter
    if loaded.dialect == Dialect.V2:
        adapter = _Swagger2Adapter(loaded.raw, diagnostics)
    else:
        adapter = _OpenApi3Adapter(loaded.raw, diagnostics)

    info = adapter.info()
    document_info = DocumentInfo(
        title=_text(info.get("title")),
        version=_text(info.get("version")),
        description=_text(info.get("description")),
        dialect=loaded.dialect,
        content=loaded.content,
        source=source,
        source_url=source_url,
    )

    normalized = NormalizedDocument(
        dialect=loaded.dialect,
        info=document_info,
        servers=adapter.servers(default_server_url),
        operations=adapter.operations(),
        definitions=adapter.definitions(),
    )
    logger.info(
        "Normalized %d operations and %d definitions",
        len(normalized.operations),
        len(normalized.definitions),
    )
    return normalized
