"""Tests for dialect normalization.

Tests cover:
- Swagger 2.0 and OpenAPI 3.x adapters over the sample documents
- Server derivation (host/basePath/schemes, server variables, default server)
- Parameter merging and raw $ref following
- Schema conversion into the IR
"""

import json

import pytest

from api_flatten.document_loader import load_document, load_document_file
from api_flatten.errors import DiagnosticCode, Diagnostics
from api_flatten.models import Dialect, ParameterLocation
from api_flatten.normalizer import _Adapter, convert_definitions, convert_schema, normalize
from api_flatten.schema_nodes import (
    ArrayNode,
    BooleanNode,
    DateNode,
    DateTimeNode,
    IntegerNode,
    NumberNode,
    ObjectNode,
    ReferenceNode,
    StringNode,
    UntypedNode,
)
from tests.conftest import make_v2_document, make_v3_document


def normalize_dict(document, **kwargs):
    return normalize(load_document(json.dumps(document)), **kwargs)


def operation(normalized, operation_id):
    for op in normalized.operations:
        if op.operation_id == operation_id:
            return op
    raise AssertionError(f"no operation {operation_id}")


class TestConvertSchema:
    def test_reference(self):
        node = convert_schema({"$ref": "#/components/schemas/Pet"})
        assert isinstance(node, ReferenceNode)
        assert node.name == "Pet"
        assert node.ref == "#/components/schemas/Pet"

    def test_object_keeps_declaration_order(self):
        node = convert_schema(
            {
                "type": "object",
                "required": ["b"],
                "properties": {"b": {"type": "string"}, "a": {"type": "integer"}},
            }
        )
        assert isinstance(node, ObjectNode)
        assert list(node.properties) == ["b", "a"]
        assert node.required == ["b"]

    def test_scalars(self):
        assert isinstance(convert_schema({"type": "integer", "minimum": 1}), IntegerNode)
        assert isinstance(convert_schema({"type": "number"}), NumberNode)
        assert isinstance(convert_schema({"type": "boolean"}), BooleanNode)

    def test_string_fields(self):
        node = convert_schema({"type": "string", "pattern": "^a$", "format": "email", "enum": ["a"]})
        assert isinstance(node, StringNode)
        assert (node.pattern, node.format, node.enum) == ("^a$", "email", ["a"])

    def test_date_formats(self):
        assert isinstance(convert_schema({"type": "string", "format": "date"}), DateNode)
        assert isinstance(convert_schema({"type": "string", "format": "date-time"}), DateTimeNode)

    def test_array(self):
        node = convert_schema({"type": "array", "items": {"type": "string"}})
        assert isinstance(node, ArrayNode)
        assert isinstance(node.items, StringNode)

    def test_type_inferred_from_shape(self):
        assert isinstance(convert_schema({"properties": {}}), ObjectNode)
        assert isinstance(convert_schema({"additionalProperties": True}), ObjectNode)
        assert isinstance(convert_schema({"items": {"type": "integer"}}), ArrayNode)

    def test_nullable_type_list(self):
        """OpenAPI 3.1 type lists use their first non-null entry."""
        node = convert_schema({"type": ["null", "string"]})
        assert isinstance(node, StringNode)

    def test_one_of_keeps_first_alternative(self):
        node = convert_schema(
            {"description": "Either", "oneOf": [{"type": "integer"}, {"type": "string"}]}
        )
        assert isinstance(node, IntegerNode)
        assert node.description == "Either"

    def test_any_of_keeps_first_alternative(self):
        node = convert_schema({"anyOf": [{"$ref": "#/definitions/A"}, {"type": "string"}]})
        assert isinstance(node, ReferenceNode)

    def test_all_of_becomes_object(self):
        node = convert_schema({"allOf": [{"$ref": "#/definitions/Base"}, {"type": "object"}]})
        assert isinstance(node, ObjectNode)
        assert len(node.all_of) == 2
        assert isinstance(node.all_of[0], ReferenceNode)

    def test_examples_list(self):
        assert convert_schema({"type": "string", "examples": ["first", "second"]}).example == "first"

    def test_example_beats_examples(self):
        node = convert_schema({"type": "string", "example": "x", "examples": ["y"]})
        assert node.example == "x"

    def test_unknown_type(self):
        node = convert_schema({"type": "file"})
        assert isinstance(node, UntypedNode)
        assert node.type_name == "file"

    @pytest.mark.parametrize("raw", [None, "string", 42, []])
    def test_non_mapping(self, raw):
        assert isinstance(convert_schema(raw), UntypedNode)

    def test_definitions_keep_order(self):
        definitions = convert_definitions({"Z": {"type": "string"}, "A": {"type": "integer"}})
        assert list(definitions) == ["Z", "A"]

    def test_definitions_not_a_mapping(self):
        assert convert_definitions(["A"]) == {}


class TestOpenApi3:
    @pytest.fixture
    def normalized(self, fixture_petstore_v3):
        return normalize(load_document_file(fixture_petstore_v3))

    def test_document_info(self, normalized):
        assert normalized.dialect == Dialect.V3
        assert normalized.info.title == "Pet Store"
        assert normalized.info.version == "1.0.0"
        assert normalized.info.description == "Sample store used by the test suite"

    def test_server_variables_use_defaults(self, normalized):
        (server,) = normalized.servers
        assert server.url == "https://eu.example.com/v1"
        assert server.description == "Regional endpoint"

    def test_operations_in_document_order(self, normalized):
        keys = [(op.method, op.path) for op in normalized.operations]
        assert keys == [("GET", "/pets"), ("POST", "/pets"), ("GET", "/pets/{petId}")]

    def test_operation_metadata(self, normalized):
        list_pets = operation(normalized, "listPets")
        assert list_pets.summary == "List pets"
        assert list_pets.tags == ["pets"]
        assert operation(normalized, "getPet").deprecated is True

    def test_path_level_parameters_come_first(self, normalized):
        params = operation(normalized, "listPets").parameters
        assert [(p.name, p.location) for p in params] == [
            ("X-Trace-Id", ParameterLocation.HEADER),
            ("page", ParameterLocation.QUERY),
            ("status", ParameterLocation.QUERY),
        ]
        assert params[2].required is True

    def test_parameter_reference(self, normalized):
        (pet_id,) = operation(normalized, "getPet").parameters
        assert pet_id.name == "petId"
        assert pet_id.location == ParameterLocation.PATH
        assert pet_id.required is True
        assert pet_id.schema.pattern == r"^\d{6}$"

    def test_request_body(self, normalized):
        (body,) = operation(normalized, "createPet").request_bodies
        assert body.content_type == "application/json"
        assert body.required is True
        assert body.schema.name == "NewPet"

    def test_response_reference(self, normalized):
        responses = operation(normalized, "createPet").responses
        assert [r.status_code for r in responses] == ["201", "default"]
        error = responses[1]
        assert error.description == "Error"
        assert error.bodies[0].schema.name == "Error"

    def test_response_headers(self, normalized):
        (ok,) = operation(normalized, "listPets").responses
        (header,) = ok.headers
        assert header.name == "X-Total-Count"
        assert header.description == "Total number of pets"
        assert header.schema.example == 42

    def test_response_without_content(self, normalized):
        no_content = operation(normalized, "getPet").responses[0]
        assert no_content.status_code == "204"
        assert no_content.bodies == []
        assert no_content.headers == []

    def test_definitions(self, normalized):
        assert list(normalized.definitions) == ["Pet", "NewPet", "PetPage", "Owner", "Error"]
        assert isinstance(normalized.definitions["NewPet"].properties["birthday"], DateNode)


class TestSwagger2:
    @pytest.fixture
    def normalized(self, fixture_petstore_v2):
        return normalize(load_document_file(fixture_petstore_v2))

    def test_servers_from_host_base_path_and_schemes(self, normalized):
        assert [(s.url, s.description) for s in normalized.servers] == [
            ("https://api.example.com/v2", "Swagger 2.0 server"),
            ("http://api.example.com/v2", "Swagger 2.0 server (http)"),
        ]

    def test_inline_parameter_schemas(self, normalized):
        user_id, verbose = operation(normalized, "getUser").parameters
        assert user_id.location == ParameterLocation.PATH
        assert isinstance(user_id.schema, IntegerNode)
        assert (user_id.schema.minimum, user_id.schema.maximum) == (1, 9)
        assert isinstance(verbose.schema, BooleanNode)
        assert verbose.example is False

    def test_body_parameter_becomes_request_body(self, normalized):
        update = operation(normalized, "updateUser")
        assert [p.name for p in update.parameters] == ["id"]
        (body,) = update.request_bodies
        assert body.content_type == "application/json"
        assert body.required is True
        assert body.schema.name == "User"

    def test_form_parameters(self, normalized):
        upload = operation(normalized, "uploadFile")
        file_param, note = upload.parameters
        assert file_param.location == ParameterLocation.FORM
        assert isinstance(file_param.schema, UntypedNode)
        assert note.schema.pattern == ".*email.*"
        assert upload.request_bodies == []

    def test_response_schema_and_headers(self, normalized):
        (ok,) = operation(normalized, "getUser").responses
        assert ok.bodies[0].content_type == "application/json"
        (header,) = ok.headers
        assert header.name == "X-Rate-Limit"
        assert header.description == "Calls per hour"
        assert isinstance(header.schema, IntegerNode)
        assert header.schema.description is None

    def test_response_examples(self, normalized):
        (ok,) = operation(normalized, "uploadFile").responses
        assert ok.bodies[0].example == ["a.txt"]

    def test_definitions(self, normalized):
        assert list(normalized.definitions) == ["User", "Role"]


class TestServers:
    def test_v3_without_servers_uses_default(self):
        normalized = normalize_dict(make_v3_document())
        assert [(s.url, s.description) for s in normalized.servers] == [
            ("http://localhost:8080", "Default server")
        ]

    def test_custom_default_server(self):
        normalized = normalize_dict(make_v3_document(), default_server_url="http://api.test")
        assert normalized.servers[0].url == "http://api.test"

    def test_v2_without_host_keeps_base_path(self):
        normalized = normalize_dict(make_v2_document(basePath="/api"))
        assert normalized.servers[0].url == "http://localhost:8080/api"

    def test_v2_host_without_schemes(self):
        normalized = normalize_dict(make_v2_document(host="h.test"))
        assert normalized.servers[0].url == "https://h.test"

    def test_unknown_server_variable_is_kept(self):
        normalized = normalize_dict(make_v3_document(servers=[{"url": "https://{tenant}.test"}]))
        assert normalized.servers[0].url == "https://{tenant}.test"


class TestOperations:
    def test_adapter_base_requires_a_dialect(self):
        with pytest.raises(TypeError):
            _Adapter({}, None)

    def test_no_paths_yields_no_operations(self):
        document = make_v3_document()
        del document["paths"]
        assert normalize_dict(document).operations == []

    def test_methods_follow_fixed_order(self):
        responses = {"200": {"description": "OK"}}
        document = make_v3_document(
            paths={"/x": {"post": {"responses": responses}, "get": {"responses": responses}}}
        )
        assert [op.method for op in normalize_dict(document).operations] == ["GET", "POST"]

    def test_non_method_keys_are_ignored(self):
        document = make_v3_document(paths={"/x": {"summary": "X", "get": {"responses": {}}}})
        assert len(normalize_dict(document).operations) == 1

    def test_operation_parameter_overrides_path_parameter(self):
        document = make_v3_document(
            paths={
                "/x": {
                    "parameters": [
                        {"name": "q", "in": "query", "description": "path level"},
                        {"name": "q", "in": "header"},
                    ],
                    "get": {
                        "parameters": [{"name": "q", "in": "query", "description": "operation level"}],
                        "responses": {},
                    },
                }
            }
        )
        params = normalize_dict(document).operations[0].parameters
        assert [(p.location, p.description) for p in params] == [
            (ParameterLocation.QUERY, "operation level"),
            (ParameterLocation.HEADER, None),
        ]

    def test_cookie_parameter(self):
        document = make_v3_document(
            paths={"/x": {"get": {"parameters": [{"name": "session", "in": "cookie"}], "responses": {}}}}
        )
        (param,) = normalize_dict(document).operations[0].parameters
        assert param.location == ParameterLocation.COOKIE
        assert param.schema is None

    def test_content_based_parameter(self):
        document = make_v3_document(
            paths={
                "/x": {
                    "get": {
                        "parameters": [
                            {
                                "name": "filter",
                                "in": "query",
                                "content": {"application/json": {"schema": {"type": "object"}}},
                            }
                        ],
                        "responses": {},
                    }
                }
            }
        )
        (param,) = normalize_dict(document).operations[0].parameters
        assert isinstance(param.schema, ObjectNode)

    def test_media_examples(self):
        document = make_v3_document(
            paths={
                "/x": {
                    "post": {
                        "parameters": [
                            {
                                "name": "limit",
                                "in": "query",
                                "schema": {"type": "integer"},
                                "examples": {"small": {"value": 3}},
                            }
                        ],
                        "requestBody": {
                            "content": {"text/plain": {"schema": {"type": "string"}, "example": "hi"}}
                        },
                        "responses": {},
                    }
                }
            }
        )
        op = normalize_dict(document).operations[0]
        assert op.parameters[0].example == 3
        assert op.request_bodies[0].example == "hi"
        assert op.request_bodies[0].content_type == "text/plain"

    def test_v2_operation_consumes_and_produces(self):
        document = make_v2_document(
            paths={
                "/x": {
                    "post": {
                        "consumes": ["application/xml"],
                        "produces": ["text/csv"],
                        "parameters": [{"name": "b", "in": "body", "schema": {"type": "string"}}],
                        "responses": {
                            "200": {
                                "description": "OK",
                                "schema": {"type": "string"},
                                "examples": {"application/json": "fallback"},
                            }
                        },
                    }
                }
            },
            consumes=["application/json"],
        )
        op = normalize_dict(document).operations[0]
        assert op.request_bodies[0].content_type == "application/xml"
        body = op.responses[0].bodies[0]
        assert body.content_type == "text/csv"
        assert body.example == "fallback"

    def test_v2_defaults_to_json_content_type(self):
        document = make_v2_document(
            paths={"/x": {"post": {"parameters": [{"name": "b", "in": "body", "schema": {}}], "responses": {}}}}
        )
        assert normalize_dict(document).operations[0].request_bodies[0].content_type == "application/json"


class TestReferences:
    def test_escaped_pointer(self):
        document = make_v3_document(
            paths={"/x": {"get": {"parameters": [{"$ref": "#/components/parameters/a~1b"}], "responses": {}}}},
            components={"parameters": {"a/b": {"name": "ab", "in": "query"}}},
        )
        (param,) = normalize_dict(document).operations[0].parameters
        assert param.name == "ab"

    def test_missing_reference_is_reported(self):
        diagnostics = Diagnostics()
        document = make_v3_document(
            paths={"/x": {"get": {"parameters": [{"$ref": "#/components/parameters/Nope"}], "responses": {}}}}
        )
        op = normalize_dict(document, diagnostics=diagnostics).operations[0]
        assert op.parameters == []
        assert diagnostics.count(DiagnosticCode.UNRESOLVED_REFERENCE) == 1

    def test_circular_reference_is_reported(self):
        diagnostics = Diagnostics()
        document = make_v3_document(
            paths={"/x": {"get": {"responses": {"200": {"$ref": "#/components/responses/Loop"}}}}},
            components={"responses": {"Loop": {"$ref": "#/components/responses/Loop"}}},
        )
        op = normalize_dict(document, diagnostics=diagnostics).operations[0]
        assert op.responses[0].bodies == []
        assert diagnostics.count(DiagnosticCode.UNRESOLVED_REFERENCE) == 1

    def test_external_reference_is_unresolved(self):
        diagnostics = Diagnostics()
        document = make_v3_document(
            paths={"/x": {"get": {"parameters": [{"$ref": "other.yaml#/P"}], "responses": {}}}}
        )
        normalize_dict(document, diagnostics=diagnostics)
        assert diagnostics.count(DiagnosticCode.UNRESOLVED_REFERENCE) == 1

    def test_source_is_recorded(self):
        normalized = normalize_dict(make_v3_document(), source="url", source_url="https://x.test/api.json")
        assert normalized.info.source == "url"
        assert normalized.info.source_url == "https://x.test/api.json"
