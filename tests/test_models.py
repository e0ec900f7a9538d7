"""Tests for the pydantic output models and example rendering."""

import pytest
from pydantic import ValidationError

from api_flatten.models import (
    Dialect,
    DocumentInfo,
    FlattenConfig,
    ImportResult,
    OperationRecord,
    ParameterLocation,
    ParameterRecord,
    ResponseParameterRecord,
    example_to_text,
)


def record(**overrides):
    fields = {
        "record_id": 1,
        "name": "id",
        "location": ParameterLocation.QUERY,
        "param_type": "Integer",
    }
    fields.update(overrides)
    return ParameterRecord(**fields)


def response_record(**overrides):
    fields = {
        "record_id": 1,
        "name": "body",
        "location": ParameterLocation.BODY,
        "param_type": "Object",
        "status_code": "200",
    }
    fields.update(overrides)
    return ResponseParameterRecord(**fields)


class TestParameterRecord:
    def test_defaults(self):
        r = record()
        assert r.required is False
        assert r.hierarchy_path == ""
        assert r.parent_id is None
        assert r.content_type is None

    def test_content_type_requires_body_location(self):
        with pytest.raises(ValidationError, match="only meaningful for body"):
            record(content_type="application/json")

    def test_body_content_type(self):
        r = record(location=ParameterLocation.BODY, content_type="application/json")
        assert r.content_type == "application/json"

    def test_location_from_string(self):
        assert record(location="form").location == ParameterLocation.FORM

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            record(colour="blue")


class TestResponseParameterRecord:
    def test_header_location(self):
        assert response_record(location=ParameterLocation.HEADER).location == ParameterLocation.HEADER

    @pytest.mark.parametrize("location", [ParameterLocation.QUERY, ParameterLocation.PATH])
    def test_request_locations_rejected(self, location):
        with pytest.raises(ValidationError, match="body or header"):
            response_record(location=location)


class TestOperationRecord:
    @pytest.fixture
    def op(self) -> OperationRecord:
        return OperationRecord(
            path="/pets",
            method="POST",
            request_params=[
                record(record_id=1, location=ParameterLocation.BODY, name="body", content_type="application/json"),
                record(record_id=2, location=ParameterLocation.BODY, hierarchy_path="id"),
            ],
            response_params=[
                response_record(record_id=3, content_type="application/json"),
                response_record(record_id=4, content_type="application/xml"),
                response_record(record_id=5, status_code="404"),
            ],
        )

    def test_key(self, op):
        assert op.key == "POST /pets"

    def test_responses_by_status(self, op):
        grouped = op.responses_by_status()
        assert list(grouped) == ["200", "404"]
        assert [r.record_id for r in grouped["200"]] == [3, 4]

    def test_request_body_record(self, op):
        assert op.body_record().record_id == 1

    def test_response_body_record_by_content_type(self, op):
        assert op.body_record("200").record_id == 3
        assert op.body_record("200", "application/xml").record_id == 4
        assert op.body_record("200", "text/plain") is None
        assert op.body_record("500") is None


class TestImportResult:
    def test_serializes_to_json(self):
        result = ImportResult(
            document=DocumentInfo(dialect=Dialect.V2, content="swagger: '2.0'"),
            operations=[OperationRecord(path="/x", method="GET", operation_id="getX")],
        )
        dumped = result.model_dump(mode="json")
        assert dumped["document"]["dialect"] == "v2"
        assert dumped["operations"][0]["operation_id"] == "getX"


class TestFlattenConfig:
    def test_log_level_is_normalized(self):
        assert FlattenConfig(log_level="info").log_level == "INFO"

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError):
            FlattenConfig(log_level="chatty")

    def test_max_depth_must_be_positive(self):
        with pytest.raises(ValidationError):
            FlattenConfig(max_depth=0)


class TestExampleToText:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, None),
            (True, "true"),
            (False, "false"),
            (5, "5"),
            (1.5, "1.5"),
            ("Rex", "Rex"),
            ({"a": 1}, '{"a": 1}'),
            (["x", "ü"], '["x", "ü"]'),
        ],
    )
    def test_rendering(self, value, expected):
        assert example_to_text(value) == expected
