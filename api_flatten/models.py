"""Output data models for api-flatten.

All models use Pydantic v2. Records are created once per import, in document
order, and never mutated afterwards.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from api_flatten.schema_nodes import DEFAULT_MAX_DEPTH

DEFAULT_SERVER_URL = "http://localhost:8080"


class Dialect(str, Enum):
    """Document family."""

    V2 = "v2"  # Swagger 2.0
    V3 = "v3"  # OpenAPI 3.x


class ParameterLocation(str, Enum):
    PATH = "path"
    HEADER = "header"
    QUERY = "query"
    FORM = "form"
    BODY = "body"
    COOKIE = "cookie"


RESPONSE_LOCATIONS = (ParameterLocation.BODY, ParameterLocation.HEADER)


# =============================================================================
# Parameter Records
# =============================================================================


class ParameterRecord(BaseModel):
    """One request-side leaf or composite entry produced by flattening.

    Body records carry the complete synthesized JSON document in example.
    Leaf records carry a single field value as a string.
    """

    model_config = ConfigDict(extra="forbid")

    record_id: int = Field(description="Identity within the operation, sequential from 1")
    name: str = Field(description="Parameter or property name")
    location: ParameterLocation = Field(description="Where the value travels")
    content_type: str | None = Field(default=None, description="Media type, body records only")
    param_type: str = Field(description="Type tag, e.g. String, Integer, Array<Object>")
    required: bool = Field(default=False, description="Declared required marker")
    pattern: str | None = Field(default=None, description="Declared regular expression")
    pattern_example: str | None = Field(
        default=None, description="Example derived from pattern, independent of example"
    )
    example: str | None = Field(default=None, description="Leaf value, or full JSON for body records")
    description: str | None = Field(default=None, description="Declared description")
    hierarchy_path: str = Field(default="", description="Dotted/bracketed path, e.g. items[0].id")
    parent_id: int | None = Field(default=None, description="record_id of the owning composite")

    @model_validator(mode="after")
    def check_content_type_location(self) -> Self:
        if self.content_type is not None and self.location != ParameterLocation.BODY:
            raise ValueError("content_type is only meaningful for body records")
        return self


class ResponseParameterRecord(ParameterRecord):
    """Response-side record; location is body or header."""

    status_code: str = Field(description="HTTP status code as declared (e.g. 200, default)")

    @field_validator("location")
    @classmethod
    def check_response_location(cls, value: ParameterLocation) -> ParameterLocation:
        if value not in RESPONSE_LOCATIONS:
            raise ValueError(f"response records must be body or header, got {value.value}")
        return value


# =============================================================================
# Document and Operation Records
# =============================================================================


class DocumentInfo(BaseModel):
    """Normalized document metadata."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    version: str | None = None
    description: str | None = None
    dialect: Dialect
    content: str = Field(description="Original document text")
    source: str = Field(default="content", description="Provenance tag: content, file or url")
    source_url: str | None = None


class ServerInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str
    description: str | None = None


class ExampleCheck(BaseModel):
    """Outcome of validating one synthesized body example against its schema."""

    model_config = ConfigDict(extra="forbid")

    side: str = Field(description="request or response")
    status_code: str | None = None
    content_type: str | None = None
    valid: bool
    violations: list[str] = Field(default_factory=list)


class OperationRecord(BaseModel):
    """One (path, method) pair with its flattened parameters."""

    model_config = ConfigDict(extra="forbid")

    path: str
    method: str = Field(description="Upper-case HTTP method")
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    deprecated: bool = False
    request_params: list[ParameterRecord] = Field(default_factory=list)
    response_params: list[ResponseParameterRecord] = Field(default_factory=list)
    example_checks: list[ExampleCheck] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.method} {self.path}"

    def responses_by_status(self) -> dict[str, list[ResponseParameterRecord]]:
        """Response records grouped by status code, declaration order kept."""
        grouped: dict[str, list[ResponseParameterRecord]] = {}
        for record in self.response_params:
            grouped.setdefault(record.status_code, []).append(record)
        return grouped

    def body_record(
        self, status_code: str | None = None, content_type: str | None = None
    ) -> ParameterRecord | None:
        """The whole-document body record for the request (status_code None) or a response."""
        records: list[ParameterRecord] = (
            list(self.request_params)
            if status_code is None
            else [r for r in self.response_params if r.status_code == status_code]
        )
        for record in records:
            if record.location != ParameterLocation.BODY or record.hierarchy_path:
                continue
            if content_type is None or record.content_type == content_type:
                return record
        return None


class ImportResult(BaseModel):
    """Everything produced by importing one document."""

    model_config = ConfigDict(extra="forbid")

    document: DocumentInfo
    servers: list[ServerInfo] = Field(default_factory=list)
    operations: list[OperationRecord] = Field(default_factory=list)
    diagnostics: list[str] = Field(default_factory=list)

    def find_operation(self, operation_id: str) -> OperationRecord | None:
        for operation in self.operations:
            if operation.operation_id == operation_id:
                return operation
        return None


# =============================================================================
# Runtime Configuration
# =============================================================================


class FlattenConfig(BaseModel):
    """Runtime configuration loaded from YAML."""

    model_config = ConfigDict(extra="forbid")

    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, description="Recursion/resolution bound")
    default_server_url: str = Field(
        default=DEFAULT_SERVER_URL, description="Used when the document declares no server"
    )
    log_level: str = Field(default="WARNING", description="Logging level name")
    validate_examples: bool = Field(
        default=False, description="Validate synthesized body examples against their schemas"
    )

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value}")
        return level


def example_to_text(value: Any) -> str | None:
    """Render an example value as stored on records.

    Booleans become true/false, structured values compact JSON, everything
    else str().
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)
