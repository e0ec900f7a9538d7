"""Pytest configuration and fixtures for api-flatten tests.

This file provides:
- Paths to the sample documents in tests/fixtures
- Builders for small inline Swagger 2.0 / OpenAPI 3.x documents
- write_spec: dumps a document to a temporary file for CLI tests
"""

from __future__ import annotations

import json
import random
from pathlib import Path
from typing import Any

import pytest
import yaml

# Project root for fixture paths
PROJECT_ROOT = Path(__file__).parent.parent
FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"


def make_v3_document(
    paths: dict[str, Any] | None = None,
    schemas: dict[str, Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Create a minimal OpenAPI 3.0 document.

    Prefer this over writing documents inline - it fills in the boilerplate
    so tests only show the parts they exercise.
    """
    document: dict[str, Any] = {
        "openapi": "3.0.3",
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": paths or {},
    }
    if schemas is not None:
        document["components"] = {"schemas": schemas}
    document.update(extra)
    return document


def make_v2_document(
    paths: dict[str, Any] | None = None,
    definitions: dict[str, Any] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Create a minimal Swagger 2.0 document."""
    document: dict[str, Any] = {
        "swagger": "2.0",
        "info": {"title": "Test API", "version": "1.0.0"},
        "paths": paths or {},
    }
    if definitions is not None:
        document["definitions"] = definitions
    document.update(extra)
    return document


def json_body_operation(schema: dict[str, Any], operation_id: str = "createItem") -> dict[str, Any]:
    """An OpenAPI 3 POST operation with a JSON request body and a 200 response."""
    return {
        "post": {
            "operationId": operation_id,
            "requestBody": {"content": {"application/json": {"schema": schema}}},
            "responses": {"200": {"description": "OK"}},
        }
    }


def write_spec(tmp_path: Path, document: dict[str, Any], suffix: str = ".yaml") -> Path:
    """Write document to tmp_path as YAML or JSON, depending on suffix."""
    path = tmp_path / f"spec{suffix}"
    if suffix == ".json":
        path.write_text(json.dumps(document), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    return path


@pytest.fixture(scope="session")
def fixture_petstore_v3() -> Path:
    """Path to the OpenAPI 3 sample (tests/fixtures/petstore_v3.yaml)."""
    return FIXTURES_DIR / "petstore_v3.yaml"


@pytest.fixture(scope="session")
def fixture_petstore_v2() -> Path:
    """Path to the Swagger 2.0 sample (tests/fixtures/petstore_v2.yaml)."""
    return FIXTURES_DIR / "petstore_v2.yaml"


@pytest.fixture
def seeded_rng() -> random.Random:
    """Deterministic random source for pattern-derived examples."""
    return random.Random(1234)
