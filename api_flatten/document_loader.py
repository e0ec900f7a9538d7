"""Document Loader - Parses Swagger/OpenAPI text and detects its dialect.

Accepts JSON or YAML transparently. The encoding hint only decides which
parser is tried first; JSON text that fails to parse as JSON is retried as
YAML since YAML is a superset for practical documents.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from api_flatten.errors import DocumentParseError
from api_flatten.models import Dialect

logger = logging.getLogger(__name__)


class DocumentYamlLoader(yaml.SafeLoader):
    """SafeLoader that keeps unquoted timestamps as the strings the author wrote."""


DocumentYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}

JSON_HINTS = ("json", "application/json")
YAML_HINTS = ("yaml", "yml", "application/yaml", "application/x-yaml", "text/yaml")


@dataclass
class LoadedDocument:
    """A parsed document with its detected dialect.

    Attributes:
        raw: The parsed top-level mapping.
        dialect: v2 for Swagger 2.0, v3 otherwise.
        content: The original text.
    """

    raw: dict[str, Any]
    dialect: Dialect
    content: str


def detect_dialect(raw: dict[str, Any]) -> Dialect:
    """Pick the dialect from top-level version markers.

    A swagger: "2.x" key selects v2, an openapi: "3.x" key selects v3, and
    documents with neither default to v3.
    """
    swagger = raw.get("swagger")
    if swagger is not None and str(swagger).startswith("2"):
        return Dialect.V2
    openapi = raw.get("openapi")
    if openapi is not None and str(openapi).startswith("3"):
        return Dialect.V3
    return Dialect.V3


def load_document(content: str | bytes | None, encoding_hint: str | None = None) -> LoadedDocument:
    """Parse document text into a mapping and detect its dialect.

    Args:
        content: Document text (bytes are decoded as UTF-8).
        encoding_hint: "json", "yaml" or a matching media type; sniffed when None.

    Returns:
        LoadedDocument.

    Raises:
        DocumentParseError: If the text is empty, unparsable, or not a mapping.
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DocumentParseError("Document is not valid UTF-8", [str(e)]) from e

    if content is None or not content.strip():
        raise DocumentParseError("Document content is empty")

    raw = _parse_text(content, _prefer_json(content, encoding_hint))

    if not isinstance(raw, dict):
        raise DocumentParseError(
            "Document root must be a mapping",
            [f"got {type(raw).__name__}"],
        )

    _check_structure(raw)
    dialect = detect_dialect(raw)
    logger.info("Detected document dialect %s", dialect.value)
    return LoadedDocument(raw=raw, dialect=dialect, content=content)


def load_document_file(path: Path) -> LoadedDocument:
    """Read and parse a document from disk, hinting by file suffix."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DocumentParseError(f"Cannot read document: {path}", [str(e)]) from e

    suffix = path.suffix.lower().lstrip(".")
    hint = suffix if suffix in ("json", "yaml", "yml") else None
    return load_document(content, hint)


def _prefer_json(content: str, encoding_hint: str | None) -> bool:
    if encoding_hint:
        hint = encoding_hint.lower()
        if hint in JSON_HINTS:
            return True
        if hint in YAML_HINTS:
            return False
    return content.lstrip().startswith("{")


def _parse_text(content: str, prefer_json: bool) -> Any:
    diagnostics: list[str] = []

    if prefer_json:
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            diagnostics.append(f"JSON: {e}")
            logger.debug("JSON parse failed, retrying as YAML: %s", e)

    try:
        return yaml.load(content, Loader=DocumentYamlLoader)
    except yaml.YAMLError as e:
        diagnostics.append(f"YAML: {e}")

    raise DocumentParseError("Failed to parse document", diagnostics)


def _check_structure(raw: dict[str, Any]) -> None:
    """Reject documents whose top-level sections have the wrong shape."""
    problems: list[str] = []
    for key in ("paths", "definitions", "info"):
        value = raw.get(key)
        if value is not None and not isinstance(value, dict):
            problems.append(f"'{key}' must be a mapping, got {type(value).__name__}")
    components = raw.get("components")
    if components is not None and not isinstance(components, dict):
        problems.append(f"'components' must be a mapping, got {type(components).__name__}")
    servers = raw.get("servers")
    if servers is not None and not isinstance(servers, list):
        problems.append(f"'servers' must be a list, got {type(servers).__name__}")
    if problems:
        raise DocumentParseError("Document structure is invalid", problems)
