"""Import pipeline - document text in, flattened operations out.

load -> normalize -> (synthesize + flatten) per operation. Only
DocumentParseError escapes; every other condition is collected as a
diagnostic on the result.
"""

from __future__ import annotations

import json
import logging
import random
from pathlib import Path
from typing import Any

from api_flatten.document_loader import LoadedDocument, load_document, load_document_file
from api_flatten.errors import DiagnosticCode, Diagnostics, report
from api_flatten.example_synthesizer import ExampleSynthesizer
from api_flatten.example_validator import ExampleValidator
from api_flatten.flattener import SchemaFlattener
from api_flatten.models import (
    ExampleCheck,
    FlattenConfig,
    ImportResult,
    OperationRecord,
    ParameterLocation,
    ParameterRecord,
    ResponseParameterRecord,
)
from api_flatten.normalizer import (
    BodyDescriptor,
    NormalizedDocument,
    OperationDescriptor,
    normalize,
)

logger = logging.getLogger(__name__)


def import_document(
    content: str | bytes,
    encoding_hint: str | None = None,
    config: FlattenConfig | None = None,
    source: str = "content",
    source_url: str | None = None,
    rng: random.Random | None = None,
) -> ImportResult:
    """Import a Swagger 2.0 / OpenAPI 3.x document from text.

    Args:
        content: Document text, JSON or YAML.
        encoding_hint: "json" or "yaml"; sniffed when None.
        config: Runtime configuration; defaults apply when None.
        source: Provenance tag: content, file or url.
        source_url: Where the document came from, if known.
        rng: Random source for pattern-derived strings.

    Returns:
        ImportResult with one OperationRecord per (path, method).

    Raises:
        DocumentParseError: If the document cannot be parsed.
    """
    loaded = load_document(content, encoding_hint)
    return DocumentImporter(config, rng).run(loaded, source, source_url)


def import_file(
    path: Path,
    config: FlattenConfig | None = None,
    rng: random.Random | None = None,
) -> ImportResult:
    """Import a document from disk."""
    loaded = load_document_file(path)
    return DocumentImporter(config, rng).run(loaded, "file", str(path))


class DocumentImporter:
    """Runs normalization, synthesis and flattening for one document.

    A fresh Diagnostics collector is created per run, so an importer can be
    reused but not shared between concurrent runs.
    """

    def __init__(self, config: FlattenConfig | None = None, rng: random.Random | None = None) -> None:
        self._config = config or FlattenConfig()
        self._rng = rng

    def run(self, loaded: LoadedDocument, source: str = "content", source_url: str | None = None) -> ImportResult:
        diagnostics = Diagnostics()
        normalized = normalize(
            loaded,
            source=source,
            source_url=source_url,
            default_server_url=self._config.default_server_url,
            diagnostics=diagnostics,
        )

        operations = [
            self._import_operation(normalized, descriptor, diagnostics)
            for descriptor in normalized.operations
        ]

        logger.info(
            "Imported %d operations with %d diagnostics",
            len(operations),
            len(diagnostics),
        )
        return ImportResult(
            document=normalized.info,
            servers=normalized.servers,
            operations=operations,
            diagnostics=list(dict.fromkeys(str(entry) for entry in diagnostics.entries)),
        )

    def _import_operation(
        self,
        normalized: NormalizedDocument,
        descriptor: OperationDescriptor,
        diagnostics: Diagnostics,
    ) -> OperationRecord:
        max_depth = self._config.max_depth
        flattener = SchemaFlattener(normalized.definitions, max_depth, diagnostics, self._rng)
        synthesizer = ExampleSynthesizer(normalized.definitions, max_depth, diagnostics, self._rng)
        validator = (
            ExampleValidator(normalized.definitions, max_depth) if self._config.validate_examples else None
        )

        request_params: list[ParameterRecord] = []
        for param in descriptor.parameters:
            request_params.extend(
                flattener.flatten_parameter(
                    param.name,
                    param.location,
                    param.schema,
                    required=param.required,
                    description=param.description,
                    example=param.example,
                )
            )

        checks: list[ExampleCheck] = []
        for body in descriptor.request_bodies:
            example_json = self._body_example(synthesizer, body, diagnostics)
            request_params.extend(
                flattener.flatten_body(
                    body.schema,
                    body.content_type,
                    example_json,
                    required=body.required,
                    description=body.description,
                )
            )
            if validator is not None:
                checks.append(_check(validator, body, example_json, "request", None))

        response_params: list[ResponseParameterRecord] = []
        for response in descriptor.responses:
            status = response.status_code
            for body in response.bodies:
                example_json = self._body_example(synthesizer, body, diagnostics)
                response_params.extend(
                    flattener.flatten_body(
                        body.schema,
                        body.content_type,
                        example_json,
                        description=body.description,
                        status_code=status,
                    )
                )
                if validator is not None:
                    checks.append(_check(validator, body, example_json, "response", status))
            for header in response.headers:
                response_params.extend(
                    flattener.flatten_parameter(
                        header.name,
                        ParameterLocation.HEADER,
                        header.schema,
                        required=header.required,
                        description=header.description,
                        example=header.example,
                        status_code=status,
                    )
                )
            if not response.bodies and not response.headers:
                response_params.append(flattener.placeholder_body(status, response.description))

        logger.debug(
            "%s %s: %d request records, %d response records",
            descriptor.method,
            descriptor.path,
            len(request_params),
            len(response_params),
        )
        return OperationRecord(
            path=descriptor.path,
            method=descriptor.method,
            operation_id=descriptor.operation_id,
            summary=descriptor.summary,
            description=descriptor.description,
            tags=descriptor.tags,
            deprecated=descriptor.deprecated,
            request_params=request_params,
            response_params=response_params,
            example_checks=checks,
        )

    def _body_example(
        self,
        synthesizer: ExampleSynthesizer,
        body: BodyDescriptor,
        diagnostics: Diagnostics,
    ) -> str | None:
        """Synthesized JSON for a body, falling back to the author's media example."""
        example_json = synthesizer.to_json(body.schema) if body.schema is not None else None
        if example_json is not None or body.example is None:
            return example_json
        return _dump_example(body.example, diagnostics)


def _dump_example(value: Any, diagnostics: Diagnostics) -> str | None:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    except (TypeError, ValueError) as e:
        report(
            diagnostics,
            DiagnosticCode.EXAMPLE_SYNTHESIS_FAILURE,
            f"Could not serialize media example: {e}",
            logger,
        )
        return None


def _check(
    validator: ExampleValidator,
    body: BodyDescriptor,
    example_json: str | None,
    side: str,
    status_code: str | None,
) -> ExampleCheck:
    """Validate the example stored on the body record against the body schema."""
    if body.schema is None:
        violations = []
    elif example_json is None:
        violations = ["no example could be produced"]
    else:
        try:
            value = json.loads(example_json)
        except json.JSONDecodeError:
            value = example_json
        violations = validator.validate(body.schema, value)
    return ExampleCheck(
        side=side,
        status_code=status_code,
        content_type=body.content_type,
        valid=not violations,
        violations=[str(v) for v in violations],
    )
