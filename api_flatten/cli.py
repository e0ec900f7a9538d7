"""CLI entry point for api-flatten.

Handles argument parsing and dispatches to the subcommands.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from dataclasses import dataclass
from pathlib import Path

from api_flatten.config_loader import load_config
from api_flatten.document_loader import load_document_file
from api_flatten.errors import ConfigError, DocumentParseError
from api_flatten.example_synthesizer import ExampleSynthesizer
from api_flatten.importer import import_file
from api_flatten.models import (
    FlattenConfig,
    ImportResult,
    OperationRecord,
    ParameterLocation,
    ParameterRecord,
)
from api_flatten.normalizer import normalize
from api_flatten.pattern_example import example_for
from api_flatten.schema_nodes import ReferenceNode

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass
class ListOperationsArgs:
    """Parsed arguments for list-operations mode."""

    spec: Path
    log_level: str | None


@dataclass
class FlattenArgs:
    """Parsed arguments for flatten mode."""

    spec: Path
    config: Path | None
    operation: str | None
    output: str
    out: Path | None
    seed: int | None
    log_level: str | None


@dataclass
class ExampleArgs:
    """Parsed arguments for example mode."""

    spec: Path
    schema: str | None
    operation: str | None
    status: str | None
    content_type: str | None
    seed: int | None
    log_level: str | None


@dataclass
class CheckExamplesArgs:
    """Parsed arguments for check-examples mode."""

    spec: Path
    config: Path | None
    log_level: str | None


@dataclass
class PatternExampleArgs:
    """Parsed arguments for pattern-example mode."""

    pattern: str
    seed: int | None
    log_level: str | None


ParsedArgs = ListOperationsArgs | FlattenArgs | ExampleArgs | CheckExamplesArgs | PatternExampleArgs


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per mode."""
    parser = argparse.ArgumentParser(
        prog="api-flatten",
        description="Flatten Swagger 2.0 / OpenAPI 3.x schemas into example payloads and parameter records.",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level for diagnostics on stderr (default: from config, else WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Mode")

    # List-operations subcommand
    list_ops_parser = subparsers.add_parser(
        "list-operations",
        help="List all operations declared in a document",
    )
    _add_spec_argument(list_ops_parser)

    # Flatten subcommand
    flatten_parser = subparsers.add_parser(
        "flatten",
        help="Flatten every operation into request and response parameter records",
    )
    _add_spec_argument(flatten_parser)
    _add_config_argument(flatten_parser)
    flatten_parser.add_argument(
        "--operation",
        type=str,
        default=None,
        metavar="OPERATION_ID",
        help="Only flatten the operation with this operationId",
    )
    flatten_parser.add_argument(
        "--output",
        choices=("text", "json"),
        default="text",
        help="Output format (default: text)",
    )
    flatten_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write output to this file instead of stdout",
    )
    _add_seed_argument(flatten_parser)

    # Example subcommand
    example_parser = subparsers.add_parser(
        "example",
        help="Print the synthesized JSON example for a definition or an operation body",
    )
    _add_spec_argument(example_parser)
    target = example_parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--schema",
        type=str,
        default=None,
        metavar="NAME",
        help="Definition name (definitions / components.schemas)",
    )
    target.add_argument(
        "--operation",
        type=str,
        default=None,
        metavar="OPERATION_ID",
        help="Operation whose body example to print",
    )
    example_parser.add_argument(
        "--status",
        type=str,
        default=None,
        metavar="CODE",
        help="Response status code (default: request body)",
    )
    example_parser.add_argument(
        "--content-type",
        type=str,
        default=None,
        help="Body content type (default: first declared)",
    )
    _add_seed_argument(example_parser)

    # Check-examples subcommand
    check_parser = subparsers.add_parser(
        "check-examples",
        help="Validate every synthesized body example against its schema",
    )
    _add_spec_argument(check_parser)
    _add_config_argument(check_parser)

    # Pattern-example subcommand
    pattern_parser = subparsers.add_parser(
        "pattern-example",
        help="Print a plausible example string for a regular expression",
    )
    pattern_parser.add_argument("pattern", help="Regular expression")
    _add_seed_argument(pattern_parser)

    return parser


def _add_spec_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--spec",
        type=Path,
        required=True,
        help="Path to Swagger/OpenAPI document (YAML or JSON)",
    )


def _add_config_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to runtime config YAML",
    )


def _add_seed_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for pattern-derived examples",
    )


def parse_args(args: list[str] | None = None) -> ParsedArgs:
    """Parse command-line arguments and return typed args dataclass.

    Args:
        args: Command-line arguments to parse. If None, uses sys.argv[1:].

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)
    log_level = namespace.log_level

    if namespace.command == "list-operations":
        return ListOperationsArgs(spec=namespace.spec, log_level=log_level)
    elif namespace.command == "flatten":
        return FlattenArgs(
            spec=namespace.spec,
            config=namespace.config,
            operation=namespace.operation,
            output=namespace.output,
            out=namespace.out,
            seed=namespace.seed,
            log_level=log_level,
        )
    elif namespace.command == "example":
        if namespace.schema is not None and (namespace.status or namespace.content_type):
            parser.error("--status and --content-type require --operation")
        return ExampleArgs(
            spec=namespace.spec,
            schema=namespace.schema,
            operation=namespace.operation,
            status=namespace.status,
            content_type=namespace.content_type,
            seed=namespace.seed,
            log_level=log_level,
        )
    elif namespace.command == "check-examples":
        return CheckExamplesArgs(spec=namespace.spec, config=namespace.config, log_level=log_level)
    elif namespace.command == "pattern-example":
        return PatternExampleArgs(pattern=namespace.pattern, seed=namespace.seed, log_level=log_level)
    else:
        # Should not happen with required=True on subparsers
        parser.error(f"Unknown command: {namespace.command}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(argv)

        if isinstance(parsed, ListOperationsArgs):
            return run_list_operations(parsed)
        elif isinstance(parsed, FlattenArgs):
            return run_flatten(parsed)
        elif isinstance(parsed, ExampleArgs):
            return run_example(parsed)
        elif isinstance(parsed, CheckExamplesArgs):
            return run_check_examples(parsed)
        else:
            return run_pattern_example(parsed)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def configure_logging(level: str | None) -> None:
    """Send log records to stderr at the given level (WARNING when None)."""
    resolved = getattr(logging, (level or "WARNING").upper())
    logging.basicConfig(level=resolved, format=LOG_FORMAT, stream=sys.stderr)
    logging.getLogger().setLevel(resolved)


def _load_config(config_path: Path | None) -> FlattenConfig:
    if config_path is None:
        return FlattenConfig()
    return load_config(config_path)


def _rng(seed: int | None) -> random.Random | None:
    return random.Random(seed) if seed is not None else None


# =============================================================================
# Modes
# =============================================================================


def run_list_operations(args: ListOperationsArgs) -> int:
    """Run list-operations mode.

    Prints each operation's operationId, method, path and tags.
    """
    configure_logging(args.log_level)
    try:
        result = import_file(args.spec)
    except DocumentParseError as e:
        print(f"Error loading spec: {e}", file=sys.stderr)
        return 1

    for operation in result.operations:
        print(operation.operation_id or "<unnamed>")
        print(f"  {operation.method} {operation.path}")
        if operation.tags:
            print(f"  Tags: {', '.join(operation.tags)}")
        if operation.deprecated:
            print("  Deprecated")
        print()

    print(f"Total: {len(result.operations)} operations")
    return 0


def run_flatten(args: FlattenArgs) -> int:
    """Run flatten mode."""
    try:
        config = _load_config(args.config)
    except ConfigError as e:
        configure_logging(args.log_level)
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1
    configure_logging(args.log_level or config.log_level)

    try:
        result = import_file(args.spec, config, _rng(args.seed))
    except DocumentParseError as e:
        print(f"Error loading spec: {e}", file=sys.stderr)
        return 1

    if args.operation is not None:
        operation = result.find_operation(args.operation)
        if operation is None:
            print(f"Error: operation '{args.operation}' not found", file=sys.stderr)
            return 1
        result = result.model_copy(update={"operations": [operation]})

    if args.output == "json":
        text = result.model_dump_json(indent=2, exclude={"document": {"content"}}) + "\n"
    else:
        text = format_import_result(result)

    if args.out is not None:
        args.out.write_text(text, encoding="utf-8")
        print(f"Wrote {len(result.operations)} operations to {args.out}")
    else:
        sys.stdout.write(text)

    for entry in result.diagnostics:
        print(f"Warning: {entry}", file=sys.stderr)
    return 0


def run_example(args: ExampleArgs) -> int:
    """Run example mode.

    Prints the synthesized JSON for a named definition, or the example on an
    operation's body record.
    """
    configure_logging(args.log_level)
    rng = _rng(args.seed)

    if args.schema is not None:
        try:
            normalized = normalize(load_document_file(args.spec))
        except DocumentParseError as e:
            print(f"Error loading spec: {e}", file=sys.stderr)
            return 1
        if args.schema not in normalized.definitions:
            available = ", ".join(normalized.definitions) or "none"
            print(f"Error: schema '{args.schema}' not found. Available: {available}", file=sys.stderr)
            return 1
        synthesizer = ExampleSynthesizer(normalized.definitions, rng=rng)
        example_json = synthesizer.to_json(ReferenceNode(name=args.schema))
    else:
        try:
            result = import_file(args.spec, rng=rng)
        except DocumentParseError as e:
            print(f"Error loading spec: {e}", file=sys.stderr)
            return 1
        operation = result.find_operation(args.operation)
        if operation is None:
            print(f"Error: operation '{args.operation}' not found", file=sys.stderr)
            return 1
        record = operation.body_record(args.status, args.content_type)
        if record is None:
            side = f"response {args.status}" if args.status else "request"
            print(f"Error: no {side} body for '{args.operation}'", file=sys.stderr)
            return 1
        example_json = record.example

    if example_json is None:
        print("Error: no example could be produced", file=sys.stderr)
        return 1
    print(example_json)
    return 0


def run_check_examples(args: CheckExamplesArgs) -> int:
    """Run check-examples mode.

    Returns 1 when any synthesized body example violates its schema.
    """
    try:
        config = _load_config(args.config)
    except ConfigError as e:
        configure_logging(args.log_level)
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1
    configure_logging(args.log_level or config.log_level)

    config = config.model_copy(update={"validate_examples": True})
    try:
        result = import_file(args.spec, config)
    except DocumentParseError as e:
        print(f"Error loading spec: {e}", file=sys.stderr)
        return 1

    total = 0
    failed = 0
    for operation in result.operations:
        for check in operation.example_checks:
            total += 1
            if check.valid:
                continue
            failed += 1
            where = "request" if check.side == "request" else f"response {check.status_code}"
            print(f"{operation.operation_id or operation.key} {where} ({check.content_type}):")
            for violation in check.violations:
                print(f"  {violation}")

    print(f"Checked {total} body examples, {failed} with violations")
    return 1 if failed else 0


def run_pattern_example(args: PatternExampleArgs) -> int:
    """Run pattern-example mode."""
    configure_logging(args.log_level)
    example = example_for(args.pattern, _rng(args.seed))
    if example is None:
        print(f"No example could be derived from pattern {args.pattern!r}", file=sys.stderr)
        return 1
    print(example)
    return 0


# =============================================================================
# Text formatting
# =============================================================================


def format_import_result(result: ImportResult) -> str:
    """Render an import result as indented text, one record per line."""
    document = result.document
    lines = [
        f"{document.title or '<untitled>'} {document.version or ''}".rstrip(),
        f"Dialect: {document.dialect.value}",
    ]
    for server in result.servers:
        lines.append(f"Server: {server.url}")
    lines.append("")

    for operation in result.operations:
        lines.extend(format_operation(operation))
        lines.append("")

    lines.append(f"Total: {len(result.operations)} operations")
    return "\n".join(lines) + "\n"


def format_operation(operation: OperationRecord) -> list[str]:
    header = f"{operation.method} {operation.path}"
    if operation.operation_id:
        header += f" ({operation.operation_id})"
    lines = [header]

    if operation.request_params:
        lines.append("  Request:")
        lines.extend(f"    {_format_record(record)}" for record in operation.request_params)

    for status_code, records in operation.responses_by_status().items():
        lines.append(f"  Response {status_code}:")
        lines.extend(f"    {_format_record(record)}" for record in records)
    return lines


def _format_record(record: ParameterRecord) -> str:
    label = record.hierarchy_path or record.name
    parts = [f"#{record.record_id}", record.location.value, label, record.param_type]
    if record.content_type:
        parts.append(record.content_type)
    if record.required:
        parts.append("required")
    if record.parent_id is not None:
        parts.append(f"parent=#{record.parent_id}")
    # Whole-document body examples are multi-line; see the example command
    is_body_record = record.location == ParameterLocation.BODY and not record.hierarchy_path
    if record.example is not None and not is_body_record:
        parts.append(f"example={record.example}")
    if record.pattern_example is not None:
        parts.append(f"pattern_example={record.pattern_example}")
    return " ".join(parts)


if __name__ == "__main__":
    sys.exit(main())
