"""Error taxonomy for api-flatten.

Only DocumentParseError (and ConfigError for the CLI) is fatal. Everything
else is a non-fatal diagnostic: the affected field degrades to a placeholder
and the condition is logged and collected so callers can report it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum


class ApiFlattenError(Exception):
    """Base class for api-flatten errors."""


class DocumentParseError(ApiFlattenError):
    """Document text is empty, not JSON/YAML, or structurally not a Swagger/OpenAPI document.

    Attributes:
        diagnostics: Messages from the underlying parser, in the order seen.
    """

    def __init__(self, message: str, diagnostics: list[str] | None = None) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics or []

    def __str__(self) -> str:
        base = super().__str__()
        if not self.diagnostics:
            return base
        return f"{base}: {'; '.join(self.diagnostics)}"


class ConfigError(ApiFlattenError):
    """Raised when configuration loading fails."""


class DiagnosticCode(str, Enum):
    """Non-fatal conditions met while synthesizing or flattening."""

    UNRESOLVED_REFERENCE = "unresolved_reference"
    DEPTH_EXCEEDED = "depth_exceeded"
    EXAMPLE_SYNTHESIS_FAILURE = "example_synthesis_failure"
    PATTERN_HEURISTIC_MISS = "pattern_heuristic_miss"


@dataclass
class Diagnostic:
    """One non-fatal condition."""

    code: DiagnosticCode
    message: str

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


@dataclass
class Diagnostics:
    """Per-call collector for non-fatal diagnostics.

    Every entry is also logged at WARNING on the logger of the component
    that reported it. Owned by a single import pass; never shared.

    Usage:
        diagnostics = Diagnostics()
        synthesizer = ExampleSynthesizer(definitions, diagnostics=diagnostics)
        synthesizer.to_json(node)
        for entry in diagnostics.entries:
            print(entry)
    """

    entries: list[Diagnostic] = field(default_factory=list)

    def add(
        self,
        code: DiagnosticCode,
        message: str,
        logger: logging.Logger | None = None,
    ) -> None:
        self.entries.append(Diagnostic(code, message))
        (logger or logging.getLogger(__name__)).warning("%s: %s", code.value, message)

    def count(self, code: DiagnosticCode) -> int:
        return sum(1 for entry in self.entries if entry.code == code)

    def __len__(self) -> int:
        return len(self.entries)


def report(
    diagnostics: Diagnostics | None,
    code: DiagnosticCode,
    message: str,
    logger: logging.Logger,
) -> None:
    """Record a diagnostic when a collector is present, otherwise only log it."""
    if diagnostics is not None:
        diagnostics.add(code, message, logger)
    else:
        logger.warning("%s: %s", code.value, message)
