"""Pattern Example Heuristic - plausible example strings for regex patterns.

This is a shape sniffer, not a regex-to-string generator. A fixed battery of
recognizers handles the common shapes (digit runs, letter runs, e-mail, phone,
uuid, date, time); anything else gets a generic random string once the pattern
is known to compile. Generated strings are not guaranteed to match arbitrary
patterns. Callers display the fallback literals (e.g. "example@test.com") as-is,
so they are part of the contract.

Repeat counts are capped at MAX_GENERATED_LENGTH characters, so a pattern asking
for 100000 digits yields 1024 digits and the example does not match it. The cap
is logged as a warning.
"""

from __future__ import annotations

import logging
import random
import re
import string
import uuid

from api_flatten.errors import DiagnosticCode, Diagnostics, report

logger = logging.getLogger(__name__)

EMAIL_EXAMPLE = "example@test.com"
PHONE_EXAMPLE = "13800138000"
DATE_EXAMPLE = "2024-01-01"
TIME_EXAMPLE = "12:00:00"

# Upper bound for counts read out of patterns like \d{N}$
MAX_GENERATED_LENGTH = 1024

_FIXED_DIGITS = re.compile(r"\\d\{(\d+)\}\$")
_FIXED_LETTERS = re.compile(r"(?:\[(?:a-zA-Z|A-Za-z|a-z|A-Z)\]|[a-zA-Z])\{(\d+)\}\$")
_PHONE_HINT = "1[3-9]\\d{9}"
_DATE_HINTS = ("yyyy-MM-dd", "\\d{4}-\\d{2}-\\d{2}")
_TIME_HINTS = ("HH:mm:ss", "\\d{2}:\\d{2}:\\d{2}")
_ONLY_DIGITS = re.compile(r"^\^?\\d+\+?\$?$")
_ONLY_LETTERS = re.compile(r"^\^?[a-zA-Z]+\+?\$?$")
_ALNUM_CLASS = "[a-zA-Z0-9]"

_LOWER_DIGITS = string.ascii_lowercase + string.digits
_ALNUM = string.ascii_letters + string.digits


def example_for(
    pattern: str | None,
    rng: random.Random | None = None,
    diagnostics: Diagnostics | None = None,
) -> str | None:
    """Produce a string that plausibly matches pattern.

    Args:
        pattern: Regular expression as written in the document.
        rng: Random source; defaults to the module-level generator.
        diagnostics: Collector for a pattern_heuristic_miss entry.

    Returns:
        Example string, or None for a blank pattern or one that neither a
        recognizer handles nor compiles.
    """
    if pattern is None or not pattern.strip():
        return None

    example = _from_common_shapes(pattern, rng)
    if example is not None:
        return example

    example = _from_generic_shape(pattern, rng)
    if example is None:
        report(
            diagnostics,
            DiagnosticCode.PATTERN_HEURISTIC_MISS,
            f"No example could be derived from pattern {pattern!r}",
            logger,
        )
    return example


def _from_common_shapes(pattern: str, rng: random.Random | None) -> str | None:
    """Recognizers tried in order; first hit wins."""
    digit_counts = _FIXED_DIGITS.findall(pattern)
    if digit_counts:
        return _random_chars(string.digits, int(digit_counts[-1]), rng)

    if "\\d+" in pattern:
        return _random_chars(string.digits, 4, rng)

    letter_counts = _FIXED_LETTERS.findall(pattern)
    if letter_counts:
        return _random_chars(string.ascii_letters, int(letter_counts[-1]), rng)

    if "email" in pattern or "@" in pattern:
        return EMAIL_EXAMPLE

    if _PHONE_HINT in pattern or "phone" in pattern.lower():
        return PHONE_EXAMPLE

    if "uuid" in pattern.lower():
        return str(uuid.uuid4())

    if any(hint in pattern for hint in _DATE_HINTS):
        return DATE_EXAMPLE

    if any(hint in pattern for hint in _TIME_HINTS):
        return TIME_EXAMPLE

    return None


def _from_generic_shape(pattern: str, rng: random.Random | None) -> str | None:
    """Generic fallbacks, only for patterns that compile."""
    try:
        re.compile(pattern)
    except re.error as e:
        logger.debug("Pattern %r does not compile: %s", pattern, e)
        return None

    if _ONLY_DIGITS.match(pattern):
        return _random_chars(string.digits, 6, rng)
    if _ONLY_LETTERS.match(pattern):
        return _random_chars(string.ascii_lowercase, 6, rng)
    if _ALNUM_CLASS in pattern:
        return _random_chars(_ALNUM, 8, rng)
    return _random_chars(_LOWER_DIGITS, 8, rng)


def _random_chars(alphabet: str, count: int, rng: random.Random | None) -> str:
    source = rng if rng is not None else random
    if count > MAX_GENERATED_LENGTH:
        logger.warning("Pattern repeat count %d capped at %d characters", count, MAX_GENERATED_LENGTH)
        count = MAX_GENERATED_LENGTH
    return "".join(source.choice(alphabet) for _ in range(count))
