"""Pattern matching for recipient, header and source rules.

A pattern expression is a comma-separated list of elements. Each element is
either a regular expression wrapped in slashes (``/.*@(sales|support)\\.com$/``)
or a glob (``*@sales.com``). The expression matches when any element matches.
All matching is case-insensitive.

Regular expressions are evaluated with a timeout. A timeout or an invalid
expression counts as a non-match and is logged, never raised.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Optional

import regex

logger = logging.getLogger(__name__)

REGEX_TIMEOUT = 1.0  # seconds
REGEX_DELIMITER = "/"


class PatternKind(enum.Enum):
    GLOB = "glob"
    REGEX = "regex"


@dataclass(frozen=True)
class Pattern:
    """A single classified pattern element."""
    kind: PatternKind
    text: str

    def matches(self, value: str, timeout: float = REGEX_TIMEOUT) -> bool:
        if self.kind is PatternKind.REGEX:
            return matches_regex(value, self.text, timeout=timeout)
        return matches_glob(value, self.text)


def split_patterns(expression: Optional[str]) -> list[str]:
    """Split a pattern expression into trimmed, non-empty elements."""
    if not expression:
        return []
    return [part.strip() for part in expression.split(",") if part.strip()]


def classify(element: str) -> Pattern:
    """Classify a single element as a regex or a glob."""
    element = element.strip()
    if (
        len(element) >= 2
        and element.startswith(REGEX_DELIMITER)
        and element.endswith(REGEX_DELIMITER)
    ):
        return Pattern(PatternKind.REGEX, element[1:-1])
    return Pattern(PatternKind.GLOB, element)


def parse(expression: Optional[str]) -> list[Pattern]:
    """Split and classify a full pattern expression."""
    return [classify(element) for element in split_patterns(expression)]


def matches(value: Optional[str], expression: Optional[str], timeout: float = REGEX_TIMEOUT) -> bool:
    """Check if value matches any element of a pattern expression.

    A missing or blank expression never matches.
    """
    if value is None or not expression or not expression.strip():
        return False
    return any(pattern.matches(value, timeout=timeout) for pattern in parse(expression))


def matches_regex(value: str, pattern: str, timeout: float = REGEX_TIMEOUT) -> bool:
    """Search value for a case-insensitive regex, bounded by timeout."""
    try:
        return regex.search(pattern, value, flags=regex.IGNORECASE, timeout=timeout) is not None
    except TimeoutError:
        logger.warning("Regex /%s/ timed out after %.2fs, treating as no match", pattern, timeout)
        return False
    except regex.error as e:
        logger.warning("Invalid regex /%s/: %s", pattern, e)
        return False


def matches_glob(value: str, pattern: str) -> bool:
    """Match the whole value against a case-insensitive glob.

    Only ``*`` is a wildcard; every other character is literal.
    """
    expression = ".*".join(regex.escape(part) for part in pattern.split("*"))
    return regex.fullmatch(expression, value, flags=regex.IGNORECASE | regex.DOTALL) is not None


def validate(expression: Optional[str]) -> list[str]:
    """Return an error message for every regex element that fails to compile."""
    errors = []
    for pattern in parse(expression):
        if pattern.kind is not PatternKind.REGEX:
            continue
        try:
            regex.compile(pattern.text, flags=regex.IGNORECASE)
        except regex.error as e:
            errors.append(f"invalid regex /{pattern.text}/: {e}")
    return errors
