"""
Zmienne środowiskowe wyrażenia (%name) przekazane w części "variables".

Nazwa może być ograniczona backtickami lub apostrofami (np. `my var`);
ograniczniki są usuwane, a sekwencje \\r \\n \\t \\f \\uXXXX \\<znak> rozwijane.
"""
from __future__ import annotations

import re
from typing import Any

from contracts import TaggedParameter

_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"r": "\r", "n": "\n", "t": "\t", "f": "\f"}
_DELIMITERS = ("`", "'")

# kolejność pól, z których brana jest wartość zmiennej
VARIABLE_VALUE_FIELDS = (
    "value_string",
    "value_boolean",
    "value_integer",
    "value_decimal",
    "value_date",
    "value_time",
    "value_date_time",
    "resource",
)


def _unescape(match: re.Match[str]) -> str:
    escaped = match.group(1)
    if len(escaped) > 1:
        return chr(int(escaped[1:], 16))
    return _SIMPLE_ESCAPES.get(escaped, escaped)


def decode_variable_name(name: str) -> str:
    for delimiter in _DELIMITERS:
        if len(name) >= 2 and name.startswith(delimiter) and name.endswith(delimiter):
            return _ESCAPE_RE.sub(_unescape, name[1:-1])
    return name


def variable_value(param: TaggedParameter) -> Any:
    """Pierwsze wypełnione pole wartości (False i 0 są poprawnymi wartościami)."""
    for field in VARIABLE_VALUE_FIELDS:
        value = getattr(param, field)
        if value is not None:
            return value
    return None


def read_variables(parts: list[TaggedParameter]) -> dict[str, Any]:
    return {decode_variable_name(part.name): variable_value(part) for part in parts}
