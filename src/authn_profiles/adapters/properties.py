"""
Properties reader — the `key = value` line format of info and VO-CA-AP files.

Follows the classic .properties line conventions:

  - "#" or "!" as first non-blank character starts a comment line
  - key ends at the first unescaped "=", ":" or whitespace
  - a line ending in an odd number of backslashes continues on the next line
    (leading whitespace of the continuation is dropped)
  - \\t \\n \\r \\f \\uXXXX escapes; any other escaped character stands for itself

Entries come back as an ordered list, duplicates included, so callers can
decide whether a repeated key is an error.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from os import PathLike
from pathlib import Path

from authn_profiles.domain.errors import InvalidConfigurationError, ParseError

_WHITESPACE = " \t\f"
_SEPARATORS = "=:"
_ESCAPE_RE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)?", re.DOTALL)
_SIMPLE_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


@dataclass(frozen=True, slots=True)
class PropertyEntry:
    key: str
    value: str
    line: int


def _unescape_match(match: re.Match[str]) -> str:
    escaped = match.group(1)
    if escaped is None:
        return ""
    if len(escaped) == 5 and escaped[0] == "u":
        return chr(int(escaped[1:], 16))
    return _SIMPLE_ESCAPES.get(escaped, escaped)


def unescape(text: str) -> str:
    return _ESCAPE_RE.sub(_unescape_match, text)


def _continues(line: str) -> bool:
    trailing = len(line) - len(line.rstrip("\\"))
    return trailing % 2 == 1


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (first physical line number, joined logical line), skipping comments."""
    lines = text.splitlines()
    index = 0
    while index < len(lines):
        number = index + 1
        line = lines[index].lstrip(_WHITESPACE)
        index += 1
        if not line or line[0] in "#!":
            continue
        while _continues(line):
            line = line[:-1]
            if index >= len(lines):
                break
            line += lines[index].lstrip(_WHITESPACE)
            index += 1
        yield number, line


def _split_key_value(line: str) -> tuple[str, str]:
    position = 0
    length = len(line)
    while position < length:
        ch = line[position]
        if ch == "\\":
            position += 2
            continue
        if ch in _SEPARATORS or ch in _WHITESPACE:
            break
        position += 1
    key = line[:position]

    while position < length and line[position] in _WHITESPACE:
        position += 1
    if position < length and line[position] in _SEPARATORS:
        position += 1
    while position < length and line[position] in _WHITESPACE:
        position += 1

    return unescape(key), unescape(line[position:])


def parse_properties(text: str) -> list[PropertyEntry]:
    """Parse properties text into ordered entries (duplicates preserved)."""
    entries: list[PropertyEntry] = []
    for number, line in _logical_lines(text):
        key, value = _split_key_value(line)
        entries.append(PropertyEntry(key=key, value=value.rstrip(), line=number))
    return entries


def read_properties(path: str | PathLike[str]) -> list[PropertyEntry]:
    """
    Read and parse a properties file in one go.

    The file is fully read before parsing starts; read failures carry the path.
    """
    source = Path(path)
    try:
        text = source.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(f"File '{source}' is not valid UTF-8 text: {e}") from e
    except OSError as e:
        raise InvalidConfigurationError(f"Error reading '{source}': {e}") from e
    return parse_properties(text)


def as_mapping(entries: list[PropertyEntry]) -> dict[str, str]:
    """Collapse entries into a dict; a later duplicate wins."""
    return {entry.key: entry.value for entry in entries}


def check_readable_file(path: str | PathLike[str]) -> Path:
    """
    Sanity-check that `path` names an existing, regular, readable file.

    Raises InvalidConfigurationError describing which check failed.
    """
    if path is None or str(path) == "":
        raise InvalidConfigurationError("null value for input file")
    source = Path(path)
    if not source.exists():
        raise InvalidConfigurationError(f"File '{source}' does not exist")
    if not source.is_file():
        raise InvalidConfigurationError(f"File '{source}' is not a regular file")
    try:
        with source.open("rb"):
            pass
    except OSError:
        raise InvalidConfigurationError(f"File '{source}' is not readable") from None
    return source
