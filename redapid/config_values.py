"""Option values of program configuration files and the store that holds them."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Iterator, Optional, Type, TypeVar, Union

log = logging.getLogger(__name__)

_LEADING_WHITESPACE = " \f\n\r\t\v"
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_LIMIT = 2**64
_MAX_BINARY_DIGITS = 64

PathLike = Union[str, "os.PathLike[str]"]
E = TypeVar("E", bound=IntEnum)


class StdioRedirection(IntEnum):
    """Where a standard stream of a program process is connected."""

    DEV_NULL = 0
    PIPE = 1  # stdin only
    FILE = 2
    INDIVIDUAL_LOG = 3  # stdout and stderr only
    CONTINUOUS_LOG = 4  # stdout and stderr only
    STDOUT = 5  # stderr only


class StartMode(IntEnum):
    """When the scheduler starts a program."""

    NEVER = 0
    ALWAYS = 1
    INTERVAL = 2
    CRON = 3


_SYMBOLS: dict[type, dict[IntEnum, str]] = {
    StdioRedirection: {
        StdioRedirection.DEV_NULL: "/dev/null",
        StdioRedirection.PIPE: "pipe",
        StdioRedirection.FILE: "file",
        StdioRedirection.INDIVIDUAL_LOG: "individual_log",
        StdioRedirection.CONTINUOUS_LOG: "continuous_log",
        StdioRedirection.STDOUT: "stdout",
    },
    StartMode: {
        StartMode.NEVER: "never",
        StartMode.ALWAYS: "always",
        StartMode.INTERVAL: "interval",
        StartMode.CRON: "cron",
    },
}

_UNKNOWN_SYMBOL = "<unknown>"


def symbol_name(value: object) -> str:
    """Return the configuration symbol of an enum member, or ``<unknown>``."""
    table = _SYMBOLS.get(type(value))
    if table is None:
        return _UNKNOWN_SYMBOL
    return table.get(value, _UNKNOWN_SYMBOL)  # type: ignore[arg-type]


def parse_symbol(enum_type: Type[E], text: str) -> E:
    """Return the member of ``enum_type`` whose symbol matches ``text``, ignoring case."""
    table = _SYMBOLS.get(enum_type)
    if table is None:
        raise TypeError(f"{enum_type!r} has no configuration symbols")
    wanted = text.lower()
    for member, symbol in table.items():
        if symbol.lower() == wanted:
            return member  # type: ignore[return-value]
    raise ValueError(f"invalid symbol {text!r} for {enum_type.__name__}")


def format_integer(value: int, base: int = 10, width: int = 0) -> str:
    """Format an unsigned 64-bit integer in base 10 or as ``0b``-prefixed binary.

    The width pads binary digits with zeros and is ignored in base 10.
    """
    if value < 0 or value >= _UINT64_LIMIT:
        raise ValueError(f"{value} is not an unsigned 64-bit integer")
    if base == 10:
        return str(value)
    if base == 2:
        return "0b" + format(value, "b").rjust(width, "0")
    raise ValueError(f"unsupported base {base}")


_INTEGER_PATTERN = re.compile(r"([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


def parse_integer(text: str) -> int:
    """Parse a non-negative integer in binary (``0b``), hex, octal or decimal notation."""
    text = text.lstrip(_LEADING_WHITESPACE)

    if text[:2] in ("0b", "0B"):
        digits = text[2:]
        if len(digits) > _MAX_BINARY_DIGITS:
            raise ValueError("binary value is too long")
        if any(digit not in "01" for digit in digits):
            raise ValueError("binary value contains invalid digits")
        return int(digits, 2) if digits else 0

    if not text:
        return 0

    match = _INTEGER_PATTERN.match(text)
    if match is None or match.end() != len(text):
        raise ValueError(f"value {text!r} has a non-numerical suffix")

    sign, digits = match.groups()
    if digits[:2] in ("0x", "0X"):
        value = int(digits[2:], 16)
    elif digits.startswith("0"):
        value = int(digits, 8)
    else:
        value = int(digits, 10)
    if sign == "-":
        value = -value

    if value < _INT64_MIN or value > _INT64_MAX:
        raise ValueError(f"value {text!r} is out of range")
    if value < 0:
        raise ValueError(f"value {text!r} cannot be negative")
    return value


def parse_boolean(text: str) -> bool:
    """Parse ``true`` or ``false``, ignoring case."""
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"could not parse boolean from {text!r}")


_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "t": "\t"}
_ESCAPE_PATTERN = re.compile(r"\\(x[0-9a-fA-F]{2}|.)", re.DOTALL)
_VALUE_WHITESPACE = " \t\f\v\r\n"


def _escape(value: str) -> str:
    parts = []
    for char in value:
        if char in _ESCAPES:
            parts.append(_ESCAPES[char])
        elif ord(char) < 0x20 or char == "\x7f":
            parts.append(f"\\x{ord(char):02x}")
        else:
            parts.append(char)
    escaped = "".join(parts)
    core = escaped.strip(" ")
    if not core:
        return "\\x20" * len(escaped)
    leading = len(escaped) - len(escaped.lstrip(" "))
    trailing = len(escaped) - len(escaped.rstrip(" "))
    return "\\x20" * leading + core + "\\x20" * trailing


def _unescape_match(match: "re.Match[str]") -> str:
    code = match.group(1)
    if code.startswith("x") and len(code) == 3:
        return chr(int(code[1:], 16))
    return _UNESCAPES.get(code, match.group(0))


def _unescape(value: str) -> str:
    return _ESCAPE_PATTERN.sub(_unescape_match, value)


@dataclass
class _Line:
    raw: str
    name: Optional[str] = None
    value: str = ""

    @property
    def is_option(self) -> bool:
        return self.name is not None

    def render(self) -> str:
        if self.name is None:
            return self.raw
        return f"{self.name} = {_escape(self.value)}"


def _check_name(name: str) -> None:
    if not name or name != name.strip() or any(c in name for c in "=\n\r#"):
        raise ValueError(f"invalid option name {name!r}")


class ConfigStore:
    """An ordered ``name = value`` option file that keeps comments and layout.

    Option names are matched without regard to case.
    """

    def __init__(self) -> None:
        self._lines: list[_Line] = []

    @classmethod
    def read(cls, path: PathLike) -> "ConfigStore":
        """Read options from ``path``; a missing file raises FileNotFoundError."""
        store = cls()
        with open(path, encoding="utf-8") as handle:
            for raw in handle:
                store._add_raw_line(raw.rstrip("\n").rstrip("\r"))
        return store

    def _add_raw_line(self, raw: str) -> None:
        stripped = raw.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            self._lines.append(_Line(raw))
            return
        name, _, value = stripped.partition("=")
        name = name.strip()
        if not name:
            self._lines.append(_Line(raw))
            return
        value = _unescape(value.strip(_VALUE_WHITESPACE))
        existing = self._find(name)
        if existing is not None:
            existing.value = value
        else:
            self._lines.append(_Line(raw, name, value))

    def write(self, path: PathLike) -> None:
        """Write all lines to ``path``, replacing the file atomically."""
        target = Path(path)
        content = "".join(line.render() + "\n" for line in self._lines)
        fd, temporary = tempfile.mkstemp(
            prefix=f".{target.name}.", dir=target.parent or Path(".")
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(temporary, target)
        except BaseException:
            try:
                os.unlink(temporary)
            except FileNotFoundError:
                pass
            raise

    def _find(self, name: str) -> Optional[_Line]:
        wanted = name.lower()
        for line in self._lines:
            if line.name is not None and line.name.lower() == wanted:
                return line
        return None

    def get(self, name: str) -> Optional[str]:
        """Return the value of option ``name``, or None if it is not set."""
        line = self._find(name)
        return None if line is None else line.value

    def set(self, name: str, value: str) -> None:
        """Set option ``name``, keeping its place if it already exists."""
        _check_name(name)
        line = self._find(name)
        if line is None:
            self._lines.append(_Line("", name, value))
        else:
            line.value = value

    def remove(self, name: str, prefix: bool = False) -> int:
        """Remove option ``name``, or every option starting with it; return the count."""
        wanted = name.lower()

        def matches(line: _Line) -> bool:
            if line.name is None:
                return False
            candidate = line.name.lower()
            return candidate.startswith(wanted) if prefix else candidate == wanted

        kept = [line for line in self._lines if not matches(line)]
        removed = len(self._lines) - len(kept)
        self._lines = kept
        return removed

    def items(self) -> Iterator[tuple[str, str]]:
        """Yield ``(name, value)`` for every option in file order."""
        for line in self._lines:
            if line.name is not None:
                yield line.name, line.value

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._find(name) is not None

    def __len__(self) -> int:
        return sum(1 for line in self._lines if line.is_option)