"""Encoder and decoder for the Bencode serialization format.

The decoder tolerates any amount of whitespace between tokens. Whitespace is
horizontal tab, line feed, vertical tab, form feed, carriage return, space,
next line (0x85) and non-breaking space (0xA0).

Decoded strings are returned as ``bytes`` and dictionary keys as ``bytes``.
Integers must fit in a signed 64-bit value.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

__all__ = [
    "BencodeError",
    "Scanner",
    "parse_string",
    "parse_integer",
    "parse_list",
    "parse_dictionary",
    "parse_token",
    "decode",
    "encode",
]

Bencodable = Union[int, bytes, list, dict]

_WHITESPACE = frozenset(b"\t\n\x0b\x0c\r \x85\xa0")
_NUMBER = re.compile(rb"[+-]?[0-9]+")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1


class BencodeError(ValueError):
    """Raised when data cannot be decoded from or encoded to Bencode."""


def _to_bytes(data: bytes | bytearray | memoryview | str) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


@dataclass
class Scanner:
    """A cursor over a byte string."""

    contents: bytes
    index: int = 0

    def __post_init__(self) -> None:
        self.contents = _to_bytes(self.contents)

    def ended(self) -> bool:
        """Report whether the end of the contents has been reached."""
        return self.index >= len(self.contents)

    def peek(self, n: int) -> bytes:
        """Return the next ``n`` bytes without advancing."""
        if self.index + n > len(self.contents):
            raise BencodeError("unexpected end of input")
        return self.contents[self.index : self.index + n]

    def consume(self, n: int) -> bytes:
        """Return the next ``n`` bytes and advance past them."""
        consumed = self.peek(n)
        if self.advance(n):
            return consumed
        return b""

    def advance(self, n: int) -> bool:
        """Skip ``n`` bytes; return whether the scanner moved."""
        if self.ended():
            return False
        self.index += n
        return True

    def advance_whitespace(self) -> None:
        """Skip over any whitespace bytes."""
        while not self.ended() and self.contents[self.index] in _WHITESPACE:
            self.index += 1

    def consume_until(self, delimiter: int | bytes) -> tuple[bytes, bool]:
        """Consume up to ``delimiter`` (not included).

        Returns the bytes before the delimiter and whether it was reached.
        If it is not reached, everything that is left is consumed.
        """
        if self.ended():
            return b"", False
        if isinstance(delimiter, int):
            delimiter = bytes([delimiter])
        position = self.contents.find(delimiter, self.index)
        if position < 0:
            chunk = self.contents[self.index :]
            self.index = len(self.contents)
            return chunk, False
        chunk = self.contents[self.index : position]
        self.index = position
        return chunk, True


def _parse_number(digits: bytes, what: str) -> int:
    if not _NUMBER.fullmatch(digits):
        raise BencodeError(f"{what} conversion failed: invalid number {digits!r}")
    number = int(digits)
    if not _INT_MIN <= number <= _INT_MAX:
        raise BencodeError(f"{what} conversion failed: {digits!r} is out of range")
    return number


def parse_string(scanner: Scanner) -> bytes:
    """Parse a string of the form ``<length>:<bytes>``."""
    start = scanner.index
    digits, found = scanner.consume_until(b":")
    if not found:
        scanner.index = start
        raise BencodeError("expected length specification")

    length = _parse_number(digits, "length")
    if length < 0:
        raise BencodeError(f"negative string length {length}")

    scanner.advance(1)
    return scanner.consume(length)


def parse_integer(scanner: Scanner) -> int:
    """Parse an integer of the form ``i<number>e``."""
    scanner.advance(1)
    digits, found = scanner.consume_until(b"e")
    if not found:
        raise BencodeError("expected end of integer")

    number = _parse_number(digits, "integer")
    scanner.advance(1)
    return number


def parse_list(scanner: Scanner) -> list[Any]:
    """Parse a list of the form ``l<items>e``."""
    items: list[Any] = []
    scanner.advance(1)
    while not scanner.ended():
        scanner.advance_whitespace()
        if scanner.peek(1) == b"e":
            scanner.advance(1)
            break
        items.append(parse_token(scanner))
    return items


def parse_dictionary(scanner: Scanner) -> dict[bytes, Any]:
    """Parse a dictionary of the form ``d<key><value>...e``."""
    dictionary: dict[bytes, Any] = {}
    scanner.advance(1)
    while not scanner.ended():
        scanner.advance_whitespace()
        if scanner.peek(1) == b"e":
            scanner.advance(1)
            break

        key = parse_token(scanner)
        scanner.advance_whitespace()
        value = parse_token(scanner)

        if not isinstance(key, bytes):
            raise BencodeError(f"dictionary key must be a string, not {key!r}")
        dictionary[key] = value
    return dictionary


def parse_token(scanner: Scanner) -> Any:
    """Parse any Bencode value: integer, string, list or dictionary."""
    ch = scanner.peek(1)
    if ch.isdigit():
        return parse_string(scanner)
    if ch == b"i":
        return parse_integer(scanner)
    if ch == b"l":
        return parse_list(scanner)
    if ch == b"d":
        return parse_dictionary(scanner)
    raise BencodeError(f"unexpected character {ch!r}")


def decode(contents: bytes | bytearray | memoryview | str) -> list[Any]:
    """Decode every top-level value in ``contents``."""
    scanner = Scanner(_to_bytes(contents))
    tokens: list[Any] = []
    while not scanner.ended():
        scanner.advance_whitespace()
        tokens.append(parse_token(scanner))
    return tokens


def _encode_key(key: Any) -> bytes:
    if isinstance(key, (str, bytes, bytearray, memoryview)):
        return _to_bytes(key)
    raise BencodeError(f"dictionary key must be a string, not {key!r}")


def encode(obj: Any) -> bytes:
    """Encode integers, strings, sequences and mappings as Bencode."""
    if isinstance(obj, bool):
        raise BencodeError(f"cannot serialize value {obj!r}")
    if isinstance(obj, (str, bytes, bytearray, memoryview)):
        data = _to_bytes(obj)
        return b"%d:%s" % (len(data), data)
    if isinstance(obj, int):
        return b"i%de" % obj
    if isinstance(obj, Mapping):
        entries = sorted((_encode_key(key), value) for key, value in obj.items())
        parts = [b"d"]
        for key, value in entries:
            parts.append(encode(key))
            try:
                parts.append(encode(value))
            except BencodeError as exc:
                raise BencodeError(f"error while encoding dict value: {exc}") from exc
        parts.append(b"e")
        return b"".join(parts)
    if isinstance(obj, (list, tuple)):
        parts = [b"l"]
        for item in obj:
            try:
                parts.append(encode(item))
            except BencodeError as exc:
                raise BencodeError(f"error while encoding list item: {exc}") from exc
        parts.append(b"e")
        return b"".join(parts)
    raise BencodeError(f"cannot serialize value {obj!r}")