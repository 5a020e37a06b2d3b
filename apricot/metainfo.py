"""The contents of a ``.torrent`` metainfo file."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from apricot import bencode

__all__ = [
    "MetainfoError",
    "InfoFile",
    "Info",
    "Torrent",
    "parse_torrent",
]

_HASH_SIZE = 20


class MetainfoError(ValueError):
    """Raised when a decoded metainfo dictionary is malformed."""


def _lookup(mapping: Mapping, key: str) -> Any:
    for candidate in (key.encode("utf-8"), key):
        if candidate in mapping:
            return mapping[candidate]
    raise MetainfoError(f"missing key {key!r}")


def _text(value: Any, what: str) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "surrogateescape")
    if isinstance(value, str):
        return value
    raise MetainfoError(f"{what} must be a string, not {value!r}")


def _raw(value: Any, what: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    raise MetainfoError(f"{what} must be a string, not {value!r}")


def _integer(value: Any, what: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise MetainfoError(f"{what} must be an integer, not {value!r}")


def _as_bytes(text: str) -> bytes:
    return text.encode("utf-8", "surrogateescape")


@dataclass(frozen=True)
class InfoFile:
    """A single file within a multiple file torrent."""

    length: int
    path: tuple[str, ...]


@dataclass
class Info:
    """The ``info`` dictionary of a torrent."""

    name: str
    piece_length: int
    pieces: bytes
    length: int = 0
    files: list[InfoFile] = field(default_factory=list)

    def piece_hashes(self) -> list[bytes]:
        """Return the 20-byte SHA1 hash of every piece; a trailing partial hash is dropped."""
        return [
            self.pieces[start : start + _HASH_SIZE]
            for start in range(0, len(self.pieces) - _HASH_SIZE + 1, _HASH_SIZE)
        ]

    def total_length(self) -> int:
        """Return the number of bytes in the torrent."""
        if not self.files:
            return self.length
        return sum(item.length for item in self.files)

    def bencodable(self) -> dict[str, Any]:
        """Return the info dictionary in a form that can be bencoded."""
        contents: dict[str, Any] = {
            "name": _as_bytes(self.name),
            "piece length": self.piece_length,
            "pieces": self.pieces,
        }
        if self.files:
            contents["files"] = [
                {"length": item.length, "path": [_as_bytes(part) for part in item.path]}
                for item in self.files
            ]
        else:
            contents["length"] = self.length
        return contents

    def hash(self) -> bytes:
        """Return the info hash: the SHA1 digest of the bencoded info dictionary."""
        try:
            encoded = bencode.encode(self.bencodable())
        except bencode.BencodeError as exc:
            raise MetainfoError(f"could not bencode data for info hash: {exc}") from exc
        return hashlib.sha1(encoded).digest()


@dataclass
class Torrent:
    """A parsed ``.torrent`` file."""

    info: Info
    announce_url: str


def _parse_files(items: list[Any]) -> list[InfoFile]:
    files = []
    for item in items:
        if not isinstance(item, Mapping):
            raise MetainfoError(f"invalid file item: {item!r}")
        raw_path = item.get(b"path", item.get("path"))
        if not isinstance(raw_path, list):
            raise MetainfoError(f"invalid path list: {raw_path!r}")
        path = tuple(_text(part, "path part") for part in raw_path)
        files.append(InfoFile(length=_integer(_lookup(item, "length"), "file length"), path=path))
    return files


def parse_torrent(contents: Mapping) -> Torrent:
    """Build a :class:`Torrent` from a decoded metainfo dictionary."""
    if not isinstance(contents, Mapping):
        raise MetainfoError("expected meta info dictionary")

    info = _lookup(contents, "info")
    if not isinstance(info, Mapping):
        raise MetainfoError(f"info must be a dictionary, not {info!r}")

    files: list[InfoFile] = []
    items = info.get(b"files", info.get("files"))
    if isinstance(items, list):
        try:
            files = _parse_files(items)
        except MetainfoError as exc:
            raise MetainfoError(f"could not parse files list: {exc}") from exc

    length = info.get(b"length", info.get("length"))
    if not isinstance(length, int) or isinstance(length, bool):
        length = 0

    return Torrent(
        info=Info(
            name=_text(_lookup(info, "name"), "name"),
            piece_length=_integer(_lookup(info, "piece length"), "piece length"),
            pieces=_raw(_lookup(info, "pieces"), "pieces"),
            length=length,
            files=files,
        ),
        announce_url=_text(_lookup(contents, "announce"), "announce"),
    )