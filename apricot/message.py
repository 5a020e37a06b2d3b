"""Peer wire messages and the peer handshake."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum

__all__ = [
    "PROTOCOL",
    "MessageId",
    "BitField",
    "Request",
    "Block",
    "Message",
    "Handshake",
]

PROTOCOL = "BitTorrent protocol"


class MessageId(IntEnum):
    """Identifiers of the peer messages."""

    CHOKE = 0
    UNCHOKE = 1
    INTERESTED = 2
    NOT_INTERESTED = 3
    HAVE = 4
    BITFIELD = 5
    REQUEST = 6
    PIECE = 7
    CANCEL = 8


@dataclass
class BitField:
    """The pieces a peer has: one bit per piece, most significant bit first."""

    bits: bytearray = field(default_factory=bytearray)
    length: int = 0

    def __post_init__(self) -> None:
        self.bits = bytearray(self.bits)

    def has_piece(self, index: int) -> bool:
        """Report whether the piece at ``index`` is marked as present."""
        if not 0 <= index < self.length:
            return False
        byte_index, offset = divmod(index, 8)
        if byte_index >= len(self.bits):
            return False
        return bool(self.bits[byte_index] & (0x80 >> offset))

    def set_piece(self, index: int) -> None:
        """Mark the piece at ``index`` as present; out-of-range indices are ignored."""
        if not 0 <= index < self.length:
            return
        byte_index, offset = divmod(index, 8)
        self.bits[byte_index] |= 0x80 >> offset


@dataclass(frozen=True)
class Request:
    """The body of a request or cancel message."""

    index: int = 0
    begin: int = 0
    length: int = 0


@dataclass(frozen=True)
class Block:
    """The body of a piece message."""

    index: int = 0
    begin: int = 0
    block: bytes = b""


@dataclass
class Message:
    """A peer message.

    When ``keep_alive`` is set every other field is meaningless. When
    ``generic`` is set only ``id`` and ``contents`` carry information.
    """

    id: int = MessageId.CHOKE
    keep_alive: bool = False
    generic: bool = False
    contents: bytes = b""
    piece_index: int = 0
    bitfield: BitField = field(default_factory=BitField)
    request: Request = field(default_factory=Request)
    block: Block = field(default_factory=Block)


def _raw(value: bytes | bytearray | str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8", "surrogateescape")
    return bytes(value)


@dataclass(frozen=True)
class Handshake:
    """The handshake that opens a peer connection."""

    info_hash: bytes
    peer_id: bytes | str
    protocol: str = PROTOCOL
    reserved: bytes = bytes(8)

    def serialized(self) -> bytes:
        """Return the handshake as it is sent on the wire."""
        protocol = self.protocol.encode("utf-8")
        if len(protocol) > 255:
            raise ValueError(f"protocol name is too long: {len(protocol)} bytes")
        return b"".join(
            (
                bytes([len(protocol)]),
                protocol,
                _raw(self.reserved),
                _raw(self.info_hash),
                _raw(self.peer_id),
            )
        )