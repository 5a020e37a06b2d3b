"""The TCP peer wire protocol."""

from __future__ import annotations

import socket
import struct
from typing import BinaryIO, Protocol

from apricot.message import (
    BitField,
    Block,
    Handshake,
    Message,
    MessageId,
    Request,
)
from apricot.tracker import TrackerPeer

__all__ = [
    "PeerError",
    "read_exact",
    "decode_message",
    "encode_message",
    "TCPClient",
    "connect_peer",
]

_STATE_MESSAGES = frozenset(
    {
        MessageId.CHOKE,
        MessageId.UNCHOKE,
        MessageId.INTERESTED,
        MessageId.NOT_INTERESTED,
    }
)
_KEEP_ALIVE = bytes(4)


class PeerError(Exception):
    """Raised when talking to a peer fails."""


class _Reader(Protocol):
    def read(self, n: int) -> bytes: ...


def read_exact(n: int, reader: _Reader) -> bytes:
    """Read exactly ``n`` bytes from ``reader``.

    Raises :class:`EOFError` if the stream ends before ``n`` bytes are read.
    """
    data = bytearray()
    while len(data) < n:
        chunk = reader.read(n - len(data))
        if not chunk:
            break
        data += chunk
    if len(data) < n:
        if not data:
            raise EOFError("end of stream")
        raise EOFError(f"unexpected end of stream: read {len(data)} of {n} bytes")
    return bytes(data)


def _require(body: bytes, size: int, what: str) -> None:
    if len(body) < size:
        raise PeerError(f"{what} message too short: {len(body)} bytes")


def decode_message(payload: bytes, pieces: int) -> Message:
    """Decode a message body (everything after the length prefix)."""
    if not payload:
        return Message(keep_alive=True)

    raw_id, body = payload[0], bytes(payload[1:])
    try:
        message_id = MessageId(raw_id)
    except ValueError:
        return Message(id=raw_id, generic=True, contents=body)

    if message_id in _STATE_MESSAGES:
        return Message(id=message_id)
    if message_id is MessageId.HAVE:
        _require(body, 4, "have")
        (index,) = struct.unpack_from(">I", body)
        return Message(id=message_id, piece_index=index)
    if message_id is MessageId.BITFIELD:
        return Message(id=message_id, bitfield=BitField(body, pieces))
    if message_id in (MessageId.REQUEST, MessageId.CANCEL):
        _require(body, 12, message_id.name.lower())
        index, begin, length = struct.unpack_from(">III", body)
        return Message(id=message_id, request=Request(index, begin, length))
    # Only PIECE is left.
    _require(body, 8, "piece")
    index, begin = struct.unpack_from(">II", body)
    return Message(id=message_id, block=Block(index, begin, body[8:]))


def encode_message(message: Message) -> bytes:
    """Encode ``message`` with its length prefix, ready to be sent."""
    if message.keep_alive:
        return _KEEP_ALIVE
    try:
        if message.id in _STATE_MESSAGES:
            return struct.pack(">IB", 1, message.id)
        if message.id == MessageId.REQUEST:
            request = message.request
            return struct.pack(
                ">IBIII", 13, message.id, request.index, request.begin, request.length
            )
        if message.id == MessageId.HAVE:
            return struct.pack(">IBI", 5, message.id, message.piece_index)
    except struct.error as exc:
        raise PeerError(f"could not encode message {message!r}: {exc}") from exc
    raise PeerError(f"no handler for message {message!r}")


class TCPClient:
    """A connection to a peer over which the handshake has been completed."""

    def __init__(
        self,
        connection: socket.socket,
        info_hash: bytes,
        peer: TrackerPeer,
        peer_id: bytes | str,
        pieces: int,
        reader: BinaryIO | None = None,
    ) -> None:
        self.connection = connection
        self.info_hash = info_hash
        self.peer = peer
        self.peer_id = peer_id
        self.pieces = pieces
        # A connection starts choked and not interested.
        self.choked = True
        self.bitfield = BitField()
        self._reader = reader if reader is not None else connection.makefile("rb")

    def __enter__(self) -> TCPClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def read_message(self) -> Message:
        """Wait for the next message from the peer."""
        try:
            prefix = read_exact(4, self._reader)
        except (EOFError, OSError) as exc:
            raise PeerError(f"could not read message length: {exc}") from exc

        (length,) = struct.unpack(">I", prefix)
        if length == 0:
            return Message(keep_alive=True)

        try:
            payload = read_exact(length, self._reader)
        except (EOFError, OSError) as exc:
            raise PeerError(f"could not read message: {exc}") from exc
        return decode_message(payload, self.pieces)

    def send_message(self, message: Message) -> None:
        """Send ``message`` to the peer."""
        data = encode_message(message)
        try:
            self.connection.sendall(data)
        except OSError as exc:
            kind = "keep alive" if message.keep_alive else f"{MessageId(message.id).name.lower()} message"
            raise PeerError(f"could not send {kind}: {exc}") from exc

    def close(self) -> None:
        """Close the connection."""
        self._reader.close()
        self.connection.close()


def _handshake(
    sock: socket.socket,
    reader: BinaryIO,
    info_hash: bytes,
    peer: TrackerPeer,
    peer_id: bytes | str,
) -> None:
    handshake = Handshake(info_hash=info_hash, peer_id=peer_id)
    try:
        sock.sendall(handshake.serialized())
    except OSError as exc:
        raise PeerError(f"could not send handshake message: {exc}") from exc

    def step(n: int, what: str) -> bytes:
        try:
            return read_exact(n, reader)
        except (EOFError, OSError) as exc:
            raise PeerError(f"could not read {what}: {exc}") from exc

    protocol_length = step(1, "peer handshake")[0]
    step(protocol_length, "peer handshake protocol")
    step(8, "reserved bytes")

    received_hash = step(20, "info hash")
    if received_hash != bytes(info_hash):
        raise PeerError("ending due to info hash mismatch")

    received_id = step(20, "peer id")
    if peer.peer_id and received_id != bytes(peer.peer_id):
        raise PeerError("ending due to tracker peer id mismatch")


def connect_peer(
    info_hash: bytes, peer: TrackerPeer, peer_id: bytes | str, pieces: int
) -> TCPClient:
    """Connect to ``peer`` over TCP and exchange handshakes.

    ``pieces`` is the number of pieces in the torrent, used to size bit fields.
    """
    try:
        sock = socket.create_connection((peer.ip, peer.port))
    except OSError as exc:
        raise PeerError(f"could not connect to {peer}: {exc}") from exc

    reader = sock.makefile("rb")
    try:
        _handshake(sock, reader, info_hash, peer, peer_id)
    except BaseException:
        reader.close()
        sock.close()
        raise
    return TCPClient(sock, info_hash, peer, peer_id, pieces, reader=reader)