"""Announcing to HTTP trackers and reading their peer lists."""

from __future__ import annotations

import urllib.error
import urllib.request
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from apricot import bencode

__all__ = [
    "TrackerEvent",
    "TrackerRequest",
    "TrackerResponse",
    "TrackerPeer",
    "TrackerError",
    "FailureReason",
    "build_announce_url",
    "parse_tracker_response",
    "get_peers",
    "compact_to_peer_list",
]

_COMPACT_PEER_SIZE = 6


class TrackerEvent(str, Enum):
    """An announcement that may accompany a tracker request."""

    STARTED = "started"
    COMPLETED = "completed"
    STOPPED = "stopped"
    EMPTY = "empty"


@dataclass
class TrackerRequest:
    """Parameters sent to a tracker's announce endpoint."""

    info_hash: bytes
    peer_id: str
    port: int
    uploaded: int = 0
    downloaded: int = 0
    left: int = 0
    ip: str = ""
    event: TrackerEvent | None = None
    compact: int = 0


@dataclass(frozen=True)
class TrackerPeer:
    """A peer announced by a tracker."""

    ip: str
    port: int
    peer_id: bytes = b""

    def __str__(self) -> str:
        host = f"[{self.ip}]" if ":" in self.ip else self.ip
        return f"{host}:{self.port}"


@dataclass
class TrackerResponse:
    """The tracker's reply: the re-request interval and the peers."""

    interval: int
    peers: list[TrackerPeer] = field(default_factory=list)


class TrackerError(Exception):
    """Raised when a tracker cannot be reached or answers with nonsense."""


class FailureReason(TrackerError):
    """Raised when the tracker answers with a ``failure reason``."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    return str(value)


def build_announce_url(announce_url: str, request: TrackerRequest) -> str:
    """Return the announce URL with the request's parameters in its query."""
    try:
        parts = urlsplit(announce_url)
    except ValueError as exc:
        raise TrackerError(f"could not parse url: {exc}") from exc

    if parts.scheme not in ("http", "https"):
        raise TrackerError(f"unsupported scheme: {parts.scheme}")

    query: dict[str, list[str | bytes]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        query.setdefault(key, []).append(value)

    query["info_hash"] = [bytes(request.info_hash)]
    query["peer_id"] = [request.peer_id]
    query["left"] = [str(request.left)]
    query["downloaded"] = [str(request.downloaded)]
    query["uploaded"] = [str(request.uploaded)]
    if request.ip:
        query["ip"] = [request.ip]
    query["port"] = [str(request.port)]
    query["compact"] = [str(request.compact)]

    encoded = urlencode([(key, value) for key in sorted(query) for value in query[key]])
    return urlunsplit(parts._replace(query=encoded))


def _parse_peer(entry: Any) -> TrackerPeer:
    if not isinstance(entry, dict):
        raise TrackerError(f"peer of unexpected type: {entry!r}")
    ip = entry.get(b"ip")
    port = entry.get(b"port")
    peer_id = entry.get(b"peer id")
    if not isinstance(ip, bytes) or not isinstance(port, int) or not isinstance(peer_id, bytes):
        raise TrackerError(f"invalid peer entry: {entry!r}")
    return TrackerPeer(ip=_text(ip), port=port, peer_id=peer_id)


def parse_tracker_response(body: bytes) -> TrackerResponse:
    """Parse the bencoded body of an announce response."""
    try:
        tokens = bencode.decode(body)
    except bencode.BencodeError as exc:
        raise TrackerError(f"could not decode response: {exc}") from exc

    response = tokens[0] if tokens else None
    if not isinstance(response, dict):
        raise TrackerError(f"unexpected response type: {response!r}")

    if b"failure reason" in response:
        raise FailureReason(_text(response[b"failure reason"]))

    peers = response.get(b"peers")
    if isinstance(peers, list):
        peer_list = [_parse_peer(entry) for entry in peers]
    elif isinstance(peers, bytes):
        peer_list = compact_to_peer_list(peers)
    else:
        raise TrackerError(f"unknown peer list kind: {peers!r}")

    interval = response.get(b"interval")
    if not isinstance(interval, int):
        raise TrackerError(f"invalid interval: {interval!r}")

    return TrackerResponse(interval=interval, peers=peer_list)


def get_peers(announce_url: str, request: TrackerRequest) -> TrackerResponse:
    """Announce to an HTTP(S) tracker and return the peers it reports."""
    url = build_announce_url(announce_url, request)
    try:
        with urllib.request.urlopen(url) as resp:
            if resp.status != 200:
                raise TrackerError(f"request to tracker returned {resp.status} {resp.reason}")
            body = resp.read()
    except urllib.error.HTTPError as exc:
        raise TrackerError(f"request to tracker returned {exc.code} {exc.reason}") from exc
    except (urllib.error.URLError, OSError) as exc:
        raise TrackerError(f"request to tracker failed: {exc}") from exc
    return parse_tracker_response(body)


def compact_to_peer_list(data: bytes) -> list[TrackerPeer]:
    """Expand a compact peer list: 4 bytes of IPv4 address and 2 of port per peer."""
    if len(data) % _COMPACT_PEER_SIZE:
        raise TrackerError(f"compact peer list has invalid length {len(data)}")
    return [
        TrackerPeer(
            ip=".".join(str(octet) for octet in data[start : start + 4]),
            port=int.from_bytes(data[start + 4 : start + 6], "big"),
        )
        for start in range(0, len(data), _COMPACT_PEER_SIZE)
    ]