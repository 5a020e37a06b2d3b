"""Command line client: inspect torrent files and ask trackers for peers."""

from __future__ import annotations

import sys
from pathlib import Path

from apricot import bencode
from apricot.metainfo import MetainfoError, Torrent, parse_torrent
from apricot.tracker import FailureReason, TrackerError, TrackerRequest, get_peers
from apricot.util import Version, human_bytes, make_peer_id

__all__ = [
    "NAME",
    "VERSION",
    "CliError",
    "open_torrent",
    "show_info",
    "show_pieces",
    "show_peers",
    "main",
]

NAME = "Apricot"
VERSION = Version(major=0, minor=1, patch=0)
PROG = "apricot"
LISTEN_PORT = 6881


class CliError(Exception):
    """Raised when a command cannot complete; its message is shown to the user."""


def open_torrent(filename: str) -> Torrent:
    """Read and parse the torrent file at ``filename``."""
    try:
        contents = Path(filename).read_bytes()
    except FileNotFoundError as exc:
        raise CliError(f"The file {filename!r} does not exist.") from exc
    except OSError as exc:
        raise CliError(str(exc)) from exc

    try:
        tokens = bencode.decode(contents)
    except bencode.BencodeError as exc:
        raise CliError(f"failed to decode torrent file: {exc}") from exc

    if not tokens or not isinstance(tokens[0], dict):
        raise CliError("failed to read torrent file: expected meta info dictionary.")

    try:
        return parse_torrent(tokens[0])
    except MetainfoError as exc:
        raise CliError(f"failed to read torrent file: {exc}") from exc


def _info_hash(torrent: Torrent, what: str) -> bytes:
    try:
        return torrent.info.hash()
    except MetainfoError as exc:
        raise CliError(f"{what}: {exc}") from exc


def show_info(filename: str) -> None:
    """Print a summary of the torrent file."""
    torrent = open_torrent(filename)
    info = torrent.info

    print("announce url:", torrent.announce_url)
    if info.files:
        print("dirname:", info.name)
        print(f"files [{len(info.files)}]:")
        for item in info.files:
            print(f"  {'/'.join(item.path)} [{human_bytes(item.length)}]")
        print("total length:", human_bytes(info.total_length()))
    else:
        print("filename:", info.name)
        print("file length:", human_bytes(info.length))

    print("piece length:", human_bytes(info.piece_length))

    hashes = info.piece_hashes()
    print(f"pieces [{len(hashes)}]: ")
    for piece in hashes[:2]:
        print(f"  {piece.hex()}")
    if len(hashes) > 3:
        print("  (...)")

    print(f"info hash: {_info_hash(torrent, 'could not get info hash').hex()}")


def show_pieces(filename: str) -> None:
    """Print the hex SHA1 hash of every piece, one per line."""
    torrent = open_torrent(filename)
    for piece in torrent.info.piece_hashes():
        print(piece.hex())


def show_peers(filename: str) -> None:
    """Announce to the torrent's tracker and print the peers it returns."""
    torrent = open_torrent(filename)
    info_hash = _info_hash(torrent, "failed to generate info hash")

    request = TrackerRequest(
        info_hash=info_hash,
        peer_id=make_peer_id(VERSION),
        port=LISTEN_PORT,
        uploaded=0,
        downloaded=0,
        left=torrent.info.total_length(),
        compact=1,
    )
    try:
        response = get_peers(torrent.announce_url, request)
    except FailureReason as exc:
        raise CliError(f"tracker returned error: {exc.message}") from exc
    except TrackerError as exc:
        raise CliError(f"could not get peers: {exc}") from exc

    print(f"request interval: {response.interval} seconds")
    if not response.peers:
        print("no peers")
        return

    for number, peer in enumerate(response.peers, start=1):
        print("peer", number)
        print("  ip:     ", peer.ip)
        print("  port:   ", peer.port)
        if peer.peer_id:
            print(f"  peer id: {bytes(peer.peer_id).hex()}")


_COMMANDS = {
    "info": show_info,
    "pieces": show_pieces,
    "peers": show_peers,
}


def main(argv: list[str] | None = None) -> int:
    """Run the command line client and return its exit status."""
    args = list(sys.argv[1:] if argv is None else argv)

    if not args:
        print(f"{NAME} {VERSION}")
        print(f"usage: {PROG} {{info,peers,pieces}} <options>")
        return 1

    command = args[0]
    handler = _COMMANDS.get(command)
    if handler is None:
        print(f"invalid subcommand {command!r}")
        print("subcommands: info, peers, pieces")
        return 1

    if len(args) < 2:
        print(f"usage: {PROG} {command} <filename>", file=sys.stderr)
        return 1

    try:
        handler(args[1])
    except CliError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())