# apricot

A small BitTorrent library with a command-line tool for inspecting
`.torrent` files and asking trackers for peers.

It has no dependencies outside the Python standard library.

## Installation

```
pip install .
```

## Command line

```
apricot info <filename>     # announce URL, files, lengths, piece hashes and info hash
apricot pieces <filename>   # every SHA1 piece hash, one per line, in hex
apricot peers <filename>    # announce to the tracker over HTTP(S) and list the peers
```

Run `apricot` with no arguments to see its version and usage. The command
exits with status 1 on a bad subcommand, a missing filename, or an error
(an unreadable or malformed torrent file, a tracker that cannot be reached
or that sends a failure reason); the error message goes to standard error.

Sizes are shown in decimal units with two decimals, for example `1.00 KB`.
`apricot peers` announces on port 6881, asks for a compact peer list and
uses a random peer ID of the form `-PI0010-` followed by digits.

## Library

- `apricot.bencode`: `decode(contents)` returns a list of every top-level
  value in its input; strings and dictionary keys come back as `bytes`,
  integers must fit in a signed 64-bit value, and whitespace between tokens
  is skipped. `encode(obj)` accepts integers, `str`/`bytes`, lists, tuples
  and mappings (keys are sorted) and returns `bytes`. Errors raise
  `BencodeError`. The lower-level `Scanner` and `parse_*` functions are
  also available.
- `apricot.metainfo`: `parse_torrent(contents)` turns a decoded metainfo
  dictionary into a `Torrent` with an `announce_url` and an `Info`.
  `Info` provides `piece_hashes()`, `total_length()`, `bencodable()` and
  `hash()`, which returns the 20-byte info hash. Malformed input raises
  `MetainfoError`.
- `apricot.tracker`: `get_peers(announce_url, request)` sends a
  `TrackerRequest` to an HTTP(S) announce URL and returns a
  `TrackerResponse` with an `interval` and a list of `TrackerPeer`.
  Both dictionary and compact peer lists are understood
  (`compact_to_peer_list`). A tracker's failure reason raises
  `FailureReason`; other problems raise `TrackerError`.
  `build_announce_url` and `parse_tracker_response` expose the two halves
  of the exchange.
- `apricot.message`: `MessageId`, `Message`, `BitField` (`has_piece`,
  `set_piece`), `Request`, `Block` and `Handshake` (`serialized()`).
- `apricot.peer`: `connect_peer(info_hash, peer, peer_id, pieces)` opens a
  TCP connection, exchanges handshakes and returns a `TCPClient` with
  `read_message()`, `send_message()` and `close()`; it is also a context
  manager. `decode_message` and `encode_message` work on raw payloads, and
  `read_exact` reads an exact number of bytes from a stream. Failures raise
  `PeerError`.

```python
from apricot import bencode
from apricot.metainfo import parse_torrent

with open("example.torrent", "rb") as fh:
    metainfo = bencode.decode(fh.read())[0]

torrent = parse_torrent(metainfo)
print(torrent.announce_url)
print(torrent.info.total_length())
print(torrent.info.hash().hex())
```

## What it does not do

- It does not download or upload torrent contents: there is no piece
  scheduling, no piece verification against hashes and no writing of files.
- It does not accept incoming peer connections.
- `encode_message` can only send keep-alive, choke, unchoke, interested,
  not interested, have and request messages; other messages can be read
  but not sent.
- Only HTTP and HTTPS trackers are supported; UDP and WebSocket trackers
  are not.

## Tests

```
pip install .[test]
pytest
```