import hashlib
import http.server
import threading

import pytest

from apricot import bencode
from apricot.cli import (
    NAME,
    VERSION,
    CliError,
    main,
    open_torrent,
    show_info,
    show_peers,
    show_pieces,
)

PIECES = [hashlib.sha1(bytes([n])).digest() for n in range(3)]
ANNOUNCE = "http://tracker.example.com/announce"


def _write(path, announce=ANNOUNCE, files=None, pieces=PIECES):
    info = {
        "name": "sample.bin",
        "piece length": 16384,
        "pieces": b"".join(pieces),
    }
    if files is None:
        info["length"] = 40000
    else:
        info["files"] = files
    path.write_bytes(bencode.encode({"announce": announce, "info": info}))
    return str(path)


@pytest.fixture
def single(tmp_path):
    return _write(tmp_path / "single.torrent")


@pytest.fixture
def multi(tmp_path):
    files = [
        {"length": 1000, "path": ["dir", "a.txt"]},
        {"length": 2500, "path": ["b.txt"]},
    ]
    return _write(tmp_path / "multi.torrent", files=files)


def test_open_torrent_reads_fields(single):
    torrent = open_torrent(single)
    assert torrent.announce_url == ANNOUNCE
    assert torrent.info.name == "sample.bin"
    assert torrent.info.piece_hashes() == PIECES


def test_open_torrent_missing_file(tmp_path):
    with pytest.raises(CliError, match="does not exist"):
        open_torrent(str(tmp_path / "nope.torrent"))


def test_open_torrent_bad_bencode(tmp_path):
    path = tmp_path / "bad.torrent"
    path.write_bytes(b"x")
    with pytest.raises(CliError, match="failed to decode torrent file"):
        open_torrent(str(path))


def test_open_torrent_not_a_dictionary(tmp_path):
    path = tmp_path / "list.torrent"
    path.write_bytes(bencode.encode([1, 2]))
    with pytest.raises(CliError, match="expected meta info dictionary"):
        open_torrent(str(path))


def test_open_torrent_missing_keys(tmp_path):
    path = tmp_path / "partial.torrent"
    path.write_bytes(bencode.encode({"info": {"name": "x"}}))
    with pytest.raises(CliError, match="failed to read torrent file"):
        open_torrent(str(path))


def test_show_info_single_file(single, capsys):
    show_info(single)
    out = capsys.readouterr().out.splitlines()
    assert out[0] == f"announce url: {ANNOUNCE}"
    assert "filename: sample.bin" in out
    assert "pieces [3]: " in out
    assert f"  {PIECES[0].hex()}" in out
    assert f"  {PIECES[1].hex()}" in out
    assert f"  {PIECES[2].hex()}" not in out
    assert "  (...)" not in out
    assert out[-1] == f"info hash: {open_torrent(single).info.hash().hex()}"


def test_show_info_multiple_files(multi, capsys):
    show_info(multi)
    out = capsys.readouterr().out.splitlines()
    assert "dirname: sample.bin" in out
    assert "files [2]:" in out
    assert any(line.startswith("  dir/a.txt [") for line in out)
    assert any(line.startswith("  b.txt [") for line in out)
    assert any(line.startswith("total length:") for line in out)


def test_show_info_many_pieces_shows_ellipsis(tmp_path, capsys):
    pieces = [hashlib.sha1(bytes([n])).digest() for n in range(5)]
    show_info(_write(tmp_path / "many.torrent", pieces=pieces))
    out = capsys.readouterr().out.splitlines()
    assert "pieces [5]: " in out
    assert "  (...)" in out


def test_show_pieces(single, capsys):
    show_pieces(single)
    assert capsys.readouterr().out.splitlines() == [p.hex() for p in PIECES]


def test_main_without_arguments(capsys):
    assert main([]) == 1
    out = capsys.readouterr().out
    assert f"{NAME} {VERSION}" in out
    assert "usage:" in out


def test_main_invalid_subcommand(capsys):
    assert main(["frobnicate"]) == 1
    assert "invalid subcommand 'frobnicate'" in capsys.readouterr().out


@pytest.mark.parametrize("command", ["info", "pieces", "peers"])
def test_main_missing_filename(command, capsys):
    assert main([command]) == 1
    assert f"{command} <filename>" in capsys.readouterr().err


def test_main_missing_file_reports_error(tmp_path, capsys):
    assert main(["info", str(tmp_path / "gone.torrent")]) == 1
    assert "does not exist" in capsys.readouterr().err


def test_main_pieces_succeeds(single, capsys):
    assert main(["pieces", single]) == 0
    assert capsys.readouterr().out.splitlines() == [p.hex() for p in PIECES]


def _serve(body):
    class Handler(http.server.BaseHTTPRequestHandler):
        def do_GET(self):
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = http.server.HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server


@pytest.fixture
def no_proxy(monkeypatch):
    for name in ("http_proxy", "HTTP_PROXY", "https_proxy", "HTTPS_PROXY", "all_proxy", "ALL_PROXY"):
        monkeypatch.delenv(name, raising=False)


def _tracker_torrent(tmp_path, body):
    server = _serve(body)
    announce = f"http://127.0.0.1:{server.server_address[1]}/announce"
    return server, _write(tmp_path / "tracked.torrent", announce=announce)


def test_show_peers_compact(tmp_path, capsys, no_proxy):
    peers = bytes([10, 0, 0, 1]) + (6881).to_bytes(2, "big")
    server, path = _tracker_torrent(tmp_path, bencode.encode({"interval": 1800, "peers": peers}))
    try:
        show_peers(path)
    finally:
        server.shutdown()
        server.server_close()
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "request interval: 1800 seconds"
    assert "peer 1" in out
    assert "  ip:      10.0.0.1" in out
    assert "  port:    6881" in out


def test_show_peers_empty(tmp_path, capsys, no_proxy):
    server, path = _tracker_torrent(tmp_path, bencode.encode({"interval": 60, "peers": b""}))
    try:
        show_peers(path)
    finally:
        server.shutdown()
        server.server_close()
    assert capsys.readouterr().out.splitlines()[-1] == "no peers"


def test_show_peers_failure_reason(tmp_path, no_proxy):
    server, path = _tracker_torrent(tmp_path, bencode.encode({"failure reason": "denied"}))
    try:
        with pytest.raises(CliError, match="tracker returned error: denied"):
            show_peers(path)
    finally:
        server.shutdown()
        server.server_close()


def test_show_peers_unsupported_scheme(tmp_path):
    path = _write(tmp_path / "udp.torrent", announce="udp://tracker.example.com:80")
    with pytest.raises(CliError, match="could not get peers"):
        show_peers(path)