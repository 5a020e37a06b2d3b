"""A small BitTorrent library: bencode, torrent metainfo, HTTP trackers and peer messages."""

__version__ = "0.1.0"