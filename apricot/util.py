"""Small helpers for the command line client: sizes, versions and peer IDs."""

from __future__ import annotations

import random
from dataclasses import dataclass

__all__ = [
    "STEP_SIZE",
    "UNITS",
    "Version",
    "human_bytes",
    "rand_int_string",
    "make_peer_id",
]

STEP_SIZE = 1000
UNITS = ("B", "KB", "MB", "GB", "TB", "PB")
PEER_ID_LENGTH = 20


@dataclass(frozen=True)
class Version:
    """A MAJOR.MINOR.PATCH version number."""

    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def human_bytes(size: int) -> str:
    """Format ``size`` bytes in decimal units with two decimals, e.g. ``1.00 KB``."""
    number = float(size)
    unit = UNITS[0]
    for unit in UNITS:
        if number < STEP_SIZE:
            break
        number /= STEP_SIZE
    return f"{number:.2f} {unit}"


def rand_int_string(n: int) -> str:
    """Return a string of ``n`` random decimal digits."""
    return "".join(str(random.randrange(10)) for _ in range(n))


def make_peer_id(version: Version) -> str:
    """Return a 20-character Azureus-style peer ID for this client and ``version``."""
    ident = f"-PI{version.major}{version.minor:02d}{version.patch}-"
    return ident + rand_int_string(PEER_ID_LENGTH - len(ident))