import pytest

from apricot.util import (
    STEP_SIZE,
    UNITS,
    Version,
    human_bytes,
    make_peer_id,
    rand_int_string,
)


def test_human_bytes_one_kilobyte():
    assert human_bytes(1000) == "1.00 KB"


def test_human_bytes_small_values_stay_in_bytes():
    assert human_bytes(0) == "0.00 B"
    assert human_bytes(STEP_SIZE - 1).endswith(" B")


@pytest.mark.parametrize("power", range(1, 5))
def test_human_bytes_each_unit(power):
    text = human_bytes(STEP_SIZE**power)
    number, unit = text.split(" ")
    assert unit == UNITS[power]
    assert float(number) == 1.0


def test_human_bytes_uses_two_decimals():
    number, _ = human_bytes(1234567).split(" ")
    assert len(number.split(".")[1]) == 2


def test_human_bytes_unit_always_known():
    for size in (1, 999, 10_000, 5_000_000, 7 * STEP_SIZE**3):
        assert human_bytes(size).split(" ")[1] in UNITS


@pytest.mark.parametrize("n", [0, 1, 7, 20])
def test_rand_int_string_length_and_digits(n):
    text = rand_int_string(n)
    assert len(text) == n
    assert all(ch in "0123456789" for ch in text)


def test_version_str():
    assert str(Version(1, 2, 3)) == "1.2.3"


def test_make_peer_id_length_and_prefix():
    peer_id = make_peer_id(Version(0, 1, 0))
    assert len(peer_id) == 20
    assert peer_id.startswith("-PI0010-")
    assert peer_id[8:].isdigit()


def test_make_peer_id_pads_minor_version():
    peer_id = make_peer_id(Version(2, 5, 9))
    assert peer_id[:3] == "-PI"
    assert peer_id[3:7] == "2" + "05" + "9"
    assert peer_id[7] == "-"
    assert len(peer_id) == 20