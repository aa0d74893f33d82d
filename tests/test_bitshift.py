import pytest

from bitio_errors import ArgumentError
from bitshift import left_shift, right_shift


def _as_int(p):
    return int.from_bytes(p, "big")


def test_left_shift_sub_byte_carries_across_bytes():
    p = bytearray([0x12, 0x34])
    left_shift(p, 4)
    assert p == bytearray([0x23, 0x40])


def test_right_shift_sub_byte_carries_across_bytes():
    p = bytearray([0x12, 0x34])
    right_shift(p, 4)
    assert p == bytearray([0x01, 0x23])


@pytest.mark.parametrize(
    "bits, left, right",
    [
        (8, [0x34, 0x56, 0x00], [0x00, 0x12, 0x34]),
        (12, [0x45, 0x60, 0x00], [0x00, 0x01, 0x23]),
        (16, [0x56, 0x00, 0x00], [0x00, 0x00, 0x12]),
        (24, [0x00, 0x00, 0x00], [0x00, 0x00, 0x00]),
        (40, [0x00, 0x00, 0x00], [0x00, 0x00, 0x00]),
    ],
)
def test_shift_by_whole_bytes_and_beyond(bits, left, right):
    p = bytearray([0x12, 0x34, 0x56])
    left_shift(p, bits)
    assert p == bytearray(left)

    p = bytearray([0x12, 0x34, 0x56])
    right_shift(p, bits)
    assert p == bytearray(right)


@pytest.mark.parametrize("bits", [1, 3, 7, 9, 15, 17, 23])
def test_shifts_match_integer_arithmetic(bits):
    src = bytes([0xA5, 0x3C, 0xF0, 0x0F])
    mask = (1 << 32) - 1

    p = bytearray(src)
    left_shift(p, bits)
    assert _as_int(p) == (_as_int(src) << bits) & mask

    p = bytearray(src)
    right_shift(p, bits)
    assert _as_int(p) == _as_int(src) >> bits


def test_zero_shift_and_empty_buffer_are_noops():
    p = bytearray([0xAB])
    left_shift(p, 0)
    right_shift(p, 0)
    assert p == bytearray([0xAB])

    empty = bytearray()
    left_shift(empty, 5)
    right_shift(empty, 5)
    assert empty == bytearray()


def test_shift_keeps_length():
    p = bytearray([0xFF, 0xFF])
    left_shift(p, 3)
    assert len(p) == 2
    assert p == bytearray([0xFF, 0xF8])


def test_negative_shift_or_missing_buffer_raises():
    with pytest.raises(ArgumentError):
        left_shift(bytearray(1), -1)
    with pytest.raises(ArgumentError):
        right_shift(None, 1)
