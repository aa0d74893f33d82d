import io

import pytest

from bitio_errors import ArgumentError, DescriptorError, SlotOverflowError
from bitops import BitReadBuffer, BitWriteBuffer
from fieldcodec import (
    BIG,
    BOOL,
    BYTES,
    INT,
    INT8,
    LITTLE,
    STRING,
    UINT,
    UINT8,
    UINT16,
    Sequence,
    kind_by_name,
    pack_uint,
    unpack_uint,
)


def _encode(kind, value, bits, endian=LITTLE, count=None) -> bytes:
    sink = io.BytesIO()
    bw = BitWriteBuffer(sink)
    kind.write(bw, value, bits, endian, count)
    bw.flush()
    return sink.getvalue()


def _decode(kind, data, bits, endian=LITTLE, count=None):
    return kind.read(BitReadBuffer(io.BytesIO(data)), bits, endian, count)


def test_little_endian_sub_byte_layout():
    # wire bits 0010_1111 0010_11: low byte first, partial high byte last
    assert pack_uint(0x0B2F, 14, LITTLE) == bytearray([0x0B, 0xCB])
    assert unpack_uint(bytearray([0x0B, 0xCB]), 14, LITTLE) == 0x0B2F


def test_byte_aligned_layouts_are_standard():
    assert bytes(pack_uint(0x01020304, 32, BIG)) == b"\x01\x02\x03\x04"
    assert bytes(pack_uint(0x01020304, 32, LITTLE)) == b"\x04\x03\x02\x01"
    assert _encode(UINT, 0x0A01, 16, BIG) == b"\x0a\x01"
    assert _decode(UINT, b"\x0a\x01", 16, LITTLE) == 0x010A


@pytest.mark.parametrize("endian", [LITTLE, BIG])
@pytest.mark.parametrize("bits", [1, 4, 8, 12, 14, 24, 31, 57, 64])
def test_endian_round_trip(endian, bits):
    value = 0xD6E8FEB86659FD93 & ((1 << bits) - 1)
    data = _encode(UINT, value, bits, endian)
    assert len(data) == (bits + 7) // 8
    assert _decode(UINT, data, bits, endian) == value


def test_signed_and_unsigned_bytes_back_to_back():
    sink = io.BytesIO()
    bw = BitWriteBuffer(sink)
    INT8.write(bw, -128, 8)
    UINT8.write(bw, 128, 8)
    bw.flush()
    assert sink.getvalue() == b"\x80\x80"

    br = BitReadBuffer(io.BytesIO(sink.getvalue()))
    assert INT8.read(br, 8) == -128
    assert UINT8.read(br, 8) == 128


def test_signedness_follows_slot_width():
    assert _decode(INT, b"\xc0", 4) == 12
    assert _decode(INT8, b"\xff", 8) == -1
    assert _decode(INT, b"\xff\xff\xff\xff\xff\xff\xff\xff", 64) == -1
    assert _decode(UINT16, b"\xff\xff\xff", 24, BIG) == 0xFFFF


def test_negative_value_is_masked_to_width():
    assert _encode(INT, -1, 12, BIG) == b"\xff\xf0"
    assert _decode(INT, b"\xff\xf0", 12, BIG) == 0xFFF


def test_int_width_limit():
    with pytest.raises(ArgumentError):
        _encode(UINT, 1, 65)
    with pytest.raises(ArgumentError):
        _decode(INT, bytes(9), 65)


def test_int_slot_rejects_non_integers():
    with pytest.raises(ArgumentError):
        _encode(INT, "12", 8)


def test_bool_round_trip():
    data = _encode(BOOL, True, 3)
    assert data == b"\x20"
    assert _decode(BOOL, data, 3) is True
    assert _decode(BOOL, b"\x00", 3) is False
    assert _decode(BOOL, b"\x40", 2, BIG) is True


def test_string_is_fixed_width_and_zero_padded():
    assert _encode(STRING, "ab", 32) == b"ab\x00\x00"
    assert _decode(STRING, b"ab\x00\x00", 32) == "ab\x00\x00"
    assert _decode(STRING, b"abc", 24) == "abc"


def test_string_width_and_overflow_checks():
    with pytest.raises(SlotOverflowError):
        _encode(STRING, "abcde", 32)
    with pytest.raises(ArgumentError):
        _encode(STRING, "a", 12)


@pytest.mark.parametrize("value", [3, 1.5, ["a"]])
def test_string_rejects_non_text(value):
    with pytest.raises(ArgumentError):
        _encode(STRING, value, 32)
    assert _encode(STRING, bytearray(b"ab"), 32) == b"ab\x00\x00"
    assert _encode(STRING, memoryview(b"abcd"), 32) == b"abcd"


def test_string_off_byte_boundary():
    br = BitReadBuffer(io.BytesIO(b"\x16\x11"))
    assert INT.read(br, 4) == 1
    assert STRING.read(br, 8) == "a"
    assert INT.read(br, 4) == 1


def test_string_keeps_arbitrary_bytes():
    raw = b"\xff\xfe"
    value = _decode(STRING, raw, 16)
    assert _encode(STRING, value, 16) == raw


def test_sequence_read_and_write():
    assert _decode(Sequence(INT), b"\xca", 4, count=2) == [0x0C, 0x0A]
    assert _decode(BYTES, b"\xca", 4, count=2) == b"\x0c\x0a"
    assert _encode(Sequence(UINT8), [0x0C, 0x0A], 4, count=2) == b"\xca"
    assert _encode(BYTES, b"\x01\x02\x03", 8, count=3) == b"\x01\x02\x03"


def test_sequence_length_checks():
    with pytest.raises(ArgumentError):
        _decode(BYTES, b"\x00", 8, count=0)
    with pytest.raises(ArgumentError):
        _decode(BYTES, b"\x00", 8, count=None)
    with pytest.raises(ArgumentError):
        _encode(BYTES, b"\x01", 8, count=2)


def test_nested_sequences_are_rejected():
    with pytest.raises(DescriptorError):
        Sequence(Sequence(UINT8))
    with pytest.raises(DescriptorError):
        kind_by_name("bytes[]")


def test_kind_by_name():
    assert kind_by_name("uint8") is UINT8
    assert kind_by_name(" INT ") is INT
    assert kind_by_name("bytes") is BYTES
    seq = kind_by_name("int8[]")
    assert seq.is_sequence and seq.elem is INT8
    with pytest.raises(DescriptorError):
        kind_by_name("float")
