"""Value kinds and the per-field codec behind the record reader/writer.

Every kind knows how to pull one value of its type out of a
:class:`bitops.BitReadBuffer` and push one into a
:class:`bitops.BitWriteBuffer`, given the field width in bits and its byte
order.

Byte order of fields whose width is not a multiple of 8: ``big`` is the bit
string read as is. ``little`` splits the bit string into bytes from the
front; the leading full bytes are the least significant ones and the
trailing partial byte (``bits % 8`` bits) holds the most significant bits.
A 14-bit field ``0010_1111 0010_11`` is therefore ``0x0B2F``.
"""

import operator

from bitio_errors import ArgumentError, DescriptorError, SlotOverflowError
from bitshift import left_shift, right_shift

LITTLE = "little"
BIG = "big"
ENDIANS = (LITTLE, BIG)

MAX_INT_BITS = 64


def _nbytes(bits: int) -> int:
    return (bits + 7) // 8


def pack_uint(value: int, bits: int, endian: str = LITTLE) -> bytearray:
    """Lay out ``value`` as a right-justified big-endian bit field.

    The result is what :meth:`bitops.BitWriteBuffer.write_bits` expects:
    ``ceil(bits / 8)`` bytes whose low ``bits`` bits are the wire bits.

    :param value: Value to encode; masked to ``bits`` bits (two's
        complement for negative values).
    :type value: int
    :param bits: Field width (1-64).
    :type bits: int
    :param endian: ``"little"`` or ``"big"``.
    :type endian: str
    :returns: Wire bits, right-justified.
    :rtype: bytearray
    """
    size = _nbytes(bits)
    value &= (1 << bits) - 1
    if endian == BIG:
        return bytearray(value.to_bytes(size, "big"))

    buf = bytearray(value.to_bytes(size, "little"))
    pad = (8 - bits % 8) % 8
    if pad:
        buf[-1] = (buf[-1] << pad) & 0xFF
        right_shift(buf, pad)
    return buf


def unpack_uint(buf, bits: int, endian: str = LITTLE) -> int:
    """Inverse of :func:`pack_uint`.

    :param buf: Wire bits right-justified in the last ``ceil(bits / 8)``
        bytes of ``buf``.
    :type buf: bytes
    :param bits: Field width (1-64).
    :type bits: int
    :param endian: ``"little"`` or ``"big"``.
    :type endian: str
    :returns: The unsigned value.
    :rtype: int
    """
    size = _nbytes(bits)
    sig = bytearray(buf[len(buf) - size:])
    if endian == BIG:
        return int.from_bytes(sig, "big") & ((1 << bits) - 1)

    pad = (8 - bits % 8) % 8
    if pad:
        left_shift(sig, pad)
        sig[-1] >>= pad
    return int.from_bytes(sig, "little")


class Kind:
    """Base class of the value kinds a record field can hold."""

    name = "kind"
    is_integer = False
    is_sequence = False

    def check(self, bits: int) -> None:
        """Reject a width this kind cannot be encoded with.

        :raises ArgumentError: If ``bits`` is unusable for this kind.
        """
        if bits < 1:
            raise ArgumentError(f"{self.name} width must be positive, got {bits}")

    def zero(self):
        """Value written when a slot holds ``None``."""
        return 0

    def read(self, reader, bits: int, endian: str = LITTLE, count=None):
        raise NotImplementedError

    def write(self, writer, value, bits: int, endian: str = LITTLE,
              count=None) -> int:
        raise NotImplementedError

    def __repr__(self) -> str:
        return self.name.upper()


class IntKind(Kind):
    """Fixed-width integer slot.

    ``width`` is the storage width of the slot, not of the wire field:
    decoded values are truncated to it, and signed kinds are reinterpreted
    as two's complement at that width.
    """

    is_integer = True

    def __init__(self, name: str, width: int, signed: bool):
        self.name = name
        self.width = width
        self.signed = signed

    def check(self, bits: int) -> None:
        super().check(bits)
        if bits > MAX_INT_BITS:
            raise ArgumentError(
                f"{self.name} width needs <= {MAX_INT_BITS} bits, got {bits}"
            )

    def cast(self, raw: int) -> int:
        raw &= (1 << self.width) - 1
        if self.signed and raw >> (self.width - 1):
            raw -= 1 << self.width
        return raw

    def largest(self, bits: int) -> int:
        """Largest value a ``bits`` wide field of this kind reads back as."""
        if self.signed and bits >= self.width:
            return (1 << (self.width - 1)) - 1
        return (1 << min(bits, self.width)) - 1

    def read(self, reader, bits, endian=LITTLE, count=None):
        self.check(bits)
        buf = bytearray(MAX_INT_BITS // 8)
        reader.read_bits(buf, bits)
        return self.cast(unpack_uint(buf, bits, endian))

    def write(self, writer, value, bits, endian=LITTLE, count=None):
        self.check(bits)
        if value is None:
            value = 0
        try:
            value = operator.index(value)
        except TypeError as exc:
            raise ArgumentError(
                f"{self.name} slot holds {type(value).__name__}, want int"
            ) from exc
        return writer.write_bits(pack_uint(value, bits, endian), bits)


class BoolKind(IntKind):
    """Boolean slot: any non-zero field value decodes as ``True``."""

    is_integer = False

    def __init__(self):
        super().__init__("bool", MAX_INT_BITS, False)

    def zero(self):
        return False

    def cast(self, raw: int) -> bool:
        return raw != 0

    def write(self, writer, value, bits, endian=LITTLE, count=None):
        return super().write(writer, 1 if value else 0, bits, endian)


class StringKind(Kind):
    """Fixed-length text slot, ``bits // 8`` bytes verbatim.

    Short values are zero-padded at the end on write; reads return every
    byte of the field, padding included.
    """

    name = "string"

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def check(self, bits):
        super().check(bits)
        if bits % 8:
            raise ArgumentError(
                f"string width needs to be a multiple of 8 bits, got {bits}"
            )

    def zero(self):
        return ""

    def read(self, reader, bits, endian=LITTLE, count=None):
        self.check(bits)
        buf = bytearray(bits // 8)
        reader.read_bytes(buf)
        return buf.decode(self.encoding, "surrogateescape")

    def write(self, writer, value, bits, endian=LITTLE, count=None):
        self.check(bits)
        if value is None:
            value = ""
        if isinstance(value, str):
            data = value.encode(self.encoding, "surrogateescape")
        elif isinstance(value, (bytes, bytearray, memoryview)):
            data = bytes(value)
        else:
            raise ArgumentError(
                f"{self.name} needs str or bytes, got {type(value).__name__}"
            )
        size = bits // 8
        if len(data) > size:
            raise SlotOverflowError(
                f"string of {len(data)} bytes exceeds field width of {size} bytes"
            )
        return writer.write_bytes(data.ljust(size, b"\x00")) * 8


class Sequence(Kind):
    """Homogeneous sequence of ``count`` elements of kind ``elem``.

    :ivar elem: Element kind; sequences cannot nest.
    :type elem: Kind
    :ivar factory: Callable turning the decoded element list into the slot
        value (``list`` by default, ``bytes`` for :data:`BYTES`).
    """

    is_sequence = True

    def __init__(self, elem: Kind, factory=list, name=None):
        if not isinstance(elem, Kind):
            raise DescriptorError(f"sequence element is not a kind: {elem!r}")
        if elem.is_sequence:
            raise DescriptorError("nested sequences are not supported")
        self.elem = elem
        self.factory = factory
        self.name = name or f"{elem.name}[]"

    def check(self, bits):
        self.elem.check(bits)

    def zero(self):
        return self.factory()

    @staticmethod
    def check_count(count) -> int:
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise ArgumentError(f"sequence needs a positive length, got {count!r}")
        return count

    def read(self, reader, bits, endian=LITTLE, count=None):
        count = self.check_count(count)
        self.check(bits)
        return self.factory(
            self.elem.read(reader, bits, endian) for _ in range(count)
        )

    def write(self, writer, value, bits, endian=LITTLE, count=None):
        count = self.check_count(count)
        self.check(bits)
        if value is None:
            value = self.zero()
        if len(value) != count:
            raise ArgumentError(
                f"sequence holds {len(value)} element(s), want {count}"
            )
        return sum(self.elem.write(writer, v, bits, endian) for v in value)


BOOL = BoolKind()
INT8 = IntKind("int8", 8, True)
INT16 = IntKind("int16", 16, True)
INT32 = IntKind("int32", 32, True)
INT64 = IntKind("int64", 64, True)
INT = INT64
UINT8 = IntKind("uint8", 8, False)
UINT16 = IntKind("uint16", 16, False)
UINT32 = IntKind("uint32", 32, False)
UINT64 = IntKind("uint64", 64, False)
UINT = UINT64
STRING = StringKind()
BYTES = Sequence(UINT8, factory=bytes, name="bytes")

KINDS = {
    k.name: k
    for k in (BOOL, INT8, INT16, INT32, INT64, UINT8, UINT16, UINT32,
              UINT64, STRING, BYTES)
}
KINDS["int"] = INT
KINDS["uint"] = UINT


def kind_by_name(name: str) -> Kind:
    """Look up a kind by its schema name; ``"T[]"`` builds a sequence.

    :param name: Kind name such as ``"uint8"``, ``"string"`` or ``"int[]"``.
    :type name: str
    :returns: The kind.
    :rtype: Kind
    :raises DescriptorError: If the name is unknown.
    """
    name = name.strip().lower()
    if name.endswith("[]"):
        return Sequence(kind_by_name(name[:-2]))
    try:
        return KINDS[name]
    except KeyError:
        raise DescriptorError(f"unsupported field type {name!r}") from None
