import io

from bitio_errors import (
    ArgumentError,
    BitIOError,
    ShortReadError,
    ShortWriteError,
    StreamError,
)
from bitshift import left_shift, right_shift


def _nbytes(nbits: int) -> int:
    return (nbits + 7) // 8


class BitReadBuffer:
    """Bit-granular reader over a byte source.

    The bit stream seen by callers is the valid bits of the carry register
    (most significant first) followed by the bytes still held by the source.
    Bits come back MSB-first and right-justified.

    :ivar source: Byte source; any object with ``read(k) -> bytes``.
    :ivar carry: One-byte carry register, valid bits left-justified.
    :type carry: int
    :ivar valid: Number of valid bits currently held in ``carry`` (0-8).
    :type valid: int
    """

    def __init__(self, source):
        """Create a bit reader over ``source``.

        :param source: Byte source to pull bytes from on demand.
        :returns: None
        :rtype: None
        :raises ArgumentError: If ``source`` is ``None``.
        """
        if source is None:
            raise ArgumentError("byte source is None")
        self.source = source
        self.carry = 0
        self.valid = 0

    @property
    def buffered(self) -> int:
        """Number of bits already pulled from the source but not yet read."""
        return self.valid

    def _fetch(self, nbytes: int) -> bytes:
        """Pull exactly ``nbytes`` bytes from the source.

        :param nbytes: Number of bytes to read.
        :type nbytes: int
        :returns: The bytes read.
        :rtype: bytes
        :raises ShortReadError: If the source returns fewer bytes.
        :raises StreamError: If the source raises ``OSError``.
        """
        try:
            data = self.source.read(nbytes)
        except BitIOError:
            raise
        except OSError as exc:
            raise StreamError(f"byte source failed: {exc}") from exc
        if data is None:
            data = b""
        if len(data) < nbytes:
            raise ShortReadError(nbytes, len(data))
        return bytes(data[:nbytes])

    def read_bit(self, nbits: int) -> int:
        """Read up to one byte worth of bits.

        At most one byte is pulled from the source.

        :param nbits: Number of bits to read (1-8).
        :type nbits: int
        :returns: The bits read, right-justified; the first bit read is the
            most significant bit of the result.
        :rtype: int
        :raises ArgumentError: If ``nbits`` is outside 1-8.
        :raises ShortReadError: If the source is exhausted.
        """
        if not 1 <= nbits <= 8:
            raise ArgumentError(f"read_bit requires 1 <= nbits <= 8, got {nbits}")

        result = 0
        if self.valid < nbits:
            nbits -= self.valid
            if self.valid:
                result = (self.carry >> (8 - self.valid)) << nbits
            self.carry = self._fetch(1)[0]
            self.valid = 8

        result |= self.carry >> (8 - nbits)
        self.carry = (self.carry << nbits) & 0xFF
        self.valid -= nbits
        return result

    def read_bits(self, p, nbits: int) -> int:
        """Read ``nbits`` bits into the byte buffer ``p``.

        The bits land right-justified in ``p``: interpreted as a big-endian
        unsigned integer, ``p`` holds the value whose binary form is the
        ``nbits`` bits read in stream order. Bytes of ``p`` in front of the
        last ``ceil(nbits / 8)`` are zeroed.

        :param p: Mutable target buffer.
        :type p: bytearray
        :param nbits: Number of bits to read.
        :type nbits: int
        :returns: Number of bits read.
        :rtype: int
        :raises ArgumentError: If ``p`` is ``None`` or too small for ``nbits``.
        :raises ShortReadError: If the source is exhausted.
        """
        if p is None:
            raise ArgumentError("read target is None")
        if nbits < 0:
            raise ArgumentError(f"negative bit count {nbits}")
        if len(p) * 8 < nbits:
            raise ArgumentError(
                f"target is {len(p) * 8} bits, want {nbits} bits"
            )
        if nbits == 0:
            return 0

        size = len(p)
        if nbits <= self.valid:
            p[:] = bytes(size)
            p[size - 1] = self.carry >> (8 - nbits)
            self.carry = (self.carry << nbits) & 0xFF
            self.valid -= nbits
            return nbits

        pending = nbits - self.valid
        chunk = self._fetch(_nbytes(pending))

        p[:] = bytes(size)
        p[:len(chunk)] = chunk
        right_shift(p, self.valid)
        p[0] |= self.carry
        right_shift(p, 8 * size - nbits)

        leftover = pending % 8
        if leftover:
            self.valid = 8 - leftover
            self.carry = (chunk[-1] << leftover) & 0xFF
        else:
            self.valid = 0
            self.carry = 0
        return nbits

    def read_bytes(self, p) -> int:
        """Fill ``p`` with the next ``len(p)`` bytes of the bit stream.

        :param p: Mutable target buffer.
        :type p: bytearray
        :returns: Number of bytes read.
        :rtype: int
        """
        if p is None:
            raise ArgumentError("read target is None")
        return self.read_bits(p, len(p) * 8) // 8

    readinto = read_bytes

    def read(self, size: int) -> bytes:
        """Read ``size`` bytes; lets a bit buffer stand in for a byte source.

        :param size: Number of bytes to read.
        :type size: int
        :returns: The bytes read.
        :rtype: bytes
        """
        if size is None or size < 0:
            raise ArgumentError("read requires an explicit non-negative size")
        buf = bytearray(size)
        self.read_bytes(buf)
        return bytes(buf)

    def read_uint(self, nbits: int) -> int:
        """Read ``nbits`` bits as an unsigned big-endian integer."""
        if nbits == 0:
            return 0
        buf = bytearray(_nbytes(nbits))
        self.read_bits(buf, nbits)
        return int.from_bytes(buf, "big")


class BitWriteBuffer:
    """Bit-granular writer over a byte sink.

    Bits are packed MSB-first; a byte is handed to the sink as soon as it
    fills up. :meth:`flush` must be called once writing is done, otherwise
    a trailing partial byte is lost.

    :ivar sink: Byte sink; any object with ``write(b)``.
    :ivar acc: One-byte accumulator, staged bits left-justified.
    :type acc: int
    :ivar valid: Number of bits staged in ``acc`` (0-7 between calls).
    :type valid: int
    """

    def __init__(self, sink):
        if sink is None:
            raise ArgumentError("byte sink is None")
        self.sink = sink
        self.acc = 0
        self.valid = 0

    @property
    def buffered(self) -> int:
        """Number of bits staged but not yet handed to the sink."""
        return self.valid

    def _emit(self, data: bytes) -> None:
        """Hand ``data`` to the sink.

        :raises ShortWriteError: If the sink reports a short write.
        :raises StreamError: If the sink raises ``OSError``.
        """
        try:
            written = self.sink.write(data)
        except BitIOError:
            raise
        except OSError as exc:
            raise StreamError(f"byte sink failed: {exc}") from exc
        if written is not None and written < len(data):
            raise ShortWriteError(len(data), written)

    def _emit_acc(self) -> None:
        self._emit(bytes((self.acc,)))
        self.acc = 0
        self.valid = 0

    def write_bit(self, value: int, nbits: int) -> int:
        """Append the lowest ``nbits`` of ``value``, MSB first.

        :param value: Integer whose low bits are written.
        :type value: int
        :param nbits: Number of bits to write (1-8).
        :type nbits: int
        :returns: Number of bits written.
        :rtype: int
        :raises ArgumentError: If ``nbits`` is outside 1-8.
        """
        if not 1 <= nbits <= 8:
            raise ArgumentError(f"write_bit requires 1 <= nbits <= 8, got {nbits}")
        value &= (1 << nbits) - 1
        total = nbits

        if self.valid + nbits > 8:
            room = 8 - self.valid
            nbits -= room
            self.acc |= value >> nbits
            self.valid = 8
            self._emit_acc()
            value &= (1 << nbits) - 1

        self.acc |= value << (8 - self.valid - nbits)
        self.valid += nbits
        if self.valid == 8:
            self._emit_acc()
        return total

    def write_bits(self, p, nbits: int) -> int:
        """Append the low ``nbits`` of ``p`` read as a big-endian integer.

        Only the last ``ceil(nbits / 8)`` bytes of ``p`` are looked at.

        :param p: Source buffer, value right-justified.
        :type p: bytes
        :param nbits: Number of bits to write.
        :type nbits: int
        :returns: Number of bits written.
        :rtype: int
        :raises ArgumentError: If ``p`` is ``None`` or too small for ``nbits``.
        """
        if p is None:
            raise ArgumentError("write source is None")
        if nbits < 0:
            raise ArgumentError(f"negative bit count {nbits}")
        if len(p) * 8 < nbits:
            raise ArgumentError(
                f"source is {len(p) * 8} bits, want {nbits} bits"
            )
        if nbits == 0:
            return 0

        size = _nbytes(nbits)
        buf = bytearray(p[len(p) - size:])
        shift = nbits % 8
        if shift:
            left_shift(buf, 8 - shift)

        if self.valid == 0 and shift == 0:
            self._emit(bytes(buf))
            return nbits

        remaining = nbits
        for b in buf:
            n = min(8, remaining)
            self.write_bit(b >> (8 - n), n)
            remaining -= n
        return nbits

    def write_bytes(self, p) -> int:
        """Append every byte of ``p``.

        :returns: Number of bytes written.
        :rtype: int
        """
        if p is None:
            raise ArgumentError("write source is None")
        return self.write_bits(p, len(p) * 8) // 8

    write = write_bytes

    def write_uint(self, value: int, nbits: int) -> int:
        """Append ``value`` as an ``nbits`` wide big-endian field."""
        if nbits == 0:
            return 0
        value &= (1 << nbits) - 1
        return self.write_bits(value.to_bytes(_nbytes(nbits), "big"), nbits)

    def flush(self) -> None:
        """Emit the staged partial byte, right-padded with zeros.

        Does nothing when no bits are staged.
        """
        if self.valid:
            self._emit_acc()


class ByteReader(io.RawIOBase):
    """Present a :class:`BitReadBuffer` as a binary file object.

    Reads go through the bit buffer, so they need not start on a byte
    boundary of the underlying source. Unsized reads are not supported.
    """

    def __init__(self, buffer: BitReadBuffer):
        super().__init__()
        self.buffer = buffer

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        return self.buffer.read_bytes(b)

    def readall(self):
        raise ArgumentError("ByteReader needs an explicit read size")


class ByteWriter(io.RawIOBase):
    """Present a :class:`BitWriteBuffer` as a binary file object.

    The sub-byte residue is left in the bit buffer; call
    ``buffer.flush()`` to push it out.
    """

    def __init__(self, buffer: BitWriteBuffer):
        super().__init__()
        self.buffer = buffer

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        return self.buffer.write_bytes(b)
