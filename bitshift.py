"""In-place shifts of a byte array viewed as one long big-endian bit string.

Bit position 0 is the most significant bit of ``p[0]``; positions grow
towards the least significant bit of ``p[-1]``. Both shifts zero-fill and
never change the length of ``p``.
"""

from bitio_errors import ArgumentError


def _check(p, bits: int) -> None:
    if p is None:
        raise ArgumentError("shift target is None")
    if bits < 0:
        raise ArgumentError(f"negative shift count {bits}")


def left_shift(p: bytearray, bits: int) -> None:
    """Shift ``p`` towards bit position 0 by ``bits``.

    Bits shifted past the left end are discarded.

    :param p: Mutable byte buffer, modified in place.
    :type p: bytearray
    :param bits: Shift count in bits (may exceed 8).
    :type bits: int
    :returns: None
    :rtype: None
    :raises ArgumentError: If ``p`` is ``None`` or ``bits`` is negative.
    """
    _check(p, bits)
    n = len(p)
    if n == 0 or bits == 0:
        return

    size, bits = divmod(bits, 8)
    if size >= n:
        for i in range(n):
            p[i] = 0
        return

    # byte moves
    if size:
        for i in range(n - size):
            p[i] = p[i + size]
        for i in range(n - size, n):
            p[i] = 0

    # sub-byte carry
    if bits:
        for i in range(n - 1):
            p[i] = ((p[i] << bits) & 0xFF) | (p[i + 1] >> (8 - bits))
        p[n - 1] = (p[n - 1] << bits) & 0xFF


def right_shift(p: bytearray, bits: int) -> None:
    """Shift ``p`` away from bit position 0 by ``bits``.

    Bits shifted past the right end are discarded.

    :param p: Mutable byte buffer, modified in place.
    :type p: bytearray
    :param bits: Shift count in bits (may exceed 8).
    :type bits: int
    :returns: None
    :rtype: None
    :raises ArgumentError: If ``p`` is ``None`` or ``bits`` is negative.
    """
    _check(p, bits)
    n = len(p)
    if n == 0 or bits == 0:
        return

    size, bits = divmod(bits, 8)
    if size >= n:
        for i in range(n):
            p[i] = 0
        return

    if size:
        for i in range(n - 1, size - 1, -1):
            p[i] = p[i - size]
        for i in range(size):
            p[i] = 0

    if bits:
        for i in range(n - 1, 0, -1):
            p[i] = ((p[i - 1] << (8 - bits)) & 0xFF) | (p[i] >> bits)
        p[0] >>= bits
