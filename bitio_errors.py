class BitIOError(Exception):
    """Base class for every error raised by the bit buffers and the
    record codec."""


class ArgumentError(BitIOError, ValueError):
    """An argument cannot be honored (bad width, short target, ...)."""


class DescriptorError(BitIOError, ValueError):
    """A record field description is malformed or cannot be resolved.

    :ivar field: Name of the offending field, if known.
    :type field: str | None
    """

    def __init__(self, message: str, field=None):
        if field is not None:
            message = f"{field}: {message}"
        super().__init__(message)
        self.field = field


class SlotOverflowError(BitIOError, ValueError):
    """A value does not fit in the width declared for its field."""


class StreamError(BitIOError, OSError):
    """The underlying byte source or sink failed."""


class ShortReadError(StreamError, EOFError):
    """The byte source returned fewer bytes than requested.

    :ivar wanted: Number of bytes requested.
    :type wanted: int
    :ivar got: Number of bytes actually returned.
    :type got: int
    """

    def __init__(self, wanted: int, got: int):
        super().__init__(
            f"Unexpected end of data: read {got} byte(s), want {wanted}"
        )
        self.wanted = wanted
        self.got = got


class ShortWriteError(StreamError):
    """The byte sink accepted fewer bytes than submitted."""

    def __init__(self, wanted: int, got: int):
        super().__init__(f"Short write: wrote {got} byte(s), want {wanted}")
        self.wanted = wanted
        self.got = got
