"""Schema-driven record reader and writer.

A record description is an ordered tuple of :class:`FieldSpec`. It is
either derived from a dataclass whose fields are declared with
:func:`bitfield`, or built explicitly (see :func:`parse_field` and
``schema.py``)::

    @dataclass
    class Container:
        sign: list = bitfield(UINT8, bit=4, len=3, default_factory=list)
        size: int = bitfield(INT, bit=4, default=0)
        name: str = bitfield(STRING, byte=8, default="")
        data: bytes = bitfield(BYTES, byte=1, len="size", default=b"")
        crc: int = bitfield(UINT, bit=32, endian="big", default=0)

    container = unpack(Container, raw)
    assert pack(container) == raw

A sequence whose ``len`` names an earlier integer field takes its element
count from that field on read. On write the referenced field is
overwritten with the actual sequence length before it is emitted.
"""

import dataclasses
import functools
import io
import logging
import typing
from collections.abc import Mapping, MutableMapping

from bitio_errors import ArgumentError, DescriptorError, SlotOverflowError
from bitops import BitReadBuffer, BitWriteBuffer
from fieldcodec import BOOL, BYTES, ENDIANS, INT, LITTLE, STRING, Kind

logger = logging.getLogger(__name__)

#: Key of the dataclass field metadata entry holding the tags.
TAGS_KEY = "bitfield"

_KIND_BY_TYPE = {bool: BOOL, int: INT, str: STRING, bytes: BYTES}


@dataclasses.dataclass(frozen=True)
class FieldSpec:
    """One entry of a record description.

    :ivar name: Slot name (attribute or mapping key).
    :ivar kind: Value kind, see ``fieldcodec``.
    :ivar bits: Width of one value in bits.
    :ivar count: Element count of a sequence: an ``int`` literal or the
        name of an earlier integer field; ``None`` for scalars.
    :ivar endian: ``"little"`` or ``"big"``.
    """

    name: str
    kind: Kind
    bits: int
    count: typing.Union[int, str, None] = None
    endian: str = LITTLE

    @property
    def reference(self) -> typing.Optional[str]:
        """Name of the length field, if the count is a reference."""
        return self.count if isinstance(self.count, str) else None


def _parse_int(name: str, tag: str, value) -> int:
    if isinstance(value, bool):
        raise DescriptorError(f"has invalid {tag} {value!r}", name)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 10)
    except ValueError:
        raise DescriptorError(f"has invalid {tag} {value!r}", name) from None


def _parse_count(name: str, value):
    if isinstance(value, str):
        text = value.strip()
        if text.isidentifier():
            return text
        value = text
    count = _parse_int(name, "length", value)
    if count < 1:
        raise DescriptorError(f"needs a positive length, got {count}", name)
    return count


def parse_field(name: str, kind: Kind, tags: Mapping) -> FieldSpec:
    """Build a :class:`FieldSpec` from text tags.

    Recognised tags are ``bit``, ``byte``, ``len`` and ``endian``; other
    keys are ignored. Tag values may be integers or decimal strings.

    :param name: Field name.
    :type name: str
    :param kind: Value kind of the field.
    :type kind: Kind
    :param tags: Tag mapping.
    :type tags: Mapping
    :returns: The field descriptor.
    :rtype: FieldSpec
    :raises DescriptorError: If the tags do not describe a usable field.
    :raises ArgumentError: If the width is unusable for ``kind`` (text not
        a multiple of 8 bits, integer wider than 64 bits).
    """
    if not isinstance(kind, Kind):
        raise DescriptorError(f"unsupported field kind {kind!r}", name)
    tags = tags or {}

    if "byte" in tags and "bit" in tags:
        raise DescriptorError("bit and byte size hints are exclusive", name)
    if "byte" in tags:
        bits = _parse_int(name, "size", tags["byte"]) * 8
    elif "bit" in tags:
        bits = _parse_int(name, "size", tags["bit"])
    else:
        raise DescriptorError("needs a bit or byte size hint", name)
    if bits < 1:
        raise DescriptorError(f"has invalid size {bits} bit(s)", name)
    kind.check(bits)

    count = None
    if kind.is_sequence:
        if tags.get("len") is None:
            raise DescriptorError("sequence needs a len hint", name)
        count = _parse_count(name, tags["len"])
    elif tags.get("len") is not None:
        raise DescriptorError("len hint applies to sequences only", name)

    endian = tags.get("endian")
    endian = LITTLE if endian is None else str(endian).strip().lower()
    if endian not in ENDIANS:
        raise DescriptorError(f"has invalid endian {tags['endian']!r}", name)

    return FieldSpec(name, kind, bits, count, endian)


def validate(fields) -> typing.Tuple[FieldSpec, ...]:
    """Check a description as a whole and freeze it into a tuple.

    :raises DescriptorError: On duplicate names, or a length reference to a
        field that is not an earlier integer field.
    """
    fields = tuple(fields)
    seen = set()
    integers = set()
    for spec in fields:
        if not isinstance(spec, FieldSpec):
            raise DescriptorError(f"not a field descriptor: {spec!r}")
        if spec.name in seen:
            raise DescriptorError("declared twice", spec.name)
        ref = spec.reference
        if ref is not None and ref not in integers:
            raise DescriptorError(
                f"length {ref!r} is not an earlier integer field", spec.name
            )
        seen.add(spec.name)
        if spec.kind.is_integer:
            integers.add(spec.name)
    return fields


def bitfield(kind=None, *, bit=None, byte=None, len=None, endian=None,
             default=dataclasses.MISSING,
             default_factory=dataclasses.MISSING):
    """Declare a dataclass field carrying bit-field tags.

    :param kind: Value kind; inferred from the annotation for ``bool``,
        ``int``, ``str`` and ``bytes`` when omitted.
    :param bit: Width in bits.
    :param byte: Width in bytes.
    :param len: Sequence length, literal or name of an earlier field.
    :param endian: ``"little"`` (default) or ``"big"``.
    :returns: A :func:`dataclasses.field`.
    """
    tags = {"bit": bit, "byte": byte, "len": len, "endian": endian}
    tags = {k: v for k, v in tags.items() if v is not None}
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={TAGS_KEY: {"kind": kind, "tags": tags}},
    )


def _infer_kind(cls, f: dataclasses.Field):
    try:
        hint = typing.get_type_hints(cls).get(f.name, f.type)
    except (NameError, TypeError):
        hint = f.type
    kind = _KIND_BY_TYPE.get(hint)
    if kind is None:
        raise DescriptorError(f"cannot infer a kind from {hint!r}", f.name)
    return kind


@functools.lru_cache(maxsize=None)
def _describe_class(cls) -> typing.Tuple[FieldSpec, ...]:
    specs = []
    for f in dataclasses.fields(cls):
        if f.name.startswith("_"):
            continue
        meta = f.metadata.get(TAGS_KEY)
        if meta is None:
            raise DescriptorError("needs a bit or byte size hint", f.name)
        kind = meta["kind"] or _infer_kind(cls, f)
        specs.append(parse_field(f.name, kind, meta["tags"]))
    return validate(specs)


def describe(record) -> typing.Tuple[FieldSpec, ...]:
    """Derive the description of a dataclass record (or record class).

    Fields whose name starts with ``_`` are skipped.

    :param record: Dataclass instance or class.
    :returns: The validated description.
    :rtype: Tuple[FieldSpec, ...]
    :raises DescriptorError: If ``record`` is not a dataclass or a field is
        malformed.
    """
    cls = record if isinstance(record, type) else type(record)
    if not dataclasses.is_dataclass(cls):
        raise DescriptorError(
            f"{cls.__name__} is not a dataclass; pass an explicit field list"
        )
    return _describe_class(cls)


def _resolve(record, fields):
    if fields is None:
        return describe(record)
    return validate(fields)


def _get(record, name):
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name)


def _set(record, name, value):
    if isinstance(record, MutableMapping):
        record[name] = value
    else:
        setattr(record, name, value)


def _count(spec: FieldSpec, lengths: dict):
    ref = spec.reference
    if ref is None:
        return spec.count
    try:
        return lengths[ref]
    except KeyError:
        raise DescriptorError(f"length {ref!r} is not resolved", spec.name) from None


class BitFieldReader:
    """Read records from a byte source.

    Raw bytes can be read in between records through :meth:`read` and
    :meth:`readinto`; both share the same bit buffer, so records need not
    start on a byte boundary.

    :ivar buffer: Bit buffer every read goes through.
    :type buffer: BitReadBuffer
    """

    def __init__(self, source):
        if isinstance(source, BitReadBuffer):
            self.buffer = source
        else:
            self.buffer = BitReadBuffer(source)

    def read_record(self, record, fields=None) -> int:
        """Decode one record into ``record``.

        :param record: Dataclass instance or mutable mapping to fill.
        :param fields: Explicit description; derived from ``record`` when
            omitted.
        :returns: Number of bits read.
        :rtype: int
        """
        specs = _resolve(record, fields)
        lengths = {}
        nbits = 0
        for spec in specs:
            count = _count(spec, lengths)
            value = spec.kind.read(self.buffer, spec.bits, spec.endian, count)
            _set(record, spec.name, value)
            nbits += spec.bits * (count or 1)
            if spec.kind.is_integer:
                lengths[spec.name] = value
            logger.debug("read %s (%r, %d bit(s)): %r",
                         spec.name, spec.kind, spec.bits, value)
        return nbits

    def read(self, size: int) -> bytes:
        return self.buffer.read(size)

    def readinto(self, b) -> int:
        return self.buffer.read_bytes(b)


class BitFieldWriter:
    """Write records to a byte sink.

    Nothing reaches the sink past the last full byte until :meth:`flush`.

    :ivar buffer: Bit buffer every write goes through.
    :type buffer: BitWriteBuffer
    """

    def __init__(self, sink):
        if isinstance(sink, BitWriteBuffer):
            self.buffer = sink
        else:
            self.buffer = BitWriteBuffer(sink)

    @staticmethod
    def _lengths(record, specs) -> dict:
        """Collect the actual lengths of sequences sized by reference.

        :raises ArgumentError: If two sequences sized by the same field
            disagree on their length.
        :raises SlotOverflowError: If a length does not fit its field.
        """
        by_name = {spec.name: spec for spec in specs}
        lengths = {}
        for spec in specs:
            ref = spec.reference
            if ref is None:
                continue
            value = _get(record, spec.name)
            n = 0 if value is None else len(value)
            if lengths.get(ref, n) != n:
                raise ArgumentError(
                    f"{spec.name}: length {ref!r} is already {lengths[ref]}, "
                    f"sequence holds {n}"
                )
            lengths[ref] = n
        for name, n in lengths.items():
            target = by_name[name]
            if n > target.kind.largest(target.bits):
                raise SlotOverflowError(
                    f"{name}: length {n} does not fit in {target.bits} bit(s)"
                )
        return lengths

    def write_record(self, record, fields=None) -> int:
        """Encode ``record``.

        Length fields referenced by a sequence are updated in ``record``
        to the actual sequence length.

        :param record: Dataclass instance or mapping.
        :param fields: Explicit description; derived from ``record`` when
            omitted.
        :returns: Number of bits written.
        :rtype: int
        """
        specs = _resolve(record, fields)
        lengths = self._lengths(record, specs)
        nbits = 0
        for spec in specs:
            if spec.name in lengths:
                _set(record, spec.name, lengths[spec.name])
            value = _get(record, spec.name)
            count = _count(spec, lengths)
            nbits += spec.kind.write(self.buffer, value, spec.bits,
                                     spec.endian, count)
            logger.debug("wrote %s (%r, %d bit(s)): %r",
                         spec.name, spec.kind, spec.bits, value)
        return nbits

    def write(self, b) -> int:
        return self.buffer.write_bytes(b)

    def flush(self) -> None:
        self.buffer.flush()


def unpack(record, data, fields=None):
    """Decode a single record from ``data``.

    :param record: Record to fill, or a dataclass to instantiate (all of
        its fields need defaults).
    :param data: ``bytes``-like object or byte source.
    :param fields: Explicit description, see :meth:`BitFieldReader.read_record`.
    :returns: The filled record.
    """
    if isinstance(record, type):
        record = record()
    if isinstance(data, (bytes, bytearray, memoryview)):
        data = io.BytesIO(bytes(data))
    BitFieldReader(data).read_record(record, fields)
    return record


def pack(record, fields=None) -> bytes:
    """Encode ``record`` into bytes, the last byte zero-padded.

    :param record: Dataclass instance or mapping.
    :param fields: Explicit description, see :meth:`BitFieldWriter.write_record`.
    :returns: The encoded record.
    :rtype: bytes
    """
    sink = io.BytesIO()
    writer = BitFieldWriter(sink)
    writer.write_record(record, fields)
    writer.flush()
    return sink.getvalue()
