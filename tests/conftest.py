import importlib
import json
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bitfield import bitfield  # noqa: E402
from fieldcodec import BYTES, INT, STRING, UINT, UINT8, Sequence  # noqa: E402


@dataclass
class Container:
    sign: list = bitfield(Sequence(UINT8), bit=4, len=3, default_factory=list)
    size: int = bitfield(INT, bit=4, default=0)
    name: str = bitfield(STRING, byte=8, default="")
    data: bytes = bitfield(BYTES, byte=1, len="size", default=b"")
    crc: int = bitfield(UINT, bit=32, endian="big", default=0)


CONTAINER_BYTES = bytes(
    [0x12, 0x34]
    + list(b"abcdefgh")
    + [0xC1, 0xC2, 0xC3, 0xC4]
    + [0xF1, 0xF2, 0xF3, 0xF4]
)

CONTAINER_SCHEMA = {
    "name": "container",
    "fields": [
        {"name": "sign", "type": "uint8[]", "bit": 4, "len": 3},
        {"name": "size", "type": "int", "bit": 4},
        {"name": "name", "type": "string", "byte": 8},
        {"name": "data", "type": "bytes", "byte": 1, "len": "size"},
        {"name": "crc", "type": "uint", "bit": 32, "endian": "big"},
    ],
}


@pytest.fixture()
def m():
    """Lazily import the main module for tests to avoid module-level import."""
    return importlib.import_module("main")


@pytest.fixture()
def container_cls():
    return Container


@pytest.fixture()
def container_bytes():
    return CONTAINER_BYTES


@pytest.fixture()
def container_schema():
    return json.loads(json.dumps(CONTAINER_SCHEMA))


@pytest.fixture()
def schema_file(tmp_path: Path):
    """Write the container schema to a temporary JSON file."""
    path = tmp_path / "container.json"
    path.write_text(json.dumps(CONTAINER_SCHEMA), encoding="utf-8")
    return path


def bits_to_bytes(bits: str) -> bytes:
    """Pack a string of ``0``/``1`` into bytes, zero-padding the tail."""
    bits = bits.replace("_", "").replace(" ", "")
    bits += "0" * (-len(bits) % 8)
    return bytes(int(bits[i:i + 8], 2) for i in range(0, len(bits), 8))


@pytest.fixture()
def bits_to_bytes_fn():
    """
    Fixture that provides the bits_to_bytes helper without importing conftest.
    """
    return bits_to_bytes
