"""Record layouts stored as JSON files.

A schema is an object with a ``fields`` list (a bare list is accepted
too). Each entry carries ``name`` and ``type`` plus the usual tags::

    {
      "name": "container",
      "fields": [
        {"name": "sign", "type": "uint8[]", "bit": 4, "len": 3},
        {"name": "size", "type": "int", "bit": 4},
        {"name": "name", "type": "string", "byte": 8},
        {"name": "data", "type": "bytes", "byte": 1, "len": "size"},
        {"name": "crc", "type": "uint", "bit": 32, "endian": "big"}
      ]
    }
"""

import json
from typing import Tuple

from bitfield import FieldSpec, parse_field, validate
from bitio_errors import DescriptorError
from fieldcodec import kind_by_name


def parse_schema(obj) -> Tuple[FieldSpec, ...]:
    """Turn a decoded JSON schema into a record description.

    :param obj: Schema object or bare field list.
    :type obj: dict | list
    :returns: Validated description.
    :rtype: Tuple[FieldSpec, ...]
    :raises DescriptorError: If the schema is malformed.
    """
    if isinstance(obj, dict):
        entries = obj.get("fields")
    else:
        entries = obj
    if not isinstance(entries, list):
        raise DescriptorError("schema needs a 'fields' list")

    specs = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise DescriptorError(f"field #{i} is not an object")
        name = entry.get("name")
        if not name or not isinstance(name, str):
            raise DescriptorError(f"field #{i} has no name")
        if "type" not in entry:
            raise DescriptorError("has no type", name)
        try:
            kind = kind_by_name(str(entry["type"]))
        except DescriptorError as exc:
            raise DescriptorError(str(exc), name) from None
        specs.append(parse_field(name, kind, entry))
    return validate(specs)


def load_schema(path: str) -> Tuple[FieldSpec, ...]:
    """Read and parse a JSON schema file.

    :param path: Schema file path.
    :type path: str
    :returns: Validated description.
    :rtype: Tuple[FieldSpec, ...]
    :raises DescriptorError: If the file is not valid JSON or not a schema.
    :raises FileNotFoundError: If ``path`` does not exist.
    """
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DescriptorError(f"{path}: invalid JSON: {exc}") from exc
    return parse_schema(obj)
