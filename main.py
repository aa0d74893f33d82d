import argparse
import json
import logging
import sys
from typing import List, Optional

from bitfield import BitFieldReader, BitFieldWriter
from bitio_errors import BitIOError
from bitops import BitReadBuffer
from fieldcodec import BYTES
from schema import load_schema

logger = logging.getLogger(__name__)


def setup_logging(log_file: Optional[str], verbose: bool = False) -> None:
    """Route log records to stderr and, optionally, to a file.

    :param log_file: Extra log file path, or ``None``.
    :type log_file: Optional[str]
    :param verbose: Log per-field debug records when ``True``.
    :type verbose: bool
    :returns: None
    :rtype: None
    """
    log_fmt = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    level = logging.DEBUG if verbose else logging.WARNING
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(
        level=level, format=log_fmt, datefmt=datefmt, handlers=handlers,
        force=True,
    )


def _positive_int(text: str) -> int:
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Read and write bit fields and bit-packed records"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Log every decoded/encoded field",
    )
    parser.add_argument("--log-file", help="Also write the log to this file")
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    bits = subparsers.add_parser(
        "bits", aliases=["b"], help="Read raw bit fields of given widths"
    )
    bits.add_argument("file", help="Binary input file")
    bits.add_argument(
        "widths", nargs="+", type=_positive_int,
        help="Field widths in bits, read in order",
    )

    decode = subparsers.add_parser(
        "decode", aliases=["d"], help="Decode records described by a schema"
    )
    decode.add_argument("schema", help="JSON record schema")
    decode.add_argument("file", help="Binary input file")
    decode.add_argument(
        "-n", "--count", type=_positive_int, default=1,
        help="Number of consecutive records to decode (default: 1)",
    )
    decode.add_argument("-o", "--output", help="Write JSON here instead of stdout")

    encode = subparsers.add_parser(
        "encode", aliases=["e"], help="Encode JSON values with a schema"
    )
    encode.add_argument("schema", help="JSON record schema")
    encode.add_argument(
        "values", help="JSON file holding one record object or a list of them"
    )
    encode.add_argument("-o", "--output", required=True, help="Binary output file")

    return parser


def _to_jsonable(value):
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    return value


def _from_jsonable(value, spec):
    if spec.kind is BYTES and isinstance(value, str):
        return bytes.fromhex(value)
    return value


def read_fields(path: str, widths: List[int]) -> List[int]:
    """Read consecutive unsigned bit fields from a file.

    :param path: Binary input file.
    :type path: str
    :param widths: Width of each field in bits.
    :type widths: List[int]
    :returns: Field values in order.
    :rtype: List[int]
    """
    with open(path, "rb") as f:
        buf = BitReadBuffer(f)
        return [buf.read_uint(w) for w in widths]


def decode_file(schema_path: str, path: str, count: int = 1) -> List[dict]:
    """Decode ``count`` back-to-back records from a binary file.

    :param schema_path: JSON record schema.
    :type schema_path: str
    :param path: Binary input file.
    :type path: str
    :param count: Number of records.
    :type count: int
    :returns: One dict per record, bytes rendered as hex strings.
    :rtype: List[dict]
    """
    specs = load_schema(schema_path)
    records = []
    with open(path, "rb") as f:
        reader = BitFieldReader(f)
        for _ in range(count):
            record = {}
            nbits = reader.read_record(record, specs)
            logger.info("decoded record #%d (%d bits)", len(records), nbits)
            records.append({k: _to_jsonable(v) for k, v in record.items()})
    return records


def encode_file(schema_path: str, values_path: str, output_path: str) -> int:
    """Encode the records held in a JSON file.

    :param schema_path: JSON record schema.
    :type schema_path: str
    :param values_path: JSON file, one object or a list of objects.
    :type values_path: str
    :param output_path: Binary output file.
    :type output_path: str
    :returns: Number of bits written, padding excluded.
    :rtype: int
    """
    specs = load_schema(schema_path)
    with open(values_path, "r", encoding="utf-8") as f:
        values = json.load(f)
    if isinstance(values, dict):
        values = [values]

    nbits = 0
    with open(output_path, "wb") as out:
        writer = BitFieldWriter(out)
        for obj in values:
            record = {s.name: _from_jsonable(obj.get(s.name), s) for s in specs}
            nbits += writer.write_record(record, specs)
        writer.flush()
    logger.info("encoded %d record(s), %d bits", len(values), nbits)
    return nbits


def main(argv=None) -> int:
    """Entry point for the CLI tool.

    :returns: Process exit code.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_file, args.verbose)

    try:
        if args.cmd in ["bits", "b"]:
            for width, value in zip(args.widths, read_fields(args.file, args.widths)):
                print(f"{width:3d} bit(s): 0x{value:0{(width + 3) // 4}x} ({value})")
        elif args.cmd in ["decode", "d"]:
            records = decode_file(args.schema, args.file, args.count)
            text = json.dumps(records[0] if args.count == 1 else records, indent=2)
            if args.output:
                with open(args.output, "w", encoding="utf-8") as out:
                    out.write(text + "\n")
            else:
                print(text)
        elif args.cmd in ["encode", "e"]:
            nbits = encode_file(args.schema, args.values, args.output)
            print(f"Wrote {(nbits + 7) // 8} byte(s) to {args.output}")
    except FileNotFoundError as e:
        print(f"[!] File not found: {e.filename}")
        return 1
    except (BitIOError, ValueError) as e:
        print(f"[!] {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
