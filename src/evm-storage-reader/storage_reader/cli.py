import argparse
import json
import logging
import sys
from typing import Optional

from .config import LOG_FORMAT, load_config
from .service import StorageService
from .slots import add_slot, derive_array_slot, derive_map_slot


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decode EVM contract storage using a compiler storage layout.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--log-level",
        required=False,
        help="Logging level (DEBUG, INFO, WARNING...). Defaults to LOG_LEVEL env or WARNING.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    read_parser = subparsers.add_parser("read", help="Decode storage variables")
    read_parser.add_argument(
        "--address",
        required=True,
        help="Contract address (0x-prefixed).",
    )
    read_parser.add_argument(
        "--layout",
        required=True,
        help="Path to a storageLayout JSON file (solc output).",
    )
    read_parser.add_argument(
        "--var",
        dest="variables",
        action="append",
        help="Top-level variable to decode. Repeatable; defaults to all variables.",
    )
    read_parser.add_argument(
        "--map-key",
        dest="map_keys",
        action="append",
        help="Mapping key probe such as 'balances[0x...]'. Repeatable.",
    )
    read_parser.add_argument(
        "--block",
        required=False,
        help="Block tag, number, or 32-byte block hash. Defaults to BLOCK_TAG env or latest.",
    )
    read_parser.add_argument(
        "--rpc-url",
        required=False,
        help="JSON-RPC endpoint. Defaults to RPC_URL env.",
    )

    storage_parser = subparsers.add_parser("get-storage-at", help="Fetch a single raw storage word")
    storage_parser.add_argument(
        "--address",
        required=True,
        help="Contract address (0x-prefixed).",
    )
    storage_parser.add_argument(
        "--slot",
        required=True,
        help="Slot number: decimal or 0x-prefixed hex.",
    )
    storage_parser.add_argument(
        "--block",
        required=False,
        help="Block tag, number, or 32-byte block hash.",
    )
    storage_parser.add_argument(
        "--rpc-url",
        required=False,
        help="JSON-RPC endpoint. Defaults to RPC_URL env.",
    )

    array_parser = subparsers.add_parser("array-slot", help="Data slot of a dynamic array or long string")
    array_parser.add_argument(
        "--slot",
        required=True,
        help="Base slot as 0x-prefixed hex.",
    )

    map_parser = subparsers.add_parser("map-slot", help="Value slot of a mapping entry")
    map_parser.add_argument(
        "--slot",
        required=True,
        help="Mapping slot as 0x-prefixed hex.",
    )
    map_parser.add_argument(
        "--key",
        required=True,
        help="Mapping key: integer/address literal, or text for string/bytes keys.",
    )
    map_parser.add_argument(
        "--key-encoding",
        choices=["inplace", "bytes"],
        default="inplace",
        help="Storage encoding of the key type (bytes for string/bytes keys).",
    )

    add_parser = subparsers.add_parser("add-slot", help="Add two slot numbers")
    add_parser.add_argument("a", help="Slot number: decimal or 0x-prefixed hex.")
    add_parser.add_argument("b", help="Slot number: decimal or 0x-prefixed hex.")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "array-slot":
            print(json.dumps({"slot": args.slot, "data_slot": derive_array_slot(args.slot)}, indent=2))
            return
        if args.command == "map-slot":
            result = derive_map_slot(args.slot, args.key, {"encoding": args.key_encoding})
            print(json.dumps({"slot": args.slot, "key": args.key, "value_slot": result}, indent=2))
            return
        if args.command == "add-slot":
            print(json.dumps({"result": add_slot(args.a, args.b)}, indent=2))
            return

        config = load_config(args.rpc_url)
        logging.basicConfig(level=(args.log_level or config.log_level).upper(), format=LOG_FORMAT)
        service = StorageService(config)

        if args.command == "read":
            result = service.read_storage(
                args.address,
                args.layout,
                variables=args.variables,
                map_keys=args.map_keys,
                block=args.block,
            )
            print(json.dumps(result, indent=2))
        elif args.command == "get-storage-at":
            result = service.get_storage_at(args.address, args.slot, args.block)
            print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
