"""
MCP server exposing storage layout decoding over JSON-RPC nodes.
"""

import argparse
import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP

from .config import LOG_FORMAT, load_config
from .service import StorageService
from . import slots

server = FastMCP(
    name="evm-storage-reader",
    instructions="Decode EVM contract storage from a solc storage layout and compute storage slots.",
)

_service: Optional[StorageService] = None


def _get_service() -> StorageService:
    global _service
    if _service is None:
        cfg = load_config()
        _service = StorageService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> Optional[list]:
    """
    Ensure a parameter intended as an array is actually treated as one:
    - str/bytes: likely misuse, raise with guidance
    - list/tuple: keep as list
    - Mapping: reject (not an array)
    - other scalars: auto-wrap into single-element list
    """
    if value is None:
        return None
    if isinstance(value, (str, bytes, bytearray)):
        raise ValueError(f"{name} must be an array (e.g. ['balances[0x...]']); got a string/bytes.")
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@server.tool(
    name="read_storage",
    title="Decode Contract Storage",
    description="Decode contract storage variables using a solc storageLayout (object or JSON text). `variables` and `map_keys` must be arrays; map keys use the form 'name[key]'.",
)
def read_storage(
    address: str,
    layout: Union[dict, str],
    variables: Optional[Any] = None,
    map_keys: Optional[Any] = None,
    block: Optional[Union[int, str]] = None,
) -> dict:
    svc = _get_service()
    if isinstance(layout, str) and not layout.lstrip().startswith("{"):
        raise ValueError("layout must be a storageLayout object or JSON text.")
    return svc.read_storage(
        address,
        layout,
        variables=_normalize_array_param(variables, "variables"),
        map_keys=_normalize_array_param(map_keys, "map_keys"),
        block=block,
    )


@server.tool(
    name="get_storage_at",
    title="Get Storage Slot",
    description="Read a raw storage word via eth_getStorageAt.",
)
def get_storage_at(address: str, slot: str, block: Optional[Union[int, str]] = None) -> dict:
    svc = _get_service()
    return svc.get_storage_at(address, slot, block)


@server.tool(
    name="derive_array_slot",
    title="Dynamic Array Data Slot",
    description="keccak256 of the 32-byte padded slot: where dynamic array elements or long string data start.",
)
def derive_array_slot(slot: str) -> dict:
    return {"slot": slot, "data_slot": slots.derive_array_slot(slot)}


@server.tool(
    name="derive_mapping_slot",
    title="Mapping Value Slot",
    description="Slot of mapping[key] at `slot`. key_encoding is 'bytes' for string/bytes keys, otherwise 'inplace' (default).",
)
def derive_mapping_slot(slot: str, key: str, key_encoding: Optional[str] = None) -> dict:
    encoding = (key_encoding or "inplace").lower()
    if encoding not in {"inplace", "bytes"}:
        raise ValueError("key_encoding must be one of: inplace, bytes.")
    value_slot = slots.derive_map_slot(slot, key, {"encoding": encoding})
    return {"slot": slot, "key": key, "key_encoding": encoding, "value_slot": value_slot}


@server.tool(
    name="add_slot",
    title="Add Slot Offset",
    description="Add two slot numbers (decimal or 0x hex) and return canonical hex.",
)
def add_slot(a: Union[int, str], b: Union[int, str]) -> dict:
    return {"result": slots.add_slot(a, b)}


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the EVM storage reader MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level; logs go to stderr so stdio transport stays clean.",
    )
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
