"""
Slot arithmetic for EVM contract storage.

All slot numbers are plain Python ints, so additions never overflow. Hashes are
Ethereum Keccak-256 (not the NIST SHA3-256 variant).
"""

import re
from typing import Any, Optional, Union

from eth_utils import keccak

from .errors import InvalidBytes, InvalidNumeric

BLOCK_TAGS = {"earliest", "latest", "pending", "safe", "finalized"}
WORD_SIZE = 32
UINT256_MOD = 1 << 256

_HEX_BODY = re.compile(r"[0-9a-fA-F]*")
_DECIMAL = re.compile(r"[0-9]+")

BlockRef = Union[str, int, None]


def to_int(value: Any) -> int:
    """Parse an int, decimal string, 0x hex string or bytes into a non-negative int."""
    if isinstance(value, bool):
        raise InvalidNumeric(f"invalid numeric value: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise InvalidNumeric(f"value must be non-negative: {value}")
        return value
    if isinstance(value, (bytes, bytearray)):
        return int.from_bytes(value, "big")
    if not isinstance(value, str):
        raise InvalidNumeric(f"invalid numeric value: {value!r}")

    candidate = value.strip()
    if candidate[:2].lower() == "0x":
        body = candidate[2:]
        if not body or not _HEX_BODY.fullmatch(body):
            raise InvalidNumeric(f"invalid numeric string: {value!r}")
        return int(body, 16)
    if not _DECIMAL.fullmatch(candidate):
        raise InvalidNumeric(f"invalid numeric string: {value!r}")
    return int(candidate)


def to_bytes(value: Any) -> bytes:
    """Accept raw bytes or an even-length 0x-prefixed hex string."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str) and value[:2].lower() == "0x":
        body = value[2:]
        if len(body) % 2 == 0 and _HEX_BODY.fullmatch(body):
            return bytes.fromhex(body)
    raise InvalidBytes(f"invalid bytes-like value: {value!r}")


def to_hex(value: int) -> str:
    """Canonical minimal even-width hex: 0 -> 0x00, 20 -> 0x14."""
    body = format(value, "x")
    if len(body) % 2:
        body = "0" + body
    return "0x" + body


def pad32(data: bytes) -> bytes:
    if len(data) > WORD_SIZE:
        raise InvalidBytes(f"value exceeds {WORD_SIZE} bytes: 0x{data.hex()}")
    return data.rjust(WORD_SIZE, b"\x00")


def add_slot(a: Any, b: Any) -> str:
    return to_hex(to_int(a) + to_int(b))


def derive_array_slot(slot: Any) -> str:
    """Data location of a dynamic array or long bytes/string: keccak(pad32(slot))."""
    return "0x" + keccak(pad32(to_bytes(slot))).hex()


def _encode_map_key(key: str, key_encoding: Optional[str]) -> bytes:
    if key_encoding == "bytes":
        return key.encode("utf-8")

    candidate = key.strip() if isinstance(key, str) else key
    if isinstance(candidate, str) and candidate.startswith("-") and _DECIMAL.fullmatch(candidate[1:]):
        # signed keys are stored as 256-bit two's complement
        number = int(candidate)
        if number < -(UINT256_MOD >> 1):
            raise InvalidNumeric(f"mapping key out of int256 range: {key!r}")
        return (number % UINT256_MOD).to_bytes(WORD_SIZE, "big")

    number = to_int(candidate)
    if number >= UINT256_MOD:
        raise InvalidNumeric(f"mapping key exceeds 32 bytes: {key!r}")
    return number.to_bytes(WORD_SIZE, "big")


def derive_map_slot(slot: Any, key: str, key_type: Any) -> str:
    """Slot of mapping value: keccak(encode(key) ++ pad32(slot)).

    ``key_type`` is a StorageType or any mapping carrying an ``encoding`` entry.
    Keys of ``bytes`` encoding (string/bytes keys) hash as raw UTF-8, all other
    keys as 32-byte big-endian integers.
    """
    if isinstance(key_type, dict):
        encoding = key_type.get("encoding")
    else:
        encoding = getattr(key_type, "encoding", None)

    slot_bytes = pad32(to_bytes(slot))
    return "0x" + keccak(_encode_map_key(key, encoding) + slot_bytes).hex()


def is_block_hash(value: str) -> bool:
    return (
        len(value) == 66
        and value[:2].lower() == "0x"
        and bool(_HEX_BODY.fullmatch(value[2:]))
    )


def normalize_block_reference(ref: BlockRef) -> BlockRef:
    """Pass through tags, empty values and block hashes; parse anything else to a block number."""
    if not ref:
        return ref
    if isinstance(ref, str):
        if ref in BLOCK_TAGS or is_block_hash(ref):
            return ref
    return to_int(ref)
