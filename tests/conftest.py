"""Shared layouts and fake word providers for the storage decoder tests."""

from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from storage_reader.layout import StorageLayout
from storage_reader.slots import add_slot

ZERO_WORD = "0x" + "00" * 32

REFERENCE_LAYOUT = {
    "storage": [
        {"label": "v1", "offset": 0, "slot": "0", "type": "t_uint256"},
        {"label": "v2", "offset": 0, "slot": "1", "type": "t_bool"},
        {"label": "v3", "offset": 1, "slot": "1", "type": "t_uint64"},
        {"label": "v4", "offset": 0, "slot": "2", "type": "t_array(t_uint24)dyn_storage"},
        {"label": "v5", "offset": 0, "slot": "3", "type": "t_string_storage"},
        {"label": "v6", "offset": 0, "slot": "4", "type": "t_mapping(t_address,t_string_storage)"},
    ],
    "types": {
        "t_address": {"encoding": "inplace", "label": "address", "numberOfBytes": "20"},
        "t_array(t_uint24)dyn_storage": {
            "base": "t_uint24",
            "encoding": "dynamic_array",
            "label": "uint24[]",
            "numberOfBytes": "32",
        },
        "t_bool": {"encoding": "inplace", "label": "bool", "numberOfBytes": "1"},
        "t_uint24": {"encoding": "inplace", "label": "uint24", "numberOfBytes": "3"},
        "t_uint64": {"encoding": "inplace", "label": "uint64", "numberOfBytes": "8"},
        "t_uint256": {"encoding": "inplace", "label": "uint256", "numberOfBytes": "32"},
        "t_mapping(t_address,t_string_storage)": {
            "encoding": "mapping",
            "key": "t_address",
            "label": "mapping(address => string)",
            "numberOfBytes": "32",
            "value": "t_string_storage",
        },
        "t_string_storage": {"encoding": "bytes", "label": "string", "numberOfBytes": "32"},
    },
}

REFERENCE_SLOTS = {
    "0x00": "0x0000000000000000000000000000000000000000000000000000000001310dc1",  # 19992001
    "0x01": "0x0000000000000000000000000000000000000000000000000000000000186a01",  # true, 6250
    "0x02": "0x0000000000000000000000000000000000000000000000000000000000000008",  # size = 8
    "0x03": "0x0000000000000000000000000000000000000000000000000000000000000051",  # size = 40 * 2 + 1
    "0x04": "0x0000000000000000000000000000000000000000000000000000000000000000",  # empty
    "0x405787fa12a823e0f2b7631cc41b3ba8828b3321ca811111fa75cd3aa3bb5ace":
        "0x000000000000000000006000005400004800003c00003000002400001800000c",  # 12, 24, ... 96
    "0xc2575a0e9e593c00f959f8c92f12db2869c3395a3b0502d05e2516446f71f85b":
        "0x6c6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6f6e",  # loooooooooooooooooooooooooooooon
    "0xc2575a0e9e593c00f959f8c92f12db2869c3395a3b0502d05e2516446f71f85c":
        "0x6720737472696e67000000000000000000000000000000000000000000000000",  # g string
}

MAPPING_SLOTS = {
    "0xb66fcce8cb49ef7ecb29dc9c101618236577de5803411f41cf1630870d60235e":
        "0x6669727374206b65790000000000000000000000000000000000000000000012",  # first key, 9 * 2
    "0xd63246a66fe542dfb30cbc21fc3e726df01f44f3efa77d8b2687c097105132d4":
        "0x7365636f6e64206b657900000000000000000000000000000000000000000014",  # second key, 10 * 2
}

REFERENCE_STORAGE = {
    "v1": 19992001,
    "v2": True,
    "v3": 6250,
    "v4": [12, 24, 36, 48, 60, 72, 84, 96],
    "v5": "loooooooooooooooooooooooooooooong string",
    "v6": "mapping(address => string)",
}

ADDRESS = "0x29eb3b7895cc2c1adf6ff1f313307acc8e2b6147"


def word(body: str) -> str:
    """Left-pad a hex body to a full 0x-prefixed 32-byte word."""
    return "0x" + body.rjust(64, "0")


def canon(slot: str) -> str:
    """Canonical slot key as produced by the decoder."""
    return add_slot(slot, 0)


class FakeProvider:
    """Dict-backed node: unknown slots read as zero, every call is recorded."""

    def __init__(self, slots: Dict[str, str]) -> None:
        self.slots = dict(slots)
        self.calls: List[tuple] = []

    def get_storage_at(self, address: str, slot: str, block: Optional[object] = None) -> str:
        self.calls.append((address, slot, block))
        return self.slots.get(slot, ZERO_WORD)

    def __call__(self, slot: str, block: Optional[object] = None) -> str:
        return self.get_storage_at(ADDRESS, slot, block)

    @property
    def fetched(self) -> List[str]:
        return [slot for _, slot, _ in self.calls]


@pytest.fixture()
def reference_layout() -> StorageLayout:
    return StorageLayout.from_dict(REFERENCE_LAYOUT)


@pytest.fixture()
def reference_provider() -> FakeProvider:
    return FakeProvider(REFERENCE_SLOTS)
