"""
Typed model of a compiler ``storageLayout`` document.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import LayoutError

ENCODINGS = {"inplace", "mapping", "dynamic_array", "bytes"}

_FIXED_ARRAY_LENGTH = re.compile(r".*\[(\d+)\]$")


class TypeKind(Enum):
    INPLACE = "inplace"
    MAPPING = "mapping"
    BYTES = "bytes"
    DYNAMIC_ARRAY = "dynamic_array"
    ARRAY = "array"
    STRUCT = "struct"


@dataclass(frozen=True)
class StorageVariable:
    label: str
    offset: int
    slot: str
    type: str

    @classmethod
    def from_dict(cls, item: Any) -> "StorageVariable":
        if not isinstance(item, dict):
            raise LayoutError("storage variable must be an object.")
        missing = [key for key in ("label", "slot", "type") if key not in item]
        if missing:
            raise LayoutError(f"storage variable is missing {', '.join(missing)}.")

        offset_raw = item.get("offset", 0)
        try:
            offset = int(offset_raw)
        except (TypeError, ValueError) as exc:
            raise LayoutError(f"invalid offset for '{item['label']}': {offset_raw!r}") from exc
        if not 0 <= offset < 32:
            raise LayoutError(f"offset for '{item['label']}' must be within 0-31, got {offset}.")

        return cls(
            label=str(item["label"]),
            offset=offset,
            slot=str(item["slot"]),
            type=str(item["type"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "offset": self.offset, "slot": self.slot, "type": self.type}


@dataclass(frozen=True)
class StorageType:
    encoding: str
    label: str
    number_of_bytes: int
    base: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None
    members: Optional[Tuple[StorageVariable, ...]] = None
    kind: TypeKind = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", self._classify())

    def _classify(self) -> TypeKind:
        if self.base is not None:
            if self.encoding == "dynamic_array":
                return TypeKind.DYNAMIC_ARRAY
            return TypeKind.ARRAY
        if self.members is not None:
            return TypeKind.STRUCT
        return TypeKind(self.encoding)

    @property
    def fixed_length(self) -> Optional[int]:
        """Element count from a trailing ``[N]`` in the label, if any."""
        match = _FIXED_ARRAY_LENGTH.match(self.label)
        if not match:
            return None
        return int(match.group(1))

    @classmethod
    def from_dict(cls, type_id: str, item: Any) -> "StorageType":
        if not isinstance(item, dict):
            raise LayoutError(f"type '{type_id}' must be an object.")

        encoding = item.get("encoding")
        if encoding not in ENCODINGS:
            raise LayoutError(f"type '{type_id}' has unsupported encoding {encoding!r}.")

        size_raw = item.get("numberOfBytes", "32")
        try:
            size = int(size_raw)
        except (TypeError, ValueError) as exc:
            raise LayoutError(f"type '{type_id}' has invalid numberOfBytes {size_raw!r}.") from exc

        members_raw = item.get("members")
        members: Optional[Tuple[StorageVariable, ...]] = None
        if members_raw is not None:
            if not isinstance(members_raw, list):
                raise LayoutError(f"members of type '{type_id}' must be a list.")
            members = tuple(StorageVariable.from_dict(member) for member in members_raw)

        return cls(
            encoding=encoding,
            label=str(item.get("label", type_id)),
            number_of_bytes=size,
            base=item.get("base"),
            key=item.get("key"),
            value=item.get("value"),
            members=members,
        )


@dataclass(frozen=True)
class StorageLayout:
    storage: Tuple[StorageVariable, ...]
    types: Dict[str, StorageType]

    def resolve(self, type_id: Optional[str]) -> Optional[StorageType]:
        if type_id is None:
            return None
        return self.types.get(type_id)

    def select(self, labels: Optional[List[str]] = None) -> List[StorageVariable]:
        """Top-level variables whose label is in ``labels``, in declaration order."""
        if labels is None:
            return list(self.storage)
        wanted = set(labels)
        return [var for var in self.storage if var.label in wanted]

    @classmethod
    def from_dict(cls, payload: Any) -> "StorageLayout":
        if not isinstance(payload, dict):
            raise LayoutError("storage layout must be an object.")
        if "storageLayout" in payload and "storage" not in payload:
            payload = payload["storageLayout"]
            if not isinstance(payload, dict):
                raise LayoutError("storageLayout must be an object.")

        storage_raw = payload.get("storage")
        if not isinstance(storage_raw, list):
            raise LayoutError("storage layout is missing the 'storage' list.")

        # solc emits "types": null for contracts without state variables
        types_raw = payload.get("types") or {}
        if not isinstance(types_raw, dict):
            raise LayoutError("'types' must be an object.")

        return cls(
            storage=tuple(StorageVariable.from_dict(item) for item in storage_raw),
            types={type_id: StorageType.from_dict(type_id, item) for type_id, item in types_raw.items()},
        )

    @classmethod
    def from_json(cls, text: str) -> "StorageLayout":
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise LayoutError(f"storage layout is not valid JSON: {exc}") from exc
        return cls.from_dict(payload)
