"""
Recursive decoder turning raw storage words into structured values.

Packed fields are addressed from the low-order end of a slot:

    address _owner => slot = 0, offset = 0,  numberOfBytes = 20
    bool _paused   => slot = 0, offset = 20, numberOfBytes = 1

    0x000000000000000000000001dbd9dfc88105565553dd709d7975afecaa466766
                           <-|                                     <-|
                             _paused                            _owner
"""

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from eth_abi import decode as abi_decode
from eth_abi.registry import registry

from .cache import WordCache
from .errors import InvalidBytes, InvalidEncoding, InvalidNumeric
from .layout import StorageLayout, StorageType, StorageVariable, TypeKind
from .slots import WORD_SIZE, BlockRef, add_slot, derive_array_slot, derive_map_slot, to_hex, to_int

logger = logging.getLogger(__name__)

# (slot as canonical hex, block reference) -> 0x-prefixed 32-byte word
WordProvider = Callable[[str, BlockRef], Union[str, bytes]]

UNKNOWN_TYPE = "<unknown>"
UNKNOWN_MAPPING_TYPE = "unknown type"

# upper bound on a long bytes/string length stored in a single slot
MAX_BYTES_LENGTH = 1 << 32


def word_from_hex(raw: Union[str, bytes], slot: str) -> bytes:
    """Normalise a provider result to exactly 32 bytes."""
    if isinstance(raw, (bytes, bytearray)):
        data = bytes(raw)
    elif isinstance(raw, str) and raw[:2].lower() == "0x":
        body = raw[2:]
        if len(body) % 2:
            body = "0" + body
        try:
            data = bytes.fromhex(body)
        except ValueError as exc:
            raise InvalidBytes(f"invalid word for slot {slot}: {raw!r}") from exc
    else:
        raise InvalidBytes(f"invalid word for slot {slot}: {raw!r}")

    if len(data) > WORD_SIZE:
        raise InvalidBytes(f"word for slot {slot} exceeds {WORD_SIZE} bytes.")
    return data.rjust(WORD_SIZE, b"\x00")


class StorageDecoder:
    """Walk a storage layout, fetching each slot at most once per ``decode`` call."""

    def __init__(
        self,
        provider: WordProvider,
        layout: StorageLayout,
        map_keys: Optional[Iterable[str]] = None,
        block: BlockRef = None,
    ) -> None:
        self._provider = provider
        self.layout = layout
        self.map_keys = tuple(map_keys or ())
        self.block = block
        self.cache = WordCache()

    def decode(self, variables: Sequence[StorageVariable]) -> Dict[str, Any]:
        self.cache = WordCache()
        return self._decode_variables("", variables, 0)

    def words(self) -> Dict[str, str]:
        return self.cache.as_dict()

    def _decode_variables(
        self,
        path: str,
        variables: Sequence[StorageVariable],
        slot_base: Union[int, str],
    ) -> Dict[str, Any]:
        output: Dict[str, Any] = {}
        for var in variables:
            ty = self.layout.resolve(var.type)
            if ty is None:
                logger.warning("Unknown type '%s' for variable '%s'.", var.type, var.label)
                output[var.label] = UNKNOWN_TYPE
                continue

            slot = add_slot(slot_base, var.slot)
            data = self.load_word(slot, var.offset, ty.number_of_bytes)
            child_path = f"{path}.{var.label}" if path else var.label
            output[var.label] = self._decode_value(child_path, data, ty, slot)
        return output

    def _decode_value(self, path: str, data: bytes, ty: StorageType, slot: str) -> Any:
        kind = ty.kind
        if kind in (TypeKind.DYNAMIC_ARRAY, TypeKind.ARRAY):
            return self._decode_array(path, data, ty, slot)
        if kind is TypeKind.STRUCT:
            return self._decode_variables(path, ty.members or (), slot)
        if kind is TypeKind.INPLACE:
            return self._decode_inplace(data, ty)
        if kind is TypeKind.MAPPING:
            return self._decode_mapping(path, ty, slot)
        return self._decode_bytes(data, ty, slot)

    def _decode_array(self, path: str, data: bytes, ty: StorageType, slot: str) -> Any:
        elem_type = self.layout.resolve(ty.base)
        elem_size = elem_type.number_of_bytes if elem_type else WORD_SIZE

        if ty.kind is TypeKind.DYNAMIC_ARRAY:
            count = int.from_bytes(data[:WORD_SIZE], "big")
            base_slot = derive_array_slot(slot)
        else:
            count = ty.fixed_length or 0
            if not count:
                logger.warning("Cannot read length of fixed array '%s' (%s).", path, ty.label)
                return "fixed array: 0x" + data.hex()
            base_slot = slot

        elements: List[Any] = []
        slot_delta = 0
        offset = 0
        for index in range(count):
            elem_slot = add_slot(base_slot, slot_delta)
            elem_data = self.load_word(elem_slot, offset, elem_size)
            if elem_type is None:
                elements.append("0x" + elem_data.hex())
            else:
                elements.append(self._decode_value(f"{path}[{index}]", elem_data, elem_type, elem_slot))

            if elem_size >= WORD_SIZE:
                slot_delta += (elem_size - 1) // WORD_SIZE + 1
            else:
                offset += elem_size
                if offset + elem_size > WORD_SIZE:
                    slot_delta += 1
                    offset = 0
        return elements

    def _decode_inplace(self, data: bytes, ty: StorageType) -> Any:
        label = ty.label
        raw = data
        if ty.number_of_bytes < WORD_SIZE:
            # bytes1..bytes32 are left-aligned, everything else right-aligned
            if label.startswith("bytes"):
                data = data.ljust(WORD_SIZE, b"\x00")
            elif label.startswith("int") and data and data[0] & 0x80:
                data = data.rjust(WORD_SIZE, b"\xff")
            else:
                data = data.rjust(WORD_SIZE, b"\x00")

        if label.startswith("contract"):
            abi_type = "address"
        elif label.startswith("enum") or label.startswith("function"):
            abi_type = "uint256"
        elif label == "address payable":
            abi_type = "address"
        else:
            abi_type = label

        if not registry.has_encoder(abi_type):
            logger.warning("No ABI decoder for '%s'; returning raw bytes.", label)
            return "0x" + raw.hex()

        value = abi_decode([abi_type], data)[0]

        if label.startswith("function"):
            return f"{label} -> 0x{value:x}"
        if label.startswith("contract"):
            return f"{label[9:]}({value})"
        if label.startswith("enum"):
            return f"{label[5:]}[{value}]"
        if isinstance(value, bytes):
            return "0x" + value.hex()
        return value

    def _probe_keys(self, path: str) -> List[str]:
        pattern = re.compile(re.escape(path) + r"\[(.*?)\](?=$|[\[.])")
        keys: List[str] = []
        for probe in self.map_keys:
            match = pattern.match(probe)
            if match and match.group(1) not in keys:
                keys.append(match.group(1))
        return keys

    def _decode_mapping(self, path: str, ty: StorageType, slot: str) -> Any:
        keys = self._probe_keys(path)
        if not keys:
            return ty.label

        key_type = self.layout.resolve(ty.key)
        value_type = self.layout.resolve(ty.value)

        values: Dict[str, Any] = {}
        for key in keys:
            if key_type is None or value_type is None:
                values[key] = UNKNOWN_MAPPING_TYPE
                continue

            try:
                value_slot = derive_map_slot(slot, key, key_type)
            except InvalidNumeric:
                logger.warning("Dropping probe '%s[%s]': key is not valid for %s.", path, key, key_type.label)
                continue

            data = self.load_word(value_slot, 0, value_type.number_of_bytes)
            values[key] = self._decode_value(f"{path}[{key}]", data, value_type, value_slot)

        if not values:
            return ty.label
        return values

    def _decode_bytes(self, data: bytes, ty: StorageType, slot: str) -> Any:
        # short (< 32 bytes): the low byte stores length * 2, data sits in the high bytes
        # long (>= 32 bytes): the word stores length * 2 + 1, data lives at keccak(slot)
        word = data[:WORD_SIZE]
        marker = word[-1]
        if marker % 2 == 0:
            payload = word[: marker // 2]
        else:
            length = (int.from_bytes(word, "big") - 1) // 2
            if length >= MAX_BYTES_LENGTH:
                raise InvalidBytes(f"implausible bytes length {length} at slot {slot}: 0x{word.hex()}")
            word_count = (length + WORD_SIZE - 1) // WORD_SIZE
            if word_count:
                payload = self.load_word(derive_array_slot(slot), 0, word_count * WORD_SIZE)[:length]
            else:
                payload = b""

        if ty.label.startswith("string"):
            try:
                return payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidEncoding(f"invalid UTF-8 in string at slot {slot}: 0x{payload.hex()}") from exc
        return "0x" + payload.hex()

    def load_word(self, slot: Union[int, str], offset: int, length: int) -> bytes:
        """Return ``length`` bytes at ``offset`` of ``slot``, spanning whole words if needed.

        A span of several words is returned uncut; how to trim it depends on the
        type being decoded.
        """
        base = to_int(slot)
        count = max(1, (length - 1) // WORD_SIZE + 1)
        words = [self._fetch(to_hex(base + index)) for index in range(count)]

        if count > 1:
            return b"".join(words)

        word = words[0]
        if length == WORD_SIZE:
            return word
        return word[WORD_SIZE - offset - length : WORD_SIZE - offset]

    def _fetch(self, slot: str) -> bytes:
        cached = self.cache.get(slot)
        if cached is not None:
            return cached

        logger.debug("Fetching storage slot %s (block=%s).", slot, self.block)
        word = word_from_hex(self._provider(slot, self.block), slot)
        self.cache.set(slot, word)
        return word
