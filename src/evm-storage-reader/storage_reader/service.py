import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import Config
from .decoder import StorageDecoder
from .layout import StorageLayout
from .rpc_client import RpcClient
from .slots import BlockRef, normalize_block_reference, to_hex, to_int

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

logger = logging.getLogger(__name__)

LayoutSource = Union[StorageLayout, Dict[str, Any], str, Path]


def load_layout(source: LayoutSource) -> StorageLayout:
    """Accept a parsed layout, a layout dict, JSON text, or a path to a JSON file."""
    if isinstance(source, StorageLayout):
        return source
    if isinstance(source, dict):
        return StorageLayout.from_dict(source)
    if isinstance(source, Path):
        return StorageLayout.from_json(source.read_text(encoding="utf-8"))
    if isinstance(source, str):
        if source.lstrip().startswith("{"):
            return StorageLayout.from_json(source)
        return StorageLayout.from_json(Path(source).read_text(encoding="utf-8"))
    raise ValueError("layout must be a dict, JSON string, or file path.")


def read_storage(
    provider: Any,
    address: str,
    layout: StorageLayout,
    variables: Optional[List[str]] = None,
    map_keys: Optional[List[str]] = None,
    block: BlockRef = None,
) -> Dict[str, Any]:
    """Decode the selected top-level variables of ``layout`` at ``address``.

    ``provider`` needs a ``get_storage_at(address, slot, block)`` method.
    Returns ``{"slots": {...}, "storage": {...}}`` where ``slots`` holds every
    fetched word ordered by (length, value) of the slot string.
    """

    def get_storage(slot: str, block_ref: BlockRef) -> str:
        return provider.get_storage_at(address, slot, block_ref)

    selected = layout.select(variables)
    decoder = StorageDecoder(get_storage, layout, map_keys, normalize_block_reference(block))
    storage = decoder.decode(selected)
    logger.info("Decoded %d variable(s) of %s from %d slot(s).", len(storage), address, len(decoder.cache))
    return {"slots": decoder.words(), "storage": storage}


class StorageService:
    """Combine configuration and RPC client to decode contract storage."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.client = RpcClient(
            rpc_url=config.rpc_url,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
            backoff_seconds=config.backoff_seconds,
        )

    def read_storage(
        self,
        address: str,
        layout: LayoutSource,
        variables: Optional[List[str]] = None,
        map_keys: Optional[List[str]] = None,
        block: BlockRef = None,
    ) -> Dict[str, Any]:
        normalized_address = self._normalize_address(address)
        parsed_layout = load_layout(layout)
        block_ref = block if block not in (None, "") else self.config.block

        result = read_storage(
            self.client,
            normalized_address,
            parsed_layout,
            variables=variables,
            map_keys=map_keys,
            block=block_ref,
        )
        return {"address": normalized_address, "block": "latest" if block_ref in (None, "") else block_ref, **result}

    def get_storage_at(self, address: str, slot: Any, block: BlockRef = None) -> Dict[str, Any]:
        normalized_address = self._normalize_address(address)
        normalized_slot = to_hex(to_int(slot))
        block_ref = normalize_block_reference(block if block not in (None, "") else self.config.block)

        word = self.client.get_storage_at(normalized_address, normalized_slot, block_ref)
        return {
            "address": normalized_address,
            "slot": normalized_slot,
            "data": word,
            "block": "latest" if block_ref in (None, "") else block_ref,
        }

    def _normalize_address(self, address: str) -> str:
        if not isinstance(address, str):
            raise ValueError("Address must be a string.")

        candidate = address.strip()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"

        if not ADDRESS_PATTERN.match(candidate):
            raise ValueError("Invalid address format. Expected 0x-prefixed 40 hex characters.")

        return candidate.lower()
