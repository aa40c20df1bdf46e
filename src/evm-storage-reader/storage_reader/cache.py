from typing import Dict, List, Optional, Tuple


class WordCache:
    """In-memory cache of storage words keyed by canonical hex slot."""

    def __init__(self) -> None:
        self._memory: Dict[str, bytes] = {}

    def _key(self, slot: str) -> str:
        return slot.lower()

    def get(self, slot: str) -> Optional[bytes]:
        return self._memory.get(self._key(slot))

    def set(self, slot: str, word: bytes) -> None:
        self._memory[self._key(slot)] = word

    def __len__(self) -> int:
        return len(self._memory)

    def items(self) -> List[Tuple[str, bytes]]:
        # shorter slot strings first, then lexicographic
        return sorted(self._memory.items(), key=lambda item: (len(item[0]), item[0]))

    def as_dict(self) -> Dict[str, str]:
        return {slot: "0x" + word.hex() for slot, word in self.items()}
