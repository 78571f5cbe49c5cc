"""state.py - Signature to index-entry mapping owned by one synchronizer."""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Set


class SyncState:
    """Which index entry currently holds each synchronized fact.

    Besides the mapping itself, the state tracks signatures whose insert is
    in flight so that a fact arriving twice in quick succession is indexed
    once. Nothing here is persisted.
    """

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self._in_flight: Set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))

    def get(self, signature: str) -> Optional[str]:
        return self._entries.get(signature)

    def record(self, signature: str, entry_id: str) -> None:
        self._entries[signature] = entry_id
        self._in_flight.discard(signature)

    def pop(self, signature: str) -> Optional[str]:
        return self._entries.pop(signature, None)

    def reserve(self, signature: str) -> bool:
        """Claim ``signature`` for insertion.

        Returns:
            False if it is already mapped or another insert holds the claim.
        """
        if signature in self._entries or signature in self._in_flight:
            return False
        self._in_flight.add(signature)
        return True

    def release(self, signature: str) -> None:
        self._in_flight.discard(signature)

    def signatures(self) -> List[str]:
        return list(self._entries)

    def snapshot(self) -> Dict[str, str]:
        return dict(self._entries)

    def clear(self) -> None:
        self._entries.clear()
        self._in_flight.clear()
