from typing import Dict, Generic, Optional, TypeVar

V = TypeVar("V")


class AppendOnlyCache(Generic[V]):
    """Process-lifetime map from a natural key (login, email) to a fetched value.

    Entries are never evicted, invalidated or refreshed. No lock is taken:
    two requests racing on the same key store equivalent values and the last
    writer wins.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._entries.get(key)

    def put(self, key: str, value: V) -> V:
        self._entries[key] = value
        return value

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
