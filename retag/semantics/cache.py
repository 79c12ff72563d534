from typing import Dict, FrozenSet, NamedTuple, Optional, Tuple

from ..utils.locks import ReadWriteLock


class Synthesis(NamedTuple):
    type: type
    changed: bool
    has_iface: bool = False
    # Structures met again mid-build that this result was computed against.
    # Such a result only holds inside that build and is never cached.
    pending: FrozenSet[str] = frozenset()


class TypeCache:
    """
    Maps (source type, maker) -> Synthesis for the life of the process.
    Entries are never evicted; two threads missing the same key may both
    build it and the later store wins.
    """

    def __init__(self):
        self._lock = ReadWriteLock()
        self._entries: Dict[Tuple[type, object], Synthesis] = {}

    def lookup(self, t: type, maker) -> Optional[Synthesis]:
        with self._lock.read():
            return self._entries.get((t, maker))

    def store(self, t: type, maker, result: Synthesis) -> None:
        with self._lock.write():
            self._entries[(t, maker)] = result

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __contains__(self, key) -> bool:
        with self._lock.read():
            return key in self._entries
