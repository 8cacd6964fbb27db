"""Users waiting for a chat partner.

The queue is plain in-memory state with no locking of its own; the
``MatchCoordinator`` owns the only instance and serializes every call behind
its lock, which is what makes ``find_and_remove_partner`` atomic with respect
to concurrent joins.
"""
from dataclasses import dataclass


@dataclass(frozen=True)
class WaitingEntry:
    connection_id: str
    display_name: str
    region_tag: str


class WaitingQueue:
    def __init__(self):
        self._entries: list[WaitingEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: str) -> bool:
        return any(entry.connection_id == connection_id for entry in self._entries)

    def snapshot(self) -> list[WaitingEntry]:
        return list(self._entries)

    def enqueue(self, entry: WaitingEntry):
        """Append an entry, replacing any earlier entry for the same connection"""
        self.remove(entry.connection_id)
        self._entries.append(entry)

    def remove(self, connection_id: str):
        self._entries = [
            entry for entry in self._entries if entry.connection_id != connection_id
        ]

    def find_and_remove_partner(
        self, region_tag: str, exclude: str | None = None
    ) -> WaitingEntry | None:
        """Pop the best partner for a user from ``region_tag``.

        Worldwide first: the oldest entry from another region wins. Only when
        every waiting user shares the requester's region does the oldest
        same-region entry get picked. Returns None on an empty queue.
        """
        candidates = [
            (index, entry)
            for index, entry in enumerate(self._entries)
            if entry.connection_id != exclude
        ]

        for index, entry in candidates:
            if entry.region_tag != region_tag:
                return self._entries.pop(index)

        for index, entry in candidates:
            if entry.region_tag == region_tag:
                return self._entries.pop(index)

        return None
