from collections import deque
from typing import List
from uuid import uuid4

from config import ACTIVITY_LIMIT
from schemas import ActivityEntry, ActivityKind, utcnow


class ActivityLog:
    """Most recent mutation events, newest first. Older entries fall off the tail."""

    def __init__(self, capacity: int = ACTIVITY_LIMIT):
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)

    def record(self, kind: ActivityKind, message: str, actor: str) -> ActivityEntry:
        entry = ActivityEntry(id=uuid4().hex, created_at=utcnow(), kind=kind, message=message, actor=actor)
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[ActivityEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
