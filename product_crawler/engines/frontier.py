from __future__ import annotations

from collections import deque
from typing import Deque, List, Set


class Frontier:
    """
    Breadth-first queue of pending URLs for a single domain, plus every URL ever enqueued.

    A URL is marked visited the moment it is enqueued, so it can be dispatched at most once.
    The visited set only ever grows.
    """

    def __init__(self, root: str) -> None:
        self._queue: Deque[str] = deque()
        self._visited: Set[str] = set()
        self.dispatched = 0
        self.add(root)

    def add(self, url: str) -> bool:
        """Enqueue ``url`` unless it was seen before. Returns True if it was enqueued."""
        if url in self._visited:
            return False
        self._visited.add(url)
        self._queue.append(url)
        return True

    def next_batch(self, size: int) -> List[str]:
        """Pop up to ``size`` URLs off the front of the queue."""
        batch = [self._queue.popleft() for _ in range(min(size, len(self._queue)))]
        self.dispatched += len(batch)
        return batch

    def seen(self, url: str) -> bool:
        return url in self._visited

    @property
    def visited_count(self) -> int:
        return len(self._visited)

    def __len__(self) -> int:
        return len(self._queue)
