import heapq
import itertools

from .models import QueueEntry


class EmptyQueueError(IndexError):
    pass


class AllocationQueue:
    """Min-heap of unconsumed credit balance, oldest timestamp first.

    Ties on timestamp are broken by insertion sequence. A remainder entry
    keeps the sequence of the entry it was cut from, so a partially spent
    credit holds its place among credits sharing its timestamp.
    """

    def __init__(self):
        self._heap: list[tuple] = []
        self._sequence = itertools.count()

    def insert(self, entry: QueueEntry) -> QueueEntry:
        if entry.sequence is None:
            entry = entry.model_copy(update={"sequence": next(self._sequence)})
        heapq.heappush(self._heap, (entry.timestamp, entry.sequence, entry))
        return entry

    def peek_oldest(self) -> QueueEntry:
        if not self._heap:
            raise EmptyQueueError("allocation queue is empty")
        return self._heap[0][2]

    def pop_oldest(self) -> QueueEntry:
        if not self._heap:
            raise EmptyQueueError("allocation queue is empty")
        return heapq.heappop(self._heap)[2]

    def is_empty(self) -> bool:
        return not self._heap

    def total(self) -> int:
        return sum(item[2].points for item in self._heap)

    def entries(self) -> list[QueueEntry]:
        """Raw heap contents; order is not guaranteed."""
        return [item[2] for item in self._heap]

    def ordered(self) -> list[QueueEntry]:
        return [item[2] for item in sorted(self._heap, key=lambda item: item[:2])]

    def drain(self) -> list[QueueEntry]:
        drained = []
        while self._heap:
            drained.append(self.pop_oldest())
        return drained

    def __len__(self) -> int:
        return len(self._heap)
