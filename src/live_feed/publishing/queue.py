from __future__ import annotations

import heapq
import itertools
from typing import Any, Callable, Generic, Iterator, TypeVar

T = TypeVar("T")


class PriorityQueue(Generic[T]):
    """키가 작은 항목부터 꺼내는 힙 큐. 키가 같으면 먼저 넣은 항목이 먼저 나온다.

    `key`는 push 시점에 한 번 계산된다. 우선순위가 바뀐 항목은 `remove_where` 후
    다시 넣어야 한다.
    """

    def __init__(self, key: Callable[[T], Any]) -> None:
        self._key = key
        self._heap: list[tuple[Any, int, T]] = []
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._heap)

    def __bool__(self) -> bool:
        return bool(self._heap)

    def __iter__(self) -> Iterator[T]:
        for _, _, item in sorted(self._heap, key=lambda entry: entry[:2]):
            yield item

    def push(self, item: T) -> None:
        heapq.heappush(self._heap, (self._key(item), next(self._counter), item))

    def pop(self) -> T | None:
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek(self) -> T | None:
        return self._heap[0][2] if self._heap else None

    def pop_first(self, predicate: Callable[[T], bool]) -> T | None:
        """순서대로 보며 조건을 만족하는 첫 항목을 꺼낸다."""
        ordered = sorted(self._heap, key=lambda entry: entry[:2])
        for entry in ordered:
            if predicate(entry[2]):
                self._heap.remove(entry)
                heapq.heapify(self._heap)
                return entry[2]
        return None

    def remove_where(self, predicate: Callable[[T], bool]) -> list[T]:
        kept: list[tuple[Any, int, T]] = []
        removed: list[T] = []
        for entry in self._heap:
            if predicate(entry[2]):
                removed.append(entry[2])
            else:
                kept.append(entry)
        if removed:
            self._heap = kept
            heapq.heapify(self._heap)
        return removed

    def clear(self) -> None:
        self._heap.clear()
