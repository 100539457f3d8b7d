from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class PublishEvent:
    record_id: str
    source_tag: str
    published_at: float


class PublishHistory:
    """최근 발행 이력. 간격 규칙과 중복 제거(최근 발행 id)의 기준이 된다.

    창 밖으로 밀려난 이벤트는 조회 시점에 정리된다.
    """

    def __init__(self, *, window_sec: float) -> None:
        self._window_sec = max(0.0, float(window_sec))
        self._events: deque[PublishEvent] = deque()
        self._last_by_source: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def window_sec(self) -> float:
        return self._window_sec

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_sec
        while self._events and self._events[0].published_at < cutoff:
            expired = self._events.popleft()
            if self._last_by_source.get(expired.source_tag) == expired.published_at:
                self._last_by_source.pop(expired.source_tag, None)

    def record(self, record_id: str, source_tag: str, published_at: float) -> None:
        with self._lock:
            self._events.append(PublishEvent(record_id, source_tag, published_at))
            previous = self._last_by_source.get(source_tag)
            if previous is None or published_at >= previous:
                self._last_by_source[source_tag] = published_at

    def last_published_at(self, source_tag: str, now: float) -> float | None:
        with self._lock:
            self._prune(now)
            return self._last_by_source.get(source_tag)

    def ids(self, now: float) -> set[str]:
        with self._lock:
            self._prune(now)
            return {event.record_id for event in self._events}

    def count(self, now: float) -> int:
        with self._lock:
            self._prune(now)
            return len(self._events)

    def events(self, now: float) -> list[PublishEvent]:
        with self._lock:
            self._prune(now)
            return list(self._events)
