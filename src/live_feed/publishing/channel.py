from __future__ import annotations

import queue
import threading

from live_feed.models.record import ContentRecord
from live_feed.processing.types import LogFunc, RecordListener


class PublishChannel:
    """발행된 레코드를 구독자 큐와 리스너에 전달한다.

    리스너 예외는 로그만 남기며 발행 틱을 깨뜨리지 않는다.
    """

    def __init__(self, *, logger: LogFunc, maxsize: int = 0) -> None:
        self._log = logger
        self._maxsize = maxsize
        self._subscribers: list[queue.Queue] = []
        self._listeners: list[RecordListener] = []
        self._lock = threading.Lock()
        self.emitted = 0

    def subscribe(self) -> "queue.Queue[ContentRecord]":
        q: queue.Queue = queue.Queue(maxsize=self._maxsize)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue) -> None:
        with self._lock:
            if q in self._subscribers:
                self._subscribers.remove(q)

    def add_listener(self, callback: RecordListener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def emit(self, record: ContentRecord) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
            listeners = list(self._listeners)
        for q in subscribers:
            try:
                q.put_nowait(record)
            except queue.Full:
                self._log(f"⚠️ 구독 큐가 가득 차 발행 누락: {record.id}")
        for callback in listeners:
            try:
                callback(record)
            except Exception as e:
                self._log(f"⚠️ 발행 리스너 오류({record.id}): {type(e).__name__}: {e}")
        self.emitted += 1
