from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from live_feed.models.record import ContentRecord, ProcessingStatus


class PipelineBuffer:
    """수집~발행 사이의 레코드를 담는 공유 버퍼.

    수집/발행/관리 타이머가 서로 다른 스레드에서 돌기 때문에 모든 변경은
    `locked()` 안에서만 일어나야 한다. 여러 단계를 원자적으로 묶어야 하는 호출자
    (예: Publisher의 enrich→score→schedule→pop)는 직접 `locked()`를 잡는다.
    """

    def __init__(self, *, max_size: int = 200) -> None:
        self._lock = threading.RLock()
        self._records: dict[str, ContentRecord] = {}
        self._max_size = max(1, int(max_size))

    @contextmanager
    def locked(self) -> Iterator["PipelineBuffer"]:
        with self._lock:
            yield self

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        with self._lock:
            return record_id in self._records

    def get(self, record_id: str) -> ContentRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def ids(self) -> set[str]:
        with self._lock:
            return set(self._records.keys())

    def add_raw(self, records: list[ContentRecord]) -> list[ContentRecord]:
        added: list[ContentRecord] = []
        with self._lock:
            for record in records:
                if record.id in self._records:
                    continue
                if record.processing_status != ProcessingStatus.RAW:
                    raise ValueError(f"{record.id}: raw 상태만 버퍼에 넣을 수 있음")
                self._records[record.id] = record
                added.append(record)
        return added

    def by_status(self, status: ProcessingStatus) -> list[ContentRecord]:
        # 삽입(수집) 순서 유지
        with self._lock:
            return [r for r in self._records.values() if r.processing_status == status]

    def remove(self, record_id: str) -> ContentRecord | None:
        with self._lock:
            return self._records.pop(record_id, None)

    def remove_where(self, predicate) -> list[ContentRecord]:
        with self._lock:
            doomed = [r for r in self._records.values() if predicate(r)]
            for record in doomed:
                self._records.pop(record.id, None)
            return doomed

    def trim(self) -> list[ContentRecord]:
        """최대 크기를 넘으면 가장 오래된 미예약 레코드부터 제거."""
        with self._lock:
            overflow = len(self._records) - self._max_size
            if overflow <= 0:
                return []
            dropped: list[ContentRecord] = []
            for record in list(self._records.values()):
                if overflow <= 0:
                    break
                if record.processing_status >= ProcessingStatus.SCHEDULED:
                    continue
                self._records.pop(record.id, None)
                dropped.append(record)
                overflow -= 1
            return dropped

    def counts(self) -> dict[str, int]:
        with self._lock:
            counts = {status.label: 0 for status in ProcessingStatus if status != ProcessingStatus.PUBLISHED}
            for record in self._records.values():
                counts[record.status_label] = counts.get(record.status_label, 0) + 1
            return counts
