from __future__ import annotations

import threading
from collections import Counter
from typing import Iterable

from live_feed.models.record import ContentRecord, ProcessingStatus, ScheduledSlot
from live_feed.processing.types import LogFunc
from live_feed.publishing.history import PublishHistory
from live_feed.publishing.queue import PriorityQueue


def _slot_key(slot: ScheduledSlot) -> tuple[float, float, str]:
    # 우선순위 내림차순 → 오래된 게시물 먼저 → id
    return (-slot.effective_priority, slot.record.created_at, slot.record.id)


class Scheduler:
    """점수가 매겨진 레코드에 발행 슬롯을 배정한다.

    규칙:
    - 유효 우선순위(priority + 기아 보정)가 하한 이상이어야 한다.
    - 같은 source_tag의 대기 슬롯은 하나뿐이다.
    - 같은 source_tag의 마지막 발행 후 `min_spacing_sec`이 지나야 한다.

    `starvation_ticks`번 연속으로 배정에서 밀린 레코드는 이후 밀릴 때마다
    `starvation_boost`씩 (최대 `starvation_max_boost`) 가산점을 받는다. 가산점은
    하한과 정렬에만 영향을 주고 간격 규칙은 넘지 못한다.
    """

    def __init__(
        self,
        *,
        logger: LogFunc,
        min_priority: float = 0.0,
        min_spacing_sec: float = 60.0,
        starvation_ticks: int = 20,
        starvation_boost: float = 0.1,
        starvation_max_boost: float = 2.0,
    ) -> None:
        self._log = logger
        self._min_priority = float(min_priority)
        self._min_spacing_sec = max(0.0, float(min_spacing_sec))
        self._starvation_ticks = max(0, int(starvation_ticks))
        self._starvation_boost = max(0.0, float(starvation_boost))
        self._starvation_max_boost = max(0.0, float(starvation_max_boost))
        self._queue: PriorityQueue[ScheduledSlot] = PriorityQueue(key=_slot_key)
        self._scheduled_ids: set[str] = set()
        self._missed: dict[str, int] = {}
        self._lock = threading.RLock()

    @property
    def min_spacing_sec(self) -> float:
        return self._min_spacing_sec

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def pending_count(self) -> int:
        return len(self)

    def slots(self) -> list[ScheduledSlot]:
        with self._lock:
            return list(self._queue)

    def is_scheduled(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._scheduled_ids

    def missed_ticks(self, record_id: str) -> int:
        with self._lock:
            return self._missed.get(record_id, 0)

    def starvation_bonus(self, missed: int) -> float:
        extra = missed - self._starvation_ticks
        if extra <= 0:
            return 0.0
        return min(self._starvation_max_boost, extra * self._starvation_boost)

    def effective_priority(self, record: ContentRecord) -> float:
        base = record.priority if record.priority is not None else 0.0
        return base + self.starvation_bonus(self._missed.get(record.id, 0))

    def _spacing_ok(self, source_tag: str, history: PublishHistory, now: float) -> bool:
        last = history.last_published_at(source_tag, now)
        return last is None or now - last >= self._min_spacing_sec

    def schedule(
        self,
        scored: Iterable[ContentRecord],
        history: PublishHistory,
        now: float,
    ) -> list[ScheduledSlot]:
        with self._lock:
            candidates = [
                r for r in scored
                if r.id not in self._scheduled_ids and r.processing_status == ProcessingStatus.SCORED
            ]
            # 버퍼에서 사라진 레코드의 기아 카운터는 버린다
            candidate_ids = {r.id for r in candidates}
            self._missed = {rid: n for rid, n in self._missed.items() if rid in candidate_ids}

            ranked = sorted(
                ((self.effective_priority(r), r) for r in candidates),
                key=lambda pair: (-pair[0], pair[1].created_at, pair[1].id),
            )
            busy_tags = {slot.source_tag for slot in self._queue}
            created: list[ScheduledSlot] = []
            for priority, record in ranked:
                tag = record.source_tag
                eligible = (
                    priority >= self._min_priority
                    and tag not in busy_tags
                    and self._spacing_ok(tag, history, now)
                )
                if not eligible:
                    self._missed[record.id] = self._missed.get(record.id, 0) + 1
                    continue
                record.advance(ProcessingStatus.SCHEDULED)
                slot = ScheduledSlot(
                    record=record,
                    earliest_publish_at=now,
                    scheduled_at=now,
                    effective_priority=priority,
                )
                self._queue.push(slot)
                self._scheduled_ids.add(record.id)
                self._missed.pop(record.id, None)
                busy_tags.add(tag)
                created.append(slot)
            return created

    def pop_ready(self, history: PublishHistory, now: float) -> ScheduledSlot | None:
        with self._lock:
            slot = self._queue.pop_first(
                lambda s: s.earliest_publish_at <= now and self._spacing_ok(s.source_tag, history, now)
            )
            if slot is not None:
                self._scheduled_ids.discard(slot.record_id)
            return slot

    def push_back(self, slot: ScheduledSlot) -> None:
        with self._lock:
            if slot.record_id in self._scheduled_ids:
                return
            self._queue.push(slot)
            self._scheduled_ids.add(slot.record_id)

    def clear_source(self, source_tag: str) -> list[ScheduledSlot]:
        with self._lock:
            removed = self._queue.remove_where(lambda s: s.source_tag == source_tag)
            for slot in removed:
                self._scheduled_ids.discard(slot.record_id)
                self._missed.pop(slot.record_id, None)
            if removed:
                self._log(f"🧹 {source_tag} 대기 슬롯 {len(removed)}개 제거")
            return removed

    def forget(self, record_ids: Iterable[str]) -> list[ScheduledSlot]:
        doomed = set(record_ids)
        with self._lock:
            removed = self._queue.remove_where(lambda s: s.record_id in doomed)
            for record_id in doomed:
                self._scheduled_ids.discard(record_id)
                self._missed.pop(record_id, None)
            return removed

    def pending_by_source(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(slot.source_tag for slot in self._queue))
