from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass

from live_feed.models.record import ContentRecord, ProcessingStatus
from live_feed.processing.buffer import PipelineBuffer
from live_feed.processing.enrichment import Enricher
from live_feed.processing.scheduler import Scheduler
from live_feed.processing.scoring import Scorer
from live_feed.processing.types import LogFunc, NowFunc
from live_feed.publishing.channel import PublishChannel
from live_feed.publishing.history import PublishHistory
from live_feed.storage.live_store import InMemoryLiveStore


@dataclass
class PublishTickResult:
    enriched: int = 0
    scored: int = 0
    scheduled: int = 0
    published: ContentRecord | None = None
    store_failed: bool = False


class Publisher:
    """발행 틱마다 enrich → score → schedule 후 준비된 슬롯을 최대 1개 발행한다."""

    def __init__(
        self,
        *,
        buffer: PipelineBuffer,
        enricher: Enricher,
        scorer: Scorer,
        scheduler: Scheduler,
        history: PublishHistory,
        store: InMemoryLiveStore,
        channel: PublishChannel,
        logger: LogFunc,
        now_provider: NowFunc | None = None,
    ) -> None:
        self._buffer = buffer
        self._enricher = enricher
        self._scorer = scorer
        self._scheduler = scheduler
        self._history = history
        self._store = store
        self._channel = channel
        self._log = logger
        self._now = now_provider or time.time
        self.last_published_at: float | None = None

    def tick(self, now: float | None = None) -> PublishTickResult:
        ts = now if now is not None else self._now()
        result = PublishTickResult()
        with self._buffer.locked():
            result.enriched = len(self._enricher.enrich_pending(self._buffer, ts))
            result.scored = len(self._scorer.score_pending(self._buffer))
            scored = self._buffer.by_status(ProcessingStatus.SCORED)
            result.scheduled = len(self._scheduler.schedule(scored, self._history, ts))

            slot = self._scheduler.pop_ready(self._history, ts)
            if slot is None:
                return result

            published = dataclasses.replace(slot.record, topics=list(slot.record.topics))
            published.advance(ProcessingStatus.PUBLISHED, at=ts)
            try:
                self._store.insert_live(published, now=ts)
            except Exception as e:
                # 저장 실패 시 슬롯을 되돌리고 다음 틱에 재시도
                self._scheduler.push_back(slot)
                result.store_failed = True
                self._log(f"⚠️ 라이브 저장 실패, 다음 틱 재시도({slot.record_id}): {type(e).__name__}: {e}")
                return result

            self._buffer.remove(slot.record_id)
            self._history.record(published.id, published.source_tag, ts)

        self.last_published_at = ts
        result.published = published
        self._log(
            f"📣 발행: [{published.source_tag}] {published.title[:60]} "
            f"(우선순위 {slot.effective_priority:.2f})"
        )
        self._channel.emit(published)
        return result
