from __future__ import annotations

import time
from collections import Counter
from typing import Any

from live_feed.core.config import PipelineSettings
from live_feed.maintenance.feed_maintainer import FeedMaintainer, MaintenanceResult
from live_feed.processing.ai_service import AnalysisService
from live_feed.processing.buffer import PipelineBuffer
from live_feed.processing.dedupe import Deduplicator
from live_feed.processing.enrichment import Enricher
from live_feed.processing.ingestor import FetchTask, Ingestor, IngestResult, build_fetch_tasks
from live_feed.processing.llm_client import analyze_text, generate_text
from live_feed.processing.scheduler import Scheduler
from live_feed.processing.scoring import Scorer, WeightTable
from live_feed.processing.types import LogFunc, NowFunc
from live_feed.publishing.channel import PublishChannel
from live_feed.publishing.history import PublishHistory
from live_feed.publishing.narration import NarrationQueue
from live_feed.publishing.publisher import Publisher, PublishTickResult
from live_feed.scrapers.reddit_client import RedditClient
from live_feed.scrapers.rss_client import RssSourceClient
from live_feed.storage.live_store import InMemoryLiveStore, JsonFileLiveStore
from live_feed.utils.timers import IntervalTimer


class LiveFeedPipeline:
    """수집 / 발행 / 유지보수 세 타이머를 묶는 오케스트레이터.

    각 타이머는 독립적으로 돌고, 공유 상태는 버퍼 락과 저장소 락으로만 만난다.
    `stop()` 후에도 버퍼/라이브/아카이브 데이터는 그대로 남아 `start()`로 이어서 돈다.
    """

    def __init__(
        self,
        *,
        settings: PipelineSettings,
        buffer: PipelineBuffer,
        ingestor: Ingestor,
        publisher: Publisher,
        maintainer: FeedMaintainer,
        scheduler: Scheduler,
        scorer: Scorer,
        history: PublishHistory,
        store: InMemoryLiveStore,
        channel: PublishChannel,
        narration: NarrationQueue,
        logger: LogFunc,
        ai_service: AnalysisService | None = None,
        now_provider: NowFunc | None = None,
    ) -> None:
        self.settings = settings
        self.buffer = buffer
        self.ingestor = ingestor
        self.publisher = publisher
        self.maintainer = maintainer
        self.scheduler = scheduler
        self.scorer = scorer
        self.history = history
        self.store = store
        self.channel = channel
        self.narration = narration
        self.ai_service = ai_service
        self._log = logger
        self._now = now_provider or time.time
        self._timers: list[IntervalTimer] = []

    @property
    def is_running(self) -> bool:
        return any(timer.is_running for timer in self._timers)

    def ingest_once(self) -> IngestResult:
        return self.ingestor.tick()

    def publish_once(self) -> PublishTickResult:
        return self.publisher.tick()

    def maintain_once(self) -> MaintenanceResult:
        return self.maintainer.run()

    def start(self) -> None:
        if self.is_running:
            self._log("ℹ️ 파이프라인이 이미 실행 중입니다")
            return
        s = self.settings
        self._timers = [
            IntervalTimer("ingest", s.fetch_interval_sec, self.ingest_once, logger=self._log),
            IntervalTimer("publish", s.publish_interval_sec, self.publish_once, logger=self._log),
            IntervalTimer(
                "maintenance",
                s.maintenance_interval_sec,
                self.maintain_once,
                logger=self._log,
                run_immediately=False,
            ),
        ]
        for timer in self._timers:
            timer.start()
        self._log(
            f"▶️ 파이프라인 시작: 수집 {s.fetch_interval_sec:.0f}초 / 발행 {s.publish_interval_sec:.0f}초 / "
            f"유지보수 {s.maintenance_interval_sec:.0f}초"
        )

    def stop(self, join_timeout_sec: float = 5.0) -> None:
        # 모든 타이머에 먼저 신호를 보낸 뒤 하나씩 join
        for timer in self._timers:
            timer.signal_stop()
        for timer in self._timers:
            timer.stop(join_timeout_sec)
        self.ingestor.shutdown()
        if self.ai_service is not None:
            self.ai_service.shutdown()
        self._timers = []
        self._log("⏹️ 파이프라인 중지 (데이터 유지)")

    def clear_source(self, source_tag: str) -> dict[str, int]:
        with self.buffer.locked():
            slots = self.scheduler.clear_source(source_tag)
            dropped = self.buffer.remove_where(lambda r: r.source_tag == source_tag)
            self.scheduler.forget(r.id for r in dropped)
        jobs = self.narration.clear_source(source_tag)
        self._log(f"🧹 {source_tag} 대기 작업 정리: 버퍼 {len(dropped)}, 슬롯 {len(slots)}, 내레이션 {len(jobs)}")
        return {"buffered": len(dropped), "scheduled": len(slots), "narration": len(jobs)}

    def pending_by_source(self) -> dict[str, int]:
        with self.buffer.locked():
            counts = Counter(self.buffer.get(rid).source_tag for rid in self.buffer.ids())
        return dict(counts)

    def stats(self) -> dict[str, Any]:
        now = self._now()
        last_maintenance = self.maintainer.last_run_at
        return {
            "running": self.is_running,
            "buffer": self.buffer.counts(),
            "scheduled": self.scheduler.pending_count(),
            "scheduledBySource": self.scheduler.pending_by_source(),
            "publishedInWindow": self.history.count(now),
            "liveSize": self.store.live_size(),
            "archiveSize": self.store.archive_size(),
            "narrationByTier": self.narration.counts_by_tier(),
            "lastIngestAt": self.ingestor.last_ingest_at,
            "lastPublishAt": self.publisher.last_published_at,
            "lastMaintenanceAt": last_maintenance,
            "inBackoff": self.ingestor.in_backoff(now),
            "backoffUntil": self.ingestor.backoff_until or None,
            "aiFallbacks": self.ai_service.fallback_count if self.ai_service is not None else 0,
        }


def build_default_store(settings: PipelineSettings) -> InMemoryLiveStore:
    if settings.live_store_path:
        return JsonFileLiveStore(settings.live_store_path)
    return InMemoryLiveStore()


def build_default_ai_service(*, settings: PipelineSettings, logger: LogFunc) -> AnalysisService | None:
    if not settings.ai_analysis_enabled:
        return None
    return AnalysisService(
        analyze_func=analyze_text,
        generate_func=generate_text,
        logger=logger,
        timeout_sec=settings.ai_analysis_timeout_sec,
    )


def build_default_fetch_tasks(settings: PipelineSettings) -> list[FetchTask]:
    reddit = RedditClient()
    rss = RssSourceClient() if settings.rss_feeds else None
    return build_fetch_tasks(
        subreddits=settings.subreddits,
        strategies=settings.strategies_per_source,
        reddit_fetch=reddit.fetch,
        rss_feeds=settings.rss_feeds,
        rss_fetch=rss.fetch if rss is not None else None,
    )


def build_default_pipeline(
    *,
    logger: LogFunc,
    settings: PipelineSettings | None = None,
    tasks: list[FetchTask] | None = None,
    store: InMemoryLiveStore | None = None,
    now_provider: NowFunc | None = None,
) -> LiveFeedPipeline:
    s = settings or PipelineSettings.from_env()
    now = now_provider or time.time
    buffer = PipelineBuffer(max_size=s.buffer_max_size)
    live_store = store if store is not None else build_default_store(s)
    history = PublishHistory(window_sec=max(s.published_window_sec, s.min_publish_spacing_sec))
    ai_service = build_default_ai_service(settings=s, logger=logger)
    enricher = Enricher(
        logger=logger,
        batch_size=s.enrichment_batch_size,
        analyze_func=ai_service.analyze if ai_service is not None else None,
        now_provider=now,
    )
    scorer = Scorer(logger=logger, weights=WeightTable(s.scoring_weights), enricher=enricher)
    scheduler = Scheduler(
        logger=logger,
        min_priority=s.min_priority,
        min_spacing_sec=s.min_publish_spacing_sec,
        starvation_ticks=s.starvation_ticks,
        starvation_boost=s.starvation_boost,
        starvation_max_boost=s.starvation_max_boost,
    )
    channel = PublishChannel(logger=logger)
    narration = NarrationQueue(narrate_func=ai_service.narrate if ai_service is not None else None)
    channel.add_listener(narration.on_published)

    def _published_ids() -> set[str]:
        # 최근 발행 + 라이브 + 아카이브 id는 다시 수집하지 않는다
        ids = history.ids(now()) | live_store.live_ids()
        ids.update(entry.record_id for entry in live_store.query_archive())
        return ids

    ingestor = Ingestor(
        tasks=tasks if tasks is not None else build_default_fetch_tasks(s),
        buffer=buffer,
        deduplicator=Deduplicator(),
        published_ids_func=_published_ids,
        logger=logger,
        per_source_cap=s.per_source_cap,
        fetch_limit=s.fetch_limit,
        fetch_timeout_sec=s.fetch_timeout_sec,
        max_workers=s.fetch_max_workers,
        content_mode=s.content_mode,
        rate_limit_backoff_sec=s.rate_limit_backoff_sec,
        now_provider=now,
    )
    publisher = Publisher(
        buffer=buffer,
        enricher=enricher,
        scorer=scorer,
        scheduler=scheduler,
        history=history,
        store=live_store,
        channel=channel,
        logger=logger,
        now_provider=now,
    )
    maintainer = FeedMaintainer(
        store=live_store,
        enricher=enricher,
        logger=logger,
        max_live_size=s.max_live_size,
        enrichment_batch_size=s.maintenance_enrich_batch_size,
        archive_age_hours=s.archive_age_hours,
        reenrich_after_sec=s.reenrich_after_sec,
        now_provider=now,
    )
    return LiveFeedPipeline(
        settings=s,
        buffer=buffer,
        ingestor=ingestor,
        publisher=publisher,
        maintainer=maintainer,
        scheduler=scheduler,
        scorer=scorer,
        history=history,
        store=live_store,
        channel=channel,
        narration=narration,
        logger=logger,
        ai_service=ai_service,
        now_provider=now,
    )
