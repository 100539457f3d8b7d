from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from live_feed.core.constants import ARCHIVE_REASON_AGED_OUT, ARCHIVE_REASON_SIZE_LIMIT
from live_feed.models.record import ArchiveEntry, ContentRecord
from live_feed.processing.enrichment import Enricher
from live_feed.processing.types import LogFunc, NowFunc
from live_feed.publishing.narration import build_narrative, build_summary, determine_tier
from live_feed.storage.live_store import InMemoryLiveStore
from live_feed.utils import truncate


@dataclass
class MaintenanceResult:
    started_at: float
    finished_at: float = 0.0
    archived_size_limit: int = 0
    reenriched: int = 0
    archived_aged_out: int = 0
    live_size: int = 0
    size_violation: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def archived(self) -> int:
        return self.archived_size_limit + self.archived_aged_out


def _age_anchor(record: ContentRecord) -> float:
    return record.added_at if record.added_at is not None else record.created_at


def archive_entry_from_record(record: ContentRecord, *, reason: str, archived_at: float) -> ArchiveEntry:
    if reason == ARCHIVE_REASON_SIZE_LIMIT:
        # 용량 초과로 밀려난 항목은 간단한 요약만 남긴다
        narrative = f"{record.title}\n\n{record.selftext or 'No content'}"
        summary = truncate(record.title, 100)
        tier = "low"
    else:
        narrative = build_narrative(record)
        summary = build_summary(record)
        tier = determine_tier(record)
    features = record.features.as_dict() if record.features is not None else {}
    return ArchiveEntry(
        record_id=record.id,
        title=record.title,
        author=record.author,
        source_tag=record.source_tag,
        url=record.url or record.permalink,
        created_at=record.created_at,
        published_at=record.published_at,
        added_at=record.added_at,
        archived_at=archived_at,
        reason=reason,
        score=record.score,
        num_comments=record.num_comments,
        sentiment=record.sentiment or "neutral",
        topics=tuple(record.topics or [record.source_tag]),
        enrichment_level=record.enrichment_level,
        features=tuple(sorted(features.items())),
        summary=summary,
        narrative=narrative,
        tier=tier,
    )


class FeedMaintainer:
    """라이브 피드 크기/신선도 관리. 아카이브에 쓰는 유일한 컴포넌트.

    한 번의 실행은 저장소 락을 잡은 채로 순서대로 진행한다.
    1) 최대 개수를 넘는 가장 오래된(추가 시각 기준) 항목 아카이브
    2) 보강이 없거나 오래된 항목 재보강 (오래된 순, 배치 크기만큼)
    3) 보존 기간이 지난 항목 중 한 번 이상 보강된 것만 아카이브
    """

    def __init__(
        self,
        *,
        store: InMemoryLiveStore,
        enricher: Enricher,
        logger: LogFunc,
        max_live_size: int = 50,
        enrichment_batch_size: int = 5,
        archive_age_hours: float = 24.0,
        reenrich_after_sec: float = 3600.0,
        now_provider: NowFunc | None = None,
    ) -> None:
        self._store = store
        self._enricher = enricher
        self._log = logger
        self._max_live_size = max(0, int(max_live_size))
        self._enrichment_batch_size = max(0, int(enrichment_batch_size))
        self._archive_age_sec = max(0.0, float(archive_age_hours)) * 3600.0
        self._reenrich_after_sec = max(0.0, float(reenrich_after_sec))
        self._now = now_provider or time.time
        self.last_run_at: float | None = None
        self.last_result: MaintenanceResult | None = None

    def _needs_enrichment(self, record: ContentRecord, now: float) -> bool:
        if record.features is None or record.enrichment_level <= 0 or record.last_enriched_at is None:
            return True
        return now - record.last_enriched_at >= self._reenrich_after_sec

    def _archive(self, records: list[ContentRecord], reason: str, now: float) -> int:
        if not records:
            return 0
        entries = [archive_entry_from_record(r, reason=reason, archived_at=now) for r in records]
        # 아카이브 기록 후 삭제: 중간 실패 시 라이브에 남아 다음 실행에서 다시 처리된다
        self._store.append_archive(entries)
        self._store.delete_live([r.id for r in records])
        return len(records)

    def _archive_overflow(self, now: float) -> int:
        overflow = self._store.live_size() - self._max_live_size
        if overflow <= 0:
            return 0
        oldest = self._store.query_live(order="added_at", limit=overflow)
        count = self._archive(oldest, ARCHIVE_REASON_SIZE_LIMIT, now)
        self._log(f"🗃️ 최대 {self._max_live_size}개 초과분 {count}개 아카이브")
        return count

    def _reenrich_oldest(self, now: float) -> int:
        if self._enrichment_batch_size <= 0:
            return 0
        targets = self._store.query_live(
            predicate=lambda r: self._needs_enrichment(r, now),
            order="added_at",
            limit=self._enrichment_batch_size,
        )
        for record in targets:
            self._enricher.enrich(record, now)
        if targets:
            self._store.update_live(targets)
            self._log(f"🧠 라이브 항목 {len(targets)}개 재보강")
        return len(targets)

    def _archive_aged(self, now: float) -> int:
        cutoff = now - self._archive_age_sec
        aged = self._store.query_live(
            predicate=lambda r: _age_anchor(r) < cutoff and r.enrichment_level > 0,
            order="added_at",
        )
        count = self._archive(aged, ARCHIVE_REASON_AGED_OUT, now)
        if count:
            self._log(f"📚 보존 기간 경과 항목 {count}개 아카이브")
        return count

    def run(self, now: float | None = None) -> MaintenanceResult:
        ts = now if now is not None else self._now()
        result = MaintenanceResult(started_at=ts)
        with self._store.lock:
            for label, step in (
                ("size", self._archive_overflow),
                ("enrich", self._reenrich_oldest),
                ("age", self._archive_aged),
            ):
                try:
                    count = step(ts)
                except Exception as e:
                    result.errors.append(f"{label}:{type(e).__name__}: {e}")
                    self._log(f"❌ 유지보수 단계 실패({label}): {type(e).__name__}: {e}")
                    continue
                if label == "size":
                    result.archived_size_limit = count
                elif label == "enrich":
                    result.reenriched = count
                else:
                    result.archived_aged_out = count
            result.live_size = self._store.live_size()

        if result.live_size > self._max_live_size:
            result.size_violation = True
            self._log(
                f"❌ 유지보수 후에도 라이브 항목 초과: {result.live_size}/{self._max_live_size} "
                "(다음 실행에서 재시도)"
            )
        result.finished_at = self._now() if now is None else ts
        self.last_run_at = ts
        self.last_result = result
        self._log(
            f"🔧 유지보수 완료: 아카이브 {result.archived}개 "
            f"(용량 {result.archived_size_limit}, 기간 {result.archived_aged_out}), "
            f"재보강 {result.reenriched}개, 라이브 {result.live_size}개"
        )
        return result

    def check_requirements(self, now: float | None = None) -> dict[str, Any]:
        """실제 변경 없이 다음 실행에서 할 일을 계산한다."""
        ts = now if now is not None else self._now()
        cutoff = ts - self._archive_age_sec
        records = self._store.query_live(order="added_at")
        total = len(records)
        unenriched = sum(1 for r in records if r.enrichment_level <= 0)
        stale = sum(1 for r in records if self._needs_enrichment(r, ts))
        old = sum(1 for r in records if _age_anchor(r) < cutoff)
        return {
            "totalPosts": total,
            "maxLiveSize": self._max_live_size,
            "needsMaintenance": total > self._max_live_size,
            "postsToArchive": max(0, total - self._max_live_size),
            "needsEnrichment": unenriched,
            "staleEnrichment": stale,
            "oldPostsForArchival": old,
            "recommendations": {
                "runMaintenance": total > self._max_live_size,
                "runEnrichment": stale > 0,
                "runArchival": old > 0,
            },
            "timestamp": ts,
        }

    def stats(self, now: float | None = None) -> dict[str, Any]:
        ts = now if now is not None else self._now()
        records = self._store.query_live(order="added_at")
        enriched = sum(1 for r in records if r.enrichment_level > 0)
        anchors = [_age_anchor(r) for r in records]
        return {
            "liveSize": len(records),
            "archiveSize": self._store.archive_size(),
            "enriched": enriched,
            "unenriched": len(records) - enriched,
            "oldestAgeSec": ts - min(anchors) if anchors else None,
            "newestAgeSec": ts - max(anchors) if anchors else None,
            "lastRunAt": self.last_run_at,
        }
