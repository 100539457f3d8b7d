from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass, field
from typing import Callable

from live_feed.models.record import ContentRecord
from live_feed.processing.buffer import PipelineBuffer
from live_feed.processing.dedupe import Deduplicator, filter_by_content_mode
from live_feed.processing.types import LogFunc, NowFunc
from live_feed.scrapers.reddit_client import FetchError, FetchOutcome

FetchFunc = Callable[[str, str, int], FetchOutcome]


@dataclass(frozen=True)
class FetchTask:
    source: str
    strategy: str
    fetch: FetchFunc

    @property
    def label(self) -> str:
        return f"{self.source}:{self.strategy}"


@dataclass
class IngestResult:
    batch_id: str = ""
    requested: int = 0
    succeeded: int = 0
    failed: int = 0
    timed_out: int = 0
    cancelled: int = 0
    fetched: int = 0
    duplicates: int = 0
    filtered: int = 0
    capped: int = 0
    trimmed: int = 0
    inserted_ids: list[str] = field(default_factory=list)
    errors: list[FetchError] = field(default_factory=list)
    rate_limited: bool = False
    skipped_backoff: bool = False

    @property
    def inserted(self) -> int:
        return len(self.inserted_ids)


def apply_per_source_cap(records: list[ContentRecord], cap: int) -> tuple[list[ContentRecord], list[ContentRecord]]:
    """source_tag별로 최신 `cap`개만 남기고 오래된 초과분은 버린다. 입력 순서는 유지."""
    if cap <= 0:
        return [], list(records)
    groups: dict[str, list[ContentRecord]] = {}
    for record in records:
        groups.setdefault(record.source_tag, []).append(record)
    keep_ids: set[str] = set()
    for group in groups.values():
        newest_first = sorted(group, key=lambda r: r.created_at, reverse=True)
        keep_ids.update(r.id for r in newest_first[:cap])
    kept = [r for r in records if r.id in keep_ids]
    dropped = [r for r in records if r.id not in keep_ids]
    return kept, dropped


class Ingestor:
    def __init__(
        self,
        *,
        tasks: list[FetchTask],
        buffer: PipelineBuffer,
        deduplicator: Deduplicator,
        published_ids_func: Callable[[], set[str]],
        logger: LogFunc,
        per_source_cap: int,
        fetch_limit: int,
        fetch_timeout_sec: float,
        max_workers: int,
        content_mode: str,
        rate_limit_backoff_sec: float,
        now_provider: NowFunc | None = None,
    ) -> None:
        self._tasks = list(tasks)
        self._buffer = buffer
        self._deduplicator = deduplicator
        self._published_ids = published_ids_func
        self._log = logger
        self._per_source_cap = per_source_cap
        self._fetch_limit = fetch_limit
        self._fetch_timeout_sec = fetch_timeout_sec
        self._max_workers = max(1, int(max_workers))
        self._content_mode = content_mode
        self._rate_limit_backoff_sec = rate_limit_backoff_sec
        self._now = now_provider or time.time
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()
        self.backoff_until: float = 0.0
        self.last_ingest_at: float | None = None

    @property
    def tasks(self) -> list[FetchTask]:
        return list(self._tasks)

    def in_backoff(self, now: float | None = None) -> bool:
        return (now if now is not None else self._now()) < self.backoff_until

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="ingest-fetch",
                )
            return self._executor

    def shutdown(self) -> None:
        # 느린 요청을 기다리지 않는다. 다음 tick()에서 executor를 새로 만든다.
        with self._executor_lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def _run_fetches(self, result: IngestResult) -> list[ContentRecord]:
        executor = self._get_executor()
        futures: dict[Future, int] = {
            executor.submit(task.fetch, task.source, task.strategy, self._fetch_limit): idx
            for idx, task in enumerate(self._tasks)
        }
        by_task: dict[int, list[ContentRecord]] = {}
        try:
            for future in as_completed(futures, timeout=self._fetch_timeout_sec):
                task = self._tasks[futures[future]]
                try:
                    records, error = future.result()
                except Exception as e:
                    records, error = [], FetchError(
                        kind="network",
                        message=f"{type(e).__name__}: {e}",
                        source_tag=task.source,
                    )
                if error is not None:
                    result.failed += 1
                    result.errors.append(error)
                    self._log(f"⚠️ 수집 실패({task.label}): {error.to_note()}")
                    if error.is_rate_limited:
                        result.rate_limited = True
                        break
                    continue
                result.succeeded += 1
                by_task[futures[future]] = list(records or [])
        except FuturesTimeoutError:
            pending = [f for f in futures if not f.done()]
            result.timed_out = len(pending)
            labels = ", ".join(self._tasks[futures[f]].label for f in pending)
            self._log(f"⏱️ 수집 시간 초과로 이번 틱에서 제외: {labels}")

        for future in futures:
            if not future.done() and future.cancel():
                result.cancelled += 1

        merged: list[ContentRecord] = []
        for idx in sorted(by_task.keys()):
            merged.extend(by_task[idx])
        return merged

    def tick(self) -> IngestResult:
        now = self._now()
        result = IngestResult(batch_id=f"batch_{int(now * 1000)}", requested=len(self._tasks))
        if self.in_backoff(now):
            result.skipped_backoff = True
            self._log(f"⏸️ 레이트 리밋 백오프 중: {self.backoff_until - now:.0f}초 남음")
            return result
        if not self._tasks:
            return result

        merged = self._run_fetches(result)
        result.fetched = len(merged)
        if result.rate_limited:
            self.backoff_until = now + self._rate_limit_backoff_sec
            self._log(f"🛑 레이트 리밋 감지: 남은 요청 중단, {self._rate_limit_backoff_sec:.0f}초 백오프")

        with self._buffer.locked():
            unique = self._deduplicator.filter(merged, self._buffer.ids(), self._published_ids())
            result.duplicates = self._deduplicator.duplicate_count(merged, unique)
            allowed = filter_by_content_mode(unique, self._content_mode)
            result.filtered = len(unique) - len(allowed)
            capped, dropped = apply_per_source_cap(allowed, self._per_source_cap)
            result.capped = len(dropped)
            for record in capped:
                record.stamp("ingested_at", now)
                record.batch_id = result.batch_id
            added = self._buffer.add_raw(capped)
            result.inserted_ids = [r.id for r in added]
            result.trimmed = len(self._buffer.trim())

        self.last_ingest_at = now
        self._log(
            f"📥 수집 완료: 요청 {result.requested}개 (성공 {result.succeeded}, 실패 {result.failed}, "
            f"시간초과 {result.timed_out}), 후보 {result.fetched}개, 중복 {result.duplicates}개, "
            f"제외 {result.filtered}개, 상한초과 {result.capped}개, 신규 {result.inserted}개"
        )
        return result


def build_fetch_tasks(
    *,
    subreddits: list[str],
    strategies: list[str],
    reddit_fetch: FetchFunc | None,
    rss_feeds: list[str] | None = None,
    rss_fetch: FetchFunc | None = None,
) -> list[FetchTask]:
    tasks: list[FetchTask] = []
    if reddit_fetch is not None:
        for subreddit in subreddits:
            for strategy in strategies:
                tasks.append(FetchTask(source=subreddit, strategy=strategy, fetch=reddit_fetch))
    if rss_fetch is not None:
        for feed_url in rss_feeds or []:
            tasks.append(FetchTask(source=feed_url, strategy="feed", fetch=rss_fetch))
    return tasks
