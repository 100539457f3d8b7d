from __future__ import annotations

import datetime
import queue
import time

from live_feed.core.config import RUN_DURATION_SEC, STATS_LOG_INTERVAL_SEC, PipelineSettings
from live_feed.processing.pipeline import LiveFeedPipeline, build_default_pipeline
from live_feed.utils import format_clock


def _log(message: str) -> None:
    ts = datetime.datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {message}")


def _log_stats(pipeline: LiveFeedPipeline) -> None:
    stats = pipeline.stats()
    buffer = stats["buffer"]
    _log(
        f"📊 버퍼 raw {buffer.get('raw', 0)} / enriched {buffer.get('enriched', 0)} / "
        f"scored {buffer.get('scored', 0)} / scheduled {buffer.get('scheduled', 0)}, "
        f"최근 발행 {stats['publishedInWindow']}개, 라이브 {stats['liveSize']}개, "
        f"아카이브 {stats['archiveSize']}개, 마지막 발행 {format_clock(stats['lastPublishAt'])}, "
        f"백오프 {'예' if stats['inBackoff'] else '아니오'}"
    )


def run(pipeline: LiveFeedPipeline, *, duration_sec: float = 0.0, stats_interval_sec: float = 60.0) -> None:
    published = pipeline.channel.subscribe()
    started = time.monotonic()
    last_stats = started
    pipeline.start()
    try:
        while True:
            now = time.monotonic()
            if duration_sec > 0 and now - started >= duration_sec:
                break
            try:
                record = published.get(timeout=1.0)
            except queue.Empty:
                record = None
            if record is not None:
                _log(f"🆕 [{record.source_tag}] {record.title}")
            if stats_interval_sec > 0 and now - last_stats >= stats_interval_sec:
                _log_stats(pipeline)
                last_stats = now
    except KeyboardInterrupt:
        _log("중지 요청 수신")
    finally:
        pipeline.stop()
        pipeline.channel.unsubscribe(published)
        _log_stats(pipeline)


def main() -> None:
    try:
        _log("프로그램 시작")
        settings = PipelineSettings.from_env()
        pipeline = build_default_pipeline(logger=_log, settings=settings)
        run(pipeline, duration_sec=RUN_DURATION_SEC, stats_interval_sec=STATS_LOG_INTERVAL_SEC)
        _log("종료")
    except Exception as e:
        print("❌ 오류 발생:", e)


if __name__ == "__main__":
    main()
