from __future__ import annotations

import dataclasses

import pytest

pytest.importorskip("requests")
pytest.importorskip("feedparser")

from live_feed.core.config import PipelineSettings  # noqa: E402
from live_feed.models.record import ContentRecord  # noqa: E402
from live_feed.processing.ingestor import FetchTask  # noqa: E402
from live_feed.processing.pipeline import build_default_pipeline  # noqa: E402
from live_feed.storage.live_store import InMemoryLiveStore  # noqa: E402

NOW = 1_700_000_000.0


def _settings(**overrides) -> PipelineSettings:
    base = dict(
        fetch_interval_sec=60.0,
        publish_interval_sec=60.0,
        maintenance_interval_sec=600.0,
        min_priority=-100.0,
        min_publish_spacing_sec=60.0,
        live_store_path="",
        ai_analysis_enabled=False,
    )
    base.update(overrides)
    return dataclasses.replace(PipelineSettings(), **base)


def _fetch(source: str, strategy: str, limit: int):
    return [
        ContentRecord(
            id=f"{source}-{strategy}-{i}",
            title=f"{source} story {i}",
            source_tag=source,
            strategy=strategy,
            created_at=NOW - 600 - i,
            score=100.0 * (i + 1),
            num_comments=5.0,
        )
        for i in range(3)
    ], None


def _pipeline(clock: dict, **overrides):
    logs: list[str] = []
    tasks = [FetchTask("r/a", "hot", _fetch), FetchTask("r/b", "hot", _fetch)]
    pipeline = build_default_pipeline(
        logger=logs.append,
        settings=_settings(**overrides),
        tasks=tasks,
        store=InMemoryLiveStore(),
        now_provider=lambda: clock["now"],
    )
    return pipeline, logs


def test_end_to_end_ticks() -> None:
    clock = {"now": NOW}
    pipeline, _ = _pipeline(clock)

    ingest = pipeline.ingest_once()
    assert ingest.inserted == 6
    assert pipeline.pending_by_source() == {"r/a": 3, "r/b": 3}

    first = pipeline.publish_once()
    assert first.published is not None
    second = pipeline.publish_once()
    assert second.published is not None
    assert {first.published.source_tag, second.published.source_tag} == {"r/a", "r/b"}
    assert pipeline.publish_once().published is None

    narration = pipeline.narration.counts_by_tier()
    assert sum(narration.values()) == 2

    stats = pipeline.stats()
    assert stats["liveSize"] == 2
    assert stats["publishedInWindow"] == 2
    assert stats["buffer"]["scored"] + stats["buffer"]["scheduled"] == 4
    assert stats["lastIngestAt"] == NOW
    assert stats["inBackoff"] is False

    # 발행된 id는 다시 수집되지 않는다
    again = pipeline.ingest_once()
    assert again.inserted == 0
    assert again.duplicates == 6

    clock["now"] = NOW + 61
    assert pipeline.publish_once().published is not None


def test_clear_source_drops_pending_work() -> None:
    clock = {"now": NOW}
    pipeline, _ = _pipeline(clock)
    pipeline.ingest_once()
    pipeline.publish_once()

    cleared = pipeline.clear_source("r/a")

    assert cleared["buffered"] + cleared["scheduled"] >= 2
    assert "r/a" not in pipeline.pending_by_source()
    assert "r/a" not in pipeline.scheduler.pending_by_source()


def test_maintenance_runs_through_pipeline() -> None:
    clock = {"now": NOW}
    pipeline, _ = _pipeline(clock, max_live_size=1)
    pipeline.ingest_once()
    pipeline.publish_once()
    pipeline.publish_once()

    result = pipeline.maintain_once()

    assert result.archived_size_limit == 1
    assert pipeline.stats()["archiveSize"] == 1
    assert pipeline.stats()["lastMaintenanceAt"] == NOW


def test_start_stop_keeps_data() -> None:
    clock = {"now": NOW}
    pipeline, logs = _pipeline(clock)
    pipeline.start()
    try:
        assert pipeline.is_running
        pipeline.start()
    finally:
        pipeline.stop(join_timeout_sec=5.0)
    assert not pipeline.is_running
    assert any("이미 실행 중" in line for line in logs)

    live_before = pipeline.store.live_size()
    pipeline.start()
    pipeline.stop(join_timeout_sec=5.0)
    assert pipeline.store.live_size() >= live_before


def test_ai_narration_and_shutdown_follow_the_pipeline(monkeypatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    clock = {"now": NOW}
    pipeline, _ = _pipeline(clock, ai_analysis_enabled=True, ai_analysis_timeout_sec=2.0)
    assert pipeline.ai_service is not None

    pipeline.ingest_once()
    assert pipeline.publish_once().published is not None
    job = pipeline.narration.pop()

    # 키가 없으면 로컬 내레이션으로 대체
    assert job is not None
    assert job.payload["narrative"].startswith("# ")
    assert pipeline.ai_service.fallback_count >= 1

    pipeline.stop()
    assert pipeline.ai_service._executor is None
