from __future__ import annotations

from live_feed.models.record import ContentRecord, FeatureVector, ProcessingStatus
from live_feed.processing.scheduler import Scheduler
from live_feed.publishing.history import PublishHistory

NOW = 1_700_000_000.0


def _scored(record_id: str, source: str, priority: float, *, created_at: float = NOW - 600) -> ContentRecord:
    record = ContentRecord(id=record_id, title=record_id, source_tag=source, created_at=created_at)
    record.features = FeatureVector()
    record.advance(ProcessingStatus.ENRICHED)
    record.advance(ProcessingStatus.SCORED)
    record.priority = priority
    return record


def _scheduler(**overrides) -> Scheduler:
    options = dict(logger=lambda _m: None, min_priority=0.0, min_spacing_sec=60.0, starvation_ticks=3)
    options.update(overrides)
    return Scheduler(**options)


def test_orders_by_priority_then_age_then_id() -> None:
    scheduler = _scheduler()
    history = PublishHistory(window_sec=3600)
    records = [
        _scored("b", "r/b", 1.0, created_at=NOW - 100),
        _scored("a", "r/a", 1.0, created_at=NOW - 100),
        _scored("c", "r/c", 1.0, created_at=NOW - 500),
        _scored("d", "r/d", 5.0),
    ]
    slots = scheduler.schedule(records, history, NOW)
    assert [s.record_id for s in slots] == ["d", "c", "a", "b"]
    assert [s.record_id for s in scheduler.slots()] == ["d", "c", "a", "b"]
    assert all(r.processing_status == ProcessingStatus.SCHEDULED for r in records)


def test_one_pending_slot_per_source() -> None:
    scheduler = _scheduler()
    history = PublishHistory(window_sec=3600)
    high = _scored("high", "r/news", 3.0)
    low = _scored("low", "r/news", 1.0)

    slots = scheduler.schedule([low, high], history, NOW)
    assert [s.record_id for s in slots] == ["high"]
    assert low.processing_status == ProcessingStatus.SCORED

    assert scheduler.schedule([low, high], history, NOW) == []
    assert scheduler.pending_by_source() == {"r/news": 1}


def test_priority_floor() -> None:
    scheduler = _scheduler(min_priority=1.0)
    slots = scheduler.schedule([_scored("x", "r/x", 0.5)], PublishHistory(window_sec=3600), NOW)
    assert slots == []
    assert scheduler.missed_ticks("x") == 1


def test_spacing_blocks_recently_published_source() -> None:
    scheduler = _scheduler()
    history = PublishHistory(window_sec=3600)
    history.record("old", "r/news", NOW - 30)

    record = _scored("new", "r/news", 2.0)
    assert scheduler.schedule([record], history, NOW) == []
    assert [s.record_id for s in scheduler.schedule([record], history, NOW + 31)] == ["new"]


def test_pop_ready_rechecks_spacing() -> None:
    scheduler = _scheduler()
    history = PublishHistory(window_sec=3600)
    scheduler.schedule([_scored("a", "r/a", 2.0), _scored("b", "r/b", 1.0)], history, NOW)

    history.record("elsewhere", "r/a", NOW)
    slot = scheduler.pop_ready(history, NOW + 1)
    assert slot is not None and slot.record_id == "b"
    assert scheduler.pop_ready(history, NOW + 1) is None
    assert scheduler.pop_ready(history, NOW + 61).record_id == "a"


def test_starvation_boost_lifts_over_floor() -> None:
    scheduler = _scheduler(min_priority=0.25, starvation_ticks=3, starvation_boost=0.1, starvation_max_boost=1.0)
    history = PublishHistory(window_sec=3600)
    starving = _scored("slow", "r/slow", 0.0)

    for _ in range(5):
        assert scheduler.schedule([starving], history, NOW) == []
    assert scheduler.missed_ticks("slow") == 5
    # 6번째 패스: 누락 5회 → (5 - 3) * 0.1 = 0.2 < 0.25
    assert scheduler.schedule([starving], history, NOW) == []
    slots = scheduler.schedule([starving], history, NOW)
    assert [s.record_id for s in slots] == ["slow"]
    assert slots[0].effective_priority >= 0.25
    assert scheduler.missed_ticks("slow") == 0


def test_starvation_boost_is_capped() -> None:
    scheduler = _scheduler(starvation_ticks=1, starvation_boost=1.0, starvation_max_boost=2.5)
    assert scheduler.starvation_bonus(1) == 0.0
    assert scheduler.starvation_bonus(2) == 1.0
    assert scheduler.starvation_bonus(50) == 2.5


def test_push_back_and_clear_source() -> None:
    scheduler = _scheduler()
    history = PublishHistory(window_sec=3600)
    scheduler.schedule([_scored("a", "r/a", 1.0), _scored("b", "r/b", 1.0)], history, NOW)

    slot = scheduler.pop_ready(history, NOW)
    assert slot is not None
    scheduler.push_back(slot)
    assert scheduler.pending_count() == 2

    removed = scheduler.clear_source("r/a")
    assert [s.record_id for s in removed] == ["a"]
    assert not scheduler.is_scheduled("a")
    assert scheduler.pending_by_source() == {"r/b": 1}
