from live_feed.models.record import ContentRecord, FeatureVector, NarrationJob
from live_feed.publishing.channel import PublishChannel
from live_feed.publishing.narration import (
    NarrationQueue,
    build_summary,
    determine_tier,
    narration_job_from_record,
)
from live_feed.publishing.queue import PriorityQueue


def _record(**overrides: object) -> ContentRecord:
    base = {"id": "n1", "title": "Title", "source_tag": "r/news", "created_at": 0.0}
    base.update(overrides)
    return ContentRecord(**base)


def _job(job_id: str, tier: str, source: str = "r/news") -> NarrationJob:
    return NarrationJob(job_id=job_id, record_id=job_id, source_tag=source, tier=tier, payload={}, created_at=0.0)


def test_priority_queue_is_fifo_for_equal_keys() -> None:
    q: PriorityQueue[tuple[int, str]] = PriorityQueue(key=lambda item: item[0])
    for item in [(2, "a"), (1, "b"), (2, "c"), (1, "d")]:
        q.push(item)
    assert list(q) == [(1, "b"), (1, "d"), (2, "a"), (2, "c")]
    assert q.peek() == (1, "b")
    assert [q.pop() for _ in range(4)] == [(1, "b"), (1, "d"), (2, "a"), (2, "c")]
    assert q.pop() is None


def test_priority_queue_pop_first_and_remove_where() -> None:
    q: PriorityQueue[int] = PriorityQueue(key=lambda item: item)
    for item in [5, 1, 3, 4]:
        q.push(item)
    assert q.pop_first(lambda item: item % 2 == 0) == 4
    assert sorted(q.remove_where(lambda item: item > 2)) == [3, 5]
    assert list(q) == [1]


def test_tier_rule() -> None:
    assert determine_tier(_record(score=20000)) == "high"
    assert determine_tier(_record(features=FeatureVector(engagement_score=0.75))) == "high"
    assert determine_tier(_record(score=1500)) == "medium"
    assert determine_tier(_record(features=FeatureVector(engagement_score=0.5))) == "medium"
    assert determine_tier(_record(score=10)) == "low"


def test_summary_uses_first_sentence_and_limit() -> None:
    record = _record(title="Big news", selftext="First sentence. Second sentence.")
    assert build_summary(record) == "Big news - First sentence"
    long_record = _record(title="x" * 200)
    summary = build_summary(long_record)
    assert len(summary) == 150
    assert summary.endswith("...")


def test_narration_queue_orders_by_tier_then_fifo() -> None:
    queue = NarrationQueue()
    for job in [_job("l1", "low"), _job("h1", "high"), _job("m1", "medium"), _job("h2", "high")]:
        queue.push(job)
    assert queue.counts_by_tier() == {"high": 2, "medium": 1, "low": 1}
    assert [queue.pop().job_id for _ in range(4)] == ["h1", "h2", "m1", "l1"]
    assert queue.pop() is None


def test_narration_queue_clear_source() -> None:
    queue = NarrationQueue()
    queue.push(_job("a", "low", "r/a"))
    queue.push(_job("b", "low", "r/b"))
    assert [j.job_id for j in queue.clear_source("r/a")] == ["a"]
    assert len(queue) == 1


def test_narration_job_payload() -> None:
    job = narration_job_from_record(_record(score=20000, sentiment="positive"), now=10.0)
    assert job.tier == "high"
    assert job.record_id == "n1"
    assert job.payload["sentiment"] == "positive"
    assert job.payload["readTimeSec"] >= 30
    assert job.payload["narrative"].startswith("# Title")


def test_narration_queue_uses_injected_narrator() -> None:
    queue = NarrationQueue(narrate_func=lambda record: f"On air: {record.title}")
    queue.on_published(_record())
    job = queue.pop()
    assert job is not None
    assert job.payload["narrative"] == "On air: Title"
    assert job.payload["summary"] == "Title"


def test_channel_isolates_listener_errors() -> None:
    logs: list[str] = []
    channel = PublishChannel(logger=logs.append)
    received: list[str] = []

    def _broken(record: ContentRecord) -> None:
        raise RuntimeError("listener down")

    channel.add_listener(_broken)
    channel.add_listener(lambda record: received.append(record.id))
    subscriber = channel.subscribe()

    channel.emit(_record())

    assert received == ["n1"]
    assert subscriber.get_nowait().id == "n1"
    assert channel.emitted == 1
    assert any("listener down" in line for line in logs)
