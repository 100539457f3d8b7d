from __future__ import annotations

from live_feed.core.constants import ARCHIVE_REASON_AGED_OUT, ARCHIVE_REASON_SIZE_LIMIT
from live_feed.maintenance.feed_maintainer import FeedMaintainer, archive_entry_from_record
from live_feed.models.record import ContentRecord, FeatureVector
from live_feed.processing.enrichment import Enricher
from live_feed.storage.live_store import InMemoryLiveStore

NOW = 1_700_000_000.0
HOUR = 3600.0


def _live(record_id: str, added_at: float, *, enriched_at: float | None = None, score: float = 10.0) -> ContentRecord:
    record = ContentRecord(
        id=record_id,
        title=f"Story {record_id}",
        source_tag="r/news",
        created_at=added_at - 60,
        score=score,
        selftext="Body text. More.",
    )
    if enriched_at is not None:
        record.features = FeatureVector(engagement_score=0.2)
        record.enrichment_level = 1
        record.last_enriched_at = enriched_at
        record.sentiment = "neutral"
    return record


def _maintainer(store: InMemoryLiveStore, **overrides) -> tuple[FeedMaintainer, list[str]]:
    logs: list[str] = []
    options = dict(
        store=store,
        enricher=Enricher(logger=logs.append),
        logger=logs.append,
        max_live_size=50,
        enrichment_batch_size=5,
        archive_age_hours=24.0,
        reenrich_after_sec=HOUR,
        now_provider=lambda: NOW,
    )
    options.update(overrides)
    return FeedMaintainer(**options), logs


def test_size_archival_moves_oldest_excess() -> None:
    store = InMemoryLiveStore()
    for i in range(55):
        store.insert_live(_live(f"p{i}", NOW - 600 + i, enriched_at=NOW), now=NOW - 600 + i)
    maintainer, _ = _maintainer(store)

    result = maintainer.run(NOW)

    assert result.archived_size_limit == 5
    assert store.live_size() == 50
    assert store.archive_size() == 5
    archived = store.query_archive()
    assert {e.record_id for e in archived} == {f"p{i}" for i in range(5)}
    assert all(e.reason == ARCHIVE_REASON_SIZE_LIMIT for e in archived)
    assert not (store.live_ids() & {e.record_id for e in archived})
    assert not result.size_violation
    assert maintainer.last_run_at == NOW


def test_reenriches_missing_or_stale_oldest_first() -> None:
    store = InMemoryLiveStore()
    store.insert_live(_live("fresh", NOW - 100, enriched_at=NOW - 10), now=NOW - 100)
    store.insert_live(_live("stale", NOW - 90, enriched_at=NOW - 2 * HOUR), now=NOW - 90)
    store.insert_live(_live("never", NOW - 80), now=NOW - 80)
    maintainer, _ = _maintainer(store)

    result = maintainer.run(NOW)

    assert result.reenriched == 2
    assert store.get_live("fresh").enrichment_level == 1
    assert store.get_live("stale").enrichment_level == 2
    assert store.get_live("never").enrichment_level == 1
    assert store.get_live("never").features is not None
    assert store.get_live("never").last_enriched_at == NOW


def test_reenrich_batch_size_limits_work() -> None:
    store = InMemoryLiveStore()
    for i in range(8):
        store.insert_live(_live(f"p{i}", NOW - 100 + i), now=NOW - 100 + i)
    maintainer, _ = _maintainer(store, enrichment_batch_size=3)

    assert maintainer.run(NOW).reenriched == 3
    assert [r.id for r in store.query_live(lambda r: r.enrichment_level > 0)] == ["p0", "p1", "p2"]


def test_age_archival_only_takes_enriched_records() -> None:
    store = InMemoryLiveStore()
    store.insert_live(_live("old_enriched", NOW - 30 * HOUR, enriched_at=NOW - 100), now=NOW - 30 * HOUR)
    store.insert_live(_live("old_raw", NOW - 30 * HOUR), now=NOW - 30 * HOUR)
    store.insert_live(_live("young", NOW - HOUR, enriched_at=NOW - 100), now=NOW - HOUR)
    maintainer, _ = _maintainer(store, enrichment_batch_size=0)

    result = maintainer.run(NOW)

    assert result.archived_aged_out == 1
    assert store.live_ids() == {"old_raw", "young"}
    entry = store.query_archive()[0]
    assert entry.record_id == "old_enriched"
    assert entry.reason == ARCHIVE_REASON_AGED_OUT
    assert entry.narrative.startswith("# Story old_enriched")
    assert entry.summary == "Story old_enriched - Body text"


def test_check_requirements_is_dry_run() -> None:
    store = InMemoryLiveStore()
    for i in range(52):
        store.insert_live(_live(f"p{i}", NOW - 30 * HOUR + i), now=NOW - 30 * HOUR + i)
    maintainer, _ = _maintainer(store)

    report = maintainer.check_requirements(NOW)

    assert report["totalPosts"] == 52
    assert report["postsToArchive"] == 2
    assert report["needsEnrichment"] == 52
    assert report["oldPostsForArchival"] == 52
    assert report["recommendations"]["runMaintenance"]
    assert store.live_size() == 52
    assert store.archive_size() == 0


def test_store_error_is_logged_and_reported() -> None:
    class _BrokenArchive(InMemoryLiveStore):
        def append_archive(self, entries):
            raise OSError("archive offline")

    store = _BrokenArchive()
    for i in range(52):
        store.insert_live(_live(f"p{i}", NOW - 100 + i, enriched_at=NOW), now=NOW - 100 + i)
    maintainer, logs = _maintainer(store)

    result = maintainer.run(NOW)

    assert result.size_violation
    assert store.live_size() == 52
    assert result.errors
    assert any("archive offline" in line for line in logs)


def test_size_limit_entry_is_low_tier() -> None:
    entry = archive_entry_from_record(_live("x", NOW, score=50000), reason=ARCHIVE_REASON_SIZE_LIMIT, archived_at=NOW)
    assert entry.tier == "low"
    assert entry.summary == "Story x"
    assert entry.topics == ("r/news",)
