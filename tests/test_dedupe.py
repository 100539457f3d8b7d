from live_feed.models.record import ContentRecord
from live_feed.processing.dedupe import Deduplicator, filter_by_content_mode


def _record(record_id: str, *, over_18: bool = False) -> ContentRecord:
    return ContentRecord(id=record_id, title=record_id, source_tag="r/news", created_at=0.0, over_18=over_18)


def test_filter_drops_in_flight_and_published() -> None:
    candidates = [_record("a"), _record("b"), _record("c")]
    kept = Deduplicator().filter(candidates, in_flight_ids={"a"}, published_ids={"c"})
    assert [r.id for r in kept] == ["b"]


def test_filter_collapses_in_batch_duplicates_to_first() -> None:
    first = _record("a")
    second = _record("a")
    kept = Deduplicator().filter([first, second, _record("")], set(), set())
    assert kept == [first]
    assert kept[0] is first


def test_filter_is_pure() -> None:
    dedupe = Deduplicator()
    candidates = [_record("a"), _record("b")]
    in_flight = {"b"}
    assert dedupe.filter(candidates, in_flight, set()) == dedupe.filter(candidates, in_flight, set())
    assert in_flight == {"b"}
    assert dedupe.duplicate_count(candidates, candidates[:1]) == 1


def test_content_mode_filter() -> None:
    records = [_record("safe"), _record("adult", over_18=True)]
    assert [r.id for r in filter_by_content_mode(records, "sfw")] == ["safe"]
    assert [r.id for r in filter_by_content_mode(records, "nsfw")] == ["adult"]
    assert len(filter_by_content_mode(records, "all")) == 2
