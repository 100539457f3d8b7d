from __future__ import annotations

from typing import Iterable

from live_feed.models.record import ContentRecord


class Deduplicator:
    """수집 후보를 진행 중/최근 발행 id 집합과 비교해 걸러내는 순수 필터.

    부수효과가 없으므로 같은 입력으로 몇 번을 호출해도 결과가 같다.
    """

    def filter(
        self,
        candidates: Iterable[ContentRecord],
        in_flight_ids: set[str],
        published_ids: set[str],
    ) -> list[ContentRecord]:
        seen_in_batch: set[str] = set()
        kept: list[ContentRecord] = []
        for record in candidates:
            record_id = record.id
            if not record_id:
                continue
            # 같은 배치 안의 중복은 첫 항목만 유지
            if record_id in seen_in_batch:
                continue
            seen_in_batch.add(record_id)
            if record_id in in_flight_ids or record_id in published_ids:
                continue
            kept.append(record)
        return kept

    def duplicate_count(self, candidates: list[ContentRecord], kept: list[ContentRecord]) -> int:
        return max(0, len(candidates) - len(kept))


def filter_by_content_mode(records: Iterable[ContentRecord], content_mode: str) -> list[ContentRecord]:
    # sfw: 성인 게시물 제외 / nsfw: 성인 게시물만 / all: 전체
    mode = (content_mode or "sfw").strip().lower()
    if mode == "all":
        return list(records)
    if mode == "nsfw":
        return [r for r in records if r.over_18]
    return [r for r in records if not r.over_18]
