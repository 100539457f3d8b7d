from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Callable

from live_feed.core.constants import NARRATION_TIERS
from live_feed.models.record import ContentRecord, NarrationJob
from live_feed.publishing.queue import PriorityQueue
from live_feed.utils import clean_text, estimate_read_time_seconds

SUMMARY_MAX_CHARS = 150

_TIER_RANK = {tier: rank for rank, tier in enumerate(NARRATION_TIERS)}


def _engagement_score(record: ContentRecord) -> float:
    if record.features is None:
        return 0.0
    return record.features.engagement_score


def determine_tier(record: ContentRecord) -> str:
    """반응 점수/원 점수 기준 진행 우선순위(high/medium/low)."""
    engagement = _engagement_score(record)
    if engagement > 0.7 or record.score > 10000:
        return "high"
    if engagement > 0.4 or record.score > 1000:
        return "medium"
    return "low"


def determine_tone(record: ContentRecord) -> str:
    source = (record.source_tag or "").lower()
    if record.score > 5000 or record.num_comments > 1000:
        return "breaking"
    if record.sentiment == "negative" and record.num_comments > 100:
        return "breaking"
    if "news" in source:
        return "developing"
    if "askreddit" in source or "discussion" in source:
        return "opinion"
    if "todayilearned" in source or source.endswith("/til"):
        return "human-interest"
    return "analysis"


def build_summary(record: ContentRecord, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    summary = clean_text(record.title)
    body = clean_text(record.selftext)
    if body:
        first_sentence = body.split(".")[0].strip()
        if first_sentence:
            summary = f"{summary} - {first_sentence}"
    if len(summary) > max_chars:
        return summary[: max_chars - 3] + "..."
    return summary


def build_narrative(record: ContentRecord) -> str:
    topics = ", ".join(record.topics or [record.source_tag])
    body = clean_text(record.selftext) or "No additional content provided."
    link = record.permalink or record.url
    return (
        f"# {record.title}\n\n"
        f"**Author:** {record.author or '-'} | **Source:** {record.source_tag} | **Score:** {int(record.score)}\n\n"
        f"{body}\n\n"
        "---\n\n"
        "**Story Analysis:**\n"
        f"- **Sentiment:** {record.sentiment or 'neutral'}\n"
        f"- **Topics:** {topics}\n"
        f"- **Engagement Score:** {_engagement_score(record):.2f}\n"
        f"- **Enrichment Level:** {record.enrichment_level}\n\n"
        f"**Original Discussion:** {link}\n"
    )


def narration_job_from_record(
    record: ContentRecord,
    *,
    now: float | None = None,
    narrate: Callable[[ContentRecord], str] | None = None,
) -> NarrationJob:
    created_at = now if now is not None else time.time()
    narrative = narrate(record) if narrate is not None else build_narrative(record)
    payload = {
        "title": record.title,
        "summary": build_summary(record),
        "narrative": narrative,
        "tone": determine_tone(record),
        "sentiment": record.sentiment or "neutral",
        "topics": list(record.topics),
        "url": record.permalink or record.url,
        "readTimeSec": estimate_read_time_seconds(narrative),
    }
    return NarrationJob(
        job_id=f"narration_{record.id}_{int(created_at * 1000)}",
        record_id=record.id,
        source_tag=record.source_tag,
        tier=determine_tier(record),
        payload=payload,
        created_at=created_at,
    )


class NarrationQueue:
    """발행된 레코드의 내레이션 작업 큐. high → medium → low, 같은 등급은 FIFO."""

    def __init__(self, *, narrate_func: Callable[[ContentRecord], str] | None = None) -> None:
        self._narrate = narrate_func
        self._queue: PriorityQueue[NarrationJob] = PriorityQueue(
            key=lambda job: _TIER_RANK.get(job.tier, len(NARRATION_TIERS))
        )
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    def push(self, job: NarrationJob) -> None:
        with self._lock:
            self._queue.push(job)

    def pop(self) -> NarrationJob | None:
        with self._lock:
            return self._queue.pop()

    def clear_source(self, source_tag: str) -> list[NarrationJob]:
        with self._lock:
            return self._queue.remove_where(lambda job: job.source_tag == source_tag)

    def counts_by_tier(self) -> dict[str, int]:
        with self._lock:
            counts = Counter(job.tier for job in self._queue)
        return {tier: counts.get(tier, 0) for tier in NARRATION_TIERS}

    def on_published(self, record: ContentRecord) -> None:
        """PublishChannel 리스너로 등록해 발행 즉시 작업을 만든다."""
        self.push(narration_job_from_record(record, now=record.published_at, narrate=self._narrate))
