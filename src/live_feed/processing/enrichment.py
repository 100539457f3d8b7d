from __future__ import annotations

import math
import re
import time

from live_feed.core.constants import (
    IMAGE_DOMAINS,
    IMAGE_SUFFIXES,
    NEGATIVE_WORDS,
    NON_THUMBNAIL_VALUES,
    POSITIVE_WORDS,
    SHORT_TOPIC_TOKENS,
    TOPIC_KEYWORDS,
)
from live_feed.models.record import ContentRecord, FeatureVector, ProcessingStatus
from live_feed.processing.buffer import PipelineBuffer
from live_feed.processing.types import AnalyzeFunc, LogFunc, NowFunc
from live_feed.utils import caps_ratio, clamp01, contains_link, word_count

_SENTIMENT_LABELS = {"positive", "negative", "neutral"}

MIN_RATE_HOURS = 0.5  # 막 올라온 게시물의 시간당 지표 폭주 방지
RECENCY_HALF_LIFE_HOURS = 6.0
ENGAGEMENT_RATE_SCALE = 5000.0
TITLE_LENGTH_SCALE = 300.0
BODY_LENGTH_SCALE = 2000.0
EXCLAMATION_SCALE = 5.0


def analyze_basic_sentiment(text: str) -> tuple[str, int, int]:
    """키워드 사전 기반 감성 분류. (라벨, 긍정 개수, 부정 개수)"""
    lowered = (text or "").lower()
    positive = sum(1 for word in POSITIVE_WORDS if word in lowered)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lowered)
    if positive > negative + 1:
        return "positive", positive, negative
    if negative > positive + 1:
        return "negative", positive, negative
    return "neutral", positive, negative


def _keyword_hit(keyword: str, text: str) -> bool:
    if keyword in SHORT_TOPIC_TOKENS:
        return bool(re.search(rf"\b{re.escape(keyword)}\b", text))
    return keyword in text


def extract_topics(title: str, source_tag: str) -> list[str]:
    text = f"{title or ''} {source_tag or ''}".lower()
    topics: list[str] = []
    for label, keywords in TOPIC_KEYWORDS.items():
        if any(_keyword_hit(kw, text) for kw in keywords):
            topics.append(label)
    return topics


def calculate_engagement_score(score: float, num_comments: float, upvote_ratio: float) -> float:
    # 점수 0.4 + 댓글 0.4 + 추천 비율 0.2
    normalized_score = min(max(score, 0.0) / 1000.0, 1.0)
    normalized_comments = min(max(num_comments, 0.0) / 500.0, 1.0)
    ratio = upvote_ratio if upvote_ratio > 0 else 0.5
    return normalized_score * 0.4 + normalized_comments * 0.4 + ratio * 0.2


def _is_self_post(record: ContentRecord) -> bool:
    domain = (record.domain or "").lower()
    if domain.startswith("self."):
        return True
    return not record.url or record.url == record.permalink


def _is_image(record: ContentRecord) -> bool:
    domain = (record.domain or "").lower()
    url = (record.url or "").lower().split("?")[0]
    return domain in IMAGE_DOMAINS or url.endswith(IMAGE_SUFFIXES)


class Enricher:
    def __init__(
        self,
        *,
        logger: LogFunc,
        batch_size: int = 10,
        analyze_func: AnalyzeFunc | None = None,
        now_provider: NowFunc | None = None,
    ) -> None:
        self._log = logger
        self._batch_size = max(1, int(batch_size))
        self._analyze = analyze_func
        self._now = now_provider or time.time

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def compute_features(self, record: ContentRecord, now: float) -> tuple[FeatureVector, str, list[str]]:
        """레코드만 보고 피처를 계산한다 (now는 최신성 계산에만 사용)."""
        age_hours = max(0.0, (now - record.created_at) / 3600.0) if record.created_at else 0.0
        rate_hours = max(age_hours, MIN_RATE_HOURS)
        score = float(record.score or 0.0)
        comments = float(record.num_comments or 0.0)
        score_per_hour = max(score, 0.0) / rate_hours
        comments_per_hour = max(comments, 0.0) / rate_hours

        title = record.title or ""
        body = record.selftext or ""
        text_all = f"{title} {body}"
        is_video = 1.0 if record.is_video else 0.0
        is_image = 1.0 if _is_image(record) else 0.0
        is_self = 1.0 if _is_self_post(record) else 0.0
        thumbnail = (record.thumbnail or "").strip().lower()
        has_thumbnail = 1.0 if thumbnail not in NON_THUMBNAIL_VALUES and thumbnail.startswith("http") else 0.0
        has_link = 1.0 if contains_link(body) or not is_self else 0.0
        exclamations = text_all.count("!")

        sentiment, positive, negative = analyze_basic_sentiment(text_all)
        topics = extract_topics(title, record.source_tag)

        features = FeatureVector(
            score=score,
            num_comments=comments,
            upvote_ratio=clamp01(float(record.upvote_ratio or 0.0)),
            score_per_hour=score_per_hour,
            comments_per_hour=comments_per_hour,
            engagement_per_hour=clamp01(
                math.log1p(score_per_hour + 2.0 * comments_per_hour) / math.log1p(ENGAGEMENT_RATE_SCALE)
            ),
            engagement_score=calculate_engagement_score(score, comments, float(record.upvote_ratio or 0.0)),
            comment_ratio=clamp01(max(comments, 0.0) / max(score, 1.0)),
            age_hours=age_hours,
            recency=0.5 ** (age_hours / RECENCY_HALF_LIFE_HOURS),
            title_length=float(len(title)),
            title_length_norm=clamp01(len(title) / TITLE_LENGTH_SCALE),
            title_word_count=float(word_count(title)),
            body_length=float(len(body)),
            body_length_norm=clamp01(len(body) / BODY_LENGTH_SCALE),
            caps_ratio=caps_ratio(title),
            exclamation_count=float(exclamations),
            exclamation_norm=clamp01(exclamations / EXCLAMATION_SCALE),
            question_count=float(text_all.count("?")),
            has_link=has_link,
            is_video=is_video,
            is_image=is_image,
            has_thumbnail=has_thumbnail,
            has_media=max(is_video, is_image),
            is_self=is_self,
            over_18=1.0 if record.over_18 else 0.0,
            positive_hits=float(positive),
            negative_hits=float(negative),
            sentiment_score=(positive - negative) / max(positive + negative, 1),
            sentiment_magnitude=abs(positive - negative) / max(positive + negative, 1),
            topic_count=float(len(topics)),
            extras={f"topic_{label}": 1.0 for label in topics},
        )
        return features, sentiment, topics

    def _apply_analysis(self, record: ContentRecord, sentiment: str, topics: list[str]) -> tuple[str, list[str]]:
        # 외부 분석 실패는 로컬 휴리스틱 결과로 대체한다
        if self._analyze is None:
            return sentiment, topics
        try:
            analysis = self._analyze(record.text_for_analysis())
        except Exception as e:
            self._log(f"⚠️ 분석 서비스 실패, 로컬 휴리스틱 사용({record.id}): {type(e).__name__}: {e}")
            return sentiment, topics
        if not isinstance(analysis, dict):
            return sentiment, topics
        ai_sentiment = str(analysis.get("sentiment") or "").strip().lower()
        if ai_sentiment in _SENTIMENT_LABELS:
            sentiment = ai_sentiment
        ai_topics = analysis.get("topics")
        if isinstance(ai_topics, list) and ai_topics:
            merged = list(topics)
            for topic in ai_topics:
                label = str(topic).strip().lower()
                if label and label not in merged:
                    merged.append(label)
            topics = merged
        return sentiment, topics

    def enrich(self, record: ContentRecord, now: float | None = None) -> ContentRecord:
        """피처를 덮어쓰고(누적 아님) raw면 enriched로 전이한다."""
        ts = now if now is not None else self._now()
        features, sentiment, topics = self.compute_features(record, ts)
        sentiment, topics = self._apply_analysis(record, sentiment, topics)
        record.features = features
        record.sentiment = sentiment
        record.topics = topics
        record.enrichment_level += 1
        record.last_enriched_at = ts
        if record.processing_status == ProcessingStatus.RAW:
            record.advance(ProcessingStatus.ENRICHED)
        return record

    def enrich_pending(self, buffer: PipelineBuffer, now: float | None = None) -> list[ContentRecord]:
        ts = now if now is not None else self._now()
        enriched: list[ContentRecord] = []
        with buffer.locked():
            pending = buffer.by_status(ProcessingStatus.RAW)[: self._batch_size]
            for record in pending:
                try:
                    enriched.append(self.enrich(record, ts))
                except Exception as e:
                    self._log(f"⚠️ 보강 실패({record.id}): {type(e).__name__}: {e}")
        return enriched
