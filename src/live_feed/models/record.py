from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from enum import IntEnum
from typing import Any


class StatusRegressionError(ValueError):
    """처리 상태를 뒤로(또는 같은 상태로) 되돌리려 할 때 발생."""


class TimestampAlreadySetError(ValueError):
    """한 번만 기록해야 하는 타임스탬프를 다시 쓰려 할 때 발생."""


class ProcessingStatus(IntEnum):
    RAW = 0
    ENRICHED = 1
    SCORED = 2
    SCHEDULED = 3
    PUBLISHED = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str) -> "ProcessingStatus":
        return cls[(label or "raw").strip().upper()]


@dataclass
class FeatureVector:
    """Enricher가 계산하는 고정 피처 집합.

    대부분의 값은 대략 [0, 1] 범위로 정규화되어 있다. 실험용 피처는 `extras`에
    넣고, 직렬화 시 알 수 없는 키도 `extras`로 보존해 상위 호환을 유지한다.
    """

    # 반응(engagement)
    score: float = 0.0
    num_comments: float = 0.0
    upvote_ratio: float = 0.0
    score_per_hour: float = 0.0
    comments_per_hour: float = 0.0
    engagement_per_hour: float = 0.0
    engagement_score: float = 0.0
    comment_ratio: float = 0.0
    # 최신성
    age_hours: float = 0.0
    recency: float = 0.0
    # 텍스트
    title_length: float = 0.0
    title_length_norm: float = 0.0
    title_word_count: float = 0.0
    body_length: float = 0.0
    body_length_norm: float = 0.0
    caps_ratio: float = 0.0
    exclamation_count: float = 0.0
    exclamation_norm: float = 0.0
    question_count: float = 0.0
    has_link: float = 0.0
    # 미디어
    is_video: float = 0.0
    is_image: float = 0.0
    has_thumbnail: float = 0.0
    has_media: float = 0.0
    is_self: float = 0.0
    over_18: float = 0.0
    # 감성/토픽
    positive_hits: float = 0.0
    negative_hits: float = 0.0
    sentiment_score: float = 0.0
    sentiment_magnitude: float = 0.0
    topic_count: float = 0.0
    extras: dict[str, float] = field(default_factory=dict)

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls) if f.name != "extras"]

    def get(self, name: str, default: float = 0.0) -> float:
        if name != "extras" and name in self.__dataclass_fields__:
            return float(getattr(self, name))
        return float(self.extras.get(name, default))

    def as_dict(self) -> dict[str, float]:
        out = {name: float(getattr(self, name)) for name in self.field_names()}
        for key, value in self.extras.items():
            out.setdefault(key, float(value))
        return out

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), sort_keys=True)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "FeatureVector":
        known = set(cls.field_names())
        kwargs: dict[str, float] = {}
        extras: dict[str, float] = {}
        for key, value in (data or {}).items():
            try:
                number = float(value)
            except (TypeError, ValueError):
                continue
            if not math.isfinite(number):
                continue
            if key in known:
                kwargs[key] = number
            else:
                extras[str(key)] = number
        return cls(**kwargs, extras=extras)

    @classmethod
    def from_json(cls, blob: str | None) -> "FeatureVector | None":
        if not blob:
            return None
        try:
            data = json.loads(blob)
        except Exception:
            return None
        if not isinstance(data, dict) or not data:
            return None
        return cls.from_mapping(data)


@dataclass
class ContentRecord:
    id: str
    title: str
    source_tag: str
    created_at: float
    author: str = ""
    strategy: str = ""
    url: str = ""
    permalink: str = ""
    selftext: str = ""
    domain: str = ""
    thumbnail: str = ""
    is_video: bool = False
    over_18: bool = False
    upvote_ratio: float = 0.0
    score: float = 0.0
    num_comments: float = 0.0
    processing_status: ProcessingStatus = ProcessingStatus.RAW
    ingested_at: float | None = None
    published_at: float | None = None
    added_at: float | None = None
    batch_id: str = ""
    features: FeatureVector | None = None
    priority: float | None = None
    sentiment: str = ""
    topics: list[str] = field(default_factory=list)
    enrichment_level: int = 0
    last_enriched_at: float | None = None

    @property
    def engagement(self) -> tuple[float, float]:
        return (self.score, self.num_comments)

    @property
    def status_label(self) -> str:
        return self.processing_status.label

    def advance(self, status: ProcessingStatus, *, at: float | None = None) -> None:
        # 상태는 앞으로만 이동한다 (raw < enriched < scored < scheduled < published)
        if status <= self.processing_status:
            raise StatusRegressionError(
                f"{self.id}: {self.processing_status.label} -> {status.label} 전이 불가"
            )
        if status >= ProcessingStatus.ENRICHED and self.features is None:
            raise StatusRegressionError(f"{self.id}: features 없이 {status.label} 전이 불가")
        if status == ProcessingStatus.PUBLISHED:
            self.stamp("published_at", at)
        self.processing_status = status

    def stamp(self, name: str, at: float | None) -> None:
        if name not in {"ingested_at", "published_at", "added_at"}:
            raise ValueError(f"알 수 없는 타임스탬프: {name}")
        if getattr(self, name) is not None:
            raise TimestampAlreadySetError(f"{self.id}: {name} 이미 설정됨")
        if at is None:
            raise ValueError(f"{self.id}: {name} 값 없음")
        setattr(self, name, float(at))

    def text_for_analysis(self) -> str:
        return f"{self.title} {self.selftext}".strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "sourceTag": self.source_tag,
            "strategy": self.strategy,
            "url": self.url,
            "permalink": self.permalink,
            "selftext": self.selftext,
            "domain": self.domain,
            "thumbnail": self.thumbnail,
            "isVideo": self.is_video,
            "over18": self.over_18,
            "upvoteRatio": self.upvote_ratio,
            "score": self.score,
            "numComments": self.num_comments,
            "createdAt": self.created_at,
            "processingStatus": self.processing_status.label,
            "ingestedAt": self.ingested_at,
            "publishedAt": self.published_at,
            "addedAt": self.added_at,
            "batchId": self.batch_id,
            "featuresJson": self.features.to_json() if self.features is not None else "",
            "sentiment": self.sentiment,
            "topics": list(self.topics),
            "enrichmentLevel": self.enrichment_level,
            "lastEnrichedAt": self.last_enriched_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentRecord":
        # priority는 저장하지 않는다 (features + 가중치로 재계산)
        return cls(
            id=str(data.get("id") or ""),
            title=data.get("title") or "",
            author=data.get("author") or "",
            source_tag=data.get("sourceTag") or "",
            strategy=data.get("strategy") or "",
            url=data.get("url") or "",
            permalink=data.get("permalink") or "",
            selftext=data.get("selftext") or "",
            domain=data.get("domain") or "",
            thumbnail=data.get("thumbnail") or "",
            is_video=bool(data.get("isVideo")),
            over_18=bool(data.get("over18")),
            upvote_ratio=float(data.get("upvoteRatio") or 0.0),
            score=float(data.get("score") or 0.0),
            num_comments=float(data.get("numComments") or 0.0),
            created_at=float(data.get("createdAt") or 0.0),
            processing_status=ProcessingStatus.from_label(data.get("processingStatus") or "raw"),
            ingested_at=data.get("ingestedAt"),
            published_at=data.get("publishedAt"),
            added_at=data.get("addedAt"),
            batch_id=str(data.get("batchId") or ""),
            features=FeatureVector.from_json(data.get("featuresJson")),
            sentiment=data.get("sentiment") or "",
            topics=list(data.get("topics") or []),
            enrichment_level=int(data.get("enrichmentLevel") or 0),
            last_enriched_at=data.get("lastEnrichedAt"),
        )


@dataclass
class ScheduledSlot:
    record: ContentRecord
    earliest_publish_at: float
    scheduled_at: float
    effective_priority: float

    @property
    def record_id(self) -> str:
        return self.record.id

    @property
    def source_tag(self) -> str:
        return self.record.source_tag


@dataclass(frozen=True)
class NarrationJob:
    job_id: str
    record_id: str
    source_tag: str
    tier: str
    payload: dict[str, Any]
    created_at: float


@dataclass(frozen=True)
class ArchiveEntry:
    record_id: str
    title: str
    author: str
    source_tag: str
    url: str
    created_at: float
    published_at: float | None
    added_at: float | None
    archived_at: float
    reason: str
    score: float
    num_comments: float
    sentiment: str
    topics: tuple[str, ...]
    enrichment_level: int
    features: tuple[tuple[str, float], ...]
    summary: str
    narrative: str
    tier: str

    def features_dict(self) -> dict[str, float]:
        return dict(self.features)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["topics"] = list(self.topics)
        data["features"] = self.features_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ArchiveEntry":
        features = data.get("features") or {}
        return cls(
            record_id=str(data.get("record_id") or ""),
            title=data.get("title") or "",
            author=data.get("author") or "",
            source_tag=data.get("source_tag") or "",
            url=data.get("url") or "",
            created_at=float(data.get("created_at") or 0.0),
            published_at=data.get("published_at"),
            added_at=data.get("added_at"),
            archived_at=float(data.get("archived_at") or 0.0),
            reason=data.get("reason") or "",
            score=float(data.get("score") or 0.0),
            num_comments=float(data.get("num_comments") or 0.0),
            sentiment=data.get("sentiment") or "",
            topics=tuple(data.get("topics") or ()),
            enrichment_level=int(data.get("enrichment_level") or 0),
            features=tuple(sorted((str(k), float(v)) for k, v in features.items())),
            summary=data.get("summary") or "",
            narrative=data.get("narrative") or "",
            tier=data.get("tier") or "low",
        )
