from __future__ import annotations

import math
import threading
from typing import Iterable, Mapping

from live_feed.core.constants import DEFAULT_SCORING_WEIGHTS
from live_feed.models.record import ContentRecord, FeatureVector, ProcessingStatus
from live_feed.processing.buffer import PipelineBuffer
from live_feed.processing.enrichment import Enricher
from live_feed.processing.types import LogFunc


class WeightTable:
    """피처 이름 → 가중치. 생성 후에는 읽기 전용으로 취급한다."""

    def __init__(self, weights: Mapping[str, float] | None = None) -> None:
        source = DEFAULT_SCORING_WEIGHTS if weights is None else weights
        cleaned: dict[str, float] = {}
        for name, value in source.items():
            try:
                number = float(value)
            except (TypeError, ValueError):
                continue
            if math.isfinite(number):
                cleaned[str(name)] = number
        self._weights = cleaned

    def __len__(self) -> int:
        return len(self._weights)

    def __contains__(self, name: object) -> bool:
        return name in self._weights

    def items(self) -> list[tuple[str, float]]:
        return sorted(self._weights.items())

    def get(self, name: str) -> float:
        return self._weights.get(name, 0.0)

    def as_dict(self) -> dict[str, float]:
        return dict(self._weights)


class Scorer:
    def __init__(
        self,
        *,
        logger: LogFunc,
        weights: WeightTable | Mapping[str, float] | None = None,
        enricher: Enricher | None = None,
    ) -> None:
        self._log = logger
        self._enricher = enricher
        self._lock = threading.Lock()
        self._weights = weights if isinstance(weights, WeightTable) else WeightTable(weights)

    @property
    def weights(self) -> WeightTable:
        with self._lock:
            return self._weights

    def set_weights(self, weights: WeightTable | Mapping[str, float]) -> None:
        # 테이블 단위로 교체하므로 계산 도중 일부만 바뀐 가중치를 보는 일은 없다
        table = weights if isinstance(weights, WeightTable) else WeightTable(weights)
        with self._lock:
            self._weights = table
        self._log(f"⚖️ 가중치 교체: {len(table)}개 피처")

    def compute_priority(self, features: FeatureVector) -> float:
        table = self.weights
        terms: list[float] = []
        for name, weight in table.items():
            value = features.get(name)
            if not math.isfinite(value):
                continue
            product = weight * value
            if not math.isfinite(product):
                continue
            terms.append(product)
        try:
            return math.fsum(terms)
        except OverflowError:
            # 유한한 항끼리의 합도 넘칠 수 있음, 중립 우선순위로 처리
            return 0.0

    def score(self, record: ContentRecord) -> float:
        if record.features is None:
            if self._enricher is not None:
                self._log(f"🔁 피처 없음, 재보강 후 점수 계산: {record.id}")
                self._enricher.enrich(record)
            else:
                self._log(f"❌ 피처 없음, 중립 우선순위 적용: {record.id}")
                record.priority = 0.0
                return 0.0
        priority = self.compute_priority(record.features)
        record.priority = priority
        if record.processing_status == ProcessingStatus.ENRICHED:
            record.advance(ProcessingStatus.SCORED)
        return priority

    def score_records(self, records: Iterable[ContentRecord]) -> list[ContentRecord]:
        scored: list[ContentRecord] = []
        for record in records:
            try:
                self.score(record)
            except Exception as e:
                self._log(f"⚠️ 점수 계산 실패({record.id}): {type(e).__name__}: {e}")
                continue
            scored.append(record)
        return scored

    def score_pending(self, buffer: PipelineBuffer) -> list[ContentRecord]:
        with buffer.locked():
            return self.score_records(buffer.by_status(ProcessingStatus.ENRICHED))
