from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Any, Callable

from live_feed.models.record import ContentRecord
from live_feed.processing.enrichment import analyze_basic_sentiment, extract_topics
from live_feed.processing.types import LogFunc
from live_feed.publishing.narration import build_narrative, build_summary
from live_feed.utils import clean_text, truncate


def local_analysis(text: str) -> dict[str, Any]:
    """외부 분석을 쓸 수 없을 때의 키워드 기반 결과."""
    cleaned = clean_text(text or "")
    sentiment, _, _ = analyze_basic_sentiment(cleaned)
    return {
        "sentiment": sentiment,
        "topics": extract_topics(cleaned, ""),
        "summary": truncate(cleaned, 150),
        "source": "local",
    }


class AnalysisService:
    """외부 LLM 분석/생성 호출을 시간 제한 안에서 수행하고, 실패하면 로컬 결과로 대체한다.

    - analyze(text) -> {sentiment, topics, summary, source}
    - generate(prompt) -> str
    - narrate(record) -> str
    어떤 경우에도 예외를 호출자에게 올리지 않는다.
    """

    def __init__(
        self,
        *,
        analyze_func: Callable[[str], dict[str, Any] | None] | None,
        generate_func: Callable[[str], str | None] | None,
        logger: LogFunc,
        timeout_sec: float = 5.0,
        enabled: bool = True,
        max_workers: int = 2,
    ) -> None:
        self._analyze = analyze_func
        self._generate = generate_func
        self._log = logger
        self._timeout_sec = max(0.1, float(timeout_sec))
        self._enabled = enabled
        self._max_workers = max(1, max_workers)
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()
        self.fallback_count = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def _call(self, label: str, func: Callable[[str], Any] | None, arg: str) -> Any:
        if not self._enabled or func is None:
            return None
        future = self._get_executor().submit(func, arg)
        try:
            return future.result(timeout=self._timeout_sec)
        except FuturesTimeoutError:
            future.cancel()
            self._log(f"⏱️ AI {label} 시간 초과({self._timeout_sec:.1f}초), 로컬 결과 사용")
        except Exception as e:
            self._log(f"⚠️ AI {label} 실패, 로컬 결과 사용: {type(e).__name__}: {e}")
        return None

    def analyze(self, text: str) -> dict[str, Any]:
        result = self._call("분석", self._analyze, text)
        fallback = local_analysis(text)
        if not isinstance(result, dict):
            self.fallback_count += 1
            return fallback
        sentiment = str(result.get("sentiment") or "").strip().lower()
        topics = result.get("topics")
        return {
            "sentiment": sentiment if sentiment in {"positive", "negative", "neutral"} else fallback["sentiment"],
            "topics": [str(t) for t in topics] if isinstance(topics, list) else fallback["topics"],
            "summary": clean_text(str(result.get("summary") or "")) or fallback["summary"],
            "source": "ai",
        }

    def generate(self, prompt: str, *, fallback: str | None = None, label: str = "생성") -> str:
        result = self._call(label, self._generate, prompt)
        if isinstance(result, str) and result.strip():
            return result.strip()
        self.fallback_count += 1
        return fallback if fallback is not None else truncate(prompt, 300)

    def narrate(self, record: ContentRecord) -> str:
        """발행된 레코드의 진행 멘트. 실패하면 로컬 마크다운 내레이션."""
        return self.generate(
            build_summary(record, max_chars=600),
            fallback=build_narrative(record),
            label="내레이션",
        )

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="ai-call")
            return self._executor

    def shutdown(self) -> None:
        # 진행 중인 호출은 기다리지 않는다. 다음 호출 때 executor를 새로 만든다.
        with self._executor_lock:
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
