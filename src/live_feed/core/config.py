from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from live_feed.core.constants import (
    CONTENT_MODES,
    DEFAULT_SCORING_WEIGHTS,
    DEFAULT_SORT_STRATEGIES,
    DEFAULT_SUBREDDITS,
    SUPPORTED_SORT_STRATEGIES,
)

_repo_root = Path(__file__).resolve().parents[3]
load_dotenv(dotenv_path=_repo_root / ".env")


def _parse_csv_env(name: str) -> list[str]:
    """CSV 형태의 환경변수를 리스트로 파싱."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


def _env_int(name: str, default: int) -> int:
    """정수형 환경변수를 안전하게 파싱."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw in {"1", "true", "True", "yes", "YES"}


def _env_json(name: str, default: dict) -> dict:
    """JSON 객체 형태의 환경변수를 파싱, 실패 시 기본값 사용."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return dict(default)
    try:
        obj = json.loads(raw)
    except Exception:
        return dict(default)
    return obj if isinstance(obj, dict) else dict(default)


def _env_weights(name: str, default: dict) -> dict:
    # 값 변환은 WeightTable이 맡는다 (숫자가 아닌 값은 거기서 버려짐)
    return {str(k): v for k, v in _env_json(name, default).items()}


# ==========================================
# 수집 대상 (수정 가능)
# ==========================================

_subreddits_env = _parse_csv_env("LIVE_FEED_SUBREDDITS")
SUBREDDITS = _subreddits_env if _subreddits_env else list(DEFAULT_SUBREDDITS)
_strategies_env = [s.lower() for s in _parse_csv_env("LIVE_FEED_STRATEGIES") if s.lower() in SUPPORTED_SORT_STRATEGIES]
STRATEGIES_PER_SOURCE = _strategies_env if _strategies_env else list(DEFAULT_SORT_STRATEGIES)
RSS_FEEDS = _parse_csv_env("LIVE_FEED_RSS_FEEDS")

REPO_ROOT = Path(__file__).resolve().parents[3]
DATA_DIR = Path(os.getenv("DATA_DIR", str(REPO_ROOT / "data")))
LIVE_STORE_PATH = os.getenv("LIVE_STORE_PATH", str(DATA_DIR / "live_feed.json"))

# ==========================================
# 타이머 주기 (초)
# ==========================================

FETCH_INTERVAL_SEC = _env_float("FETCH_INTERVAL_SEC", 30.0)
PUBLISH_INTERVAL_SEC = _env_float("PUBLISH_INTERVAL_SEC", 3.0)
MAINTENANCE_INTERVAL_SEC = _env_float("MAINTENANCE_INTERVAL_SEC", 900.0)

# ==========================================
# 수집 옵션
# ==========================================

PER_SOURCE_CAP = _env_int("PER_SOURCE_CAP", 10)
FETCH_LIMIT = _env_int("FETCH_LIMIT", 10)
FETCH_TIMEOUT_SEC = _env_float("FETCH_TIMEOUT_SEC", 8.0)
FETCH_MAX_WORKERS = _env_int("FETCH_MAX_WORKERS", 4)
RATE_LIMIT_BACKOFF_SEC = _env_float("RATE_LIMIT_BACKOFF_SEC", 120.0)
CONTENT_MODE = (os.getenv("CONTENT_MODE", "sfw") or "sfw").strip().lower()
if CONTENT_MODE not in CONTENT_MODES:
    CONTENT_MODE = "sfw"
BUFFER_MAX_SIZE = _env_int("BUFFER_MAX_SIZE", 200)

# ==========================================
# 보강/점수/스케줄링 옵션
# ==========================================

ENRICHMENT_BATCH_SIZE = _env_int("ENRICHMENT_BATCH_SIZE", 10)
SCORING_WEIGHTS = _env_weights("SCORING_WEIGHTS", DEFAULT_SCORING_WEIGHTS)
MIN_PRIORITY = _env_float("MIN_PRIORITY", 0.0)
MIN_PUBLISH_SPACING_SEC = _env_float("MIN_PUBLISH_SPACING_SEC", 60.0)
PUBLISHED_WINDOW_SEC = _env_float("PUBLISHED_WINDOW_SEC", 3600.0)
STARVATION_TICKS = _env_int("STARVATION_TICKS", 20)
STARVATION_BOOST = _env_float("STARVATION_BOOST", 0.1)
STARVATION_MAX_BOOST = _env_float("STARVATION_MAX_BOOST", 2.0)

# ==========================================
# 피드 유지보수 옵션
# ==========================================

MAX_LIVE_SIZE = _env_int("MAX_LIVE_SIZE", 50)
ARCHIVE_AGE_HOURS = _env_float("ARCHIVE_AGE_HOURS", 24.0)
MAINTENANCE_ENRICH_BATCH_SIZE = _env_int("MAINTENANCE_ENRICH_BATCH_SIZE", 5)
REENRICH_AFTER_SEC = _env_float("REENRICH_AFTER_SEC", 3600.0)

# ==========================================
# AI 분석 옵션
# ==========================================

AI_ANALYSIS_ENABLED = _env_bool("AI_ANALYSIS_ENABLED", False)
AI_ANALYSIS_TIMEOUT_SEC = _env_float("AI_ANALYSIS_TIMEOUT_SEC", 5.0)

# ==========================================
# 실행기 옵션
# ==========================================

RUN_DURATION_SEC = _env_float("RUN_DURATION_SEC", 0.0)  # 0이면 Ctrl+C까지 계속 실행
STATS_LOG_INTERVAL_SEC = _env_float("STATS_LOG_INTERVAL_SEC", 60.0)


@dataclass(frozen=True)
class PipelineSettings:
    """파이프라인 전체 설정 묶음. 컴포넌트 생성자에 그대로 전달한다."""

    subreddits: list[str] = field(default_factory=lambda: list(SUBREDDITS))
    strategies_per_source: list[str] = field(default_factory=lambda: list(STRATEGIES_PER_SOURCE))
    rss_feeds: list[str] = field(default_factory=lambda: list(RSS_FEEDS))
    fetch_interval_sec: float = FETCH_INTERVAL_SEC
    publish_interval_sec: float = PUBLISH_INTERVAL_SEC
    maintenance_interval_sec: float = MAINTENANCE_INTERVAL_SEC
    per_source_cap: int = PER_SOURCE_CAP
    fetch_limit: int = FETCH_LIMIT
    fetch_timeout_sec: float = FETCH_TIMEOUT_SEC
    fetch_max_workers: int = FETCH_MAX_WORKERS
    rate_limit_backoff_sec: float = RATE_LIMIT_BACKOFF_SEC
    content_mode: str = CONTENT_MODE
    buffer_max_size: int = BUFFER_MAX_SIZE
    enrichment_batch_size: int = ENRICHMENT_BATCH_SIZE
    scoring_weights: dict = field(default_factory=lambda: dict(SCORING_WEIGHTS))
    min_priority: float = MIN_PRIORITY
    min_publish_spacing_sec: float = MIN_PUBLISH_SPACING_SEC
    published_window_sec: float = PUBLISHED_WINDOW_SEC
    starvation_ticks: int = STARVATION_TICKS
    starvation_boost: float = STARVATION_BOOST
    starvation_max_boost: float = STARVATION_MAX_BOOST
    max_live_size: int = MAX_LIVE_SIZE
    archive_age_hours: float = ARCHIVE_AGE_HOURS
    maintenance_enrich_batch_size: int = MAINTENANCE_ENRICH_BATCH_SIZE
    reenrich_after_sec: float = REENRICH_AFTER_SEC
    live_store_path: str = LIVE_STORE_PATH
    ai_analysis_enabled: bool = AI_ANALYSIS_ENABLED
    ai_analysis_timeout_sec: float = AI_ANALYSIS_TIMEOUT_SEC

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        return cls()
