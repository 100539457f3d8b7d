from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
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


@dataclass(frozen=True)
class SourceClientConfig:
    base_url: str = os.getenv("REDDIT_BASE_URL", "https://www.reddit.com")
    user_agent: str = os.getenv("REDDIT_USER_AGENT", "live-feed-pipeline/1.0")
    timeout_sec: float = _env_float("SOURCE_FETCH_TIMEOUT_SEC", 6.0)
    max_limit: int = _env_int("SOURCE_FETCH_MAX_LIMIT", 100)
    top_time_filter: str = os.getenv("REDDIT_TOP_TIME_FILTER", "day")
    rate_limit_statuses: tuple[int, ...] = (429,)
