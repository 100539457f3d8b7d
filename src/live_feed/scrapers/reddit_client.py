from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from live_feed.models.record import ContentRecord
from live_feed.scrapers.source_client_config import SourceClientConfig
from live_feed.utils import clean_text

logger = logging.getLogger(__name__)


# -----------------------------
# Public return types
# -----------------------------
@dataclass(frozen=True)
class FetchError:
    kind: str  # "http" | "network" | "parse" | "rate_limited" | "timeout"
    message: str
    source_tag: str
    status: int = 0

    @property
    def is_rate_limited(self) -> bool:
        return self.kind == "rate_limited"

    def to_note(self) -> str:
        safe = (self.message or "").replace("\n", " ").replace("|", " ").strip()
        return f"fetch_error:{self.kind}:{safe}" if safe else f"fetch_error:{self.kind}"


FetchOutcome = tuple[list[ContentRecord], Optional[FetchError]]


def normalize_source_tag(subreddit: str) -> str:
    name = (subreddit or "").strip()
    if name.lower().startswith("r/"):
        name = name[2:]
    return f"r/{name}" if name else "r/all"


def record_from_listing_child(data: dict[str, Any], *, source_tag: str, strategy: str) -> ContentRecord | None:
    post_id = str(data.get("id") or "").strip()
    if not post_id:
        return None
    permalink = data.get("permalink") or ""
    if permalink and not permalink.startswith("http"):
        permalink = f"https://reddit.com{permalink}"
    try:
        created_at = float(data.get("created_utc") or 0.0)
    except (TypeError, ValueError):
        created_at = 0.0
    return ContentRecord(
        id=post_id,
        title=clean_text(data.get("title") or ""),
        author=data.get("author") or "",
        source_tag=source_tag,
        strategy=strategy,
        url=data.get("url") or "",
        permalink=permalink,
        selftext=data.get("selftext") or "",
        domain=data.get("domain") or "",
        thumbnail=data.get("thumbnail") or "",
        is_video=bool(data.get("is_video")),
        over_18=bool(data.get("over_18")),
        upvote_ratio=float(data.get("upvote_ratio") or 0.0),
        score=float(data.get("score") or 0.0),
        num_comments=float(data.get("num_comments") or 0.0),
        created_at=created_at,
    )


class RedditClient:
    """Reddit 공개 JSON 목록(/r/{sub}/{sort}.json) 클라이언트.

    실패 시 예외를 던지지 않고 `(빈 리스트, FetchError)`를 돌려준다. 429 응답은
    `rate_limited`로 분류해 수집기가 해당 틱의 남은 요청을 중단하도록 한다.
    """

    def __init__(
        self,
        config: SourceClientConfig | None = None,
        *,
        session: requests.Session | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._config = config or SourceClientConfig()
        self._session = session or requests.Session()
        self._log = log or logger

    def build_url(self, subreddit: str, strategy: str) -> str:
        name = normalize_source_tag(subreddit)[2:]
        return f"{self._config.base_url}/r/{name}/{strategy}.json"

    def fetch(self, source_tag: str, strategy: str, limit: int) -> FetchOutcome:
        tag = normalize_source_tag(source_tag)
        params: dict[str, Any] = {
            "limit": max(1, min(int(limit), self._config.max_limit)),
            "raw_json": 1,
        }
        if strategy == "top":
            params["t"] = self._config.top_time_filter
        url = self.build_url(tag, strategy)
        try:
            resp = self._session.get(
                url,
                params=params,
                headers={"User-Agent": self._config.user_agent},
                timeout=self._config.timeout_sec,
            )
        except requests.Timeout as e:
            self._log.warning("reddit fetch timeout tag=%s strategy=%s: %s", tag, strategy, e)
            return [], FetchError(kind="timeout", message=str(e), source_tag=tag)
        except requests.RequestException as e:
            self._log.warning("reddit fetch failed tag=%s strategy=%s: %s", tag, strategy, e)
            return [], FetchError(kind="network", message=f"{type(e).__name__}: {e}", source_tag=tag)

        if resp.status_code in self._config.rate_limit_statuses:
            self._log.warning("reddit rate limited tag=%s status=%s", tag, resp.status_code)
            return [], FetchError(
                kind="rate_limited",
                message=f"{resp.status_code} {resp.reason}",
                source_tag=tag,
                status=resp.status_code,
            )
        if not resp.ok:
            self._log.warning("reddit fetch non-2xx tag=%s status=%s", tag, resp.status_code)
            return [], FetchError(
                kind="http",
                message=f"{resp.status_code} {resp.reason}",
                source_tag=tag,
                status=resp.status_code,
            )

        try:
            payload = resp.json()
            children = payload["data"]["children"]
        except Exception as e:
            return [], FetchError(kind="parse", message=f"{type(e).__name__}: {e}", source_tag=tag)

        records: list[ContentRecord] = []
        for child in children or []:
            data = child.get("data") if isinstance(child, dict) else None
            if not isinstance(data, dict):
                continue
            record = record_from_listing_child(data, source_tag=tag, strategy=strategy)
            if record is not None:
                records.append(record)
        return records[: params["limit"]], None
