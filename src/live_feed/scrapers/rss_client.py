from __future__ import annotations

import calendar
import hashlib
import logging
from typing import Any, Callable
from urllib.parse import urlparse

import feedparser

from live_feed.models.record import ContentRecord
from live_feed.scrapers.reddit_client import FetchError, FetchOutcome
from live_feed.utils import clean_text, parse_datetime_utc

logger = logging.getLogger(__name__)


def rss_source_tag(url: str) -> str:
    host = urlparse(url or "").netloc.lower()
    return f"rss/{host}" if host else "rss/unknown"


def _entry_id(entry: Any) -> str:
    raw = getattr(entry, "id", "") or getattr(entry, "link", "") or getattr(entry, "title", "")
    if not raw:
        return ""
    return "rss_" + hashlib.sha1(str(raw).encode("utf-8")).hexdigest()[:16]


def _entry_created_at(entry: Any) -> float:
    parsed = getattr(entry, "published_parsed", None) or getattr(entry, "updated_parsed", None)
    if parsed:
        return float(calendar.timegm(parsed))
    # *_parsed가 없는 피드는 원문 날짜 문자열로 재시도
    dt = parse_datetime_utc(getattr(entry, "published", "") or getattr(entry, "updated", "") or "")
    return dt.timestamp() if dt else 0.0


class RssSourceClient:
    """RSS/Atom 피드를 feedparser로 읽어 ContentRecord로 변환.

    RSS에는 반응 지표가 없으므로 score/num_comments는 0으로 둔다.
    source_tag 인자에는 피드 URL을 넘긴다.
    """

    def __init__(self, *, feed_parser: Callable[[str], Any] = feedparser.parse, log: logging.Logger | None = None) -> None:
        self._feed_parser = feed_parser
        self._log = log or logger

    def fetch(self, source_tag: str, strategy: str, limit: int) -> FetchOutcome:
        url = source_tag
        tag = rss_source_tag(url)
        try:
            feed = self._feed_parser(url)
        except Exception as e:
            self._log.warning("rss fetch failed url=%s: %s", url, e)
            return [], FetchError(kind="network", message=f"{type(e).__name__}: {e}", source_tag=tag)

        status = int(getattr(feed, "status", 200) or 200)
        if status == 429:
            return [], FetchError(kind="rate_limited", message="429", source_tag=tag, status=status)
        if status >= 400:
            return [], FetchError(kind="http", message=str(status), source_tag=tag, status=status)
        entries = list(getattr(feed, "entries", []) or [])
        if not entries and getattr(feed, "bozo", False):
            reason = getattr(feed, "bozo_exception", "") or "malformed feed"
            return [], FetchError(kind="parse", message=str(reason), source_tag=tag)

        records: list[ContentRecord] = []
        for entry in entries[: max(1, int(limit))]:
            entry_id = _entry_id(entry)
            if not entry_id:
                continue
            link = getattr(entry, "link", "") or ""
            records.append(
                ContentRecord(
                    id=entry_id,
                    title=clean_text(getattr(entry, "title", "") or ""),
                    author=getattr(entry, "author", "") or "",
                    source_tag=tag,
                    strategy=strategy or "feed",
                    url=link,
                    permalink=link,
                    selftext=clean_text(getattr(entry, "summary", "") or ""),
                    domain=urlparse(link).netloc.lower(),
                    created_at=_entry_created_at(entry),
                )
            )
        return records, None
