from __future__ import annotations

import datetime
import email.utils
import html
import re

_WS_RE = re.compile(r"\s+")  # 공백 정리 시 연속 공백을 단일 공백으로 축약
_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)  # 본문 내 링크 검출용
_WORD_RE = re.compile(r"[A-Za-z0-9']+")


def clean_text(s: str) -> str:
    """HTML 엔티티/태그를 제거하고 공백을 정리한 깔끔한 텍스트로 정규화."""
    if not s:
        return ""
    # 1) &nbsp; 같은 HTML 엔티티를 문자로 변환
    s = html.unescape(s)

    # 2) NBSP(유니코드) -> 일반 스페이스로
    s = s.replace("\u00a0", " ")

    # 3) 혹시 섞여 들어온 HTML 태그 제거
    s = re.sub(r"<[^>]+>", "", s)

    # 4) 공백 정리
    s = _WS_RE.sub(" ", s).strip()
    return s


def parse_datetime_utc(value: str) -> datetime.datetime | None:
    if not value:
        return None
    try:
        dt = datetime.datetime.fromisoformat(value)
    except Exception:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except Exception:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def caps_ratio(text: str) -> float:
    """알파벳 중 대문자 비율 (0~1). 알파벳이 없으면 0."""
    letters = [ch for ch in (text or "") if ch.isalpha() and ch.isascii()]
    if not letters:
        return 0.0
    upper = sum(1 for ch in letters if ch.isupper())
    return upper / len(letters)


def contains_link(text: str) -> bool:
    return bool(_URL_RE.search(text or ""))


def word_count(text: str) -> int:
    return len(_WORD_RE.findall(text or ""))


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def truncate(text: str, max_chars: int) -> str:
    t = clean_text(text)
    if len(t) <= max_chars:
        return t
    return t[:max_chars].rstrip() + "..."


def estimate_read_time_seconds(text: str) -> int:
    """영문 평균 읽기 속도 ~200단어/분 가정. 최소 30초."""
    words = word_count(text)
    return max(30, int((words / 200) * 60))


def format_clock(ts: float | None) -> str:
    if not ts:
        return "-"
    return datetime.datetime.fromtimestamp(ts).strftime("%H:%M:%S")
