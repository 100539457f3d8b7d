from .common import (
    caps_ratio,
    clamp01,
    clean_text,
    contains_link,
    estimate_read_time_seconds,
    format_clock,
    parse_datetime_utc,
    truncate,
    word_count,
)

__all__ = [
    "caps_ratio",
    "clamp01",
    "clean_text",
    "contains_link",
    "estimate_read_time_seconds",
    "format_clock",
    "parse_datetime_utc",
    "truncate",
    "word_count",
]
